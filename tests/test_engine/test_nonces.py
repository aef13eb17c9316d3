"""
Nonce Allocator Test Suite

Tests for per-sender nonce issuance:
- Strictly increasing values when the clock stalls or runs backwards
- Uniqueness under concurrent allocation
- Floors taken from the contract's getNonce
- Independence of (chain, address) keys

Usage:
    pytest tests/test_engine/test_nonces.py -v
"""

import asyncio

import pytest

from relay_mocks import MOCK_RECIPIENT_ADDRESS, MOCK_SENDER_ADDRESS, frozen_clock_ms

from meta_relay.engine.nonces import InMemoryNonceStore, NonceAllocator
from meta_relay.schemas.bases import ChainKind


class TestNonceAllocator:
    """Test nonce issuance ordering."""

    @pytest.mark.asyncio
    async def test_first_nonce_is_clock_candidate(self):
        allocator = NonceAllocator(clock_ms=frozen_clock_ms(1_700_000_000_000))
        assert await allocator.next(ChainKind.EVM, MOCK_SENDER_ADDRESS) == 1_700_000_000_000

    @pytest.mark.asyncio
    async def test_frozen_clock_still_increases(self):
        allocator = NonceAllocator(clock_ms=frozen_clock_ms(1_000))
        issued = [await allocator.next(ChainKind.EVM, MOCK_SENDER_ADDRESS) for _ in range(5)]
        assert issued == [1_000, 1_001, 1_002, 1_003, 1_004]

    @pytest.mark.asyncio
    async def test_clock_going_backwards(self):
        readings = iter([5_000, 4_000, 3_000])
        allocator = NonceAllocator(clock_ms=lambda: next(readings))
        issued = [await allocator.next(ChainKind.TRON, MOCK_SENDER_ADDRESS) for _ in range(3)]
        assert issued == [5_000, 5_001, 5_002]

    @pytest.mark.asyncio
    async def test_advancing_clock_is_used(self):
        readings = iter([1_000, 9_000])
        allocator = NonceAllocator(clock_ms=lambda: next(readings))
        first = await allocator.next(ChainKind.EVM, MOCK_SENDER_ADDRESS)
        second = await allocator.next(ChainKind.EVM, MOCK_SENDER_ADDRESS)
        assert (first, second) == (1_000, 9_000)

    @pytest.mark.asyncio
    async def test_concurrent_allocations_are_unique(self):
        allocator = NonceAllocator(clock_ms=frozen_clock_ms(1_000))
        issued = await asyncio.gather(
            *[allocator.next(ChainKind.EVM, MOCK_SENDER_ADDRESS) for _ in range(50)]
        )
        assert len(set(issued)) == 50
        assert sorted(issued) == list(range(1_000, 1_050))

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        allocator = NonceAllocator(clock_ms=frozen_clock_ms(1_000))
        await allocator.next(ChainKind.EVM, MOCK_SENDER_ADDRESS)
        await allocator.next(ChainKind.EVM, MOCK_SENDER_ADDRESS)

        assert await allocator.next(ChainKind.EVM, MOCK_RECIPIENT_ADDRESS) == 1_000
        assert await allocator.next(ChainKind.TRON, MOCK_SENDER_ADDRESS) == 1_000

    @pytest.mark.asyncio
    async def test_chain_accepts_plain_string(self):
        allocator = NonceAllocator(clock_ms=frozen_clock_ms(1_000))
        await allocator.next("evm", MOCK_SENDER_ADDRESS)
        assert await allocator.last_issued(ChainKind.EVM, MOCK_SENDER_ADDRESS) == 1_000


class TestReserveAtLeast:
    """Test floors read from the contract."""

    @pytest.mark.asyncio
    async def test_floor_above_last_issued(self):
        allocator = NonceAllocator(clock_ms=frozen_clock_ms(1_000))
        await allocator.next(ChainKind.EVM, MOCK_SENDER_ADDRESS)
        assert await allocator.reserve_at_least(ChainKind.EVM, MOCK_SENDER_ADDRESS, 7_000) == 7_000
        # The clock candidate is now behind the floor
        assert await allocator.next(ChainKind.EVM, MOCK_SENDER_ADDRESS) == 7_001

    @pytest.mark.asyncio
    async def test_stale_floor_never_moves_backwards(self):
        allocator = NonceAllocator(clock_ms=frozen_clock_ms(1_000))
        await allocator.next(ChainKind.EVM, MOCK_SENDER_ADDRESS)
        assert await allocator.reserve_at_least(ChainKind.EVM, MOCK_SENDER_ADDRESS, 3) == 1_001


class TestInMemoryNonceStore:
    """Test the process-local store."""

    @pytest.mark.asyncio
    async def test_last_issued_unknown_key(self):
        store = InMemoryNonceStore()
        assert await store.last_issued(("evm", MOCK_SENDER_ADDRESS)) is None

    @pytest.mark.asyncio
    async def test_reserve_records_value(self):
        store = InMemoryNonceStore()
        assert await store.reserve(("evm", MOCK_SENDER_ADDRESS), 42) == 42
        assert await store.last_issued(("evm", MOCK_SENDER_ADDRESS)) == 42

    @pytest.mark.asyncio
    async def test_allocator_uses_injected_store(self):
        store = InMemoryNonceStore()
        allocator = NonceAllocator(store=store, clock_ms=frozen_clock_ms(10))
        await allocator.next(ChainKind.TRON, "TXYZ")
        assert await store.last_issued(("tron", "TXYZ")) == 10
