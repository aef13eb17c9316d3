"""
Per-sender nonce allocation for meta-transfer authorizations.

- Candidate nonces come from wall-clock milliseconds
- Issued values are strictly increasing per (chain, address), even when the
  clock stalls or goes backwards
- Storage sits behind the NonceStore interface; the in-memory store
  serializes reservations with a per-key asyncio.Lock

The in-memory store only covers a single process. Two relayer processes
sharing a sender can still collide; the verifier contract rejects the
duplicate and the retry loop recovers with a fresh nonce.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from ..schemas.bases import ChainKind


NonceKey = Tuple[str, str]


def _now_ms() -> int:
    return int(time.time() * 1000)


class NonceStore(ABC):
    """Backing storage for last-issued nonces, keyed by (chain, address)."""

    @abstractmethod
    async def reserve(self, key: NonceKey, candidate: int) -> int:
        """
        Atomically issue ``max(candidate, last_issued + 1)`` and record it.

        Args:
            key: (chain, address) pair.
            candidate: Preferred value for the next nonce.

        Returns:
            int: The issued nonce.
        """

    @abstractmethod
    async def last_issued(self, key: NonceKey) -> Optional[int]:
        """Return the last issued nonce for ``key``, or None if none was issued."""


class InMemoryNonceStore(NonceStore):
    """Process-local NonceStore."""

    def __init__(self):
        self._issued: Dict[NonceKey, int] = {}
        self._locks: Dict[NonceKey, asyncio.Lock] = {}

    def _lock_for(self, key: NonceKey) -> asyncio.Lock:
        # setdefault is atomic within a single event loop
        return self._locks.setdefault(key, asyncio.Lock())

    async def reserve(self, key: NonceKey, candidate: int) -> int:
        async with self._lock_for(key):
            last = self._issued.get(key)
            issued = candidate if last is None else max(candidate, last + 1)
            self._issued[key] = issued
            return issued

    async def last_issued(self, key: NonceKey) -> Optional[int]:
        return self._issued.get(key)


class NonceAllocator:
    """
    Issues authorization nonces for senders.

    Example:
        allocator = NonceAllocator()
        nonce = await allocator.next(ChainKind.EVM, "0xAbc...")
        nonce = await allocator.reserve_at_least(ChainKind.EVM, "0xAbc...", onchain_nonce)
    """

    def __init__(self, store: Optional[NonceStore] = None, clock_ms: Callable[[], int] = _now_ms):
        self._store = store or InMemoryNonceStore()
        self._clock_ms = clock_ms

    @staticmethod
    def _key(chain: ChainKind, address: str) -> NonceKey:
        return (ChainKind(chain).value, str(address))

    async def next(self, chain: ChainKind, address: str) -> int:
        """Return a nonce strictly greater than any previously issued for the sender."""
        return await self._store.reserve(self._key(chain, address), self._clock_ms())

    async def reserve_at_least(self, chain: ChainKind, address: str, floor: int) -> int:
        """
        Issue a nonce no lower than ``floor``.

        Used after reading the contract's ``getNonce``: the result is
        ``max(floor, last_issued + 1)``, so a stale on-chain value never
        moves the sequence backwards.
        """
        return await self._store.reserve(self._key(chain, address), int(floor))

    async def last_issued(self, chain: ChainKind, address: str) -> Optional[int]:
        return await self._store.last_issued(self._key(chain, address))
