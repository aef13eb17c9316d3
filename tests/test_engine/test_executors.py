"""
Retry Coordinator Test Suite

Tests for signing and submission with bounded retry:
- Confirmation on the first attempt
- Re-signing with a fresh nonce after nonce conflicts
- Budget exhaustion after exactly ``retry_budget`` attempts
- Deadline checks before any network call
- Non-retryable failures and on-chain nonce refresh

Usage:
    pytest tests/test_engine/test_executors.py -v
"""

import pytest

from relay_mocks import (
    CONFLICT,
    MOCK_DEADLINE_FUTURE,
    MOCK_DEADLINE_PAST,
    MOCK_SENDER_ADDRESS,
    MOCK_SENDER_PRIVATE_KEY,
    FakeEVMAdapter,
    create_mock_domain,
    create_mock_request,
    frozen_clock,
    frozen_clock_ms,
)

from meta_relay.adapters.evm.signatures import RequestSigner
from meta_relay.adapters.evm.verifies import verify_meta_transfer_signature
from meta_relay.engine.exceptions import RetryBudgetExhausted, SubmissionError, ValidationError
from meta_relay.engine.executors import RetryCoordinator
from meta_relay.engine.nonces import NonceAllocator
from meta_relay.schemas.bases import AttemptOutcome, ChainKind


@pytest.fixture
def allocator():
    return NonceAllocator(clock_ms=frozen_clock_ms(1_000))


@pytest.fixture
def coordinator(allocator):
    return RetryCoordinator(allocator, RequestSigner(), retry_budget=5, clock=frozen_clock())


async def _initial_request(allocator, **kwargs):
    nonce = await allocator.next(ChainKind.EVM, MOCK_SENDER_ADDRESS)
    return create_mock_request(nonce=nonce, **kwargs)


class TestRetryCoordinatorSuccess:
    """Test confirmed submissions."""

    @pytest.mark.asyncio
    async def test_first_attempt_confirms(self, allocator, coordinator):
        adapter = FakeEVMAdapter()
        request = await _initial_request(allocator)

        outcome = await coordinator.run(adapter, create_mock_domain(), request, MOCK_SENDER_PRIVATE_KEY)

        assert len(outcome.attempts) == 1
        assert outcome.attempts[0].outcome == AttemptOutcome.CONFIRMED
        assert outcome.attempts[0].tx_id == outcome.receipt.tx_id
        assert outcome.request.nonce == 1_000
        assert outcome.request.signature is not None

    @pytest.mark.asyncio
    async def test_two_conflicts_then_success(self, allocator, coordinator):
        adapter = FakeEVMAdapter(outcomes=[CONFLICT, CONFLICT])
        request = await _initial_request(allocator)
        domain = create_mock_domain()

        outcome = await coordinator.run(adapter, domain, request, MOCK_SENDER_PRIVATE_KEY)

        assert len(outcome.attempts) == 3
        assert [a.outcome for a in outcome.attempts] == [
            AttemptOutcome.NONCE_CONFLICT,
            AttemptOutcome.NONCE_CONFLICT,
            AttemptOutcome.CONFIRMED,
        ]
        assert [a.nonce_used for a in outcome.attempts] == [1_000, 1_001, 1_002]
        assert outcome.request.nonce == request.nonce + 2

    @pytest.mark.asyncio
    async def test_retries_only_change_nonce_and_signature(self, allocator, coordinator):
        adapter = FakeEVMAdapter(outcomes=[CONFLICT])
        request = await _initial_request(allocator)
        domain = create_mock_domain()

        await coordinator.run(adapter, domain, request, MOCK_SENDER_PRIVATE_KEY)

        first, second = adapter.submitted
        assert first.nonce != second.nonce
        assert first.signature != second.signature
        fixed = ("from_address", "to_address", "amount", "deadline", "gas_cost_usd")
        for name in fixed:
            assert getattr(first, name) == getattr(second, name)
        assert second.deadline == MOCK_DEADLINE_FUTURE
        assert verify_meta_transfer_signature(domain, first)
        assert verify_meta_transfer_signature(domain, second)

    @pytest.mark.asyncio
    async def test_onchain_nonce_ahead_is_adopted(self, allocator, coordinator):
        adapter = FakeEVMAdapter(onchain_nonce=50_000)
        request = await _initial_request(allocator)

        outcome = await coordinator.run(adapter, create_mock_domain(), request, MOCK_SENDER_PRIVATE_KEY)

        assert adapter.submitted[0].nonce == 50_000
        assert outcome.request.nonce == 50_000

    @pytest.mark.asyncio
    async def test_get_nonce_failure_keeps_local_nonce(self, allocator, coordinator):
        adapter = FakeEVMAdapter(onchain_nonce=RuntimeError("rpc timeout"))
        request = await _initial_request(allocator)

        outcome = await coordinator.run(adapter, create_mock_domain(), request, MOCK_SENDER_PRIVATE_KEY)

        assert outcome.request.nonce == 1_000


class TestRetryCoordinatorFailures:
    """Test budget, deadline and fatal failures."""

    @pytest.mark.asyncio
    async def test_budget_exhausted_after_five_conflicts(self, allocator, coordinator):
        adapter = FakeEVMAdapter(outcomes=[CONFLICT] * 5)
        request = await _initial_request(allocator)

        with pytest.raises(RetryBudgetExhausted) as exc_info:
            await coordinator.run(adapter, create_mock_domain(), request, MOCK_SENDER_PRIVATE_KEY)

        assert exc_info.value.attempts == 5
        assert len(adapter.submitted) == 5
        assert exc_info.value.last_error.nonce == adapter.submitted[-1].nonce

    @pytest.mark.asyncio
    async def test_custom_budget(self, allocator):
        coordinator = RetryCoordinator(allocator, RequestSigner(), retry_budget=2, clock=frozen_clock())
        adapter = FakeEVMAdapter(outcomes=[CONFLICT] * 5)
        request = await _initial_request(allocator)

        with pytest.raises(RetryBudgetExhausted):
            await coordinator.run(adapter, create_mock_domain(), request, MOCK_SENDER_PRIVATE_KEY)
        assert len(adapter.submitted) == 2

    @pytest.mark.asyncio
    async def test_past_deadline_makes_no_network_call(self, allocator, coordinator):
        adapter = FakeEVMAdapter()
        request = await _initial_request(allocator, deadline=MOCK_DEADLINE_PAST)

        with pytest.raises(ValidationError):
            await coordinator.run(adapter, create_mock_domain(), request, MOCK_SENDER_PRIVATE_KEY)

        assert adapter.calls == []

    @pytest.mark.asyncio
    async def test_deadline_equal_to_now_is_elapsed(self, allocator, coordinator):
        adapter = FakeEVMAdapter()
        request = await _initial_request(allocator, deadline=MOCK_DEADLINE_PAST + 1)

        with pytest.raises(ValidationError):
            await coordinator.run(adapter, create_mock_domain(), request, MOCK_SENDER_PRIVATE_KEY)

    @pytest.mark.asyncio
    async def test_deadline_elapsing_between_attempts(self, allocator):
        readings = iter([MOCK_DEADLINE_FUTURE - 10, MOCK_DEADLINE_FUTURE + 1])
        coordinator = RetryCoordinator(allocator, RequestSigner(), clock=lambda: next(readings))
        adapter = FakeEVMAdapter(outcomes=[CONFLICT, CONFLICT])
        request = await _initial_request(allocator)

        with pytest.raises(ValidationError):
            await coordinator.run(adapter, create_mock_domain(), request, MOCK_SENDER_PRIVATE_KEY)
        assert len(adapter.submitted) == 1

    @pytest.mark.asyncio
    async def test_submission_error_is_not_retried(self, allocator, coordinator):
        adapter = FakeEVMAdapter(outcomes=[SubmissionError("insufficient balance", tx_id="0xabc")])
        request = await _initial_request(allocator)

        with pytest.raises(SubmissionError) as exc_info:
            await coordinator.run(adapter, create_mock_domain(), request, MOCK_SENDER_PRIVATE_KEY)

        assert exc_info.value.tx_id == "0xabc"
        assert len(adapter.submitted) == 1

    @pytest.mark.asyncio
    async def test_failure_after_conflict_reports_attempts(self, allocator, coordinator):
        adapter = FakeEVMAdapter(outcomes=[CONFLICT, SubmissionError("out of gas")])
        request = await _initial_request(allocator)

        with pytest.raises(SubmissionError) as exc_info:
            await coordinator.run(adapter, create_mock_domain(), request, MOCK_SENDER_PRIVATE_KEY)

        assert exc_info.value.details["attempts"] == 2
        assert exc_info.value.to_dict()["details"]["attempts"] == 2

    def test_budget_must_be_positive(self, allocator):
        with pytest.raises(ValueError):
            RetryCoordinator(allocator, RequestSigner(), retry_budget=0)
