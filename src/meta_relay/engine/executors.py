"""
Relay submission with bounded retry on nonce conflicts.

Drives one signed meta-transfer to confirmation:

    BUILD -> SIGN -> SUBMIT -> CONFIRMED
                        |
                        +-> NONCE_CONFLICT -> reallocate, re-sign -> SUBMIT
                        +-> FAILED (raised)

The deadline is checked before anything touches the network and stays
fixed for every attempt; only the nonce and signature change on retry.
"""

import logging
import time
from typing import TYPE_CHECKING, Callable, List, NamedTuple, Optional

from ..schemas.bases import AttemptOutcome
from ..schemas.relays import ChainDomain, MetaTransferRequest, RelayAttempt, SubmissionReceipt
from .exceptions import NonceConflictError, RelayError, RetryBudgetExhausted, ValidationError
from .nonces import NonceAllocator

if TYPE_CHECKING:
    from ..adapters.bases import ChainAdapter
    from ..adapters.evm.signatures import RequestSigner


logger = logging.getLogger(__name__)

DEFAULT_RETRY_BUDGET: int = 5


class SubmissionOutcome(NamedTuple):
    receipt: SubmissionReceipt
    request: MetaTransferRequest
    attempts: List[RelayAttempt]


class RetryCoordinator:
    """
    Signs and submits a meta-transfer, re-signing with a fresh nonce when
    the verifier contract reports the nonce as already used.

    Args:
        allocator: Nonce source shared with the caller that built the request.
        signer: Produces the sender's signature for each attempt.
        retry_budget: Total number of submissions allowed, first one included.
        clock: Returns the current Unix time in seconds.
    """

    def __init__(
        self,
        allocator: NonceAllocator,
        signer: "RequestSigner",
        retry_budget: int = DEFAULT_RETRY_BUDGET,
        clock: Callable[[], float] = time.time,
    ):
        if retry_budget < 1:
            raise ValueError("retry_budget must be at least 1")
        self._allocator = allocator
        self._signer = signer
        self.retry_budget = retry_budget
        self._clock = clock

    def _ensure_deadline(self, request: MetaTransferRequest, attempts: int = 0) -> None:
        now = int(self._clock())
        if request.deadline <= now:
            raise ValidationError(
                f"Deadline {request.deadline} has elapsed (now {now})",
                {"deadline": request.deadline, "now": now, "attempts": attempts},
            )

    async def _refresh_nonce(self, adapter: "ChainAdapter", request: MetaTransferRequest) -> MetaTransferRequest:
        """Adopt the contract's counter when it is ahead of the local nonce."""
        sender = request.from_address
        try:
            onchain = await adapter.get_onchain_nonce(sender)
        except Exception as e:
            logger.warning("getNonce refresh for %s failed, keeping local nonce %s: %s", sender, request.nonce, e)
            return request

        if onchain <= request.nonce:
            return request
        nonce = await self._allocator.reserve_at_least(adapter.chain, str(sender), onchain)
        logger.info("On-chain nonce %s for %s is ahead of local %s, using %s", onchain, sender, request.nonce, nonce)
        return request.with_nonce(nonce)

    async def run(
        self,
        adapter: "ChainAdapter",
        domain: ChainDomain,
        request: MetaTransferRequest,
        private_key: str,
    ) -> SubmissionOutcome:
        """
        Submit ``request`` until it confirms or the budget is spent.

        Args:
            adapter: Chain adapter that submits and classifies failures.
            domain: Domain the request is signed under.
            request: Request carrying the initial nonce and the fixed deadline.
            private_key: Sender's key, used to re-sign on every attempt.

        Returns:
            SubmissionOutcome with the receipt, the confirmed request and the
            per-attempt records.

        Raises:
            ValidationError: If the deadline has elapsed. Raised before any
                network call on the first attempt.
            SubmissionError: On a non-retryable submission failure.
            RetryBudgetExhausted: If every attempt hit a nonce conflict.
        """
        self._ensure_deadline(request)
        request = await self._refresh_nonce(adapter, request)

        attempts: List[RelayAttempt] = []
        last_error: Optional[NonceConflictError] = None

        for index in range(1, self.retry_budget + 1):
            if index > 1:
                self._ensure_deadline(request, attempts=len(attempts))

            signed = self._signer.sign_request(domain, request, private_key)
            attempt = RelayAttempt(
                attempt_index=index,
                nonce_used=signed.nonce,
                signature_used=signed.signature,
            )
            attempts.append(attempt)
            logger.info("Submitting meta-transfer for %s, attempt %s/%s, nonce %s",
                        signed.from_address, index, self.retry_budget, signed.nonce)

            try:
                receipt = await adapter.submit_meta_transfer(signed)
            except NonceConflictError as e:
                attempt.outcome = AttemptOutcome.NONCE_CONFLICT
                attempt.error = str(e)
                last_error = e
                logger.warning("Nonce %s rejected for %s (attempt %s/%s)",
                               signed.nonce, signed.from_address, index, self.retry_budget)
                if index < self.retry_budget:
                    nonce = await self._allocator.next(adapter.chain, str(signed.from_address))
                    request = signed.with_nonce(nonce)
                continue
            except RelayError as e:
                attempt.outcome = AttemptOutcome.FAILED
                attempt.error = str(e)
                e.details.setdefault("attempts", len(attempts))
                raise

            attempt.outcome = AttemptOutcome.CONFIRMED
            attempt.tx_id = receipt.tx_id
            logger.info("Meta-transfer confirmed: %s (attempt %s)", receipt.tx_id, index)
            return SubmissionOutcome(receipt=receipt, request=signed, attempts=attempts)

        raise RetryBudgetExhausted(len(attempts), last_error)
