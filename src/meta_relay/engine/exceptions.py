"""
Exception and Error Definitions Module

Defines the custom exception hierarchy for meta-transfer relaying: input
validation, chain configuration, nonce conflicts, price lookup, account
activation and on-chain submission. All exceptions inherit from RelayError
for unified exception handling.

Exception Hierarchy:
    RelayError (root)
    ├── ValidationError
    ├── ChainConfigError
    ├── NonceConflictError
    ├── PriceOracleUnavailable
    ├── ActivationFundingFailed
    ├── SubmissionError
    └── RetryBudgetExhausted
"""

from typing import Any, Dict, Optional


class RelayError(Exception):
    """
    Root exception class for all relay-specific exceptions.

    All custom exceptions inherit from this class to enable unified
    exception handling. ``to_dict()`` renders the structured failure
    message handed back to the routing layer.

    Attributes:
        message: Human-readable description of the failure
        details: Optional machine-readable context
    """

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Return ``{error, message, details}`` for the caller."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(RelayError):
    """
    Raised when caller input is malformed or no longer usable.

    This includes scenarios such as:
    - Malformed sender key or recipient address
    - Non-positive or unrepresentable amount
    - Deadline already elapsed before submission
    - Signature that cannot be normalized to 65 bytes
    """
    pass


class ChainConfigError(RelayError):
    """
    Raised when chain configuration is missing or inconsistent.

    This includes scenarios such as:
    - Chain id neither configured nor inferable from the endpoint
    - Explicit chain id disagreeing with the connected network
    - Missing contract address or relayer key
    - Unknown chain name
    """
    pass


class NonceConflictError(RelayError):
    """
    Raised when the verifier contract rejects a nonce as already consumed.

    Retryable: the coordinator allocates a fresh nonce, re-signs and
    resubmits.

    Attributes:
        nonce: The nonce that was rejected
    """

    def __init__(self, nonce: int, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message or f"Nonce {nonce} already used", details)
        self.nonce = nonce


class PriceOracleUnavailable(RelayError):
    """
    Raised when the native-currency price cannot be fetched.

    Never surfaced to callers: the gas estimator recovers with the
    chain's static fallback rate.
    """
    pass


class ActivationFundingFailed(RelayError):
    """
    Raised when a reserve top-up could not be completed.

    This includes scenarios such as:
    - Funding transfer rejected at broadcast
    - Funding transaction reverted
    - Confirmation not observed before the activation timeout

    Attributes:
        address: Account that was being funded
    """

    def __init__(self, address: str, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message or f"Failed to fund {address}", details)
        self.address = address


class SubmissionError(RelayError):
    """
    Raised when a relay transaction fails for a reason other than a nonce conflict.

    Fatal for the current relay call; no retry is attempted.

    Attributes:
        tx_id: Transaction id if the transaction was broadcast
    """

    def __init__(self, message: str = "", tx_id: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.tx_id = tx_id


class RetryBudgetExhausted(RelayError):
    """
    Raised when every attempt in the retry budget hit a nonce conflict.

    Attributes:
        attempts: Number of submissions made
        last_error: The final NonceConflictError
    """

    def __init__(self, attempts: int, last_error: Optional[RelayError] = None):
        super().__init__(
            f"Relay failed after {attempts} attempts",
            {"attempts": attempts, "last_error": str(last_error) if last_error else None},
        )
        self.attempts = attempts
        self.last_error = last_error
