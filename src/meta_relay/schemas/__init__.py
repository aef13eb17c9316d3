from .bases import CanonicalModel, ChainKind, AttemptOutcome
from .addresses import EvmAddress, ResourceChainAddress, ChainAddress, normalize_private_key
from .relays import (
    MetaTransferRequest,
    ChainDomain,
    GasQuote,
    ActivationState,
    RelayAttempt,
    SubmissionReceipt,
    RelayResult,
)

__all__ = [
    "CanonicalModel",
    "ChainKind",
    "AttemptOutcome",
    "EvmAddress",
    "ResourceChainAddress",
    "ChainAddress",
    "normalize_private_key",
    "MetaTransferRequest",
    "ChainDomain",
    "GasQuote",
    "ActivationState",
    "RelayAttempt",
    "SubmissionReceipt",
    "RelayResult",
]
