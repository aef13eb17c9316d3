from .adapters_hub import RelayHub
from .registry import ChainRegistry, resolve_chain, CHAIN_NAME_ALIASES
from .bases import ChainAdapter, ResourceChainAdapter
from .domains import ChainDomainBuilder, parse_chain_id
from .prices import PriceOracle
from .evm import (
    EVMRelayAdapter,
    RequestSigner,
    normalize_signature,
    recover_meta_transfer_signer,
)
from .tron import TronRelayAdapter, AccountActivator

__all__ = [
    "RelayHub",
    "ChainRegistry",
    "resolve_chain",
    "CHAIN_NAME_ALIASES",
    "ChainAdapter",
    "ResourceChainAdapter",
    "ChainDomainBuilder",
    "parse_chain_id",
    "PriceOracle",
    "EVMRelayAdapter",
    "RequestSigner",
    "normalize_signature",
    "recover_meta_transfer_signer",
    "TronRelayAdapter",
    "AccountActivator",
]
