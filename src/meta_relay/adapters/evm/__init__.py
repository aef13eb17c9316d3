from .adapter import EVMRelayAdapter
from .standards import EIP712Domain, MetaTransferMessage, MetaTransferTypedData
from .signatures import (
    RequestSigner,
    build_meta_transfer_typed_data,
    normalize_signature,
)
from .verifies import (
    recover_meta_transfer_signer,
    verify_meta_transfer_signature,
)

__all__ = [
    "EVMRelayAdapter",
    "EIP712Domain",
    "MetaTransferMessage",
    "MetaTransferTypedData",
    "RequestSigner",
    "build_meta_transfer_typed_data",
    "normalize_signature",
    "recover_meta_transfer_signer",
    "verify_meta_transfer_signature",
]
