from .adapter import TronRelayAdapter, extract_tx_id
from .activation import AccountActivator

__all__ = [
    "TronRelayAdapter",
    "extract_tx_id",
    "AccountActivator",
]
