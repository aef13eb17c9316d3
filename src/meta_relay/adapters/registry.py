"""
Chain Adapter Registry

Maps chain names to adapter instances and builds adapters from environment
configuration.
"""

import logging
from typing import Dict, Iterable, List, Optional, Union

from ..engine.exceptions import ChainConfigError
from ..schemas.bases import ChainKind
from .bases import ChainAdapter
from .evm.adapter import EVMRelayAdapter
from .tron.adapter import TronRelayAdapter


logger = logging.getLogger(__name__)

#: Accepted chain names, including the token-flavoured names used by callers.
CHAIN_NAME_ALIASES: Dict[str, ChainKind] = {
    "evm": ChainKind.EVM,
    "eth": ChainKind.EVM,
    "ethereum": ChainKind.EVM,
    "afrierc20": ChainKind.EVM,
    "afri_erc20": ChainKind.EVM,
    "tron": ChainKind.TRON,
    "trx": ChainKind.TRON,
    "afritrc20": ChainKind.TRON,
    "afri_trc20": ChainKind.TRON,
}


def resolve_chain(chain: Union[str, ChainKind]) -> ChainKind:
    """
    Resolve a chain name or alias to its ChainKind.

    Raises:
        ChainConfigError: If the name is not recognized.
    """
    if isinstance(chain, ChainKind):
        return chain
    key = str(chain).strip().lower()
    if key not in CHAIN_NAME_ALIASES:
        raise ChainConfigError(
            f"Unsupported chain {chain!r}. Supported: {', '.join(sorted(CHAIN_NAME_ALIASES))}"
        )
    return CHAIN_NAME_ALIASES[key]


class ChainRegistry:
    """
    Registry of configured chain adapters, one per chain family.

    Example:
        registry = ChainRegistry.from_env(["evm"])
        adapter = registry.get("AFRi_ERC20")
    """

    _adapter_factories = {
        ChainKind.EVM: EVMRelayAdapter,
        ChainKind.TRON: TronRelayAdapter,
    }

    def __init__(self, adapters: Optional[Iterable[ChainAdapter]] = None):
        self._adapters: Dict[ChainKind, ChainAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: ChainAdapter) -> None:
        self._adapters[ChainKind(adapter.chain)] = adapter

    def get(self, chain: Union[str, ChainKind]) -> ChainAdapter:
        """
        Return the adapter registered for ``chain``.

        Raises:
            ChainConfigError: If the chain is unknown or not configured.
        """
        kind = resolve_chain(chain)
        adapter = self._adapters.get(kind)
        if adapter is None:
            raise ChainConfigError(f"No adapter configured for chain: {kind.value}")
        return adapter

    def get_support_list(self) -> List[ChainKind]:
        return list(self._adapters)

    @classmethod
    def from_env(cls, chains: Optional[Iterable[Union[str, ChainKind]]] = None) -> "ChainRegistry":
        """
        Build adapters for ``chains`` (all families when None) from environment variables.

        Raises:
            ChainConfigError: If a requested chain is missing required configuration.
        """
        registry = cls()
        kinds = [resolve_chain(c) for c in chains] if chains is not None else list(cls._adapter_factories)
        for kind in kinds:
            registry.register(cls._adapter_factories[kind]())
            logger.info("Configured %s relay adapter", kind.value)
        return registry
