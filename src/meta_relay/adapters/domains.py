"""
EIP-712 Domain Construction

Builds the ``ChainDomain`` a meta-transfer is signed under. The chain id is
never guessed: it comes from the connected node, from explicit
configuration, or (TRON only) from a recognized public test endpoint. Any
other situation is a ChainConfigError.

Chain id resolution
-------------------
EVM
    The node's ``eth_chainId`` is authoritative. An explicit id (integer or
    alias such as ``sepolia``) is checked against it; a mismatch means the
    relayer is pointed at the wrong network and is rejected.

TRON
    Nodes expose no chain id query. An explicit id (integer or alias such
    as ``nile``) wins; otherwise the id is inferred only for the Shasta and
    Nile TronGrid endpoints.
"""

import logging
from typing import Dict, Optional, Union
from urllib.parse import urlparse

from ..engine.exceptions import ChainConfigError
from ..schemas.bases import ChainKind
from ..schemas.relays import ChainDomain
from .bases import ChainAdapter
from .evm.constants import EVM_CHAIN_ALIASES
from .tron.constants import TRON_CHAIN_ALIASES, TRON_TEST_ENDPOINT_CHAIN_IDS


logger = logging.getLogger(__name__)

#: Domain name and version the verifier contract was deployed with.
DEFAULT_DOMAIN_NAME: str = "AFRi"
DEFAULT_DOMAIN_VERSION: str = "1"


def parse_chain_id(value: Union[int, str, None], aliases: Dict[str, int]) -> Optional[int]:
    """
    Parse an explicit chain id setting.

    Args:
        value: Integer, decimal string, ``0x`` hex string, alias, or None.
        aliases: Lower-case alias to chain id mapping for the chain family.

    Returns:
        Optional[int]: The chain id, or None when ``value`` is empty.

    Raises:
        ChainConfigError: If the value is neither a positive integer nor a known alias.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ChainConfigError(f"Invalid chain id: {value!r}")
    if isinstance(value, int):
        chain_id = value
    else:
        text = value.strip().lower()
        if text in aliases:
            return aliases[text]
        try:
            chain_id = int(text, 16) if text.startswith("0x") else int(text)
        except ValueError as e:
            raise ChainConfigError(
                f"Unknown chain id {value!r}. Known aliases: {', '.join(sorted(aliases))}"
            ) from e
    if chain_id <= 0:
        raise ChainConfigError(f"Chain id must be a positive integer, got {value!r}")
    return chain_id


def infer_tron_chain_id(endpoint: str) -> Optional[int]:
    """Return the chain id of a recognized TRON test endpoint, else None."""
    host = (urlparse(endpoint).hostname or "").lower()
    return TRON_TEST_ENDPOINT_CHAIN_IDS.get(host)


class ChainDomainBuilder:
    """
    Produces the EIP-712 domain for a chain adapter's verifier contract.

    Example:
        builder = ChainDomainBuilder()
        domain = await builder.build(adapter)
        domain = await builder.build(adapter, explicit_chain_id="nile")
    """

    def __init__(self, name: str = DEFAULT_DOMAIN_NAME, version: str = DEFAULT_DOMAIN_VERSION):
        self.name = name
        self.version = version

    async def build(
        self,
        adapter: ChainAdapter,
        contract_address: Optional[str] = None,
        explicit_chain_id: Union[int, str, None] = None,
    ) -> ChainDomain:
        """
        Build the domain for ``adapter``.

        Args:
            adapter: Chain adapter whose contract and node are used.
            contract_address: Override of the adapter's verifier contract,
                in the chain's native address form.
            explicit_chain_id: Override of the adapter's configured chain id.

        Returns:
            ChainDomain with the contract in ``0x`` signing form.

        Raises:
            ChainConfigError: If the chain id is unknown or inconsistent.
            ValidationError: If ``contract_address`` is malformed.
        """
        if contract_address is None:
            verifying_contract = adapter.signing_contract_address()
        else:
            verifying_contract = adapter.parse_address(contract_address).to_signing_address()

        chain = ChainKind(adapter.chain)
        if explicit_chain_id is None:
            explicit_chain_id = adapter.explicit_chain_id

        if chain is ChainKind.EVM:
            chain_id = await self._resolve_evm_chain_id(adapter, explicit_chain_id)
        else:
            chain_id = self._resolve_tron_chain_id(adapter, explicit_chain_id)

        return ChainDomain(
            name=self.name,
            version=self.version,
            chain_id=chain_id,
            verifying_contract=verifying_contract,
        )

    async def _resolve_evm_chain_id(self, adapter: ChainAdapter, explicit: Union[int, str, None]) -> int:
        configured = parse_chain_id(explicit, EVM_CHAIN_ALIASES)
        try:
            network = await adapter.get_network_chain_id()
        except Exception as e:
            if configured is None:
                raise ChainConfigError(
                    f"Cannot determine chain id: node query failed and no chain id is configured ({e})"
                ) from e
            logger.warning("eth_chainId query failed, using configured chain id %s: %s", configured, e)
            return configured

        if network is None:
            if configured is None:
                raise ChainConfigError("Node did not report a chain id and none is configured")
            return configured
        if configured is not None and configured != network:
            raise ChainConfigError(
                f"Configured chain id {configured} does not match connected network {network}",
                {"configured": configured, "network": network},
            )
        return network

    def _resolve_tron_chain_id(self, adapter: ChainAdapter, explicit: Union[int, str, None]) -> int:
        configured = parse_chain_id(explicit, TRON_CHAIN_ALIASES)
        if configured is not None:
            return configured
        inferred = infer_tron_chain_id(adapter.endpoint)
        if inferred is None:
            raise ChainConfigError(
                f"Chain id for TRON endpoint {adapter.endpoint!r} is not configured. "
                "Set TRON_CHAIN_ID (e.g. 'mainnet', 'shasta', 'nile' or an integer)."
            )
        return inferred
