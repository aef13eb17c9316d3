"""
Abstract Base Classes for Chain Adapters

Defines the interface every chain adapter (EVM, TRON) implements for the
relay flow. The engine (gas estimation, retry coordination) and the hub
only talk to these interfaces, so a new chain family plugs in by
subclassing ChainAdapter.

Core Classes:
    - ChainAdapter: Address handling, on-chain nonce and fee queries, and
      meta-transfer submission with typed failure classification
    - ResourceChainAdapter: Adds account activation queries and native
      transfers for chains that require a minimum reserve balance
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from ..schemas.addresses import ChainAddress
from ..schemas.bases import ChainKind
from ..schemas.relays import ActivationState, MetaTransferRequest, SubmissionReceipt


class ChainAdapter(ABC):
    """
    Abstract base class for relay chain adapters.

    A chain adapter owns the relayer account for one chain and the
    connection to that chain's node. It is responsible for:
    - Parsing and deriving addresses in the chain's native form
    - Reading the verifier contract's ``getNonce`` counter
    - Reading the live fee rate used by gas estimation
    - Submitting signed meta-transfers and classifying failures

    Attributes:
        chain: Chain family served by this adapter
        native_symbol: Ticker of the native gas currency
        native_decimals: Decimals of the native gas currency
        token_decimals: Decimals of the relayed token
        contract_address: Verifier contract in native address form
        endpoint: Node URL the adapter is connected to
        explicit_chain_id: Configured chain id, None when not configured
        fallback_gas_limit: Gas units assumed when no estimate is available
        fallback_fee_rate: Native smallest units per gas unit used when the
            live fee oracle fails
        fallback_usd_rate: USD per native unit used when the price oracle fails
        price_asset_id: Price oracle id of the native currency
        requires_activation: Whether accounts need a minimum reserve
    """

    chain: ChainKind
    native_symbol: str
    native_decimals: int
    token_decimals: int
    contract_address: str
    endpoint: str
    explicit_chain_id: Optional[int] = None
    fallback_gas_limit: int
    fallback_fee_rate: int
    fallback_usd_rate: Decimal
    price_asset_id: str
    requires_activation: bool = False

    @abstractmethod
    def parse_address(self, raw: str) -> ChainAddress:
        """
        Validate ``raw`` and return it as a tagged address for this chain.

        Raises:
            ValidationError: If ``raw`` is not a valid address on this chain.
        """

    @abstractmethod
    def address_from_private_key(self, private_key: str) -> ChainAddress:
        """
        Derive the account address controlled by ``private_key``.

        The key is used for this call only and never stored.

        Raises:
            ValidationError: If the key is malformed.
        """

    @abstractmethod
    def signing_contract_address(self) -> str:
        """Return the verifier contract in ``0x`` signing form."""

    @abstractmethod
    async def get_network_chain_id(self) -> Optional[int]:
        """
        Return the chain id reported by the connected node.

        Returns None when the chain's RPC has no such query; the domain
        builder then falls back to configuration.
        """

    @abstractmethod
    async def get_onchain_nonce(self, address: ChainAddress) -> int:
        """Return the verifier contract's ``getNonce(address)`` value."""

    @abstractmethod
    async def get_fee_rate(self) -> int:
        """Return the live price of one gas unit in native smallest units."""

    @abstractmethod
    async def submit_meta_transfer(self, request: MetaTransferRequest) -> SubmissionReceipt:
        """
        Submit a signed meta-transfer and wait for confirmation.

        Args:
            request: Fully signed MetaTransferRequest.

        Returns:
            SubmissionReceipt for the confirmed transaction.

        Raises:
            NonceConflictError: The contract reports the nonce as consumed.
            SubmissionError: Any other broadcast, revert or timeout failure.
        """


class ResourceChainAdapter(ChainAdapter):
    """
    Chain adapter for account-resource model chains.

    Accounts on these chains do not exist until they receive a native
    transfer and must hold a minimum reserve to pay for bandwidth and energy.
    """

    requires_activation: bool = True

    @abstractmethod
    async def get_activation_state(self, address: ChainAddress) -> ActivationState:
        """Return whether ``address`` exists and its native balance."""

    @abstractmethod
    async def transfer_native(self, private_key: str, to: ChainAddress, amount: int) -> str:
        """
        Broadcast a native transfer of ``amount`` smallest units.

        Returns:
            str: Transaction id.

        Raises:
            ActivationFundingFailed: If the transfer is rejected at broadcast.
        """

    @abstractmethod
    async def get_transaction_status(self, tx_id: str) -> Optional[bool]:
        """
        Return True once ``tx_id`` is confirmed successfully, False if it
        failed, None while it is still pending.
        """
