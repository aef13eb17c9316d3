"""
EVM Relay Adapter

Submits signed meta-transfers to the verifier contract on an EVM chain,
paying gas from the relayer account, and classifies failures into typed
errors for the retry coordinator.

Key Features:
    - ``getNonce`` and ``eth_chainId`` queries for nonce refresh and domain building
    - EIP-1559 fee reading with legacy gas price fallback
    - Preflight ``estimate_gas`` so reverts surface before gas is spent
    - Nonce conflict detection from ``NonceAlreadyUsed`` revert data, with
      an on-chain counter check when no revert data is available
    - Receipt polling until confirmation or timeout

Dependencies:
    - web3.py: For blockchain RPC interaction
    - eth_account: For transaction signing
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from eth_account import Account
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, TransactionNotFound

from ...engine.exceptions import (
    ChainConfigError,
    NonceConflictError,
    RelayError,
    SubmissionError,
    ValidationError,
)
from ...schemas.addresses import EvmAddress, normalize_private_key
from ...schemas.bases import ChainKind
from ...schemas.relays import MetaTransferRequest, SubmissionReceipt
from ..bases import ChainAdapter
from .META_TRANSFER_ABI import NONCE_ALREADY_USED_SELECTOR, get_meta_transfer_abi
from .constants import (
    DEFAULT_FALLBACK_GAS_LIMIT,
    DEFAULT_FALLBACK_GAS_PRICE_WEI,
    NATIVE_DECIMALS,
    PRICE_ORACLE_ASSET_ID,
    get_chain_id_from_env,
    get_contract_address_from_env,
    get_fallback_usd_rate_from_env,
    get_private_key_from_env,
    get_rpc_url_from_env,
    get_token_decimals_from_env,
)
from .signatures import normalize_signature


logger = logging.getLogger(__name__)


class EVMRelayAdapter(ChainAdapter):
    """
    EVM Relay Adapter Implementation.

    Holds the relayer account (loaded from the environment unless passed in)
    and a lazily created AsyncWeb3 connection to the configured RPC endpoint.

    Attributes:
        account: Relayer account that signs and pays for ``metaTransfer`` transactions
        wallet_address: Checksum relayer address
        contract_address: Checksum verifier contract address

    Environment Variables:
        - EVM_RPC_URL: JSON-RPC endpoint (required)
        - EVM_CONTRACT_ADDRESS: Verifier contract (required)
        - EVM_RELAYER_PRIVATE_KEY: Relayer key (required)
        - EVM_CHAIN_ID: Optional explicit chain id or alias
        - EVM_TOKEN_DECIMALS, EVM_FALLBACK_USD_RATE: Optional overrides

    Nonce conflicts:
        A revert carrying the ``NonceAlreadyUsed(address,uint256)`` custom
        error is classified from its selector alone. Verifiers that revert
        with a plain ``Error(string)`` reason such as "nonce already used"
        never match the selector; for those, every conflict is detected by
        reading ``getNonce`` after the failure.

    Example:
        adapter = EVMRelayAdapter()
        nonce = await adapter.get_onchain_nonce(EvmAddress.parse("0x..."))
        receipt = await adapter.submit_meta_transfer(signed_request)
    """

    chain = ChainKind.EVM
    native_symbol = "ETH"
    native_decimals = NATIVE_DECIMALS
    price_asset_id = PRICE_ORACLE_ASSET_ID

    def __init__(
        self,
        private_key: Optional[str] = None,
        rpc_url: Optional[str] = None,
        contract_address: Optional[str] = None,
        chain_id: Union[int, str, None] = None,
        token_decimals: Optional[int] = None,
        fallback_usd_rate: Optional[Decimal] = None,
        fallback_gas_limit: int = DEFAULT_FALLBACK_GAS_LIMIT,
        fallback_fee_rate: int = DEFAULT_FALLBACK_GAS_PRICE_WEI,
        request_timeout: int = 60,
        receipt_max_attempts: int = 60,
        receipt_poll_interval: float = 6.0,
    ):
        """
        Initialize the adapter with environment-aware configuration.

        Explicit arguments take precedence over environment variables.

        Raises:
            ChainConfigError: If the relayer key, RPC URL or contract address
                is missing or malformed.
        """
        resolved_pk = private_key if private_key else get_private_key_from_env()
        if not resolved_pk:
            raise ChainConfigError(
                "Relayer private key not provided. Either pass 'private_key' or "
                "set the 'EVM_RELAYER_PRIVATE_KEY' environment variable."
            )
        try:
            self.account = Account.from_key("0x" + normalize_private_key(resolved_pk))
        except ValidationError as e:
            raise ChainConfigError("EVM relayer private key is malformed") from e
        self.wallet_address = AsyncWeb3.to_checksum_address(self.account.address)

        self.endpoint = rpc_url or get_rpc_url_from_env()
        if not self.endpoint:
            raise ChainConfigError("EVM RPC URL not provided. Set 'EVM_RPC_URL'.")

        raw_contract = contract_address or get_contract_address_from_env()
        if not raw_contract:
            raise ChainConfigError("EVM contract address not provided. Set 'EVM_CONTRACT_ADDRESS'.")
        try:
            self.contract_address = EvmAddress.parse(raw_contract).value
        except ValidationError as e:
            raise ChainConfigError(f"Invalid EVM contract address: {raw_contract!r}") from e

        self.explicit_chain_id = chain_id if chain_id is not None else get_chain_id_from_env()
        self.token_decimals = token_decimals if token_decimals is not None else get_token_decimals_from_env()
        self.fallback_usd_rate = fallback_usd_rate if fallback_usd_rate is not None else get_fallback_usd_rate_from_env()
        self.fallback_gas_limit = fallback_gas_limit
        self.fallback_fee_rate = fallback_fee_rate

        self._request_timeout = request_timeout
        self._receipt_max_attempts = receipt_max_attempts
        self._receipt_poll_interval = receipt_poll_interval
        self._web3: Optional[AsyncWeb3] = None

    def _get_web3_instance(self) -> AsyncWeb3:
        """Create (once) and return the AsyncWeb3 instance for the configured endpoint."""
        if self._web3 is None:
            self._web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
                self.endpoint,
                request_kwargs={"timeout": self._request_timeout}
            ))
        return self._web3

    def _get_contract(self, web3: AsyncWeb3):
        return web3.eth.contract(address=self.contract_address, abi=get_meta_transfer_abi())

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    def parse_address(self, raw: str) -> EvmAddress:
        return EvmAddress.parse(raw)

    def address_from_private_key(self, private_key: str) -> EvmAddress:
        return EvmAddress.from_private_key(private_key)

    def signing_contract_address(self) -> str:
        return self.contract_address

    def get_wallet_address(self) -> str:
        return self.wallet_address

    # ------------------------------------------------------------------
    # Chain state
    # ------------------------------------------------------------------

    async def get_network_chain_id(self) -> Optional[int]:
        return int(await self._get_web3_instance().eth.chain_id)

    async def get_onchain_nonce(self, address: EvmAddress) -> int:
        contract = self._get_contract(self._get_web3_instance())
        return int(await contract.functions.getNonce(address.to_signing_address()).call())

    async def _fee_params(self, web3: AsyncWeb3) -> Dict[str, int]:
        """
        Return fee fields for a transaction.

        EIP-1559 fields from ``fee_history`` (2x base fee + 25th percentile
        tip), legacy ``gasPrice`` when the node has no fee history.
        """
        try:
            fee_history = await web3.eth.fee_history(1, "latest", [25.0])
            base_fee = fee_history["baseFeePerGas"][-1]
            priority_fee = fee_history["reward"][0][0]
            return {
                "maxPriorityFeePerGas": priority_fee,
                "maxFeePerGas": (base_fee * 2) + priority_fee,
            }
        except Exception as e:
            logger.debug("fee_history unavailable, using legacy gas price: %s", e)
            return {"gasPrice": await web3.eth.gas_price}

    async def get_fee_rate(self) -> int:
        params = await self._fee_params(self._get_web3_instance())
        return int(params.get("maxFeePerGas", params.get("gasPrice", 0)))

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def _classify_failure(
        self,
        request: MetaTransferRequest,
        revert_data: Any,
        reason: str,
        tx_id: Optional[str] = None,
    ) -> RelayError:
        """
        Decide whether a failed ``metaTransfer`` was a nonce conflict.

        The ``NonceAlreadyUsed`` selector in the revert data is conclusive.
        Without it, the contract's counter is read: a counter past the
        request's nonce means the nonce was consumed.
        """
        if isinstance(revert_data, str) and revert_data.lower().startswith(NONCE_ALREADY_USED_SELECTOR):
            return NonceConflictError(request.nonce, details={"revert_data": revert_data, "tx_id": tx_id})

        try:
            onchain = await self.get_onchain_nonce(request.from_address)
        except Exception as e:
            logger.warning("getNonce check after failed submission errored: %s", e)
            onchain = None

        if onchain is not None and onchain > request.nonce:
            return NonceConflictError(request.nonce, details={"onchain_nonce": onchain, "tx_id": tx_id})
        return SubmissionError(f"metaTransfer failed: {reason}", tx_id=tx_id, details={"nonce": request.nonce})

    async def submit_meta_transfer(self, request: MetaTransferRequest) -> SubmissionReceipt:
        """
        Build, sign (relayer key), broadcast and confirm ``metaTransfer``.

        Args:
            request: Signed MetaTransferRequest with EVM addresses.

        Returns:
            SubmissionReceipt with the ``0x`` transaction hash and block number.

        Raises:
            ValidationError: If the request is unsigned.
            NonceConflictError: If the contract reports the nonce as used.
            SubmissionError: On any other failure.
        """
        if not request.signature:
            raise ValidationError("Cannot submit an unsigned meta-transfer")

        web3 = self._get_web3_instance()
        contract = self._get_contract(web3)
        signature = bytes.fromhex(normalize_signature(request.signature)[2:])

        tx_fn = contract.functions.metaTransfer(
            request.from_address.to_signing_address(),
            request.to_address.to_signing_address(),
            request.amount,
            request.nonce,
            request.deadline,
            request.gas_cost_usd,
            signature,
        )

        # Preflight: reverts surface here without spending gas
        try:
            gas_estimate = await tx_fn.estimate_gas({"from": self.wallet_address})
        except ContractLogicError as e:
            raise await self._classify_failure(request, e.data, str(e)) from e
        except Exception as e:
            raise SubmissionError(f"Gas estimation failed: {e}") from e

        try:
            tx_params: Dict[str, Any] = {
                "from": self.wallet_address,
                "nonce": await web3.eth.get_transaction_count(self.wallet_address, "pending"),
                "gas": int(gas_estimate * 1.1),
                "chainId": await web3.eth.chain_id,
            }
            tx_params.update(await self._fee_params(web3))
            tx_dict = await tx_fn.build_transaction(tx_params)
            signed_tx = self.account.sign_transaction(tx_dict)
        except Exception as e:
            raise SubmissionError(f"Failed to build relay transaction: {e}") from e

        return await self._send_and_confirm(signed_tx.raw_transaction, web3, request)

    async def _send_and_confirm(
        self,
        raw_transaction: bytes,
        web3: AsyncWeb3,
        request: MetaTransferRequest,
    ) -> SubmissionReceipt:
        """
        Broadcast a signed transaction and poll for its on-chain receipt.

        Polls ``eth_getTransactionReceipt`` every ``receipt_poll_interval``
        seconds for at most ``receipt_max_attempts`` rounds.

        Raises:
            NonceConflictError: If the transaction reverted because the nonce was used.
            SubmissionError: On broadcast failure, other reverts, or timeout.
        """
        try:
            tx_hash = await web3.eth.send_raw_transaction(raw_transaction)
        except Exception as e:
            raise SubmissionError(f"Failed to broadcast transaction: {e}") from e
        tx_hash_hex = AsyncWeb3.to_hex(tx_hash)
        logger.info("Broadcast metaTransfer %s (nonce %s)", tx_hash_hex, request.nonce)

        receipt = None
        for _ in range(self._receipt_max_attempts):
            try:
                receipt = await web3.eth.get_transaction_receipt(tx_hash_hex)
                if receipt:
                    break
            except TransactionNotFound:
                pass  # still pending
            await self._sleep_async(self._receipt_poll_interval)

        if not receipt:
            raise SubmissionError("Transaction confirmation timed out", tx_id=tx_hash_hex)

        if receipt.get("status") != 1:
            raise await self._classify_failure(request, None, "reverted on-chain", tx_id=tx_hash_hex)

        return SubmissionReceipt(
            tx_id=tx_hash_hex,
            block_number=receipt.get("blockNumber"),
            confirmed=True,
        )

    @staticmethod
    async def _sleep_async(seconds: float):
        """Simple async sleep utility."""
        await asyncio.sleep(seconds)
