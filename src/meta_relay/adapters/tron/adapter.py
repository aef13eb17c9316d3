"""
TRON Relay Adapter

Submits signed meta-transfers to the TRC20 verifier contract on TRON and
exposes the account queries the activator needs. The sender's signature is
the same secp256k1 EIP-712 signature used on EVM chains, computed over the
``0x`` signing form of the TRON addresses.

Key Features:
    - ``getNonce`` reads through a tronpy constant call
    - Energy price from ``getchainparameters`` (``getEnergyFee``)
    - ``metaTransfer`` built with the relayer as owner and a 1000 TRX fee limit
    - Failure classification from the transaction info receipt
    - Native TRX transfers and account existence/balance for activation

Dependencies:
    - tronpy: AsyncTron client, transaction building and signing
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from tronpy import AsyncTron
from tronpy.exceptions import AddressNotFound, TransactionNotFound
from tronpy.keys import PrivateKey
from tronpy.providers.async_http import AsyncHTTPProvider

from ...engine.exceptions import (
    ActivationFundingFailed,
    ChainConfigError,
    NonceConflictError,
    RelayError,
    SubmissionError,
    ValidationError,
)
from ...schemas.addresses import ResourceChainAddress, normalize_private_key
from ...schemas.bases import ChainKind
from ...schemas.relays import ActivationState, MetaTransferRequest, SubmissionReceipt
from ..bases import ResourceChainAdapter
from ..evm.META_TRANSFER_ABI import NONCE_ALREADY_USED_SELECTOR, get_tron_meta_transfer_abi
from ..evm.signatures import normalize_signature
from .constants import (
    DEFAULT_FALLBACK_ENERGY_LIMIT,
    DEFAULT_FALLBACK_ENERGY_PRICE_SUN,
    META_TRANSFER_FEE_LIMIT_SUN,
    NATIVE_DECIMALS,
    PRICE_ORACLE_ASSET_ID,
    get_api_key_from_env,
    get_chain_id_from_env,
    get_contract_address_from_env,
    get_fallback_usd_rate_from_env,
    get_private_key_from_env,
    get_rpc_url_from_env,
    get_token_decimals_from_env,
)


logger = logging.getLogger(__name__)


def extract_tx_id(response: Any) -> Optional[str]:
    """
    Pull a 64-hex transaction id out of the shapes tronpy and TronGrid return.

    Accepts a bare id string, an object with ``txid``, or a dict carrying
    ``txid``/``txID`` at the top level or under ``transaction``.
    """
    if response is None:
        return None
    if isinstance(response, str):
        return response.lower() if len(response) == 64 else None
    txid = getattr(response, "txid", None)
    if isinstance(txid, str):
        return txid.lower()
    if isinstance(response, dict):
        for holder in (response, response.get("transaction") or {}):
            for key in ("txid", "txID"):
                if isinstance(holder.get(key), str):
                    return holder[key].lower()
    return None


class TronRelayAdapter(ResourceChainAdapter):
    """
    TRON Relay Adapter Implementation.

    Attributes:
        relayer_key: tronpy PrivateKey paying energy for ``metaTransfer``
        wallet_address: Relayer base58 address
        contract_address: Verifier contract base58 address

    Environment Variables:
        - TRON_RPC_URL: Full node endpoint (defaults to TronGrid mainnet)
        - TRON_API_KEY: Optional TronGrid API key
        - TRON_CONTRACT_ADDRESS: Verifier contract (required)
        - TRON_RELAYER_PRIVATE_KEY: Relayer key (required)
        - TRON_CHAIN_ID: Explicit chain id or alias (required off test endpoints)

    Nonce conflicts:
        Failed transactions whose ``contractResult`` starts with the
        ``NonceAlreadyUsed`` selector are conflicts. Verifiers that revert
        with an ``Error(string)`` reason instead rely on the ``getNonce``
        read after the failure.

    Example:
        adapter = TronRelayAdapter()
        state = await adapter.get_activation_state(ResourceChainAddress.parse("T..."))
    """

    chain = ChainKind.TRON
    native_symbol = "TRX"
    native_decimals = NATIVE_DECIMALS
    price_asset_id = PRICE_ORACLE_ASSET_ID

    def __init__(
        self,
        private_key: Optional[str] = None,
        rpc_url: Optional[str] = None,
        contract_address: Optional[str] = None,
        chain_id: Union[int, str, None] = None,
        api_key: Optional[str] = None,
        token_decimals: Optional[int] = None,
        fallback_usd_rate: Optional[Decimal] = None,
        fallback_gas_limit: int = DEFAULT_FALLBACK_ENERGY_LIMIT,
        fallback_fee_rate: int = DEFAULT_FALLBACK_ENERGY_PRICE_SUN,
        fee_limit: int = META_TRANSFER_FEE_LIMIT_SUN,
        request_timeout: float = 60.0,
        receipt_timeout: float = 60.0,
        receipt_poll_interval: float = 3.0,
        client: Optional[AsyncTron] = None,
    ):
        """
        Initialize the adapter with environment-aware configuration.

        Raises:
            ChainConfigError: If the relayer key or contract address is
                missing or malformed.
        """
        resolved_pk = private_key if private_key else get_private_key_from_env()
        if not resolved_pk:
            raise ChainConfigError(
                "Relayer private key not provided. Either pass 'private_key' or "
                "set the 'TRON_RELAYER_PRIVATE_KEY' environment variable."
            )
        try:
            self.relayer_key = PrivateKey(bytes.fromhex(normalize_private_key(resolved_pk)))
        except ValidationError as e:
            raise ChainConfigError("TRON relayer private key is malformed") from e
        self.wallet_address = self.relayer_key.public_key.to_base58check_address()

        raw_contract = contract_address or get_contract_address_from_env()
        if not raw_contract:
            raise ChainConfigError("TRON contract address not provided. Set 'TRON_CONTRACT_ADDRESS'.")
        try:
            self.contract_address = ResourceChainAddress.parse(raw_contract).value
        except ValidationError as e:
            raise ChainConfigError(f"Invalid TRON contract address: {raw_contract!r}") from e

        self.endpoint = rpc_url or get_rpc_url_from_env()
        self.explicit_chain_id = chain_id if chain_id is not None else get_chain_id_from_env()
        self.token_decimals = token_decimals if token_decimals is not None else get_token_decimals_from_env()
        self.fallback_usd_rate = fallback_usd_rate if fallback_usd_rate is not None else get_fallback_usd_rate_from_env()
        self.fallback_gas_limit = fallback_gas_limit
        self.fallback_fee_rate = fallback_fee_rate
        self.fee_limit = fee_limit

        self._api_key = api_key if api_key is not None else get_api_key_from_env()
        self._request_timeout = request_timeout
        self._receipt_timeout = receipt_timeout
        self._receipt_poll_interval = receipt_poll_interval
        self._client = client
        self._contract = None

    def _get_client(self) -> AsyncTron:
        """Create (once) and return the AsyncTron client for the configured endpoint."""
        if self._client is None:
            provider = AsyncHTTPProvider(self.endpoint, timeout=self._request_timeout, api_key=self._api_key)
            self._client = AsyncTron(provider=provider)
        return self._client

    async def _get_contract(self):
        if self._contract is None:
            contract = await self._get_client().get_contract(self.contract_address)
            contract.abi = get_tron_meta_transfer_abi()
            self._contract = contract
        return self._contract

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    def parse_address(self, raw: str) -> ResourceChainAddress:
        return ResourceChainAddress.parse(raw)

    def address_from_private_key(self, private_key: str) -> ResourceChainAddress:
        return ResourceChainAddress.from_private_key(private_key)

    def signing_contract_address(self) -> str:
        return ResourceChainAddress(value=self.contract_address).to_signing_address()

    def get_wallet_address(self) -> str:
        return self.wallet_address

    # ------------------------------------------------------------------
    # Chain state
    # ------------------------------------------------------------------

    async def get_network_chain_id(self) -> Optional[int]:
        # TRON nodes expose no chain id query
        return None

    async def get_onchain_nonce(self, address: ResourceChainAddress) -> int:
        contract = await self._get_contract()
        return int(await contract.functions.getNonce(str(address)))

    async def get_fee_rate(self) -> int:
        """Return the current sun price of one energy unit."""
        parameters = await self._get_client().get_chain_parameters()
        for parameter in parameters:
            if parameter.get("key") == "getEnergyFee":
                return int(parameter.get("value", 0))
        raise SubmissionError("getEnergyFee missing from chain parameters")

    async def get_activation_state(self, address: ResourceChainAddress) -> ActivationState:
        try:
            account = await self._get_client().get_account(str(address))
        except AddressNotFound:
            return ActivationState(address=str(address), exists=False, reserve_balance=0)
        return ActivationState(
            address=str(address),
            exists=True,
            reserve_balance=int(account.get("balance", 0)),
        )

    async def get_transaction_status(self, tx_id: str) -> Optional[bool]:
        try:
            info = await self._get_client().get_transaction_info(tx_id)
        except TransactionNotFound:
            return None
        if not info:
            return None
        return info.get("result") != "FAILED"

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def transfer_native(self, private_key: str, to: ResourceChainAddress, amount: int) -> str:
        """
        Send ``amount`` sun from the account of ``private_key`` to ``to``.

        Raises:
            ChainConfigError: If ``private_key`` is malformed.
            ActivationFundingFailed: If the transfer cannot be built or broadcast.
        """
        try:
            key = PrivateKey(bytes.fromhex(normalize_private_key(private_key)))
        except ValidationError as e:
            raise ChainConfigError("Funding private key is malformed") from e
        owner = key.public_key.to_base58check_address()
        try:
            txn = await self._get_client().trx.transfer(owner, str(to), int(amount)).build()
            response = await txn.sign(key).broadcast()
        except Exception as e:
            raise ActivationFundingFailed(str(to), f"Funding transfer to {to} failed: {e}") from e

        tx_id = extract_tx_id(response)
        if not tx_id:
            raise ActivationFundingFailed(str(to), f"Funding transfer to {to} returned no transaction id")
        logger.info("Broadcast %s sun from %s to %s: %s", amount, owner, to, tx_id)
        return tx_id

    async def _wait_for_info(self, tx_id: str) -> Optional[Dict[str, Any]]:
        client = self._get_client()
        waited = 0.0
        while waited < self._receipt_timeout:
            try:
                info = await client.get_transaction_info(tx_id)
            except TransactionNotFound:
                info = None
            if info:
                return info
            await self._sleep_async(self._receipt_poll_interval)
            waited += self._receipt_poll_interval
        return None

    async def _classify_failure(self, request: MetaTransferRequest, info: Dict[str, Any], tx_id: str) -> RelayError:
        """
        Decide whether a failed ``metaTransfer`` was a nonce conflict.

        Revert output starting with the ``NonceAlreadyUsed`` selector is
        conclusive; otherwise the contract's counter is read.
        """
        results = info.get("contractResult") or [""]
        revert_data = "0x" + (results[0] or "").lower()
        if revert_data.startswith(NONCE_ALREADY_USED_SELECTOR):
            return NonceConflictError(request.nonce, details={"revert_data": revert_data, "tx_id": tx_id})

        try:
            onchain = await self.get_onchain_nonce(request.from_address)
        except Exception as e:
            logger.warning("getNonce check after failed submission errored: %s", e)
            onchain = None
        if onchain is not None and onchain > request.nonce:
            return NonceConflictError(request.nonce, details={"onchain_nonce": onchain, "tx_id": tx_id})

        receipt_result = (info.get("receipt") or {}).get("result", info.get("result"))
        return SubmissionError(
            f"metaTransfer failed: {receipt_result}",
            tx_id=tx_id,
            details={"nonce": request.nonce, "receipt_result": receipt_result},
        )

    async def submit_meta_transfer(self, request: MetaTransferRequest) -> SubmissionReceipt:
        """
        Build, sign (relayer key), broadcast and confirm ``metaTransfer``.

        Returns:
            SubmissionReceipt with the 64-hex transaction id and block number.

        Raises:
            ValidationError: If the request is unsigned.
            NonceConflictError: If the contract reports the nonce as used.
            SubmissionError: On any other failure.
        """
        if not request.signature:
            raise ValidationError("Cannot submit an unsigned meta-transfer")
        signature = bytes.fromhex(normalize_signature(request.signature)[2:])

        try:
            contract = await self._get_contract()
            builder = await contract.functions.metaTransfer(
                str(request.from_address),
                str(request.to_address),
                request.amount,
                request.nonce,
                request.deadline,
                request.gas_cost_usd,
                signature,
            )
            txn = await builder.with_owner(self.wallet_address).fee_limit(self.fee_limit).build()
            response = await txn.sign(self.relayer_key).broadcast()
        except Exception as e:
            raise SubmissionError(f"Failed to broadcast metaTransfer: {e}") from e

        tx_id = extract_tx_id(response)
        if not tx_id:
            raise SubmissionError("Broadcast returned no transaction id")
        logger.info("Broadcast metaTransfer %s (nonce %s)", tx_id, request.nonce)

        info = await self._wait_for_info(tx_id)
        if info is None:
            raise SubmissionError("Transaction confirmation timed out", tx_id=tx_id)

        receipt_result = (info.get("receipt") or {}).get("result")
        if info.get("result") == "FAILED" or (receipt_result and receipt_result != "SUCCESS"):
            raise await self._classify_failure(request, info, tx_id)

        return SubmissionReceipt(tx_id=tx_id, block_number=info.get("blockNumber"), confirmed=True)

    @staticmethod
    async def _sleep_async(seconds: float):
        """Simple async sleep utility."""
        await asyncio.sleep(seconds)
