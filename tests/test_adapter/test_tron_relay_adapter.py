"""
TRON Relay Adapter Test Suite

Tests for TronRelayAdapter with a mocked tronpy AsyncTron client:
- Initialization and address handling
- Energy price and account activation queries
- Native TRX transfers for activation
- metaTransfer submission and failure classification

Usage:
    pytest tests/test_adapter/test_tron_relay_adapter.py -v
"""

import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import pytest
from tronpy.exceptions import AddressNotFound, TransactionNotFound

from relay_mocks import (
    MOCK_CHAIN_ID_NILE,
    MOCK_CURVE_ORDER_PRIVATE_KEY,
    MOCK_RELAYER_PRIVATE_KEY,
    MOCK_RESERVE_PRIVATE_KEY,
    MOCK_SENDER_PRIVATE_KEY,
    MOCK_TRON_CONTRACT,
    MOCK_TRON_CONTRACT_HEX,
    MOCK_TRON_ENDPOINT,
    MOCK_TRON_RECIPIENT_ADDRESS,
    MOCK_ZERO_PRIVATE_KEY,
    create_mock_domain,
    create_mock_tron_request,
)

from meta_relay.adapters.evm.META_TRANSFER_ABI import NONCE_ALREADY_USED_SELECTOR
from meta_relay.adapters.evm.signatures import RequestSigner
from meta_relay.adapters.tron.adapter import TronRelayAdapter, extract_tx_id
from meta_relay.engine.exceptions import (
    ActivationFundingFailed,
    ChainConfigError,
    NonceConflictError,
    SubmissionError,
    ValidationError,
)
from meta_relay.schemas.addresses import ResourceChainAddress


TX_ID = "ab" * 32


@pytest.fixture
def tron_client():
    return Mock()


@pytest.fixture
def tron_adapter(tron_client):
    """Provide a TronRelayAdapter wired to a mocked client."""
    return TronRelayAdapter(
        private_key=MOCK_RELAYER_PRIVATE_KEY,
        rpc_url=MOCK_TRON_ENDPOINT,
        contract_address=MOCK_TRON_CONTRACT,
        chain_id="nile",
        receipt_timeout=9.0,
        receipt_poll_interval=3.0,
        client=tron_client,
    )


@pytest.fixture
def signed_request(tron_adapter):
    domain = create_mock_domain(
        chain_id=MOCK_CHAIN_ID_NILE,
        verifying_contract=tron_adapter.signing_contract_address(),
    )
    return RequestSigner().sign_request(domain, create_mock_tron_request(), MOCK_SENDER_PRIVATE_KEY)


def _mock_contract(broadcast_result):
    """Contract whose metaTransfer builds a transaction broadcasting ``broadcast_result``."""
    txn = Mock()
    txn.sign.return_value = txn
    txn.broadcast = AsyncMock(return_value=broadcast_result)
    builder = Mock()
    builder.with_owner.return_value = builder
    builder.fee_limit.return_value = builder
    builder.build = AsyncMock(return_value=txn)
    contract = Mock()
    contract.functions.metaTransfer = AsyncMock(return_value=builder)
    return contract, builder


class TestTronRelayAdapterInitialization:
    """Test adapter configuration."""

    def test_init_with_arguments(self, tron_adapter):
        assert tron_adapter.contract_address == MOCK_TRON_CONTRACT
        assert tron_adapter.get_wallet_address() == ResourceChainAddress.from_private_key(MOCK_RELAYER_PRIVATE_KEY).value
        assert tron_adapter.requires_activation
        assert tron_adapter.token_decimals == 6

    def test_init_from_environment(self):
        env = {
            "TRON_RELAYER_PRIVATE_KEY": MOCK_RELAYER_PRIVATE_KEY,
            "TRON_CONTRACT_ADDRESS": MOCK_TRON_CONTRACT_HEX,
            "TRON_CHAIN_ID": "mainnet",
        }
        with patch.dict(os.environ, env, clear=True):
            adapter = TronRelayAdapter()
        assert adapter.endpoint == "https://api.trongrid.io"
        assert adapter.contract_address == MOCK_TRON_CONTRACT
        assert adapter.explicit_chain_id == "mainnet"

    def test_missing_contract(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ChainConfigError):
                TronRelayAdapter(private_key=MOCK_RELAYER_PRIVATE_KEY)

    def test_missing_private_key(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ChainConfigError):
                TronRelayAdapter(contract_address=MOCK_TRON_CONTRACT)

    @pytest.mark.parametrize("key", [MOCK_ZERO_PRIVATE_KEY, MOCK_CURVE_ORDER_PRIVATE_KEY])
    def test_private_key_outside_curve_range(self, key):
        with pytest.raises(ChainConfigError):
            TronRelayAdapter(private_key=key, contract_address=MOCK_TRON_CONTRACT)

    def test_signing_contract_address(self, tron_adapter):
        assert tron_adapter.signing_contract_address().lower() == "0x" + MOCK_TRON_CONTRACT_HEX[2:]

    def test_parse_rejects_evm_address(self, tron_adapter):
        with pytest.raises(ValidationError):
            tron_adapter.parse_address("0x1c7d4b196cb0c7b01d743fbc6116a902379c7238")


class TestChainState:
    """Test read-only queries."""

    @pytest.mark.asyncio
    async def test_network_chain_id_unavailable(self, tron_adapter):
        assert await tron_adapter.get_network_chain_id() is None

    @pytest.mark.asyncio
    async def test_energy_fee(self, tron_adapter, tron_client):
        tron_client.get_chain_parameters = AsyncMock(return_value=[
            {"key": "getTransactionFee", "value": 1000},
            {"key": "getEnergyFee", "value": 210},
        ])
        assert await tron_adapter.get_fee_rate() == 210

    @pytest.mark.asyncio
    async def test_energy_fee_missing(self, tron_adapter, tron_client):
        tron_client.get_chain_parameters = AsyncMock(return_value=[])
        with pytest.raises(SubmissionError):
            await tron_adapter.get_fee_rate()

    @pytest.mark.asyncio
    async def test_activation_state_missing_account(self, tron_adapter, tron_client):
        tron_client.get_account = AsyncMock(side_effect=AddressNotFound("account not found on-chain"))
        state = await tron_adapter.get_activation_state(ResourceChainAddress.parse(MOCK_TRON_RECIPIENT_ADDRESS))
        assert not state.exists
        assert state.reserve_balance == 0

    @pytest.mark.asyncio
    async def test_activation_state_existing_account(self, tron_adapter, tron_client):
        tron_client.get_account = AsyncMock(return_value={"address": MOCK_TRON_RECIPIENT_ADDRESS, "balance": 2_000_000})
        state = await tron_adapter.get_activation_state(ResourceChainAddress.parse(MOCK_TRON_RECIPIENT_ADDRESS))
        assert state.exists
        assert state.reserve_balance == 2_000_000

    @pytest.mark.asyncio
    async def test_activated_account_without_balance_field(self, tron_adapter, tron_client):
        tron_client.get_account = AsyncMock(return_value={"address": MOCK_TRON_RECIPIENT_ADDRESS})
        state = await tron_adapter.get_activation_state(ResourceChainAddress.parse(MOCK_TRON_RECIPIENT_ADDRESS))
        assert state.exists
        assert state.reserve_balance == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("info, expected", [
        ({}, None),
        ({"id": TX_ID, "blockNumber": 10}, True),
        ({"id": TX_ID, "result": "FAILED"}, False),
    ])
    async def test_transaction_status(self, tron_adapter, tron_client, info, expected):
        tron_client.get_transaction_info = AsyncMock(return_value=info)
        assert await tron_adapter.get_transaction_status(TX_ID) is expected

    @pytest.mark.asyncio
    async def test_transaction_status_not_found(self, tron_adapter, tron_client):
        tron_client.get_transaction_info = AsyncMock(side_effect=TransactionNotFound("not found"))
        assert await tron_adapter.get_transaction_status(TX_ID) is None


class TestNativeTransfer:
    """Test TRX transfers used for activation."""

    @pytest.mark.asyncio
    async def test_transfer_returns_tx_id(self, tron_adapter, tron_client):
        txn = Mock()
        txn.sign.return_value = txn
        txn.broadcast = AsyncMock(return_value=SimpleNamespace(txid=TX_ID.upper()))
        builder = Mock()
        builder.build = AsyncMock(return_value=txn)
        tron_client.trx.transfer.return_value = builder

        recipient = ResourceChainAddress.parse(MOCK_TRON_RECIPIENT_ADDRESS)
        tx_id = await tron_adapter.transfer_native(MOCK_RESERVE_PRIVATE_KEY, recipient, 1_100_000)

        assert tx_id == TX_ID
        owner = ResourceChainAddress.from_private_key(MOCK_RESERVE_PRIVATE_KEY).value
        tron_client.trx.transfer.assert_called_once_with(owner, MOCK_TRON_RECIPIENT_ADDRESS, 1_100_000)

    @pytest.mark.asyncio
    async def test_transfer_failure(self, tron_adapter, tron_client):
        builder = Mock()
        builder.build = AsyncMock(side_effect=RuntimeError("balance is not sufficient"))
        tron_client.trx.transfer.return_value = builder

        with pytest.raises(ActivationFundingFailed) as exc_info:
            await tron_adapter.transfer_native(
                MOCK_RESERVE_PRIVATE_KEY, ResourceChainAddress.parse(MOCK_TRON_RECIPIENT_ADDRESS), 1
            )
        assert exc_info.value.address == MOCK_TRON_RECIPIENT_ADDRESS

    @pytest.mark.asyncio
    async def test_malformed_funding_key(self, tron_adapter, tron_client):
        with pytest.raises(ChainConfigError):
            await tron_adapter.transfer_native(
                MOCK_ZERO_PRIVATE_KEY, ResourceChainAddress.parse(MOCK_TRON_RECIPIENT_ADDRESS), 1
            )
        tron_client.trx.transfer.assert_not_called()


class TestSubmission:
    """Test metaTransfer submission."""

    @pytest.mark.asyncio
    async def test_confirmed(self, tron_adapter, tron_client, signed_request):
        contract, builder = _mock_contract({"result": True, "txid": TX_ID})
        tron_adapter._contract = contract
        tron_client.get_transaction_info = AsyncMock(side_effect=[
            {},
            {"id": TX_ID, "blockNumber": 55, "receipt": {"result": "SUCCESS"}},
        ])

        with patch.object(TronRelayAdapter, "_sleep_async", new=AsyncMock()):
            receipt = await tron_adapter.submit_meta_transfer(signed_request)

        assert receipt.tx_id == TX_ID
        assert receipt.block_number == 55
        args = contract.functions.metaTransfer.call_args.args
        assert args[0] == str(signed_request.from_address)
        assert args[3] == signed_request.nonce
        builder.with_owner.assert_called_once_with(tron_adapter.wallet_address)
        builder.fee_limit.assert_called_once_with(1_000_000_000)

    @pytest.mark.asyncio
    async def test_nonce_already_used(self, tron_adapter, tron_client, signed_request):
        contract, _ = _mock_contract({"result": True, "txid": TX_ID})
        tron_adapter._contract = contract
        revert = NONCE_ALREADY_USED_SELECTOR[2:] + "00" * 64
        tron_client.get_transaction_info = AsyncMock(return_value={
            "id": TX_ID,
            "result": "FAILED",
            "receipt": {"result": "REVERT"},
            "contractResult": [revert],
        })

        with pytest.raises(NonceConflictError) as exc_info:
            await tron_adapter.submit_meta_transfer(signed_request)
        assert exc_info.value.nonce == signed_request.nonce

    @pytest.mark.asyncio
    async def test_reason_string_revert_uses_counter(self, tron_adapter, tron_client, signed_request):
        contract, _ = _mock_contract({"result": True, "txid": TX_ID})
        tron_adapter._contract = contract
        reason = b"nonce already used"
        revert = "08c379a0" + format(32, "064x") + format(len(reason), "064x") + reason.hex().ljust(64, "0")
        tron_client.get_transaction_info = AsyncMock(return_value={
            "id": TX_ID,
            "result": "FAILED",
            "receipt": {"result": "REVERT"},
            "contractResult": [revert],
        })

        get_nonce = AsyncMock(return_value=signed_request.nonce + 1)
        with patch.object(tron_adapter, "get_onchain_nonce", get_nonce):
            with pytest.raises(NonceConflictError):
                await tron_adapter.submit_meta_transfer(signed_request)
        get_nonce.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_other_failure(self, tron_adapter, tron_client, signed_request):
        contract, _ = _mock_contract({"result": True, "txid": TX_ID})
        tron_adapter._contract = contract
        tron_client.get_transaction_info = AsyncMock(return_value={
            "id": TX_ID,
            "result": "FAILED",
            "receipt": {"result": "OUT_OF_ENERGY"},
        })

        with patch.object(tron_adapter, "get_onchain_nonce", AsyncMock(return_value=0)):
            with pytest.raises(SubmissionError) as exc_info:
                await tron_adapter.submit_meta_transfer(signed_request)
        assert exc_info.value.tx_id == TX_ID
        assert exc_info.value.details["receipt_result"] == "OUT_OF_ENERGY"

    @pytest.mark.asyncio
    async def test_confirmation_timeout(self, tron_adapter, tron_client, signed_request):
        contract, _ = _mock_contract({"result": True, "txid": TX_ID})
        tron_adapter._contract = contract
        tron_client.get_transaction_info = AsyncMock(side_effect=TransactionNotFound("not found"))

        with patch.object(TronRelayAdapter, "_sleep_async", new=AsyncMock()):
            with pytest.raises(SubmissionError) as exc_info:
                await tron_adapter.submit_meta_transfer(signed_request)
        assert exc_info.value.tx_id == TX_ID
        assert tron_client.get_transaction_info.await_count == 3

    @pytest.mark.asyncio
    async def test_broadcast_failure(self, tron_adapter, signed_request):
        contract = Mock()
        contract.functions.metaTransfer = AsyncMock(side_effect=RuntimeError("validate signature error"))
        tron_adapter._contract = contract

        with pytest.raises(SubmissionError):
            await tron_adapter.submit_meta_transfer(signed_request)

    @pytest.mark.asyncio
    async def test_unsigned_request_rejected(self, tron_adapter):
        with pytest.raises(ValidationError):
            await tron_adapter.submit_meta_transfer(create_mock_tron_request())


class TestExtractTxId:
    """Test transaction id extraction."""

    def test_shapes(self):
        assert extract_tx_id(TX_ID.upper()) == TX_ID
        assert extract_tx_id(SimpleNamespace(txid=TX_ID)) == TX_ID
        assert extract_tx_id({"txid": TX_ID}) == TX_ID
        assert extract_tx_id({"txID": TX_ID}) == TX_ID
        assert extract_tx_id({"transaction": {"txID": TX_ID}}) == TX_ID

    def test_missing(self):
        assert extract_tx_id(None) is None
        assert extract_tx_id("short") is None
        assert extract_tx_id({"result": True}) is None
