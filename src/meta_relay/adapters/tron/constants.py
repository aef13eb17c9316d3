"""
TRON Chain Configuration Management

Environment-backed configuration for the TRON relay adapter: node endpoint,
API key, verifier contract, relayer and reserve keys, chain id aliases, and
the static fallbacks used when live energy or price data is unavailable.
"""

import os
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

import dotenv

from ...engine.exceptions import ChainConfigError

dotenv.load_dotenv()


#: 1 TRX = 1_000_000 sun.
NATIVE_DECIMALS: int = 6
SUN_PER_TRX: int = 1_000_000

#: Decimals of the relayed TRC20 token.
DEFAULT_TOKEN_DECIMALS: int = 6

DEFAULT_RPC_URL: str = "https://api.trongrid.io"

#: Energy assumed for one ``metaTransfer`` call.
DEFAULT_FALLBACK_ENERGY_LIMIT: int = 100_000

#: Sun per energy unit when chain parameters cannot be read.
DEFAULT_FALLBACK_ENERGY_PRICE_SUN: int = 420

#: TRX/USD used when the price oracle fails.
DEFAULT_FALLBACK_USD_RATE: Decimal = Decimal("0.25")

#: Fee limit attached to ``metaTransfer`` calls (1000 TRX).
META_TRANSFER_FEE_LIMIT_SUN: int = 1_000_000_000

#: Minimum spendable reserve before a participant is considered activated.
DEFAULT_MIN_RESERVE_SUN: int = 1_100_000

PRICE_ORACLE_ASSET_ID: str = "tron"

TRON_MAINNET_CHAIN_ID: int = 728126428
TRON_SHASTA_CHAIN_ID: int = 2494104990
TRON_NILE_CHAIN_ID: int = 3448148188

TRON_CHAIN_ALIASES: Dict[str, int] = {
    "mainnet": TRON_MAINNET_CHAIN_ID,
    "shasta": TRON_SHASTA_CHAIN_ID,
    "nile": TRON_NILE_CHAIN_ID,
}

#: Only public test endpoints are trusted for chain id inference.
TRON_TEST_ENDPOINT_CHAIN_IDS: Dict[str, int] = {
    "api.shasta.trongrid.io": TRON_SHASTA_CHAIN_ID,
    "nile.trongrid.io": TRON_NILE_CHAIN_ID,
    "api.nileex.io": TRON_NILE_CHAIN_ID,
}


def get_rpc_url_from_env() -> str:
    return os.getenv("TRON_RPC_URL") or DEFAULT_RPC_URL


def get_api_key_from_env() -> Optional[str]:
    """Load the optional TronGrid API key (``TRON_API_KEY``)."""
    return os.getenv("TRON_API_KEY")


def get_contract_address_from_env() -> Optional[str]:
    """Load the verifier contract address (``TRON_CONTRACT_ADDRESS``, base58)."""
    return os.getenv("TRON_CONTRACT_ADDRESS")


def get_private_key_from_env() -> Optional[str]:
    """
    Load the relayer key that pays energy for ``metaTransfer``.

    Environment Variable:
        - TRON_RELAYER_PRIVATE_KEY: hex key, with or without 0x
    """
    return os.getenv("TRON_RELAYER_PRIVATE_KEY")


def get_reserve_private_key_from_env() -> Optional[str]:
    """
    Load the operator reserve key used to activate participant accounts.

    Environment Variable:
        - TRON_RESERVE_PRIVATE_KEY: hex key; falls back to the relayer key
    """
    return os.getenv("TRON_RESERVE_PRIVATE_KEY") or get_private_key_from_env()


def get_chain_id_from_env() -> Optional[str]:
    """Load the explicit chain id or alias (``TRON_CHAIN_ID``), unparsed."""
    return os.getenv("TRON_CHAIN_ID")


def get_token_decimals_from_env() -> int:
    raw = os.getenv("TRON_TOKEN_DECIMALS")
    if not raw:
        return DEFAULT_TOKEN_DECIMALS
    try:
        return int(raw)
    except ValueError as e:
        raise ChainConfigError(f"TRON_TOKEN_DECIMALS must be an integer, got {raw!r}") from e


def get_fallback_usd_rate_from_env() -> Decimal:
    """
    Load the static TRX/USD fallback rate (``TRON_FALLBACK_USD_RATE``).

    Raises:
        ChainConfigError: If the configured value is not a positive number.
    """
    raw = os.getenv("TRON_FALLBACK_USD_RATE")
    if not raw:
        return DEFAULT_FALLBACK_USD_RATE
    try:
        rate = Decimal(raw)
    except InvalidOperation as e:
        raise ChainConfigError(f"Invalid TRX/USD fallback rate: {raw!r}") from e
    if not rate.is_finite() or rate <= 0:
        raise ChainConfigError(f"TRX/USD fallback rate must be positive, got {raw!r}")
    return rate
