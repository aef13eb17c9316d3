"""
EVM Chain Configuration Management

Environment-backed configuration for the EVM relay adapter: RPC endpoint,
verifier contract, relayer key, chain id aliases and the static fallbacks
used when live fee or price data is unavailable. Also hosts the canonical
human-amount to smallest-unit conversion.
"""

import os
from decimal import Decimal, InvalidOperation, localcontext
from typing import Dict, Optional

import dotenv

from ...engine.exceptions import ChainConfigError, ValidationError

dotenv.load_dotenv()


#: Decimals of ETH and of every EVM native currency we relay on.
NATIVE_DECIMALS: int = 18

#: Decimals of the relayed token on EVM chains.
DEFAULT_TOKEN_DECIMALS: int = 18

#: Gas assumed for one ``metaTransfer`` call when no estimate is available.
DEFAULT_FALLBACK_GAS_LIMIT: int = 180_000

#: Gas price assumed when the node's fee oracle fails (30 gwei).
DEFAULT_FALLBACK_GAS_PRICE_WEI: int = 30_000_000_000

#: ETH/USD used when the price oracle fails.
DEFAULT_FALLBACK_USD_RATE: Decimal = Decimal("3000")

#: Price oracle id of the native currency.
PRICE_ORACLE_ASSET_ID: str = "ethereum"

#: Chain id aliases accepted in ``EVM_CHAIN_ID``.
EVM_CHAIN_ALIASES: Dict[str, int] = {
    "mainnet": 1,
    "ethereum": 1,
    "sepolia": 11155111,
    "holesky": 17000,
    "base": 8453,
    "polygon": 137,
}


def get_rpc_url_from_env() -> Optional[str]:
    """
    Load the EVM JSON-RPC endpoint.

    Environment Variable:
        - EVM_RPC_URL (``SEPOLIA_RPC_URL`` is accepted as a legacy name)
    """
    return os.getenv("EVM_RPC_URL") or os.getenv("SEPOLIA_RPC_URL")


def get_contract_address_from_env() -> Optional[str]:
    """Load the verifier contract address (``EVM_CONTRACT_ADDRESS``)."""
    return os.getenv("EVM_CONTRACT_ADDRESS")


def get_private_key_from_env() -> Optional[str]:
    """
    Load the relayer private key that pays gas for ``metaTransfer``.

    Environment Variable:
        - EVM_RELAYER_PRIVATE_KEY: 0x-prefixed hex key

    Note:
        The key should be stored securely in environment variables and
        never committed to version control.
    """
    return os.getenv("EVM_RELAYER_PRIVATE_KEY")


def get_chain_id_from_env() -> Optional[str]:
    """Load the explicit chain id or alias (``EVM_CHAIN_ID``), unparsed."""
    return os.getenv("EVM_CHAIN_ID")


def get_token_decimals_from_env() -> int:
    raw = os.getenv("EVM_TOKEN_DECIMALS")
    if not raw:
        return DEFAULT_TOKEN_DECIMALS
    try:
        return int(raw)
    except ValueError as e:
        raise ChainConfigError(f"EVM_TOKEN_DECIMALS must be an integer, got {raw!r}") from e


def get_fallback_usd_rate_from_env() -> Decimal:
    """
    Load the static ETH/USD fallback rate.

    Environment Variable:
        - EVM_FALLBACK_USD_RATE (``ETH_USD_PRICE`` is accepted as a legacy name)

    Raises:
        ChainConfigError: If the configured value is not a positive number.
    """
    raw = os.getenv("EVM_FALLBACK_USD_RATE") or os.getenv("ETH_USD_PRICE")
    if not raw:
        return DEFAULT_FALLBACK_USD_RATE
    try:
        rate = Decimal(raw)
    except InvalidOperation as e:
        raise ChainConfigError(f"Invalid ETH/USD fallback rate: {raw!r}") from e
    if not rate.is_finite() or rate <= 0:
        raise ChainConfigError(f"ETH/USD fallback rate must be positive, got {raw!r}")
    return rate


def amount_to_value(*, amount: float | int | str | Decimal, decimals: int) -> int:
    """Convert a human-readable token `amount` into smallest-unit integer `value`.

    This is the canonical conversion used for every relayed amount.

    Args:
        amount: Human-readable amount (e.g. "12.5"). Accepts float/int/str/Decimal.
        decimals: Token decimals (18 on EVM, 6 on TRON).

    Returns:
        int: Smallest-unit integer value.

    Raises:
        ValidationError: If the amount is not a number, is negative, or cannot
            be represented in smallest units.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValidationError("decimals must be a non-negative int")
    if isinstance(amount, bool):
        raise ValidationError(f"Invalid amount: {amount!r}")

    try:
        # Use str() to avoid binary-float surprises (e.g. 0.1 -> 0.100000000000000005...)
        dec_amount = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValidationError(f"Invalid amount: {amount!r}") from e

    if not dec_amount.is_finite():
        raise ValidationError(f"Invalid amount: {amount!r}")
    if dec_amount < 0:
        raise ValidationError("amount must be non-negative")

    # Precision covers every input digit so scaling never rounds
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(dec_amount.as_tuple().digits) + decimals)
        scaled = dec_amount.scaleb(decimals)

        # Require exact smallest-unit representability (no fractional smallest units)
        if scaled != scaled.to_integral_value():
            raise ValidationError(
                f"amount {amount!r} is not representable with decimals={decimals} "
                f"(would create fractional smallest units)"
            )

        return int(scaled)
