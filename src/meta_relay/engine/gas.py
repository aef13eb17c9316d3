"""
Gas reimbursement estimation.

Converts the native-currency cost of relaying one ``metaTransfer`` into the
token amount deducted from the sender, assuming 1 token == 1 USD:

    native_cost = gas_units * fee_rate / 10**native_decimals
    usd_cost    = native_cost * usd_rate * (10000 + buffer_bps) / 10000
    token_units = floor(usd_cost * 10**token_decimals)

Live inputs degrade independently: a failing fee oracle falls back to the
adapter's static fee rate, a failing price oracle to its static USD rate.
All arithmetic is Decimal with enough precision for uint256 values.
"""

import decimal
import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from ..schemas.relays import GasQuote
from .exceptions import PriceOracleUnavailable, ValidationError

if TYPE_CHECKING:
    from ..adapters.bases import ChainAdapter
    from ..adapters.prices import PriceOracle


logger = logging.getLogger(__name__)

DEFAULT_BUFFER_BPS: int = 1000
BPS_DENOMINATOR: int = 10_000

_PRECISION: int = 90


class GasCostEstimator:
    """
    Estimates the gas reimbursement for a meta-transfer.

    Args:
        price_oracle: USD quote source; when None the adapter's static
            fallback rate is always used.
        default_buffer_bps: Safety margin applied when the caller passes none.

    Example:
        estimator = GasCostEstimator(PriceOracle())
        fee = await estimator.estimate(adapter, buffer_bps=1000)
    """

    def __init__(self, price_oracle: Optional["PriceOracle"] = None, default_buffer_bps: int = DEFAULT_BUFFER_BPS):
        self._price_oracle = price_oracle
        self.default_buffer_bps = default_buffer_bps

    async def estimate(
        self,
        adapter: "ChainAdapter",
        buffer_bps: Optional[int] = None,
        gas_units: Optional[int] = None,
    ) -> int:
        """Return the reimbursement in token smallest units."""
        quote = await self.quote(adapter, buffer_bps=buffer_bps, gas_units=gas_units)
        return quote.token_units

    async def quote(
        self,
        adapter: "ChainAdapter",
        buffer_bps: Optional[int] = None,
        gas_units: Optional[int] = None,
    ) -> GasQuote:
        """
        Estimate the reimbursement and return every input used.

        Args:
            adapter: Chain adapter supplying the fee rate, decimals and fallbacks.
            buffer_bps: Safety margin in basis points (1000 = +10%).
            gas_units: Observed gas usage; the adapter's fallback limit when None.

        Returns:
            GasQuote with ``token_units`` truncated to whole smallest units.

        Raises:
            ValidationError: If ``buffer_bps`` or ``gas_units`` is negative.
        """
        bps = self.default_buffer_bps if buffer_bps is None else buffer_bps
        if bps < 0:
            raise ValidationError(f"buffer_bps must be non-negative, got {bps}")
        units = adapter.fallback_gas_limit if gas_units is None else gas_units
        if units < 0:
            raise ValidationError(f"gas_units must be non-negative, got {units}")

        fee_rate, fee_source = await self._fee_rate(adapter)
        usd_rate, price_source = await self._usd_rate(adapter)

        with decimal.localcontext() as ctx:
            ctx.prec = _PRECISION
            native_cost = (Decimal(units) * Decimal(fee_rate)).scaleb(-adapter.native_decimals)
            usd_cost = native_cost * usd_rate * Decimal(BPS_DENOMINATOR + bps) / Decimal(BPS_DENOMINATOR)
            token_units = int(usd_cost.scaleb(adapter.token_decimals).to_integral_value(rounding=decimal.ROUND_DOWN))

        logger.info(
            "Gas quote on %s: %s units x %s (%s) @ %s USD (%s), buffer %s bps -> %s token units",
            adapter.chain.value, units, fee_rate, fee_source, usd_rate, price_source, bps, token_units,
        )
        return GasQuote(
            gas_units=units,
            fee_rate=fee_rate,
            fee_source=fee_source,
            native_cost=native_cost,
            usd_rate=usd_rate,
            price_source=price_source,
            buffer_bps=bps,
            token_units=token_units,
        )

    async def _fee_rate(self, adapter: "ChainAdapter"):
        try:
            rate = int(await adapter.get_fee_rate())
        except Exception as e:
            logger.warning("Fee oracle on %s failed, using fallback rate: %s", adapter.chain.value, e)
            return adapter.fallback_fee_rate, "fallback"
        if rate <= 0:
            logger.warning("Fee oracle on %s returned %s, using fallback rate", adapter.chain.value, rate)
            return adapter.fallback_fee_rate, "fallback"
        return rate, "network"

    async def _usd_rate(self, adapter: "ChainAdapter"):
        if self._price_oracle is None:
            return adapter.fallback_usd_rate, "fallback"
        try:
            return await self._price_oracle.get_usd_rate(adapter.price_asset_id), "oracle"
        except PriceOracleUnavailable as e:
            logger.warning("Price oracle unavailable, using fallback %s USD: %s", adapter.fallback_usd_rate, e)
            return adapter.fallback_usd_rate, "fallback"
