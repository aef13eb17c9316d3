"""
Price Oracle Test Suite

Tests for USD quotes over a mocked HTTP transport: successful lookups and
every failure mode collapsing into PriceOracleUnavailable.

Usage:
    pytest tests/test_adapter/test_prices.py -v
"""

from decimal import Decimal

import httpx
import pytest

from meta_relay.adapters.prices import PriceOracle
from meta_relay.engine.exceptions import PriceOracleUnavailable


def _oracle(handler) -> PriceOracle:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PriceOracle(url="https://prices.test/simple/price", client=client)


class TestPriceOracle:
    """Test price lookups."""

    @pytest.mark.asyncio
    async def test_rate_parsed_as_decimal(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, json={"ethereum": {"usd": 2500.5}})

        rate = await _oracle(handler).get_usd_rate("ethereum")

        assert rate == Decimal("2500.5")
        assert seen == {"ids": "ethereum", "vs_currencies": "usd"}

    @pytest.mark.asyncio
    async def test_http_error(self):
        oracle = _oracle(lambda request: httpx.Response(503, text="unavailable"))
        with pytest.raises(PriceOracleUnavailable):
            await oracle.get_usd_rate("tron")

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PriceOracleUnavailable):
            await _oracle(handler).get_usd_rate("tron")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        oracle = _oracle(lambda request: httpx.Response(200, text="<html>rate limited</html>"))
        with pytest.raises(PriceOracleUnavailable):
            await oracle.get_usd_rate("tron")

    @pytest.mark.asyncio
    async def test_missing_asset(self):
        oracle = _oracle(lambda request: httpx.Response(200, json={}))
        with pytest.raises(PriceOracleUnavailable) as exc_info:
            await oracle.get_usd_rate("tron")
        assert exc_info.value.details == {"asset_id": "tron"}

    @pytest.mark.asyncio
    async def test_non_positive_price(self):
        oracle = _oracle(lambda request: httpx.Response(200, json={"tron": {"usd": 0}}))
        with pytest.raises(PriceOracleUnavailable):
            await oracle.get_usd_rate("tron")
