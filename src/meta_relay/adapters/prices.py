"""
Native Currency Price Oracle

Fetches USD quotes for native gas currencies (ETH, TRX) from a
CoinGecko-compatible ``simple/price`` endpoint. Every failure (network,
HTTP status, malformed payload, non-positive price) is reported as
PriceOracleUnavailable so the gas estimator can fall back to a static rate.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx

from ..engine.exceptions import PriceOracleUnavailable
from ..settings import DEFAULT_PRICE_ORACLE_URL


logger = logging.getLogger(__name__)


async def fetch_json(
    url: str,
    params: Optional[Dict[str, Any]] = None,
    timeout: float = 10.0,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """
    Fetches JSON data from a URL and raises detailed exceptions on failure.

    Args:
        url (str): The target URL to request.
        params: Optional query parameters.
        timeout (float): Request timeout in seconds.
        client: Optional shared client; a short-lived one is created otherwise.

    Returns:
        Dict[str, Any]: The parsed JSON response.

    Raises:
        httpx.HTTPStatusError: If the server returns a 4xx or 5xx status code.
        httpx.RequestError: If a network-level error occurs (DNS, Connection Refused).
        RuntimeError: If the response is not valid JSON.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=timeout) as owned:
            return await fetch_json(url, params=params, timeout=timeout, client=owned)

    response = await client.get(url, params=params)

    # Checks for 4xx/5xx errors
    response.raise_for_status()

    try:
        return response.json()
    except ValueError as json_exc:
        raise RuntimeError(
            f"Failed to decode JSON from {url}. Content-Type: {response.headers.get('Content-Type')}"
        ) from json_exc


class PriceOracle:
    """
    USD price source for native currencies.

    Example:
        oracle = PriceOracle()
        eth_usd = await oracle.get_usd_rate("ethereum")
    """

    def __init__(
        self,
        url: str = DEFAULT_PRICE_ORACLE_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._client = client

    async def get_usd_rate(self, asset_id: str) -> Decimal:
        """
        Return the USD price of one whole unit of ``asset_id``.

        Args:
            asset_id: Oracle asset id (``ethereum``, ``tron``).

        Returns:
            Decimal: Positive USD rate.

        Raises:
            PriceOracleUnavailable: On any fetch or parse failure.
        """
        try:
            payload = await fetch_json(
                self.url,
                params={"ids": asset_id, "vs_currencies": "usd"},
                timeout=self.timeout,
                client=self._client,
            )
        except (httpx.HTTPError, RuntimeError) as e:
            raise PriceOracleUnavailable(
                f"Price lookup for {asset_id} failed: {e}", {"asset_id": asset_id}
            ) from e

        try:
            rate = Decimal(str(payload[asset_id]["usd"]))
        except (KeyError, TypeError, InvalidOperation) as e:
            raise PriceOracleUnavailable(
                f"Unexpected price payload for {asset_id}", {"asset_id": asset_id}
            ) from e

        if not rate.is_finite() or rate <= 0:
            raise PriceOracleUnavailable(f"Non-positive price for {asset_id}: {rate}", {"asset_id": asset_id})

        logger.debug("Price oracle %s/USD = %s", asset_id, rate)
        return rate
