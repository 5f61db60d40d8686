"""Twelve Data forex fetcher.

Endpoint: https://api.twelvedata.com/price?symbol=USD/{SYMBOL}
Rate Limit: 8 calls/min, 800 calls/day (free tier)
API Key: Required
"""

import logging

from .base import ForexFetcher, ForexQuotaError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class TwelveDataFetcher(ForexFetcher):
    """Fetcher for Twelve Data forex prices.

    Errors are reported either with an HTTP status or as a 200 response
    carrying a "message" field; both are checked for quota exhaustion.
    """

    name = "twelve_data"
    requires_api_key = True
    BASE_URL = "https://api.twelvedata.com"
    QUOTA_MARKERS = ("run out of api credits", "current limit", "quota", "credits")

    async def fetch_rate(self, symbol: str) -> float | None:
        pair = f"USD/{symbol}"
        response = await self._get(
            f"{self.BASE_URL}/price",
            params={"symbol": pair, "apikey": self.api_key or ""},
        )
        data = self._json(response)

        message = data.get("message")
        if isinstance(message, str):
            if self.is_quota_error(message):
                raise ForexQuotaError(message)
            logger.warning(f"[{self.name}] {pair} failed (API error): {message}")
            return None

        price = data.get("price")
        if not isinstance(price, str):
            logger.warning(f"[{self.name}] {pair} failed (missing price)")
            return None
        try:
            return float(price)
        except ValueError:
            logger.warning(f"[{self.name}] {pair} failed (invalid rate '{price}')")
            return None
