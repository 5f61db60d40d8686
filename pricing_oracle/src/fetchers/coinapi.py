"""CoinAPI forex fetcher.

Endpoint: https://rest.coinapi.io/v1/exchangerate/USD/{SYMBOL}
Rate Limit: Varies by plan ($25 free credits, then paid)
API Key: Required
"""

import logging

from .base import ForexFetcher, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinAPIFetcher(ForexFetcher):
    """Fetcher for CoinAPI exchange rates, used as a forex fallback."""

    name = "coinapi"
    requires_api_key = True
    BASE_URL = "https://rest.coinapi.io/v1"
    QUOTA_MARKERS = (
        "quota exceeded",
        "insufficient usage credits",
        "subscription",
        "forbidden",
    )

    async def fetch_rate(self, symbol: str) -> float | None:
        url = f"{self.BASE_URL}/exchangerate/USD/{symbol}"
        response = await self._get(url, headers={"X-CoinAPI-Key": self.api_key or ""})
        data = self._json(response)

        rate = data.get("rate")
        if not isinstance(rate, (int, float)) or isinstance(rate, bool):
            logger.warning(f"[{self.name}] USD/{symbol} failed (missing rate)")
            return None
        return float(rate)
