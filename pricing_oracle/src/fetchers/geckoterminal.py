"""GeckoTerminal fetcher.

Endpoint: https://api.geckoterminal.com/api/v2/networks/{network}/tokens/{contract}
Rate Limit: 30 calls/min (public API)
API Key: Not required
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..TokenQuote import TokenQuote
from .base import FetcherError, PriceFetcher, register_fetcher

if TYPE_CHECKING:
    from ..OracleConfig import UnitConfig


def parse_decimal_string(value: Any) -> float | None:
    """Parse a numeric string field, returning None when absent or malformed."""
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@register_fetcher
class GeckoTerminalFetcher(PriceFetcher):
    """Fetcher for the GeckoTerminal on-chain DEX API.

    Reports price, 24h volume, reserve liquidity and market cap. All numbers
    are returned as strings.
    """

    name = "geckoterminal"
    BASE_URL = "https://api.geckoterminal.com/api/v2"

    # Map config chain names to GeckoTerminal network ids
    NETWORK_IDS = {
        "ethereum": "eth",
        "sepolia": "eth",
    }

    @classmethod
    def network_id(cls, chain: str) -> str:
        return cls.NETWORK_IDS.get(chain, chain)

    async def fetch(self, unit: UnitConfig) -> TokenQuote:
        """Fetch token data from GeckoTerminal.

        :param unit: Unit to fetch.
        :returns: TokenQuote with price, volume, liquidity and market cap.
        :raises FetcherError: On HTTP errors or missing price.
        """
        url = f"{self.BASE_URL}/networks/{self.network_id(unit.chain)}/tokens/{unit.contract}"
        response = await self._get(url, headers={"Accept": "application/json"})
        data = self._json(response)

        try:
            attrs = data["data"]["attributes"]
        except (KeyError, TypeError) as e:
            raise FetcherError(f"[{self.name}] missing token attributes") from e

        price_usd = parse_decimal_string(attrs.get("price_usd"))
        if price_usd is None:
            raise FetcherError(f"[{self.name}] missing price_usd for {unit.contract}")

        volume = attrs.get("volume_usd") or {}
        return self._quote(
            unit,
            price_usd,
            volume_24h=parse_decimal_string(volume.get("h24")),
            liquidity=parse_decimal_string(attrs.get("total_reserve_in_usd")),
            market_cap=parse_decimal_string(attrs.get("market_cap_usd")),
        )
