"""CoinGecko fetcher.

Endpoint: https://api.coingecko.com/api/v3/simple/token_price/{platform}
Rate Limit: 30 calls/min (demo), higher with a pro key
API Key: Required (demo or pro)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..TokenQuote import TokenQuote
from .base import FetcherError, PriceFetcher, register_fetcher

if TYPE_CHECKING:
    from ..OracleConfig import UnitConfig


@register_fetcher
class CoinGeckoFetcher(PriceFetcher):
    """Fetcher for CoinGecko's token price by contract endpoint.

    API tiers:
        - Demo: api.coingecko.com + x-cg-demo-api-key header
        - Pro: pro-api.coingecko.com + x-cg-pro-api-key header

    Keys are treated as demo keys unless prefixed with "pro:":
    API_KEY_COINGECKO=pro:xxxxx
    """

    name = "coingecko"
    requires_api_key = True
    BASE_URL_FREE = "https://api.coingecko.com/api/v3"
    BASE_URL_PRO = "https://pro-api.coingecko.com/api/v3"

    # Map config chain names to CoinGecko asset platform ids
    PLATFORM_IDS = {
        "ethereum": "ethereum",
        "sepolia": "ethereum",
    }

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        """Initialize with optional pro: prefix handling."""
        self._is_pro = False
        if api_key and api_key.lower().startswith("pro:"):
            self._is_pro = True
            api_key = api_key[4:]
        super().__init__(api_key=api_key, timeout=timeout)

    @property
    def base_url(self) -> str:
        """Return appropriate base URL based on API key type."""
        return self.BASE_URL_PRO if self._is_pro else self.BASE_URL_FREE

    @property
    def api_header(self) -> tuple[str, str]:
        """Return appropriate header name and value for API key."""
        header_name = "x-cg-pro-api-key" if self._is_pro else "x-cg-demo-api-key"
        return (header_name, self.api_key or "")

    @classmethod
    def platform_id(cls, chain: str) -> str:
        return cls.PLATFORM_IDS.get(chain, chain)

    async def fetch(self, unit: UnitConfig) -> TokenQuote:
        """Fetch price, market cap, 24h volume and 24h change from CoinGecko.

        :param unit: Unit to fetch.
        :returns: TokenQuote for the unit.
        :raises FetcherError: On HTTP errors or if the contract is not listed.
        """
        url = f"{self.base_url}/simple/token_price/{self.platform_id(unit.chain)}"
        header_name, header_value = self.api_header

        response = await self._get(
            url,
            params={
                "contract_addresses": unit.contract,
                "vs_currencies": "usd",
                "include_market_cap": "true",
                "include_24hr_vol": "true",
                "include_24hr_change": "true",
            },
            headers={header_name: header_value},
        )
        data = self._json(response)

        # Response keys are lowercase contract addresses
        token_data = data.get(unit.contract.lower())
        if not isinstance(token_data, dict):
            raise FetcherError(f"[{self.name}] no data for contract {unit.contract.lower()}")

        try:
            price_usd = float(token_data["usd"])
        except (KeyError, TypeError, ValueError) as e:
            raise FetcherError(f"[{self.name}] missing usd price") from e

        return self._quote(
            unit,
            price_usd,
            market_cap=_optional_float(token_data.get("usd_market_cap")),
            volume_24h=_optional_float(token_data.get("usd_24h_vol")),
            price_change_24h=_optional_float(token_data.get("usd_24h_change")),
        )


def _optional_float(value: object) -> float | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None
