"""CoinMarketCap fetcher.

Endpoint: https://pro-api.coinmarketcap.com/v2/cryptocurrency/quotes/latest?address=...
Rate Limit: 333 calls/day (free tier)
API Key: Required
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..TokenQuote import TokenQuote
from .base import FetcherError, PriceFetcher, register_fetcher

if TYPE_CHECKING:
    from ..OracleConfig import UnitConfig


@register_fetcher
class CoinMarketCapFetcher(PriceFetcher):
    """Fetcher for CoinMarketCap quotes looked up by contract address.

    A contract lookup can return several listings (one per platform). The
    listing whose contract and platform match the unit is preferred; the first
    listing is used otherwise.
    """

    name = "coinmarketcap"
    requires_api_key = True
    BASE_URL = "https://pro-api.coinmarketcap.com"

    # Map config chain names to CoinMarketCap platform slugs
    PLATFORM_SLUGS = {
        "ethereum": "ethereum",
        "sepolia": "ethereum",
    }

    @classmethod
    def platform_slug(cls, chain: str) -> str:
        return cls.PLATFORM_SLUGS.get(chain, chain)

    async def fetch(self, unit: UnitConfig) -> TokenQuote:
        """Fetch the USD quote of a token from CoinMarketCap.

        :param unit: Unit to fetch.
        :returns: TokenQuote for the unit.
        :raises FetcherError: On HTTP errors or if no listing has a USD quote.
        """
        url = f"{self.BASE_URL}/v2/cryptocurrency/quotes/latest"
        headers = {
            "Accept": "application/json",
            "X-CMC_PRO_API_KEY": self.api_key or "",
        }
        params = {"address": unit.contract, "skip_invalid": "true"}

        response = await self._get(url, params=params, headers=headers)
        data = self._json(response)

        token = extract_best_token(
            data.get("data"), unit.contract, self.platform_slug(unit.chain)
        )
        if token is None:
            raise FetcherError(f"[{self.name}] no matching token for contract {unit.contract}")

        quote = token.get("quote") or {}
        usd_quote = quote.get("USD") or quote.get("usd")
        if not isinstance(usd_quote, dict):
            raise FetcherError(f"[{self.name}] missing USD quote")

        price = usd_quote.get("price")
        if not isinstance(price, (int, float)):
            raise FetcherError(f"[{self.name}] missing USD price")

        return self._quote(
            unit,
            float(price),
            market_cap=_number(usd_quote.get("market_cap")),
            volume_24h=_number(usd_quote.get("volume_24h")),
            price_change_24h=_number(usd_quote.get("percent_change_24h")),
        )


def extract_best_token(
    data: Any, contract: str, expected_platform: str
) -> dict | None:
    """Pick the listing matching the contract (and platform, when present).

    :param data: The "data" member of the response (list or dict of listings).
    :param contract: Contract address being looked up.
    :param expected_platform: Platform slug the contract should belong to.
    :returns: Best matching listing, the first listing as fallback, or None.
    """
    contract = contract.lower()
    fallback: dict | None = None

    for token in _flatten_token_entries(data):
        if fallback is None:
            fallback = token

        if _token_contract_address(token) != contract:
            continue

        slug = _token_platform_slug(token)
        if slug is None or slug.lower() == expected_platform.lower():
            return token

    return fallback


def _flatten_token_entries(data: Any) -> list[dict]:
    if isinstance(data, list):
        return [t for t in data if isinstance(t, dict)]
    if isinstance(data, dict):
        entries: list[dict] = []
        for value in data.values():
            if isinstance(value, list):
                entries.extend(t for t in value if isinstance(t, dict))
            elif isinstance(value, dict):
                entries.append(value)
        return entries
    return []


def _token_contract_address(token: dict) -> str | None:
    address = token.get("contract_address")
    if not isinstance(address, str):
        platform = token.get("platform")
        if isinstance(platform, dict):
            address = platform.get("token_address") or platform.get("contract_address")
    return address.lower() if isinstance(address, str) else None


def _token_platform_slug(token: dict) -> str | None:
    platform = token.get("platform")
    if isinstance(platform, dict) and isinstance(platform.get("slug"), str):
        return platform["slug"]
    return None


def _number(value: Any) -> float | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None
