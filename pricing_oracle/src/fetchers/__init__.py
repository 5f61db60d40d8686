"""
Price and forex fetchers for multiple API sources.

Price fetchers look tokens up by chain and contract address; forex fetchers
return foreign currency units per USD.

Usage:
    from pricing_oracle.src.fetchers import build_price_fetchers, get_available_fetchers

    available = get_available_fetchers()
    # ['coingecko', 'coinmarketcap', 'geckoterminal']

    fetchers = build_price_fetchers({"coingecko": "your-api-key"})
    quote = await fetchers["geckoterminal"].fetch(unit)
"""

# Import base classes and utilities
from .base import (
    FETCHER_REGISTRY,
    FOREX_FETCHER_REGISTRY,
    BaseFetcher,
    FetcherConfigError,
    FetcherError,
    FetcherHTTPError,
    ForexFetcher,
    ForexQuotaError,
    PriceFetcher,
    build_forex_fetchers,
    build_price_fetchers,
    get_available_fetchers,
    get_available_forex_fetchers,
    register_fetcher,
)

# Import all fetcher implementations to trigger registration
from .geckoterminal import GeckoTerminalFetcher
from .coingecko import CoinGeckoFetcher
from .coinmarketcap import CoinMarketCapFetcher
from .twelve_data import TwelveDataFetcher
from .coinapi import CoinAPIFetcher

__all__ = [
    # Base classes
    "BaseFetcher",
    "PriceFetcher",
    "ForexFetcher",
    "FetcherError",
    "FetcherConfigError",
    "FetcherHTTPError",
    "ForexQuotaError",
    # Registry functions
    "register_fetcher",
    "build_price_fetchers",
    "build_forex_fetchers",
    "get_available_fetchers",
    "get_available_forex_fetchers",
    "FETCHER_REGISTRY",
    "FOREX_FETCHER_REGISTRY",
    # Fetcher implementations
    "GeckoTerminalFetcher",
    "CoinGeckoFetcher",
    "CoinMarketCapFetcher",
    "TwelveDataFetcher",
    "CoinAPIFetcher",
]
