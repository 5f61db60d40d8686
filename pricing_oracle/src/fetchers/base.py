"""Base fetcher interfaces and shared HTTP client management.

Two kinds of fetchers exist:
    - PriceFetcher: fetch(unit) returns a TokenQuote for one token
    - ForexFetcher: fetch_rates(symbols) returns foreign units per USD

Both raise FetcherError (or a subclass) on failure instead of returning
partial data; the caller decides how a failed source is handled. A shared
httpx.AsyncClient is used across all fetchers to avoid connection overhead.

.. code-block:: python

    @register_fetcher
    class MyFetcher(PriceFetcher):
        name = "myfetcher"

        async def fetch(self, unit: UnitConfig) -> TokenQuote:
            response = await self._get(f"https://api.example.com/{unit.contract}")
            return self._quote(unit, float(response.json()["price"]))
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

import httpx

from ..TokenQuote import TokenQuote

if TYPE_CHECKING:
    from ..OracleConfig import UnitConfig

logger = logging.getLogger(__name__)


class FetcherError(Exception):
    """Base exception for fetcher errors."""

    pass


class FetcherConfigError(FetcherError):
    """Raised when fetcher configuration is invalid (e.g., missing API key)."""

    pass


class FetcherHTTPError(FetcherError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    :ivar body: Truncated response body.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        self.body = message
        super().__init__(f"HTTP {status_code}: {message}")


class BaseFetcher(ABC):
    """Abstract base class for all fetchers.

    :cvar name: Unique identifier for this fetcher.
    :cvar requires_api_key: True if the fetcher cannot work without a key.
    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar api_key: Optional API key for authenticated endpoints.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    name: ClassVar[str] = ""
    requires_api_key: ClassVar[bool] = False

    DEFAULT_TIMEOUT = 10.0

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        """Initialize the fetcher.

        :param api_key: Optional API key for authenticated endpoints.
        :param timeout: Request timeout in seconds (default: 10).
        :raises FetcherConfigError: If a required API key is missing.
        """
        self.api_key = api_key
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        if self.requires_api_key and not self.has_api_key:
            raise FetcherConfigError(f"[{self.name}] API key required but not provided")

    @property
    def has_api_key(self) -> bool:
        """Check if this fetcher has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        :returns: Shared httpx.AsyncClient instance.
        """
        if (
            BaseFetcher._shared_client is None
            or BaseFetcher._shared_client.is_closed
        ):
            BaseFetcher._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                headers={"User-Agent": "pricing-oracle/0.1"},
                follow_redirects=True,
            )
        return BaseFetcher._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = BaseFetcher._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        BaseFetcher._shared_client = None

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request using the shared client.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises FetcherHTTPError: On non-2xx response.
        :raises FetcherError: On network/timeout errors.
        """
        client = self.get_shared_client()
        try:
            response = await client.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise FetcherError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise FetcherError(f"Request failed: {e}") from e

        if not response.is_success:
            logger.debug(
                "HTTP GET %s failed with status %s: %s",
                url,
                response.status_code,
                response.text[:200],
            )
            raise FetcherHTTPError(response.status_code, response.text[:200])
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        """Decode a JSON object body.

        :raises FetcherError: If the body is not a JSON object.
        """
        try:
            data = response.json()
        except ValueError as e:
            raise FetcherError(f"Invalid JSON response: {e}") from e
        if not isinstance(data, dict):
            raise FetcherError(f"Unexpected JSON response: {str(data)[:200]}")
        return data


class PriceFetcher(BaseFetcher):
    """Fetches USD quotes for a token identified by chain and contract."""

    @abstractmethod
    async def fetch(self, unit: UnitConfig) -> TokenQuote:
        """Fetch the current quote for a unit.

        :param unit: Unit (or price reference) to fetch.
        :returns: TokenQuote produced by this source.
        :raises FetcherError: If the quote cannot be fetched or parsed.
        """
        pass

    def _quote(self, unit: UnitConfig, price_usd: float | None, **fields) -> TokenQuote:
        """Build a TokenQuote for unit, rejecting unusable prices.

        :param unit: Unit the quote belongs to.
        :param price_usd: Parsed USD price.
        :param fields: Optional TokenQuote fields (volume_24h, market_cap, ...).
        :raises FetcherError: If price_usd is missing, not finite or not positive.
        """
        if price_usd is None or not math.isfinite(price_usd) or price_usd <= 0:
            raise FetcherError(f"[{self.name}] invalid USD price {price_usd!r}")
        return TokenQuote(
            name=unit.name,
            chain=unit.chain,
            contract=unit.contract,
            price_usd=price_usd,
            source=self.name,
            **fields,
        )


class ForexQuotaError(FetcherError):
    """Raised when a forex API reports exhausted credits or a rate limit."""

    pass


class ForexFetcher(BaseFetcher):
    """Fetches forex rates expressed as foreign currency units per USD.

    Symbols are requested one at a time. USD is always 1.0 and is never
    requested. A failed symbol is skipped; a quota error stops the loop and
    returns the rates collected so far.

    :cvar QUOTA_MARKERS: Lowercase substrings identifying a quota error body.
    """

    QUOTA_MARKERS: ClassVar[tuple[str, ...]] = ()

    @abstractmethod
    async def fetch_rate(self, symbol: str) -> float | None:
        """Fetch USD/symbol.

        :param symbol: Currency code (e.g., "EUR").
        :returns: Foreign units per USD, or None (after logging why) to skip it.
        :raises ForexQuotaError: If the source reports an exhausted quota.
        :raises FetcherError: On network errors.
        """
        pass

    def is_quota_error(self, message: str) -> bool:
        """Check whether an error message contains one of the lowercase QUOTA_MARKERS."""
        lowered = message.lower()
        return any(marker in lowered for marker in self.QUOTA_MARKERS)

    async def fetch_rates(self, symbols: list[str]) -> dict[str, float]:
        """Fetch rates for the requested currency codes.

        :param symbols: Currency codes (e.g., ["EUR", "JPY"]).
        :returns: Mapping of symbol to foreign units per USD (may be partial).
        :raises FetcherError: If no rate at all could be fetched.
        """
        rates: dict[str, float] = {}
        for symbol in symbols:
            if symbol == "USD":
                rates[symbol] = 1.0
                continue

            try:
                rate = await self.fetch_rate(symbol)
            except ForexQuotaError as e:
                logger.warning(
                    f"[{self.name}] quota reached at USD/{symbol} ({e}); "
                    f"returning {len(rates)} rate(s)"
                )
                break
            except FetcherHTTPError as e:
                if self.is_quota_error(e.body):
                    logger.warning(
                        f"[{self.name}] quota reached at USD/{symbol} "
                        f"(HTTP {e.status_code}); returning {len(rates)} rate(s)"
                    )
                    break
                logger.warning(f"[{self.name}] USD/{symbol} failed: {e}")
                continue

            if rate is None:
                continue
            rates[symbol] = rate

        if not rates:
            raise FetcherError(f"[{self.name}] did not return any forex rates")
        return rates


# Registries of available fetchers (populated by subclass imports)
FETCHER_REGISTRY: dict[str, type[PriceFetcher]] = {}
FOREX_FETCHER_REGISTRY: dict[str, type[ForexFetcher]] = {}


def register_fetcher(cls: type[BaseFetcher]) -> type[BaseFetcher]:
    """Decorator to register a fetcher class in the matching registry.

    :param cls: PriceFetcher or ForexFetcher subclass to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If fetcher has no name or is of an unknown kind.
    """
    if not cls.name:
        raise ValueError(f"Fetcher {cls.__name__} must define a 'name' class variable")
    if issubclass(cls, PriceFetcher):
        FETCHER_REGISTRY[cls.name] = cls
    elif issubclass(cls, ForexFetcher):
        FOREX_FETCHER_REGISTRY[cls.name] = cls
    else:
        raise ValueError(f"Fetcher {cls.__name__} must be a PriceFetcher or ForexFetcher")
    return cls


def get_available_fetchers() -> list[str]:
    """Get sorted list of registered price fetcher names."""
    return sorted(FETCHER_REGISTRY.keys())


def get_available_forex_fetchers() -> list[str]:
    """Get sorted list of registered forex fetcher names."""
    return sorted(FOREX_FETCHER_REGISTRY.keys())


def _build(
    registry: dict[str, type[BaseFetcher]],
    names: list[str],
    api_keys: dict[str, str],
    timeout: float | None,
) -> dict[str, BaseFetcher]:
    fetchers: dict[str, BaseFetcher] = {}
    for name in names:
        if name not in registry:
            available = ", ".join(sorted(registry.keys()))
            raise ValueError(f"Unknown fetcher '{name}'. Available: {available}")
        try:
            fetchers[name] = registry[name](api_key=api_keys.get(name), timeout=timeout)
        except FetcherConfigError:
            logger.warning(
                f"[{name}] API key not set (API_KEY_{name.upper()}); source disabled"
            )
    return fetchers


def build_price_fetchers(
    api_keys: dict[str, str],
    names: list[str] | None = None,
    timeout: float | None = None,
) -> dict[str, PriceFetcher]:
    """Instantiate price fetchers, skipping those lacking a required API key.

    :param api_keys: Dict mapping source names to API keys.
    :param names: Fetchers to build, in order (default: all registered).
    :param timeout: Per-request timeout in seconds.
    :returns: Dict mapping source name to fetcher instance, in order.
    :raises ValueError: If a fetcher name is unknown.
    """
    if names is None:
        names = list(FETCHER_REGISTRY.keys())
    return _build(FETCHER_REGISTRY, names, api_keys, timeout)  # type: ignore[return-value]


def build_forex_fetchers(
    names: list[str],
    api_keys: dict[str, str],
    timeout: float | None = None,
) -> dict[str, ForexFetcher]:
    """Instantiate forex fetchers, skipping those lacking a required API key.

    :param names: Forex fetchers to build, in order.
    :param api_keys: Dict mapping source names to API keys.
    :param timeout: Per-request timeout in seconds.
    :returns: Dict mapping source name to fetcher instance, in order.
    :raises ValueError: If a fetcher name is unknown.
    """
    return _build(FOREX_FETCHER_REGISTRY, names, api_keys, timeout)  # type: ignore[return-value]
