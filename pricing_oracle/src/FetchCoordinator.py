"""FetchCoordinator: Concurrent fetching from all configured sources.

Every price source is queried for the same unit concurrently, and every
forex source for the same symbol list. Failures never abort the run: each
source's outcome is returned as either a value or the exception it raised,
and the aggregators decide what to keep.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Awaitable

from .TokenQuote import TokenQuote

if TYPE_CHECKING:
    from .fetchers import ForexFetcher, PriceFetcher
    from .OracleConfig import UnitConfig

logger = logging.getLogger(__name__)

QuoteResult = tuple[str, "TokenQuote | BaseException"]
ForexResult = tuple[str, "dict[str, float] | BaseException"]


class FetchCoordinator:
    """Coordinates concurrent fetching from price and forex sources.

    :ivar price_fetchers: Dict mapping source names to price fetchers.
    :ivar forex_fetchers: Dict mapping source names to forex fetchers.
    :ivar fetch_timeout: Timeout for each source in seconds.
    """

    def __init__(
        self,
        price_fetchers: dict[str, PriceFetcher],
        forex_fetchers: dict[str, ForexFetcher] | None = None,
        fetch_timeout: float = 10.0,
    ) -> None:
        """Initialize the fetch coordinator.

        :param price_fetchers: Dict mapping source names to price fetchers.
        :param forex_fetchers: Dict mapping source names to forex fetchers.
        :param fetch_timeout: Timeout for each source (default: 10.0).
        """
        self.price_fetchers = price_fetchers
        self.forex_fetchers = forex_fetchers or {}
        self.fetch_timeout = fetch_timeout

    async def fetch_unit(self, unit: UnitConfig) -> list[QuoteResult]:
        """Fetch a unit from every price source.

        :param unit: Unit (or price reference) to fetch.
        :returns: (source, quote or exception) per source, in source order.
        """
        names = list(self.price_fetchers)
        outcomes = await asyncio.gather(
            *(
                self._with_timeout(name, self.price_fetchers[name].fetch(unit))
                for name in names
            ),
            return_exceptions=True,
        )
        return list(zip(names, outcomes, strict=True))

    async def fetch_forex(self, symbols: list[str]) -> list[ForexResult]:
        """Fetch forex rates for symbols from every forex source.

        Sources are queried one after another: each one already issues one
        request per symbol and the free tiers are rate limited per minute.

        :param symbols: Currency codes to request.
        :returns: (source, rates or exception) per source, in source order.
        """
        results: list[ForexResult] = []
        for name, fetcher in self.forex_fetchers.items():
            try:
                rates = await self._with_timeout(
                    name,
                    fetcher.fetch_rates(symbols),
                    timeout=self.fetch_timeout * max(1, len(symbols)),
                )
            except Exception as e:
                logger.warning(f"[{name}] forex fetch failed: {e}")
                results.append((name, e))
                continue
            logger.info(f"[{name}] fetched {len(rates)} forex rate(s)")
            results.append((name, rates))
        return results

    async def _with_timeout(
        self, source: str, awaitable: Awaitable[Any], timeout: float | None = None
    ) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout or self.fetch_timeout)
        except asyncio.TimeoutError as e:
            raise TimeoutError(f"[{source}] timed out") from e


def successful_quotes(results: Sequence[QuoteResult]) -> list[TokenQuote]:
    """Keep the quotes of the sources that succeeded, logging every outcome.

    :param results: Output of FetchCoordinator.fetch_unit.
    :returns: Quotes in source order.
    """
    quotes: list[TokenQuote] = []
    for source, result in results:
        if isinstance(result, BaseException):
            logger.warning(f"  [{source}] failed: {result}")
            continue
        logger.info(f"  [{source}] price={result.price_usd:.8f} USD")
        quotes.append(result)
    return quotes
