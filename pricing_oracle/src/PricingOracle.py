"""PricingOracle: One-shot orchestration of a pricing run.

A run goes through these steps in order:
    - Fetch and aggregate every price reference (aggregated with index 0)
    - Fetch and aggregate every real unit, optionally restricted to one index
    - Fetch and aggregate the configured forex symbols
    - Resolve proxy units against real units and references
    - Sort everything by unit index

The result is an OracleRun which can be rendered as a table or turned into
a ConversionTable for submission.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .AggregatedResult import AggregatedResult
from .FetchCoordinator import FetchCoordinator, successful_quotes
from .fetchers import BaseFetcher
from .ForexAggregator import AggregatedForexRate, ForexAggregator
from .OracleConfig import OracleConfig
from .PriceAggregator import PriceAggregator
from .ProxyResolver import ProxyResolver, merge_and_sort

logger = logging.getLogger(__name__)


@dataclass
class OracleRun:
    """Outcome of a pricing run.

    :ivar results: Aggregated results (real and proxy) sorted by unit index.
    :ivar forex_rates: Aggregated forex rates in configured symbol order.
    """

    results: list[AggregatedResult] = field(default_factory=list)
    forex_rates: list[AggregatedForexRate] = field(default_factory=list)


class PricingOracle:
    """Main orchestrator for a pricing run.

    :ivar config: Validated oracle configuration.
    :ivar coordinator: Coordinator used to reach the sources.
    :ivar price_aggregator: Aggregator for token quotes.
    :ivar forex_aggregator: Aggregator for forex rates.
    :ivar proxy_resolver: Resolver for proxy units.
    """

    def __init__(
        self,
        config: OracleConfig,
        coordinator: FetchCoordinator,
        price_aggregator: PriceAggregator | None = None,
        forex_aggregator: ForexAggregator | None = None,
        proxy_resolver: ProxyResolver | None = None,
    ) -> None:
        """Initialize the pricing oracle.

        :param config: Validated oracle configuration.
        :param coordinator: Coordinator holding the enabled fetchers.
        :param price_aggregator: Optional aggregator (default settings if None).
        :param forex_aggregator: Optional forex aggregator.
        :param proxy_resolver: Optional proxy resolver.
        :raises ValueError: If no price source is enabled.
        """
        if not coordinator.price_fetchers:
            raise ValueError("No price sources enabled")

        self.config = config
        self.coordinator = coordinator
        self.price_aggregator = price_aggregator or PriceAggregator()
        self.forex_aggregator = forex_aggregator or ForexAggregator()
        self.proxy_resolver = proxy_resolver or ProxyResolver()

        logger.info(
            f"PricingOracle initialized: units={len(config.units)}, "
            f"price_references={len(config.price_references)}, "
            f"sources={list(coordinator.price_fetchers)}, "
            f"forex_sources={list(coordinator.forex_fetchers)}"
        )

    async def run(self, unit_filter: int | None = None) -> OracleRun:
        """Fetch, aggregate and resolve every configured unit once.

        :param unit_filter: Only process the unit with this index if given.
            Price references are always fetched since proxies may need them.
        :returns: OracleRun with sorted results and forex rates.
        """
        try:
            references = await self._fetch_references()
            real_results = await self._fetch_real_units(unit_filter)
            forex_rates = await self._fetch_forex()

            proxies = [
                p
                for p in self.config.proxy_definitions()
                if unit_filter is None or p.unit_index == unit_filter
            ]
            proxy_results = self.proxy_resolver.resolve(real_results, references, proxies)
        finally:
            await BaseFetcher.close_shared_client()

        return OracleRun(
            results=merge_and_sort(real_results, proxy_results),
            forex_rates=forex_rates,
        )

    async def _fetch_references(self) -> dict[str, AggregatedResult]:
        references: dict[str, AggregatedResult] = {}
        for ref in self.config.price_references:
            logger.info(f"Fetching price reference '{ref.id}' ({ref.name})")
            results = await self.coordinator.fetch_unit(ref.to_unit_config())
            references[ref.id] = self.price_aggregator.aggregate(
                0, successful_quotes(results)
            )
        return references

    async def _fetch_real_units(self, unit_filter: int | None) -> list[AggregatedResult]:
        units = [
            u
            for u in self.config.real_units()
            if unit_filter is None or u.unit_index == unit_filter
        ]
        aggregated: list[AggregatedResult] = []
        for unit in units:
            logger.info(f"Fetching prices for unit {unit.unit_index} ({unit.name})")
            results = await self.coordinator.fetch_unit(unit)
            aggregated.append(
                self.price_aggregator.aggregate(unit.unit_index, successful_quotes(results))
            )
        return aggregated

    async def _fetch_forex(self) -> list[AggregatedForexRate]:
        symbols = self.config.forex.symbols
        if not symbols:
            return []
        if not self.coordinator.forex_fetchers:
            logger.warning(f"No forex sources enabled; omitting {len(symbols)} forex symbol(s)")
            return []

        logger.info(f"Fetching forex rates for {', '.join(symbols)}")
        source_results = await self.coordinator.fetch_forex(symbols)
        return self.forex_aggregator.aggregate(symbols, source_results)
