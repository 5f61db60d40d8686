"""PriceAggregator: Mean aggregation with an all-or-nothing deviation check.

Algorithm:
    1. No quotes: return the "no data" result (price 0.0, invalid)
    2. Average the USD prices of all quotes (unweighted)
    3. One quote: valid, cross-check skipped
    4. Two or more quotes: valid only if every quote is within
       deviation_threshold of the average; a single outlier invalidates
       the whole unit
    5. Average volume and 24h change over the quotes that reported them
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

from .AggregatedResult import (
    DEVIATION_THRESHOLD,
    AggregatedResult,
    average_optional,
    relative_deviation,
)
from .TokenQuote import TokenQuote


class PriceAggregator:
    """Reduces the quotes fetched for one unit into an AggregatedResult.

    The aggregator performs no I/O and keeps no state between calls, so the
    same quotes always produce an equal result.

    :ivar deviation_threshold: Max relative deviation from the mean (0.01 == 1%).
    :ivar logger: Logger receiving per-unit diagnostics.
    """

    def __init__(
        self,
        deviation_threshold: float = DEVIATION_THRESHOLD,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the aggregator.

        :param deviation_threshold: Max allowed relative deviation of any
            source from the mean (default 1%).
        :param logger: Optional logger for diagnostics (module logger if None).
        :raises ValueError: If deviation_threshold is not positive.
        """
        if deviation_threshold <= 0:
            raise ValueError("deviation_threshold must be positive")

        self.deviation_threshold = deviation_threshold
        self.logger = logger or logging.getLogger(__name__)

    def aggregate(
        self, unit_index: int, quotes: Sequence[TokenQuote]
    ) -> AggregatedResult:
        """Aggregate the quotes of a single unit.

        :param unit_index: Index of the unit being aggregated.
        :param quotes: Successful quotes from all sources, in fetch order.
        :returns: AggregatedResult; invalid with price 0.0 if quotes is empty.
        """
        if not quotes:
            self.logger.warning(f"unit {unit_index}: no sources returned a price")
            return AggregatedResult.empty(unit_index)

        name = quotes[0].name
        avg_price = sum(q.price_usd for q in quotes) / len(quotes)

        if len(quotes) < 2:
            self.logger.warning(
                f"unit {unit_index} ({name}): only {len(quotes)} source, "
                "skipping cross-check"
            )
            valid = True
        else:
            valid = self._cross_check(unit_index, name, quotes, avg_price)

        return AggregatedResult(
            unit_index=unit_index,
            name=name,
            contract=quotes[0].contract,
            avg_price_usd=avg_price,
            volume_24h=average_optional(quotes, lambda q: q.volume_24h),
            price_change_24h=average_optional(quotes, lambda q: q.price_change_24h),
            sources=[q.source for q in quotes],
            valid=valid,
            per_source=list(quotes),
        )

    def _cross_check(
        self,
        unit_index: int,
        name: str,
        quotes: Sequence[TokenQuote],
        avg_price: float,
    ) -> bool:
        """Check every quote against the average, logging each outlier.

        :returns: True if all quotes are within the deviation threshold.
        """
        if not math.isfinite(avg_price) or avg_price <= 0:
            self.logger.warning(
                f"unit {unit_index} ({name}): average price {avg_price!r} "
                "is not positive, invalid"
            )
            return False

        all_within = True
        for quote in quotes:
            deviation = relative_deviation(quote.price_usd, avg_price)
            if deviation > self.deviation_threshold:
                self.logger.warning(
                    f"unit {unit_index} ({name}): source '{quote.source}' price "
                    f"{quote.price_usd:.8f} deviates {deviation * 100:.2f}% "
                    f"from average {avg_price:.8f}"
                )
                all_within = False

        if all_within:
            self.logger.info(
                f"unit {unit_index} ({name}): all {len(quotes)} sources within "
                f"{self.deviation_threshold * 100:g}%, valid (avg {avg_price:.8f})"
            )
        return all_within
