"""AggregatedResult: per-unit outcome of cross-checking several quotes.

Also hosts the helpers shared by the price and forex aggregators: the
deviation threshold, the relative deviation formula and the optional-field
reducer.

.. code-block:: python

    >>> relative_deviation(101.0, 100.0)
    0.01
    >>> result = AggregatedResult.empty(7)
    >>> result.valid, result.avg_price_usd
    (False, 0.0)
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from typing import Callable, Sequence

from .TokenQuote import TokenQuote

# Maximum relative distance from the mean before sources disagree (1%).
DEVIATION_THRESHOLD = 0.01

# Source list assigned to every unit resolved through a price proxy.
PROXY_SOURCE = "proxy"


def relative_deviation(value: float, mean: float) -> float:
    """Return ``|value - mean| / mean``.

    :param value: Observed value.
    :param mean: Reference mean.
    :returns: Relative deviation as a fraction (0.01 == 1%), or inf when the
        mean is zero or not finite.
    """
    if mean == 0 or not math.isfinite(mean):
        return math.inf
    return abs(value - mean) / mean


def average_optional(
    quotes: Sequence[TokenQuote],
    projection: Callable[[TokenQuote], float | None],
) -> float | None:
    """Average an optional field over the quotes that supplied it.

    :param quotes: Quotes to reduce.
    :param projection: Extracts the optional field from a quote.
    :returns: Mean of the present values, or None if no quote had one.
    """
    values = [v for v in (projection(q) for q in quotes) if v is not None]
    if not values:
        return None
    return sum(values) / len(values)


@dataclass
class AggregatedResult:
    """Aggregated price data for one unit.

    :ivar unit_index: Stable identifier of the unit within a run.
    :ivar name: Token display name.
    :ivar contract: Token contract address.
    :ivar avg_price_usd: Mean USD price across sources (0.0 when no data).
    :ivar volume_24h: Mean 24h volume over sources that reported one.
    :ivar price_change_24h: Mean 24h change over sources that reported one.
    :ivar sources: Contributing source names, in fetch order.
    :ivar valid: True if the sources agreed within tolerance (or only one
        source existed).
    :ivar per_source: Contributing quotes, kept for debugging.
    """

    unit_index: int
    name: str
    contract: str
    avg_price_usd: float
    volume_24h: float | None = None
    price_change_24h: float | None = None
    sources: list[str] = field(default_factory=list)
    valid: bool = False
    per_source: list[TokenQuote] = field(default_factory=list)

    @classmethod
    def empty(cls, unit_index: int) -> AggregatedResult:
        """Return the "no data" result for a unit without any quotes."""
        return cls(unit_index=unit_index, name="", contract="", avg_price_usd=0.0)

    def as_proxy(self, unit_index: int, name: str, contract: str) -> AggregatedResult:
        """Copy this result under a proxy unit's identity.

        Prices, volume, change and validity are inherited; the source list is
        replaced with the single ``"proxy"`` marker.

        :param unit_index: Index of the proxy unit.
        :param name: Name of the proxy unit.
        :param contract: Contract of the proxy unit.
        :returns: New AggregatedResult for the proxy unit.
        """
        return dataclasses.replace(
            self,
            unit_index=unit_index,
            name=name,
            contract=contract,
            sources=[PROXY_SOURCE],
            per_source=list(self.per_source),
        )
