"""ConversionTable: The table published to the ledger.

Built from the sorted AggregatedResults and the aggregated forex rates:
    - Only valid units are published, keyed by their unit index as a string
    - Prices and rates are published as plain decimal strings
    - Volume uses 2 decimals, 24h net change 4 decimals, "" when unknown
    - The global definition defaults to the all-zero action hash
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Sequence

from .AggregatedResult import AggregatedResult
from .ForexAggregator import AggregatedForexRate
from .HoloHash import ZERO_ACTION_HASH, action_hash_to_b64

logger = logging.getLogger(__name__)


class TableBuildError(ValueError):
    """Raised when an aggregated value cannot be published."""

    pass


def to_decimal_string(value: float) -> str:
    """Render a float as the shortest round-tripping decimal, without exponent.

    :param value: Value to render.
    :returns: Decimal string such as "0.0000021" or "1.005".
    :raises TableBuildError: If value is NaN or infinite.

    .. code-block:: python

        >>> to_decimal_string(2.1e-06)
        '0.0000021'
        >>> to_decimal_string(42.0)
        '42'
    """
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        raise TableBuildError(f"Cannot convert {value!r} to a decimal string")

    text = format(Decimal(repr(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


@dataclass(frozen=True)
class ReferenceUnit:
    """Unit all prices are expressed in."""

    symbol: str
    name: str


USD_REFERENCE_UNIT = ReferenceUnit(symbol="$", name="US Dollar")


@dataclass
class ConversionData:
    """Published entry for one unit.

    :ivar current_price: USD price as a decimal string.
    :ivar volume: 24h volume with 2 decimals, or "".
    :ivar net_change: 24h change in percent with 4 decimals, or "".
    :ivar sources: Sources the price was computed from.
    :ivar contract: Token contract address.
    """

    current_price: str
    volume: str
    net_change: str
    sources: list[str]
    contract: str | None = None


@dataclass
class ForexRate:
    """Published forex entry (foreign units per USD)."""

    symbol: str
    name: str
    rate: str


@dataclass
class ConversionTable:
    """The complete table submitted to the ledger.

    :ivar reference_unit: Unit the prices are quoted in (always USD).
    :ivar data: Unit index (as string) to published entry.
    :ivar forex_rates: Published forex rates, in request order.
    :ivar additional_data: Opaque extension slot (unused).
    :ivar global_definition: Raw action hash of the global definition in force.
    """

    reference_unit: ReferenceUnit
    data: dict[str, ConversionData]
    forex_rates: list[ForexRate] = field(default_factory=list)
    additional_data: bytes | None = None
    global_definition: bytes = ZERO_ACTION_HASH

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation of the table."""
        return {
            "reference_unit": {
                "symbol": self.reference_unit.symbol,
                "name": self.reference_unit.name,
            },
            "data": {
                index: {
                    "current_price": entry.current_price,
                    "volume": entry.volume,
                    "net_change": entry.net_change,
                    "sources": list(entry.sources),
                    "contract": entry.contract,
                }
                for index, entry in self.data.items()
            },
            "forex_rates": [
                {"symbol": r.symbol, "name": r.name, "rate": r.rate}
                for r in self.forex_rates
            ],
            "additional_data": (
                list(self.additional_data) if self.additional_data is not None else None
            ),
            "global_definition": action_hash_to_b64(self.global_definition),
        }


def build_conversion_table(
    results: Sequence[AggregatedResult],
    forex_rates: Sequence[AggregatedForexRate],
    global_definition: bytes | None = None,
) -> ConversionTable:
    """Build the publishable table from aggregated results.

    :param results: Aggregated results (real and proxy), sorted by unit index.
    :param forex_rates: Aggregated forex rates.
    :param global_definition: Action hash of the current global definition,
        or None to publish the all-zero sentinel.
    :returns: ConversionTable containing only valid units.
    :raises TableBuildError: If a price or rate cannot be rendered as decimal.
    """
    data: dict[str, ConversionData] = {}
    for result in results:
        if not result.valid:
            logger.warning(
                f"unit {result.unit_index} ({result.name}) is invalid, "
                "omitting from ConversionTable"
            )
            continue

        try:
            current_price = to_decimal_string(result.avg_price_usd)
        except TableBuildError as e:
            raise TableBuildError(f"unit {result.unit_index}: {e}") from e

        data[str(result.unit_index)] = ConversionData(
            current_price=current_price,
            volume=f"{result.volume_24h:.2f}" if result.volume_24h is not None else "",
            net_change=(
                f"{result.price_change_24h:.4f}"
                if result.price_change_24h is not None
                else ""
            ),
            sources=list(result.sources),
            contract=result.contract,
        )

    published_rates: list[ForexRate] = []
    for rate in forex_rates:
        try:
            value = to_decimal_string(rate.foreign_per_usd)
        except TableBuildError as e:
            raise TableBuildError(f"forex {rate.symbol}: {e}") from e
        published_rates.append(ForexRate(symbol=rate.symbol, name=rate.name, rate=value))

    return ConversionTable(
        reference_unit=USD_REFERENCE_UNIT,
        data=data,
        forex_rates=published_rates,
        additional_data=None,
        global_definition=(
            global_definition if global_definition is not None else ZERO_ACTION_HASH
        ),
    )


def format_results_table(results: Sequence[AggregatedResult]) -> str:
    """Render all results (valid or not) as a fixed-width text table.

    :param results: Aggregated results to render.
    :returns: Multi-line table text.
    """
    lines = [
        "",
        f"{'Index':<8} {'Name':<12} {'Price (USD)':<16} {'Volume 24h':<14} "
        f"{'Change 24h%':<14} {'Valid':<8} Sources",
        "-" * 90,
    ]
    for r in results:
        volume = f"{r.volume_24h:.2f}" if r.volume_24h is not None else "—"
        change = f"{r.price_change_24h:+.4f}%" if r.price_change_24h is not None else "—"
        valid = "yes" if r.valid else "NO"
        lines.append(
            f"{r.unit_index:<8} {r.name:<12} {r.avg_price_usd:<16.8f} {volume:<14} "
            f"{change:<14} {valid:<8} {', '.join(r.sources)}"
        )
    lines.append("")
    return "\n".join(lines)
