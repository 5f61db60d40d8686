"""ForexAggregator: Per-symbol averaging of forex rates from several sources.

Each forex source returns a mapping of currency symbol to foreign units per
USD, or fails outright. A failed source is skipped for every symbol; a
symbol no source reported is left out of the output entirely.

Unlike unit prices, disagreement between forex sources is only logged: every
symbol with at least one usable rate is published.

.. code-block:: python

    >>> aggregator = ForexAggregator()
    >>> rates = aggregator.aggregate(
    ...     ["EUR", "JPY"],
    ...     [("twelve_data", {"EUR": 0.875, "JPY": 151.2}), ("coinapi", {"EUR": 0.9375})],
    ... )
    >>> [(r.symbol, r.foreign_per_usd) for r in rates]
    [('EUR', 0.90625), ('JPY', 151.2)]
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Mapping, Sequence

from .AggregatedResult import DEVIATION_THRESHOLD, relative_deviation

# Result of one forex source: a symbol -> rate mapping, or the error it raised.
ForexSourceResult = tuple[str, "Mapping[str, float] | BaseException"]

UNKNOWN_CURRENCY_NAME = "Unknown Currency"

CURRENCY_NAMES: dict[str, str] = {
    "USD": "US Dollar",
    "EUR": "Euro",
    "GBP": "British Pound",
    "JPY": "Japanese Yen",
    "CHF": "Swiss Franc",
    "CAD": "Canadian Dollar",
    "AUD": "Australian Dollar",
    "NZD": "New Zealand Dollar",
    "SEK": "Swedish Krona",
    "NOK": "Norwegian Krone",
    "DKK": "Danish Krone",
    "PLN": "Polish Zloty",
    "CZK": "Czech Koruna",
    "HUF": "Hungarian Forint",
    "RON": "Romanian Leu",
    "TRY": "Turkish Lira",
    "RUB": "Russian Ruble",
    "UAH": "Ukrainian Hryvnia",
    "ILS": "Israeli New Shekel",
    "AED": "UAE Dirham",
    "SAR": "Saudi Riyal",
    "QAR": "Qatari Riyal",
    "KWD": "Kuwaiti Dinar",
    "BHD": "Bahraini Dinar",
    "OMR": "Omani Rial",
    "ZAR": "South African Rand",
    "EGP": "Egyptian Pound",
    "NGN": "Nigerian Naira",
    "KES": "Kenyan Shilling",
    "INR": "Indian Rupee",
    "PKR": "Pakistani Rupee",
    "BDT": "Bangladeshi Taka",
    "CNY": "Chinese Yuan",
    "HKD": "Hong Kong Dollar",
    "SGD": "Singapore Dollar",
    "KRW": "South Korean Won",
    "TWD": "New Taiwan Dollar",
    "THB": "Thai Baht",
    "MYR": "Malaysian Ringgit",
    "IDR": "Indonesian Rupiah",
    "PHP": "Philippine Peso",
    "VND": "Vietnamese Dong",
    "MXN": "Mexican Peso",
    "BRL": "Brazilian Real",
    "ARS": "Argentine Peso",
    "CLP": "Chilean Peso",
    "COP": "Colombian Peso",
    "PEN": "Peruvian Sol",
    "UYU": "Uruguayan Peso",
}


def currency_name(symbol: str) -> str:
    """Return the display name of an ISO-4217 currency code.

    :param symbol: Currency code (e.g., "EUR").
    :returns: Display name, or "Unknown Currency" for unlisted codes.
    """
    return CURRENCY_NAMES.get(symbol, UNKNOWN_CURRENCY_NAME)


def normalize_foreign_per_usd(rate: float) -> float | None:
    """Accept a raw rate only if it is finite and strictly positive.

    :param rate: Raw foreign-units-per-USD rate reported by a source.
    :returns: The rate, or None if it cannot be used.
    """
    try:
        value = float(rate)
    except (TypeError, ValueError):
        return None
    if math.isfinite(value) and value > 0:
        return value
    return None


@dataclass(frozen=True)
class AggregatedForexRate:
    """Averaged forex rate for one currency.

    :ivar symbol: Currency code (e.g., "EUR").
    :ivar name: Display name (e.g., "Euro").
    :ivar foreign_per_usd: Mean number of foreign currency units per USD.
    """

    symbol: str
    name: str
    foreign_per_usd: float


class ForexAggregator:
    """Averages forex rates per symbol across sources.

    :ivar deviation_threshold: Relative deviation above which a warning is logged.
    :ivar logger: Logger receiving diagnostics.
    """

    def __init__(
        self,
        deviation_threshold: float = DEVIATION_THRESHOLD,
        logger: logging.Logger | None = None,
    ) -> None:
        if deviation_threshold <= 0:
            raise ValueError("deviation_threshold must be positive")
        self.deviation_threshold = deviation_threshold
        self.logger = logger or logging.getLogger(__name__)

    def aggregate(
        self,
        symbols: Sequence[str],
        source_results: Sequence[ForexSourceResult],
    ) -> list[AggregatedForexRate]:
        """Aggregate the requested symbols from all source results.

        :param symbols: Requested currency codes, in output order.
        :param source_results: (source_name, rates or exception) per source.
        :returns: One AggregatedForexRate per symbol that got at least one
            usable rate, in the order of ``symbols``.
        """
        by_symbol: dict[str, list[tuple[str, float]]] = {}

        for source_name, result in source_results:
            if isinstance(result, BaseException):
                self.logger.warning(
                    f"forex source '{source_name}' failed: {result}; symbols only "
                    "reported by this source will be omitted"
                )
                continue

            for symbol in symbols:
                if symbol not in result:
                    continue
                normalized = normalize_foreign_per_usd(result[symbol])
                if normalized is None:
                    self.logger.debug(
                        f"forex {symbol}: source '{source_name}' rate "
                        f"{result[symbol]!r} rejected"
                    )
                    continue
                by_symbol.setdefault(symbol, []).append((source_name, normalized))

        aggregated: list[AggregatedForexRate] = []
        for symbol in symbols:
            values = by_symbol.get(symbol)
            if not values:
                self.logger.warning(
                    f"forex symbol '{symbol}' has no valid rate from any source, "
                    "omitted"
                )
                continue

            avg = sum(rate for _, rate in values) / len(values)
            if len(values) > 1:
                self._log_deviations(symbol, values, avg)

            aggregated.append(
                AggregatedForexRate(
                    symbol=symbol,
                    name=currency_name(symbol),
                    foreign_per_usd=avg,
                )
            )

        return aggregated

    def _log_deviations(
        self, symbol: str, values: list[tuple[str, float]], avg: float
    ) -> None:
        for source, rate in values:
            deviation = relative_deviation(rate, avg)
            if deviation > self.deviation_threshold:
                self.logger.warning(
                    f"forex {symbol}: source '{source}' rate {rate:.8f} deviates "
                    f"{deviation * 100:.2f}% from average {avg:.8f}"
                )
