"""Unit tests for PriceAggregator."""

import logging
import math

import pytest

from pricing_oracle.src.AggregatedResult import (
    AggregatedResult,
    average_optional,
    relative_deviation,
)
from pricing_oracle.src.PriceAggregator import PriceAggregator
from pricing_oracle.src.ProxyResolver import ProxyDefinition, ProxyResolver, merge_and_sort
from pricing_oracle.src.TokenQuote import TokenQuote

CONTRACT = "0x6c6ee5e31d828de241282b9606c8e98ea48526e2"


def make_quote(
    price: float,
    source: str = "geckoterminal",
    volume: float | None = None,
    change: float | None = None,
    name: str = "HOT",
) -> TokenQuote:
    return TokenQuote(
        name=name,
        chain="ethereum",
        contract=CONTRACT,
        price_usd=price,
        source=source,
        volume_24h=volume,
        price_change_24h=change,
    )


class TestPriceAggregatorInit:
    """Test PriceAggregator initialization."""

    def test_default_threshold(self) -> None:
        """Default threshold is 1%."""
        assert PriceAggregator().deviation_threshold == 0.01

    def test_invalid_threshold(self) -> None:
        """A threshold <= 0 should raise ValueError."""
        with pytest.raises(ValueError, match="deviation_threshold must be positive"):
            PriceAggregator(deviation_threshold=0)

        with pytest.raises(ValueError, match="deviation_threshold must be positive"):
            PriceAggregator(deviation_threshold=-0.5)


class TestPriceAggregatorBasicAggregation:
    """Test basic aggregation scenarios."""

    def test_identical_prices(self) -> None:
        """Identical prices are valid and averaged exactly."""
        agg = PriceAggregator()
        result = agg.aggregate(1, [make_quote(0.37, "a"), make_quote(0.37, "b"), make_quote(0.37, "c")])

        assert result.valid
        assert result.avg_price_usd == 0.37
        assert result.sources == ["a", "b", "c"]

    def test_single_quote_always_valid(self) -> None:
        """A single quote is valid regardless of its value."""
        agg = PriceAggregator()
        result = agg.aggregate(4, [make_quote(123456.789)])

        assert result.valid
        assert result.avg_price_usd == 123456.789
        assert result.unit_index == 4
        assert result.name == "HOT"
        assert result.contract == CONTRACT

    def test_empty_quotes(self) -> None:
        """No quotes produce an invalid, empty result."""
        agg = PriceAggregator()
        result = agg.aggregate(2, [])

        assert not result.valid
        assert result.avg_price_usd == 0.0
        assert result.sources == []
        assert result.per_source == []
        assert result.unit_index == 2

    def test_mean_not_median(self) -> None:
        """The price is the arithmetic mean of all quotes."""
        agg = PriceAggregator(deviation_threshold=0.5)
        result = agg.aggregate(1, [make_quote(1.0, "a"), make_quote(2.0, "b"), make_quote(6.0, "c")])

        assert result.avg_price_usd == pytest.approx(3.0)

    def test_per_source_kept_in_order(self) -> None:
        """Contributing quotes are kept in fetch order."""
        quotes = [make_quote(1.0, "b"), make_quote(1.0, "a")]
        result = PriceAggregator().aggregate(1, quotes)

        assert [q.source for q in result.per_source] == ["b", "a"]


class TestPriceAggregatorCrossCheck:
    """Test the all-or-nothing deviation check."""

    def test_all_within_threshold(self) -> None:
        """Every quote within 1% of the mean is valid."""
        result = PriceAggregator().aggregate(
            1, [make_quote(100.0, "a"), make_quote(100.0, "b"), make_quote(101.0, "c")]
        )

        assert result.valid
        assert result.avg_price_usd == pytest.approx(100.3333333)

    def test_one_outlier_invalidates(self) -> None:
        """A single outlier invalidates the whole unit."""
        result = PriceAggregator().aggregate(
            1, [make_quote(100.0, "a"), make_quote(100.0, "b"), make_quote(120.0, "c")]
        )

        assert not result.valid
        # The outlier is not removed from the average
        assert result.avg_price_usd == pytest.approx(106.6666667)
        assert result.sources == ["a", "b", "c"]

    def test_just_above_threshold(self) -> None:
        """A deviation slightly above 1% is invalid."""
        # mean 100.6667, 102 deviates ~1.32%
        result = PriceAggregator().aggregate(
            1, [make_quote(100.0, "a"), make_quote(100.0, "b"), make_quote(102.0, "c")]
        )

        assert not result.valid

    def test_exactly_at_threshold(self) -> None:
        """A deviation of exactly 1% is still valid."""
        result = PriceAggregator().aggregate(1, [make_quote(99.0, "a"), make_quote(101.0, "b")])

        assert result.valid
        assert result.avg_price_usd == 100.0

    def test_zero_average_invalid(self, caplog: pytest.LogCaptureFixture) -> None:
        """Quotes averaging to zero give an invalid unit instead of raising."""
        agg = PriceAggregator()

        with caplog.at_level(logging.WARNING):
            zeros = agg.aggregate(1, [make_quote(0.0, "a"), make_quote(0.0, "b")])
            opposite = agg.aggregate(2, [make_quote(1.0, "a"), make_quote(-1.0, "b")])

        assert not zeros.valid
        assert zeros.avg_price_usd == 0.0
        assert not opposite.valid
        assert "is not positive" in caplog.text

    def test_custom_threshold(self) -> None:
        """A larger threshold accepts a wider spread."""
        result = PriceAggregator(deviation_threshold=0.2).aggregate(
            1, [make_quote(100.0, "a"), make_quote(100.0, "b"), make_quote(120.0, "c")]
        )

        assert result.valid

    def test_outlier_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Each outlier source is reported through the injected logger."""
        test_logger = logging.getLogger("test.aggregator")
        agg = PriceAggregator(logger=test_logger)

        with caplog.at_level(logging.WARNING, logger="test.aggregator"):
            agg.aggregate(
                1, [make_quote(100.0, "a"), make_quote(100.0, "b"), make_quote(120.0, "c")]
            )

        assert "source 'c'" in caplog.text
        assert "source 'a'" not in caplog.text

    def test_single_source_logs_skip(self, caplog: pytest.LogCaptureFixture) -> None:
        """A single quote reports that the cross-check was skipped."""
        with caplog.at_level(logging.WARNING):
            PriceAggregator().aggregate(3, [make_quote(1.0)])

        assert "skipping cross-check" in caplog.text


class TestOptionalFieldAveraging:
    """Test averaging of volume and 24h change."""

    def test_volume_ignores_missing(self) -> None:
        """Only present volumes are counted."""
        quotes = [
            make_quote(1.0, "a", volume=10.0),
            make_quote(1.0, "b", volume=None),
            make_quote(1.0, "c", volume=20.0),
        ]
        result = PriceAggregator().aggregate(1, quotes)

        assert result.volume_24h == 15.0

    def test_all_missing_is_none(self) -> None:
        """No source reporting the field leaves it absent."""
        result = PriceAggregator().aggregate(1, [make_quote(1.0, "a"), make_quote(1.0, "b")])

        assert result.volume_24h is None
        assert result.price_change_24h is None

    def test_change_averaged_independently(self) -> None:
        """Change is averaged over its own set of reporting sources."""
        quotes = [
            make_quote(1.0, "a", volume=10.0, change=None),
            make_quote(1.0, "b", volume=None, change=-2.5),
        ]
        result = PriceAggregator().aggregate(1, quotes)

        assert result.volume_24h == 10.0
        assert result.price_change_24h == -2.5

    def test_average_optional_helper(self) -> None:
        """The reducer works with any projection."""
        quotes = [make_quote(2.0), make_quote(4.0)]
        assert average_optional(quotes, lambda q: q.price_usd) == 3.0
        assert average_optional([], lambda q: q.price_usd) is None

    def test_relative_deviation(self) -> None:
        assert relative_deviation(101.0, 100.0) == pytest.approx(0.01)
        assert relative_deviation(99.0, 100.0) == pytest.approx(0.01)

    def test_relative_deviation_zero_mean(self) -> None:
        """A zero mean yields an infinite deviation."""
        assert relative_deviation(0.0, 0.0) == math.inf
        assert relative_deviation(1.0, 0.0) == math.inf


class TestPriceAggregatorDeterminism:
    """Test that aggregation is a pure function of its input."""

    def test_same_input_same_output(self) -> None:
        """Aggregating the same quotes twice gives equal results."""
        quotes = [
            make_quote(1.0, "a", volume=5.0, change=1.0),
            make_quote(1.005, "b", volume=7.0),
        ]
        agg = PriceAggregator()

        first = agg.aggregate(1, quotes)
        second = agg.aggregate(1, quotes)

        assert first == second
        assert first.avg_price_usd == second.avg_price_usd


class TestEndToEnd:
    """Aggregation followed by proxy resolution."""

    def test_units_and_proxy(self) -> None:
        """Valid units and proxies survive; a unit without quotes is invalid."""
        agg = PriceAggregator()
        real = [
            agg.aggregate(1, [make_quote(1.00, "a"), make_quote(1.01, "b")]),
            agg.aggregate(2, []),
        ]
        proxies = [ProxyDefinition(unit_index=3, name="HOT2", contract=CONTRACT, use_unit=1)]

        proxied = ProxyResolver().resolve(real, {}, proxies)
        final = merge_and_sort(real, proxied)
        valid = {r.unit_index: r for r in final if r.valid}

        assert set(valid) == {1, 3}
        assert valid[1].avg_price_usd == pytest.approx(1.005)
        assert valid[3].avg_price_usd == pytest.approx(1.005)
        assert valid[3].sources == ["proxy"]
        assert valid[3].name == "HOT2"
        assert [r.unit_index for r in final] == [1, 2, 3]

    def test_empty_result_factory(self) -> None:
        result = AggregatedResult.empty(9)
        assert result.unit_index == 9
        assert not result.valid
