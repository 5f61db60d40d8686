"""
Pricing Oracle - Off-Chain Aggregation Module

This module turns quotes from several price sources into a conversion table:
- TokenQuote: One source's quote for one token
- PriceAggregator: Mean price with an all-or-nothing deviation check
- ForexAggregator: Per-symbol averaging of forex rates
- ProxyResolver: Pricing of units through another unit or a reference
- ConversionTable: Publishable table and its decimal rendering
- PricingOracle: Orchestrator for a single pricing run
- fetchers: Modular price and forex fetcher implementations
"""

from .AggregatedResult import AggregatedResult
from .ConversionTable import ConversionTable, TableBuildError, build_conversion_table
from .ForexAggregator import AggregatedForexRate, ForexAggregator
from .OracleConfig import ConfigError, OracleConfig
from .PriceAggregator import PriceAggregator
from .PricingOracle import OracleRun, PricingOracle
from .ProxyResolver import ProxyDefinition, ProxyResolver
from .TokenQuote import TokenQuote

__all__ = [
    "AggregatedForexRate",
    "AggregatedResult",
    "ConfigError",
    "ConversionTable",
    "ForexAggregator",
    "OracleConfig",
    "OracleRun",
    "PriceAggregator",
    "PricingOracle",
    "ProxyDefinition",
    "ProxyResolver",
    "TableBuildError",
    "TokenQuote",
    "build_conversion_table",
]
