#!/usr/bin/env python3
"""Pricing Oracle.

Fetches token prices from multiple off-chain sources, cross-checks and
averages them, and builds a ConversionTable that can optionally be
submitted to the ledger.

Configure units in a YAML file and API keys via env vars (or a .env file).
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from dotenv import load_dotenv

from .src.ConversionTable import build_conversion_table, format_results_table
from .src.FetchCoordinator import FetchCoordinator
from .src.fetchers import (
    build_forex_fetchers,
    build_price_fetchers,
    get_available_fetchers,
    get_available_forex_fetchers,
)
from .src.HoloHash import action_hash_to_b64
from .src.LedgerUtilityGateway import LedgerUtilityGateway
from .src.OracleConfig import OracleConfig
from .src.PricingOracle import PricingOracle

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_api_keys(api_key_str: str | None) -> dict[str, str]:
    """Parse comma-separated API key string into a dictionary.

    Format: source1=key1,source2=key2
    Example: coingecko=abc123,twelve_data=xyz789

    :param api_key_str: Comma-separated API key string.
    :returns: Dict mapping source names to API keys.
    """
    if not api_key_str:
        return {}

    api_keys = {}
    for item in api_key_str.split(","):
        item = item.strip()
        if "=" in item:
            source, key = item.split("=", 1)
            api_keys[source.strip().lower()] = key.strip()
    return api_keys


def parse_env_api_keys() -> dict[str, str]:
    """Parse API keys from individual environment variables.

    Looks for: API_KEY_COINGECKO, API_KEY_COINMARKETCAP, API_KEY_TWELVE_DATA, etc.

    :returns: Dict mapping source names to API keys.
    """
    api_keys = {}
    prefixes = ["API_KEY_", "APIKEY_"]

    for key, value in os.environ.items():
        for prefix in prefixes:
            if key.startswith(prefix) and value:
                source = key[len(prefix):].lower()
                api_keys[source] = value
                break

    return api_keys


def print_json(table_dict: dict) -> None:
    """Print a ConversionTable dict as indented JSON."""
    print(json.dumps(table_dict, indent=2))


def main() -> None:
    """Main entry point for the Pricing Oracle CLI."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description=(
            "Pricing Oracle: fetch token prices, validate, build a ConversionTable "
            "and optionally submit it to the ledger"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available price sources:
  {', '.join(get_available_fetchers())}
Available forex sources:
  {', '.join(get_available_forex_fetchers())}

Examples:
  # Print the aggregated prices of every configured unit
  python -m pricing_oracle.main -c config.yaml

  # Print the ConversionTable JSON for unit 1 only
  python -m pricing_oracle.main -c config.yaml -o json -u 1

  # Fetch the current global definition and submit the table
  python -m pricing_oracle.main -c config.yaml --submit

Environment variables (CLI args take precedence):
  CONFIG, OUTPUT, FETCH_TIMEOUT, API_KEYS,
  API_KEY_COINGECKO, API_KEY_COINMARKETCAP, API_KEY_TWELVE_DATA, API_KEY_COINAPI,
  LEDGER_GATEWAY_URL, LEDGER_DNA_HASH, LEDGER_COORDINATOR, LEDGER_ZOME
""",
    )

    parser.add_argument(
        "-c", "--config",
        type=str,
        help="Path to config YAML file (default: config.yaml)",
        default=os.environ.get("CONFIG") or "config.yaml",
    )

    parser.add_argument(
        "-o", "--output",
        type=str,
        choices=["table", "json"],
        help="Output format: table (default) or json",
        default=os.environ.get("OUTPUT") or "table",
    )

    parser.add_argument(
        "-u", "--unit",
        type=int,
        help="Only fetch the unit with this index",
        default=None,
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--submit",
        action="store_true",
        help="Submit the ConversionTable to the ledger via create_conversion_table",
    )
    mode.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        help="Build and print the ConversionTable JSON without contacting the ledger",
    )

    parser.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., coingecko=abc,twelve_data=xyz)",
        default=os.environ.get("API_KEYS"),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for individual fetch requests in seconds (default: 10.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.fetch_timeout <= 0:
        parser.error("--fetch-timeout must be positive")

    # Parse API keys (CLI + environment)
    api_keys = parse_env_api_keys()
    api_keys.update(parse_api_keys(args.api_keys))

    try:
        config = OracleConfig.load(args.config)
        logger.info(
            f"Loaded {len(config.units)} units and "
            f"{len(config.price_references)} price reference(s) from {args.config}"
        )

        price_fetchers = build_price_fetchers(api_keys, timeout=args.fetch_timeout)
        forex_fetchers = build_forex_fetchers(
            config.forex.sources, api_keys, timeout=args.fetch_timeout
        )
        logger.info(f"Registered {len(price_fetchers)} price source(s)")

        oracle = PricingOracle(
            config,
            FetchCoordinator(price_fetchers, forex_fetchers, args.fetch_timeout),
        )
        oracle_run = asyncio.run(oracle.run(unit_filter=args.unit))

        if args.dry_run:
            table = build_conversion_table(oracle_run.results, oracle_run.forex_rates)
            print("--- Dry-run: ConversionTable that would be submitted ---")
            print_json(table.to_dict())
            return

        if args.submit:
            ledger = LedgerUtilityGateway.from_env()
            global_definition = ledger.fetch_global_definition()
            table = build_conversion_table(
                oracle_run.results, oracle_run.forex_rates, global_definition
            )
            print("--- ConversionTable to submit ---")
            print_json(table.to_dict())
            action_hash = ledger.submit_table(table)
            print(f"Submitted ConversionTable: {action_hash_to_b64(action_hash)}")
            return

        if args.output == "json":
            table = build_conversion_table(oracle_run.results, oracle_run.forex_rates)
            print_json(table.to_dict())
        else:
            print(format_results_table(oracle_run.results))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
