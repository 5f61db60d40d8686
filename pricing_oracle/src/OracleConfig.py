"""OracleConfig: Loading and validation of the unit configuration file.

The configuration is a YAML document:

.. code-block:: yaml

    price_references:
      - id: weth
        name: WETH
        chain: ethereum
        contract: "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
    units:
      - unit_index: 1
        name: HOT
        chain: ethereum
        contract: "0x6c6ee5e31d828de241282b9606c8e98ea48526e2"
      - unit_index: 2
        name: ETH
        chain: ethereum
        contract: "0x0000000000000000000000000000000000000000"
        price_proxy:
          use_reference: weth
    forex:
      symbols: [EUR, GBP, JPY]
      sources: [twelve_data, coinapi]

Every structural problem (duplicate ids, dangling or cyclic proxies, invalid
contract addresses) raises ConfigError; the aggregation code downstream
assumes a validated configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from web3 import Web3

from .fetchers import get_available_forex_fetchers
from .ProxyResolver import ProxyDefinition

# Chains whose contracts must be valid EVM addresses.
EVM_CHAINS = frozenset(
    {
        "ethereum",
        "sepolia",
        "base",
        "arbitrum",
        "optimism",
        "polygon",
        "bsc",
        "avalanche",
    }
)

DEFAULT_FOREX_SOURCES = ["twelve_data", "coinapi"]


class ConfigError(ValueError):
    """Raised when the configuration file is missing, malformed or inconsistent."""

    pass


@dataclass(frozen=True)
class PriceProxy:
    """Proxy target of a unit: exactly one of use_unit / use_reference."""

    use_unit: int | None = None
    use_reference: str | None = None


@dataclass(frozen=True)
class UnitConfig:
    """A unit published in the conversion table.

    :ivar unit_index: Unique index of the unit.
    :ivar name: Display name.
    :ivar chain: Chain the token lives on.
    :ivar contract: Token contract address.
    :ivar decimals: Optional token decimals (informational).
    :ivar price_proxy: Set for proxy units, None for real units.
    """

    unit_index: int
    name: str
    chain: str
    contract: str
    decimals: int | None = None
    price_proxy: PriceProxy | None = None

    @property
    def is_proxy(self) -> bool:
        return self.price_proxy is not None


@dataclass(frozen=True)
class PriceReference:
    """A token fetched for price discovery only, never published."""

    id: str
    name: str
    chain: str
    contract: str
    decimals: int | None = None

    def to_unit_config(self) -> UnitConfig:
        """Return a UnitConfig (index 0) usable by the price fetchers."""
        return UnitConfig(
            unit_index=0,
            name=self.name,
            chain=self.chain,
            contract=self.contract,
            decimals=self.decimals,
        )


@dataclass(frozen=True)
class ForexConfig:
    """Forex symbols to publish and the sources to query."""

    symbols: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=lambda: list(DEFAULT_FOREX_SOURCES))


@dataclass
class OracleConfig:
    """Validated oracle configuration.

    :ivar units: All units (real and proxy), in file order.
    :ivar price_references: Price references, in file order.
    :ivar forex: Forex configuration.
    """

    units: list[UnitConfig]
    price_references: list[PriceReference] = field(default_factory=list)
    forex: ForexConfig = field(default_factory=ForexConfig)

    @classmethod
    def load(cls, path: str | Path) -> OracleConfig:
        """Read, parse and validate a YAML configuration file.

        :param path: Path of the YAML file.
        :returns: Validated OracleConfig.
        :raises ConfigError: If the file cannot be read, parsed or validated.
        """
        config_path = Path(path)
        try:
            content = config_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"reading {config_path}: {e}") from e

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"parsing {config_path}: {e}") from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Any) -> OracleConfig:
        """Build and validate a configuration from already parsed data.

        :param data: Parsed YAML document.
        :returns: Validated OracleConfig.
        :raises ConfigError: On any structural error.
        """
        if not isinstance(data, dict):
            raise ConfigError("configuration must be a mapping")

        units_data = data.get("units")
        if not isinstance(units_data, list):
            raise ConfigError("'units' must be a list")

        references_data = data.get("price_references") or []
        if not isinstance(references_data, list):
            raise ConfigError("'price_references' must be a list")

        config = cls(
            units=[_parse_unit(u) for u in units_data],
            price_references=[_parse_reference(r) for r in references_data],
            forex=_parse_forex(data.get("forex")),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Check cross-entry consistency.

        :raises ConfigError: On duplicate ids, invalid proxies or contracts.
        """
        ref_ids: dict[str, str] = {}
        for ref in self.price_references:
            if ref.id in ref_ids:
                raise ConfigError(
                    f"duplicate price_reference id '{ref.id}': "
                    f"'{ref_ids[ref.id]}' and '{ref.name}'"
                )
            ref_ids[ref.id] = ref.name
            _check_contract(ref.name, ref.chain, ref.contract)

        seen: dict[int, str] = {}
        for unit in self.units:
            if unit.unit_index in seen:
                raise ConfigError(
                    f"duplicate unit_index {unit.unit_index}: "
                    f"'{seen[unit.unit_index]}' and '{unit.name}'"
                )
            seen[unit.unit_index] = unit.name
            _check_contract(unit.name, unit.chain, unit.contract)

        for unit in self.units:
            proxy = unit.price_proxy
            if proxy is None:
                continue
            if (proxy.use_unit is None) == (proxy.use_reference is None):
                raise ConfigError(
                    f"unit '{unit.name}' price_proxy must have exactly one of "
                    "use_unit or use_reference"
                )
            if proxy.use_unit is not None:
                if proxy.use_unit == unit.unit_index:
                    raise ConfigError(f"unit '{unit.name}' has price_proxy pointing to itself")
                if proxy.use_unit not in seen:
                    raise ConfigError(
                        f"unit '{unit.name}' has price_proxy.use_unit {proxy.use_unit} "
                        "which does not exist in units"
                    )
            elif proxy.use_reference not in ref_ids:
                raise ConfigError(
                    f"unit '{unit.name}' has price_proxy.use_reference "
                    f"'{proxy.use_reference}' which does not exist in price_references"
                )

        self._check_proxy_cycles()

        available = get_available_forex_fetchers()
        unknown = [s for s in self.forex.sources if s not in available]
        if unknown:
            raise ConfigError(
                f"unknown forex sources {unknown}. Available: {', '.join(available)}"
            )

    def _check_proxy_cycles(self) -> None:
        proxy_targets = {
            u.unit_index: u.price_proxy.use_unit
            for u in self.units
            if u.price_proxy is not None and u.price_proxy.use_unit is not None
        }
        for start in proxy_targets:
            path = [start]
            current = proxy_targets.get(start)
            while current is not None:
                if current in path:
                    chain = " -> ".join(str(i) for i in [*path, current])
                    raise ConfigError(f"price_proxy cycle detected: {chain}")
                path.append(current)
                current = proxy_targets.get(current)

    def real_units(self) -> list[UnitConfig]:
        """Units fetched directly from price sources."""
        return [u for u in self.units if not u.is_proxy]

    def proxy_units(self) -> list[UnitConfig]:
        """Units priced through a price_proxy."""
        return [u for u in self.units if u.is_proxy]

    def proxy_definitions(self) -> list[ProxyDefinition]:
        """Proxy units in the form consumed by ProxyResolver."""
        definitions = []
        for unit in self.proxy_units():
            assert unit.price_proxy is not None
            definitions.append(
                ProxyDefinition(
                    unit_index=unit.unit_index,
                    name=unit.name,
                    contract=unit.contract,
                    use_unit=unit.price_proxy.use_unit,
                    use_reference=unit.price_proxy.use_reference,
                )
            )
        return definitions


def _require(entry: dict[str, Any], key: str, kind: type, context: str) -> Any:
    value = entry.get(key)
    if value is None:
        raise ConfigError(f"{context}: missing required field '{key}'")
    # bool is an int subclass; reject it explicitly for integer fields
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ConfigError(f"{context}: field '{key}' must be {kind.__name__}")
    return value


def _optional_int(entry: dict[str, Any], key: str, context: str) -> int | None:
    if entry.get(key) is None:
        return None
    return _require(entry, key, int, context)


def _parse_unit(entry: Any) -> UnitConfig:
    if not isinstance(entry, dict):
        raise ConfigError("each unit must be a mapping")

    context = f"unit '{entry.get('name', '?')}'"
    unit_index = _require(entry, "unit_index", int, context)
    if unit_index < 0:
        raise ConfigError(f"{context}: unit_index must not be negative")

    proxy = None
    proxy_data = entry.get("price_proxy")
    if proxy_data is not None:
        if not isinstance(proxy_data, dict):
            raise ConfigError(f"{context}: price_proxy must be a mapping")
        proxy = PriceProxy(
            use_unit=_optional_int(proxy_data, "use_unit", f"{context} price_proxy"),
            use_reference=(
                str(proxy_data["use_reference"])
                if proxy_data.get("use_reference") is not None
                else None
            ),
        )

    return UnitConfig(
        unit_index=unit_index,
        name=_require(entry, "name", str, context),
        chain=_require(entry, "chain", str, context),
        contract=_require(entry, "contract", str, context),
        decimals=_optional_int(entry, "decimals", context),
        price_proxy=proxy,
    )


def _parse_reference(entry: Any) -> PriceReference:
    if not isinstance(entry, dict):
        raise ConfigError("each price_reference must be a mapping")

    context = f"price_reference '{entry.get('id', '?')}'"
    return PriceReference(
        id=str(_require(entry, "id", str, context)),
        name=_require(entry, "name", str, context),
        chain=_require(entry, "chain", str, context),
        contract=_require(entry, "contract", str, context),
        decimals=_optional_int(entry, "decimals", context),
    )


def _parse_forex(entry: Any) -> ForexConfig:
    if entry is None:
        return ForexConfig()
    if not isinstance(entry, dict):
        raise ConfigError("'forex' must be a mapping")

    symbols = entry.get("symbols") or []
    sources = entry.get("sources") or list(DEFAULT_FOREX_SOURCES)
    if not isinstance(symbols, list) or not all(isinstance(s, str) for s in symbols):
        raise ConfigError("'forex.symbols' must be a list of currency codes")
    if not isinstance(sources, list) or not all(isinstance(s, str) for s in sources):
        raise ConfigError("'forex.sources' must be a list of source names")

    return ForexConfig(
        symbols=[s.strip().upper() for s in symbols],
        sources=[s.strip().lower() for s in sources],
    )


def _check_contract(name: str, chain: str, contract: str) -> None:
    if chain.lower() in EVM_CHAINS and not Web3.is_address(contract):
        raise ConfigError(
            f"'{name}' has contract '{contract}' which is not a valid {chain} address"
        )
