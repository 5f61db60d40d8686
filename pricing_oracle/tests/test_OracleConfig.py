"""Unit tests for OracleConfig."""

import copy
from pathlib import Path

import pytest

from pricing_oracle.src.OracleConfig import ConfigError, OracleConfig

HOT = "0x6c6ee5e31d828de241282b9606c8e98ea48526e2"
WETH = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
ZERO = "0x0000000000000000000000000000000000000000"

BASE_CONFIG = {
    "price_references": [
        {"id": "weth", "name": "WETH", "chain": "ethereum", "contract": WETH, "decimals": 18},
    ],
    "units": [
        {"unit_index": 1, "name": "HOT", "chain": "ethereum", "contract": HOT},
        {
            "unit_index": 2,
            "name": "ETH",
            "chain": "ethereum",
            "contract": ZERO,
            "price_proxy": {"use_reference": "weth"},
        },
        {
            "unit_index": 3,
            "name": "HOT2",
            "chain": "ethereum",
            "contract": HOT,
            "price_proxy": {"use_unit": 1},
        },
    ],
    "forex": {"symbols": ["eur", "GBP"], "sources": ["Twelve_Data"]},
}

YAML_CONFIG = f"""
price_references:
  - id: weth
    name: WETH
    chain: ethereum
    contract: "{WETH}"
units:
  - unit_index: 1
    name: HOT
    chain: ethereum
    contract: "{HOT}"
  - unit_index: 2
    name: ETH
    chain: ethereum
    contract: "{ZERO}"
    price_proxy:
      use_reference: weth
forex:
  symbols: [EUR, JPY]
"""


def config_with(**changes) -> dict:
    data = copy.deepcopy(BASE_CONFIG)
    data.update(changes)
    return data


class TestOracleConfigLoad:
    """Test loading from YAML."""

    def test_load_yaml(self, tmp_path: Path) -> None:
        """A valid YAML file is parsed and validated."""
        path = tmp_path / "config.yaml"
        path.write_text(YAML_CONFIG, encoding="utf-8")

        config = OracleConfig.load(path)

        assert [u.unit_index for u in config.units] == [1, 2]
        assert config.price_references[0].id == "weth"
        assert config.forex.symbols == ["EUR", "JPY"]
        assert config.forex.sources == ["twelve_data", "coinapi"]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="reading"):
            OracleConfig.load(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("units: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigError, match="parsing"):
            OracleConfig.load(path)

    def test_not_a_mapping(self) -> None:
        with pytest.raises(ConfigError, match="must be a mapping"):
            OracleConfig.from_dict(["units"])

    def test_units_required(self) -> None:
        with pytest.raises(ConfigError, match="'units' must be a list"):
            OracleConfig.from_dict({"price_references": []})


class TestOracleConfigParsing:
    """Test parsing of individual entries."""

    def test_units_split(self) -> None:
        """Real and proxy units are separated."""
        config = OracleConfig.from_dict(BASE_CONFIG)

        assert [u.unit_index for u in config.real_units()] == [1]
        assert [u.unit_index for u in config.proxy_units()] == [2, 3]
        assert config.units[0].price_proxy is None
        assert config.units[1].is_proxy

    def test_proxy_definitions(self) -> None:
        config = OracleConfig.from_dict(BASE_CONFIG)
        definitions = config.proxy_definitions()

        assert [(d.unit_index, d.use_unit, d.use_reference) for d in definitions] == [
            (2, None, "weth"),
            (3, 1, None),
        ]

    def test_reference_as_unit(self) -> None:
        """Price references are fetched as unit index 0."""
        config = OracleConfig.from_dict(BASE_CONFIG)
        unit = config.price_references[0].to_unit_config()

        assert unit.unit_index == 0
        assert unit.contract == WETH
        assert unit.decimals == 18

    def test_forex_normalized(self) -> None:
        config = OracleConfig.from_dict(BASE_CONFIG)

        assert config.forex.symbols == ["EUR", "GBP"]
        assert config.forex.sources == ["twelve_data"]

    def test_no_forex_section(self) -> None:
        data = config_with()
        del data["forex"]

        assert OracleConfig.from_dict(data).forex.symbols == []

    def test_missing_field(self) -> None:
        data = config_with(units=[{"unit_index": 1, "name": "HOT", "chain": "ethereum"}])

        with pytest.raises(ConfigError, match="missing required field 'contract'"):
            OracleConfig.from_dict(data)

    def test_wrong_type(self) -> None:
        data = config_with(
            units=[{"unit_index": "1", "name": "HOT", "chain": "ethereum", "contract": HOT}]
        )

        with pytest.raises(ConfigError, match="'unit_index' must be int"):
            OracleConfig.from_dict(data)

    def test_negative_index(self) -> None:
        data = config_with(
            units=[{"unit_index": -1, "name": "HOT", "chain": "ethereum", "contract": HOT}]
        )

        with pytest.raises(ConfigError, match="must not be negative"):
            OracleConfig.from_dict(data)


class TestOracleConfigValidation:
    """Test cross-entry validation."""

    def test_duplicate_unit_index(self) -> None:
        data = config_with()
        data["units"][2]["unit_index"] = 1

        with pytest.raises(ConfigError, match="duplicate unit_index 1"):
            OracleConfig.from_dict(data)

    def test_duplicate_reference_id(self) -> None:
        data = config_with()
        data["price_references"].append(dict(data["price_references"][0], name="WETH2"))

        with pytest.raises(ConfigError, match="duplicate price_reference id 'weth'"):
            OracleConfig.from_dict(data)

    def test_proxy_needs_exactly_one_target(self) -> None:
        data = config_with()
        data["units"][2]["price_proxy"] = {"use_unit": 1, "use_reference": "weth"}

        with pytest.raises(ConfigError, match="exactly one of"):
            OracleConfig.from_dict(data)

        data["units"][2]["price_proxy"] = {}
        with pytest.raises(ConfigError, match="exactly one of"):
            OracleConfig.from_dict(data)

    def test_proxy_to_itself(self) -> None:
        data = config_with()
        data["units"][2]["price_proxy"] = {"use_unit": 3}

        with pytest.raises(ConfigError, match="pointing to itself"):
            OracleConfig.from_dict(data)

    def test_proxy_unknown_unit(self) -> None:
        data = config_with()
        data["units"][2]["price_proxy"] = {"use_unit": 42}

        with pytest.raises(ConfigError, match="use_unit 42 which does not exist"):
            OracleConfig.from_dict(data)

    def test_proxy_unknown_reference(self) -> None:
        data = config_with()
        data["units"][1]["price_proxy"] = {"use_reference": "wbtc"}

        with pytest.raises(ConfigError, match="'wbtc' which does not exist"):
            OracleConfig.from_dict(data)

    def test_proxy_cycle(self) -> None:
        data = config_with()
        data["units"].append(
            {
                "unit_index": 4,
                "name": "HOT3",
                "chain": "ethereum",
                "contract": HOT,
                "price_proxy": {"use_unit": 3},
            }
        )
        data["units"][2]["price_proxy"] = {"use_unit": 4}

        with pytest.raises(ConfigError, match="price_proxy cycle detected"):
            OracleConfig.from_dict(data)

    def test_proxy_chain_allowed(self) -> None:
        """A proxy may point at another proxy."""
        data = config_with()
        data["units"].append(
            {
                "unit_index": 4,
                "name": "HOT3",
                "chain": "ethereum",
                "contract": HOT,
                "price_proxy": {"use_unit": 3},
            }
        )

        assert len(OracleConfig.from_dict(data).proxy_units()) == 3

    def test_invalid_evm_contract(self) -> None:
        data = config_with()
        data["units"][0]["contract"] = "0x1234"

        with pytest.raises(ConfigError, match="not a valid ethereum address"):
            OracleConfig.from_dict(data)

    def test_non_evm_contract_not_checked(self) -> None:
        data = config_with()
        data["units"][0]["chain"] = "solana"
        data["units"][0]["contract"] = "So11111111111111111111111111111111111111112"

        assert OracleConfig.from_dict(data).units[0].chain == "solana"

    def test_unknown_forex_source(self) -> None:
        data = config_with(forex={"symbols": ["EUR"], "sources": ["fixer"]})

        with pytest.raises(ConfigError, match="unknown forex sources"):
            OracleConfig.from_dict(data)
