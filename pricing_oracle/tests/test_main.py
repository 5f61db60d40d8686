"""Unit tests for the command line entry point."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from pricing_oracle.main import main, parse_api_keys, parse_env_api_keys, print_json

from pricing_oracle.tests.fakes import FakePriceFetcher

HOT = "0x6c6ee5e31d828de241282b9606c8e98ea48526e2"

CONFIG_YAML = f"""
units:
  - unit_index: 1
    name: HOT
    chain: ethereum
    contract: "{HOT}"
  - unit_index: 2
    name: HOT2
    chain: ethereum
    contract: "{HOT}"
    price_proxy:
      use_unit: 1
"""


class TestParseApiKeys:
    """Test API key parsing."""

    def test_cli_string(self) -> None:
        assert parse_api_keys("CoinGecko=abc, twelve_data=x=y ,bad") == {
            "coingecko": "abc",
            "twelve_data": "x=y",
        }

    def test_empty(self) -> None:
        assert parse_api_keys(None) == {}
        assert parse_api_keys("") == {}

    def test_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("API_KEY_TWELVE_DATA", "td")
        monkeypatch.setenv("APIKEY_COINAPI", "ca")
        monkeypatch.setenv("API_KEY_EMPTY", "")

        keys = parse_env_api_keys()

        assert keys["twelve_data"] == "td"
        assert keys["coinapi"] == "ca"
        assert "empty" not in keys


class TestPrintJson:
    """Test JSON output of a table dict."""

    def test_indented_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        """The dict is printed as two-space indented JSON."""
        print_json({"units": [], "global_definition": "u"})

        out = capsys.readouterr().out
        assert json.loads(out) == {"units": [], "global_definition": "u"}
        assert out.startswith("{\n  \"units\"")
        assert print_json.__doc__


class TestMain:
    """Test complete CLI runs against in-memory sources."""

    @staticmethod
    def run_main(argv: list[str]) -> None:
        fetchers = {
            "a": FakePriceFetcher("a", {HOT: 0.002}),
            "b": FakePriceFetcher("b", {HOT: 0.002}),
        }
        with (
            patch("sys.argv", ["pricing-oracle", *argv]),
            patch("pricing_oracle.main.load_dotenv"),
            patch("pricing_oracle.main.build_price_fetchers", return_value=fetchers),
        ):
            main()

    def test_dry_run(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """--dry-run prints the table with the zero global definition."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text(CONFIG_YAML, encoding="utf-8")

        self.run_main(["-c", str(config_path), "--dry-run"])

        out = capsys.readouterr().out
        header, _, body = out.partition("\n")
        table = json.loads(body)

        assert header.startswith("--- Dry-run")
        assert set(table["data"]) == {"1", "2"}
        assert table["data"]["1"]["current_price"] == "0.002"
        assert table["data"]["2"]["sources"] == ["proxy"]
        assert table["global_definition"].startswith("uhCkkAAAA")

    def test_table_output(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        config_path = tmp_path / "config.yaml"
        config_path.write_text(CONFIG_YAML, encoding="utf-8")

        self.run_main(["-c", str(config_path), "-o", "table"])

        out = capsys.readouterr().out
        assert "Price (USD)" in out
        assert "HOT2" in out

    def test_missing_config_exits(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            self.run_main(["-c", str(tmp_path / "missing.yaml")])

        assert exc_info.value.code == 1

    def test_submit_and_dry_run_exclusive(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            self.run_main(["--submit", "--dry-run"])

        assert exc_info.value.code == 2
