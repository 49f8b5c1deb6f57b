"""
Engine Configuration Tests

Validates defaults, GWP selection, validation errors, environment loading
and the process-wide accessor.
"""

from decimal import Decimal

import pytest

from greenledger.config import (
    DEFAULT_GWP_SET,
    GWP_SETS,
    EngineConfig,
    get_config,
    reset_config,
    set_config,
)


class TestDefaults:

    def test_default_gwp_is_ar4(self):
        cfg = EngineConfig()

        assert cfg.gwp_set == DEFAULT_GWP_SET == "AR4_100"
        assert cfg.gwp_ch4 == Decimal("25")
        assert cfg.gwp_n2o == Decimal("298")
        assert cfg.gwp_label == "AR4_100"
        assert cfg.co2e_decimal_places == 3

    @pytest.mark.parametrize("name", sorted(GWP_SETS))
    def test_every_gwp_set_is_selectable(self, name):
        cfg = EngineConfig(gwp_set=name.lower())
        assert cfg.gwp_set == name
        assert cfg.gwp_ch4 == GWP_SETS[name]["CH4"]

    def test_overrides(self):
        cfg = EngineConfig(gwp_ch4_override="30", gwp_n2o_override=265)

        assert cfg.gwp_ch4 == Decimal("30")
        assert cfg.gwp_n2o == Decimal("265")
        assert cfg.gwp_label == "AR4_100+override"

    def test_to_dict(self):
        data = EngineConfig(log_level="debug").to_dict()
        assert data["log_level"] == "DEBUG"
        assert data["gwp_ch4"] == "25"


class TestValidation:

    def test_errors_are_collected(self):
        """All problems are reported in one ValueError."""
        with pytest.raises(ValueError) as exc_info:
            EngineConfig(
                log_level="LOUD",
                gwp_set="AR9",
                gwp_ch4_override="-1",
                co2e_decimal_places=20,
            )

        message = str(exc_info.value)
        assert "log_level" in message
        assert "gwp_set" in message
        assert "gwp_ch4_override" in message
        assert "co2e_decimal_places" in message

    def test_non_numeric_override(self):
        with pytest.raises(ValueError):
            EngineConfig(gwp_n2o_override="lots")


class TestEnvironment:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("GL_LEDGER_GWP_SET", "AR5_100")
        monkeypatch.setenv("GL_LEDGER_CO2E_DECIMAL_PLACES", "2")
        monkeypatch.setenv("GL_LEDGER_ENABLE_METRICS", "false")
        monkeypatch.setenv("GL_LEDGER_CATALOG_PATH", "/tmp/factors.yaml")

        cfg = EngineConfig.from_env()

        assert cfg.gwp_ch4 == Decimal("28")
        assert cfg.co2e_decimal_places == 2
        assert cfg.enable_metrics is False
        assert cfg.catalog_path == "/tmp/factors.yaml"

    def test_malformed_integer_falls_back(self, monkeypatch):
        monkeypatch.setenv("GL_LEDGER_CO2E_DECIMAL_PLACES", "three")
        assert EngineConfig.from_env().co2e_decimal_places == 3

    def test_gwp_override_from_env(self, monkeypatch):
        monkeypatch.setenv("GL_LEDGER_GWP_N2O", "273")
        assert EngineConfig.from_env().gwp_n2o == Decimal("273")


class TestSingleton:

    def test_get_set_reset(self, monkeypatch):
        first = get_config()
        assert get_config() is first

        custom = EngineConfig(gwp_set="AR6_100")
        set_config(custom)
        assert get_config() is custom

        reset_config()
        monkeypatch.setenv("GL_LEDGER_GWP_SET", "SAR_100")
        assert get_config().gwp_set == "SAR_100"
