"""
Factor Catalog Tests

This test suite validates:
- Snapshot invariants (unique ids, one active factor per key)
- Lookups and listing (active, visible factors with GLOBAL included)
- YAML/JSON loading and the bundled reference catalog
- Atomic snapshot swapping
"""

import json
from decimal import Decimal

import pytest
import yaml
from prometheus_client import REGISTRY

from greenledger.calculation.catalog import (
    CatalogHandle,
    CatalogProvider,
    FactorCatalog,
    load_catalog,
    load_default_catalog,
    parse_catalog,
)
from greenledger.calculation.models import BlendedIntensity, ComponentIntensity, EmissionFactor
from greenledger.config import EngineConfig, set_config
from greenledger.exceptions import CatalogException, CatalogIntegrityError
from greenledger.metrics import MetricsCollector


class TestSnapshotInvariants:
    """Building a FactorCatalog."""

    def test_duplicate_ids_rejected(self, make_factor):
        with pytest.raises(CatalogIntegrityError) as exc_info:
            FactorCatalog([make_factor(), make_factor(year=2023)])
        assert exc_info.value.context["factor_id"] == "ef-test"

    def test_two_active_factors_at_one_key_rejected(self, make_factor):
        """Ambiguity is refused when the snapshot is built."""
        with pytest.raises(CatalogIntegrityError) as exc_info:
            FactorCatalog([make_factor(id="a"), make_factor(id="b")])
        assert exc_info.value.context["factor_ids"] == ["a", "b"]

    def test_inactive_duplicate_allowed(self, make_factor):
        catalog = FactorCatalog([make_factor(id="a"), make_factor(id="b", is_active=False)])

        assert len(catalog) == 2
        assert catalog.find("diesel", None, "DE", 2024).factor_id == "a"

    def test_same_key_for_different_organizations_allowed(self, make_factor):
        catalog = FactorCatalog([
            make_factor(id="global"),
            make_factor(id="acme", organization_id="org-acme"),
        ])
        assert catalog.find("diesel", None, "DE", 2024, "org-acme").factor_id == "acme"
        assert catalog.find("diesel", None, "DE", 2024).factor_id == "global"

    def test_catalog_is_its_own_snapshot(self, catalog):
        assert catalog.snapshot() is catalog
        assert isinstance(catalog, CatalogProvider)


class TestLookups:
    """get, find, latest_year."""

    def test_get_returns_inactive_factors(self, catalog):
        factor = catalog.get("ef-diesel-fr-2024-retired")
        assert factor is not None
        assert not factor.is_active
        assert catalog.find("diesel", None, "FR", 2024) is None

    def test_find_normalizes_key(self, catalog):
        assert catalog.find("ELECTRICITY", "Grid", "de", 2024).factor_id == (
            "ef-electricity-grid-de-2024"
        )

    def test_latest_year(self, catalog):
        assert catalog.latest_year("diesel", None, "DE", 2025) == 2024
        assert catalog.latest_year("diesel", None, "DE", 2026) == 2026
        assert catalog.latest_year("diesel", None, "DE", 2022) is None
        assert catalog.latest_year("diesel", None, "FR", 2030) is None

    def test_contains(self, catalog):
        assert "ef-diesel-de-2024" in catalog
        assert "nope" not in catalog


class TestListFactors:
    """Catalog listing."""

    def test_region_filter_includes_global(self, catalog):
        regions = {f.region for f in catalog.list_factors(region="de")}
        assert regions == {"DE", "GLOBAL"}

    def test_inactive_and_foreign_factors_hidden(self, catalog):
        ids = {f.factor_id for f in catalog.list_factors()}

        assert "ef-diesel-fr-2024-retired" not in ids
        assert "ef-diesel-de-2024-acme" not in ids
        assert "ef-diesel-de-2024" in ids

    def test_organization_sees_own_and_global(self, catalog):
        ids = {f.factor_id for f in catalog.list_factors(organization_id="org-acme")}

        assert "ef-diesel-de-2024-acme" in ids
        assert "ef-diesel-de-2024-other" not in ids
        assert "ef-diesel-global-2022" in ids

    def test_ordering(self, catalog):
        """Category, then region, then newest year first."""
        listed = catalog.list_factors(category="diesel")

        assert [(f.region, f.year) for f in listed] == [
            ("DE", 2026), ("DE", 2024), ("DE", 2023), ("GLOBAL", 2022),
        ]

    def test_categories(self, catalog):
        assert catalog.categories() == ["diesel", "electricity", "natural_gas"]


class TestRecordParsing:
    """EmissionFactor.from_dict."""

    def test_legacy_unit_label(self, make_factor):
        assert make_factor(unit="kgCO2e/kWh").unit == "kWh"
        assert make_factor(unit="kg CO2e per liter").unit == "liter"

    def test_pre_weighted_flag(self, make_factor):
        factor = make_factor(pre_weighted=True, co2_per_unit="2.68")

        assert isinstance(factor.intensity, BlendedIntensity)
        assert factor.intensity.co2e_per_unit == Decimal("2.68")

    def test_co2e_only_record_is_blended(self):
        factor = EmissionFactor.from_dict({
            "id": "x", "category": "waste", "region": "GLOBAL", "year": 2025,
            "unit": "tonne", "co2e_per_unit": 21.0,
        })
        assert factor.is_pre_weighted

    def test_component_record(self, make_factor):
        factor = make_factor(ch4_per_unit=0.001, n2o_per_unit="0.0001")

        assert isinstance(factor.intensity, ComponentIntensity)
        assert factor.ch4_per_unit == Decimal("0.001")
        assert factor.n2o_per_unit == Decimal("0.0001")

    def test_negative_intensity_rejected(self):
        with pytest.raises(CatalogIntegrityError) as exc_info:
            parse_catalog({"factors": [{
                "id": "bad", "category": "diesel", "region": "DE", "year": 2024,
                "unit": "liter", "co2_per_unit": -1,
            }]})
        assert exc_info.value.context["index"] == 0
        assert exc_info.value.context["factor_id"] == "bad"

    def test_missing_intensity_rejected(self):
        with pytest.raises(CatalogIntegrityError):
            parse_catalog([{"id": "x", "category": "diesel", "region": "DE",
                            "year": 2024, "unit": "liter"}])

    def test_round_trip_through_to_dict(self, make_factor):
        factor = make_factor(ch4_per_unit="0.01")
        assert EmissionFactor.model_validate(factor.to_dict()) == factor


class TestLoading:
    """Catalog files."""

    def test_load_yaml(self, catalog_file, catalog):
        loaded = load_catalog(catalog_file)
        assert [f.factor_id for f in loaded] == [f.factor_id for f in catalog]

    def test_load_json(self, tmp_path, factor_records):
        path = tmp_path / "factors.json"
        path.write_text(json.dumps({"factors": factor_records}), encoding="utf-8")

        loaded = load_catalog(path)
        assert loaded.get("ef-natural-gas-global-2024").n2o_per_unit == Decimal("0.0001")

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogException) as exc_info:
            load_catalog(tmp_path / "absent.yaml")
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "factors.csv"
        path.write_text("id,category\n", encoding="utf-8")
        with pytest.raises(CatalogException):
            load_catalog(path)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("factors: [unclosed", encoding="utf-8")
        with pytest.raises(CatalogIntegrityError):
            load_catalog(path)

    def test_missing_factors_list(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text(yaml.safe_dump({"version": "1"}), encoding="utf-8")
        with pytest.raises(CatalogIntegrityError):
            load_catalog(path)


class TestDefaultCatalog:
    """Bundled reference factors."""

    def test_loads(self):
        catalog = load_default_catalog()

        assert len(catalog) > 40
        assert all(f.is_global for f in catalog)

    def test_reference_diesel(self):
        factor = load_default_catalog().find("diesel", None, "GLOBAL", 2025)

        assert factor.factor_id == "ef-diesel-global-2025"
        assert factor.co2_per_unit == Decimal("2.68")
        assert factor.unit == "liter"
        assert factor.source == "DEFRA"

    def test_reference_german_grid(self):
        factor = load_default_catalog().find("electricity", "grid", "DE", 2024)
        assert factor.co2_per_unit == Decimal("0.366")
        assert factor.is_pre_weighted


class TestCatalogHandle:
    """Atomic snapshot replacement."""

    def test_swap_returns_previous(self, catalog):
        handle = CatalogHandle(catalog, record_metrics=False)
        replacement = FactorCatalog()

        assert handle.swap(replacement) is catalog
        assert handle.snapshot() is replacement

    def test_held_snapshot_is_unaffected_by_swap(self, catalog):
        handle = CatalogHandle(catalog, record_metrics=False)
        held = handle.snapshot()
        handle.swap(FactorCatalog())

        assert held.get("ef-diesel-de-2024") is not None

    def test_swap_rejects_non_catalog(self, catalog):
        handle = CatalogHandle(catalog, record_metrics=False)
        with pytest.raises(TypeError):
            handle.swap({"not": "a catalog"})

    def test_refresh_from_file(self, catalog_file):
        handle = CatalogHandle(FactorCatalog(), record_metrics=False)
        handle.refresh_from_file(catalog_file)

        assert handle.snapshot().get("ef-diesel-de-2024") is not None

    def test_failed_refresh_keeps_current_snapshot(self, catalog, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text(yaml.safe_dump({"factors": [{"id": "x"}]}), encoding="utf-8")
        handle = CatalogHandle(catalog, record_metrics=False)

        with pytest.raises(CatalogIntegrityError):
            handle.refresh_from_file(bad)
        assert handle.snapshot() is catalog

    def test_refresh_without_path(self):
        with pytest.raises(CatalogException):
            CatalogHandle(record_metrics=False).refresh_from_file()

    def test_handle_from_source_path(self, catalog_file):
        handle = CatalogHandle(source_path=catalog_file, record_metrics=False)
        assert len(handle.snapshot()) == 13


class TestCatalogSizeGauge:
    """gl_ledger_catalog_factors follows EngineConfig.enable_metrics."""

    GAUGE = "gl_ledger_catalog_factors"

    def test_disabled_metrics_leave_gauge_untouched(self, catalog):
        """A default handle respects enable_metrics=False."""
        set_config(EngineConfig(enable_metrics=False))
        MetricsCollector.set_catalog_size(-1)

        CatalogHandle(catalog).swap(FactorCatalog())

        assert REGISTRY.get_sample_value(self.GAUGE) == -1

    def test_enabled_metrics_publish_size(self, catalog):
        set_config(EngineConfig(enable_metrics=True))
        MetricsCollector.set_catalog_size(-1)

        CatalogHandle(catalog)

        assert REGISTRY.get_sample_value(self.GAUGE) == len(catalog)

    def test_explicit_flag_overrides_config(self, catalog):
        """record_metrics=True publishes even when the config disables metrics."""
        set_config(EngineConfig(enable_metrics=False))
        MetricsCollector.set_catalog_size(-1)

        CatalogHandle(catalog, record_metrics=True)

        assert REGISTRY.get_sample_value(self.GAUGE) == len(catalog)
