# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

import os
from pathlib import Path
from typing import Any, Dict

import pytest
import yaml

from greenledger.calculation.catalog import FactorCatalog
from greenledger.calculation.core_calculator import EmissionCalculator
from greenledger.calculation.models import EmissionFactor
from greenledger.calculation.unit_converter import UnitConverter
from greenledger.config import EngineConfig, reset_config


# Flat catalog-file records, as they appear in YAML/JSON catalogs
FACTOR_RECORDS = [
    # Diesel in Germany across several vintages (per-gas, CO2 only)
    {"id": "ef-diesel-de-2023", "category": "diesel", "region": "DE", "year": 2023,
     "unit": "liter", "co2_per_unit": "2.70", "source": "UBA"},
    {"id": "ef-diesel-de-2024", "category": "diesel", "region": "DE", "year": 2024,
     "unit": "liter", "co2_per_unit": "2.68", "source": "UBA"},
    {"id": "ef-diesel-de-2026", "category": "diesel", "region": "DE", "year": 2026,
     "unit": "liter", "co2_per_unit": "2.60", "source": "UBA"},
    {"id": "ef-diesel-global-2022", "category": "diesel", "region": "GLOBAL", "year": 2022,
     "unit": "liter", "pre_weighted": True, "co2e_per_unit": "2.75", "source": "DEFRA"},
    # Organization overrides at the same key
    {"id": "ef-diesel-de-2024-acme", "category": "diesel", "region": "DE", "year": 2024,
     "unit": "liter", "co2_per_unit": "2.50", "source": "Acme metered",
     "organization_id": "org-acme"},
    {"id": "ef-diesel-de-2024-other", "category": "diesel", "region": "DE", "year": 2024,
     "unit": "liter", "co2_per_unit": "2.40", "source": "Other metered",
     "organization_id": "org-other"},
    # Retired factor
    {"id": "ef-diesel-fr-2024-retired", "category": "diesel", "region": "FR", "year": 2024,
     "unit": "liter", "co2_per_unit": "2.90", "source": "ADEME", "is_active": False},
    # Electricity (pre-weighted)
    {"id": "ef-electricity-grid-de-2024", "category": "electricity", "subcategory": "grid",
     "region": "DE", "year": 2024, "unit": "kWh", "pre_weighted": True,
     "co2e_per_unit": "0.366", "ch4_per_unit": "0.011", "n2o_per_unit": "0.012",
     "source": "UBA"},
    {"id": "ef-electricity-grid-global-2024", "category": "electricity", "subcategory": "grid",
     "region": "GLOBAL", "year": 2024, "unit": "kWh", "pre_weighted": True,
     "co2e_per_unit": "0.45", "source": "IEA"},
    {"id": "ef-electricity-grid-pl-2020", "category": "electricity", "subcategory": "grid",
     "region": "PL", "year": 2020, "unit": "kWh", "pre_weighted": True,
     "co2e_per_unit": "0.80", "source": "KOBiZE"},
    {"id": "ef-electricity-fr-2024", "category": "electricity", "region": "FR", "year": 2024,
     "unit": "kWh", "pre_weighted": True, "co2e_per_unit": "0.06", "source": "ADEME"},
    {"id": "ef-electricity-global-2024", "category": "electricity", "region": "GLOBAL",
     "year": 2024, "unit": "kWh", "pre_weighted": True, "co2e_per_unit": "0.50",
     "source": "IEA"},
    # Natural gas with a per-gas breakdown
    {"id": "ef-natural-gas-global-2024", "category": "natural_gas", "region": "GLOBAL",
     "year": 2024, "unit": "m3", "co2_per_unit": "2.0", "ch4_per_unit": "0.001",
     "n2o_per_unit": "0.0001", "source": "EPA"},
]


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    """Keep GL_LEDGER_* environment and the config singleton out of tests."""
    for name in list(os.environ):
        if name.startswith("GL_LEDGER_"):
            monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def factor_records():
    """Fresh copy of the flat test records."""
    return [dict(record) for record in FACTOR_RECORDS]


@pytest.fixture
def catalog(factor_records):
    """Immutable catalog built from the test records."""
    return FactorCatalog(EmissionFactor.from_dict(r) for r in factor_records)


@pytest.fixture
def make_factor():
    """Factory for single factors with sensible defaults."""
    def _make(**overrides: Any) -> EmissionFactor:
        record: Dict[str, Any] = {
            "id": "ef-test",
            "category": "diesel",
            "region": "DE",
            "year": 2024,
            "unit": "liter",
            "co2_per_unit": "2.68",
            "source": "TEST",
        }
        record.update(overrides)
        return EmissionFactor.from_dict(record)
    return _make


@pytest.fixture
def engine_config():
    """Engine configuration without Prometheus side effects."""
    return EngineConfig(enable_metrics=False)


@pytest.fixture
def calculator(catalog, engine_config):
    """Calculator over the test catalog."""
    return EmissionCalculator(catalog, config=engine_config)


@pytest.fixture
def converter():
    return UnitConverter()


@pytest.fixture
def catalog_file(tmp_path, factor_records) -> Path:
    """The test records written as a YAML catalog file."""
    path = tmp_path / "factors.yaml"
    path.write_text(yaml.safe_dump({"factors": factor_records}), encoding="utf-8")
    return path


class SpyCatalog:
    """Catalog provider that counts snapshot() calls."""

    def __init__(self, catalog: FactorCatalog):
        self.catalog = catalog
        self.snapshot_calls = 0

    def snapshot(self) -> FactorCatalog:
        self.snapshot_calls += 1
        return self.catalog


@pytest.fixture
def spy_catalog(catalog):
    return SpyCatalog(catalog)
