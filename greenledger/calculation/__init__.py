"""
GreenLedger Emissions Calculation Engine

Deterministic, reproducible CO2e calculations for activity data.

Key Guarantees:
- 100% DETERMINISTIC: Same input + same catalog snapshot -> same output
- FULL PROVENANCE: every result names the factor vintage and fallback level
- FAIL LOUD: typed errors, never a partial or approximate number

Components:
- EmissionCalculator: validates, resolves, converts and computes
- FactorResolver: organization/region/subcategory/year precedence chain
- FactorCatalog / CatalogHandle: immutable snapshots with atomic swap
- UnitConverter: deterministic unit conversions
"""

from greenledger.calculation.catalog import (
    CatalogHandle,
    CatalogProvider,
    FactorCatalog,
    load_catalog,
    load_default_catalog,
)
from greenledger.calculation.core_calculator import EmissionCalculator
from greenledger.calculation.models import (
    GLOBAL_REGION,
    ActivityInput,
    BlendedIntensity,
    CalculationResult,
    ComponentIntensity,
    EmissionFactor,
    FactorProvenance,
    FallbackLevel,
)
from greenledger.calculation.resolver import FactorResolution, FactorResolver
from greenledger.calculation.unit_converter import UnitConverter

__all__ = [
    # Core
    'EmissionCalculator',
    'FactorResolver',
    'FactorResolution',
    'UnitConverter',
    # Catalog
    'FactorCatalog',
    'CatalogHandle',
    'CatalogProvider',
    'load_catalog',
    'load_default_catalog',
    # Models
    'ActivityInput',
    'BlendedIntensity',
    'CalculationResult',
    'ComponentIntensity',
    'EmissionFactor',
    'FactorProvenance',
    'FallbackLevel',
    'GLOBAL_REGION',
]
