"""
GreenLedger: Emissions Calculation Engine
=========================================

Converts activity data (litres of diesel, kWh of electricity, ...) into
kg CO2e using a versioned catalog of emission factors, with organization
overrides, region/subcategory/year fallback and full provenance.
"""

__version__ = "0.1.0"

from greenledger.calculation import (
    ActivityInput,
    CalculationResult,
    CatalogHandle,
    EmissionCalculator,
    EmissionFactor,
    FactorCatalog,
    FactorResolver,
    UnitConverter,
    load_catalog,
    load_default_catalog,
)
from greenledger.config import EngineConfig, get_config
from greenledger.exceptions import (
    FactorNotFound,
    GreenLedgerException,
    InvalidInput,
    UnitMismatch,
    UnknownUnit,
)

__all__ = [
    "__version__",
    "ActivityInput",
    "CalculationResult",
    "CatalogHandle",
    "EmissionCalculator",
    "EmissionFactor",
    "FactorCatalog",
    "FactorResolver",
    "UnitConverter",
    "load_catalog",
    "load_default_catalog",
    "EngineConfig",
    "get_config",
    "GreenLedgerException",
    "FactorNotFound",
    "InvalidInput",
    "UnitMismatch",
    "UnknownUnit",
]
