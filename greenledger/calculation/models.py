# -*- coding: utf-8 -*-
"""
Emissions Engine Data Models

Pydantic v2 models shared by the converter, resolver and calculator:

Enumerations (1):
    FallbackLevel

Intensity variants (2):
    BlendedIntensity     - pre-weighted CO2e per unit
    ComponentIntensity   - per-gas CO2/CH4/N2O masses per unit

Data models (4):
    EmissionFactor, ActivityInput, FactorProvenance, CalculationResult

The intensity of a factor is a tagged union discriminated on ``kind``, so
the calculator's weighting logic is exhaustive over the two shapes and a
pre-weighted factor can never have its CH4/N2O counted twice.

Example:
    >>> factor = EmissionFactor(
    ...     factor_id="ef-diesel-de-2024",
    ...     category="diesel",
    ...     region="DE",
    ...     year=2024,
    ...     unit="liter",
    ...     intensity=ComponentIntensity(co2_per_unit="2.68"),
    ...     source="UBA",
    ... )
    >>> factor.is_pre_weighted
    False
"""

from __future__ import annotations

import hashlib
import json
import re
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

#: Region code of factors that apply worldwide.
GLOBAL_REGION = "GLOBAL"

_LEGACY_UNIT_PREFIX = re.compile(r"^\s*kg\s*co2e?\s*(?:/|per\s)\s*", re.IGNORECASE)


def _coerce_decimal(value: Any) -> Any:
    """Convert numeric input to Decimal through ``str`` to avoid float noise."""
    if value is None or isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    if isinstance(value, (int, float, str)):
        try:
            return Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"expected a number, got {value!r}") from e
    return value


def normalize_category(value: Optional[str]) -> Optional[str]:
    """Lowercase and trim a category/subcategory; empty strings become None."""
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


def normalize_region(value: str) -> str:
    """Uppercase and trim a region code."""
    return value.strip().upper()


# =============================================================================
# Enumerations
# =============================================================================


class FallbackLevel(str, Enum):
    """Precedence level that produced a resolved emission factor."""

    EXPLICIT = "explicit"  # Caller named the factor id
    ORGANIZATION = "organization"  # Organization override at the exact key
    EXACT = "exact"  # Global factor at the exact key
    REGION = "region"  # Global factor, region GLOBAL
    SUBCATEGORY = "subcategory"  # Global factor, subcategory dropped
    REGION_SUBCATEGORY = "region_subcategory"  # Both relaxed


# =============================================================================
# Intensity variants
# =============================================================================


class BlendedIntensity(BaseModel):
    """Pre-weighted intensity: ``co2e_per_unit`` already folds in all gases.

    ``ch4_per_unit`` and ``n2o_per_unit`` are informational only and are
    never added to the CO2e total.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["blended"] = "blended"
    co2e_per_unit: Decimal = Field(..., ge=0, description="kg CO2e per unit")
    ch4_per_unit: Decimal = Field(default=Decimal("0"), ge=0)
    n2o_per_unit: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("co2e_per_unit", "ch4_per_unit", "n2o_per_unit", mode="before")
    @classmethod
    def _coerce_amounts(cls, v: Any) -> Any:
        return _coerce_decimal(v)


class ComponentIntensity(BaseModel):
    """Per-gas intensity: CH4 and N2O are weighted by the configured GWPs."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["components"] = "components"
    co2_per_unit: Decimal = Field(..., ge=0, description="kg CO2 per unit")
    ch4_per_unit: Decimal = Field(default=Decimal("0"), ge=0, description="kg CH4 per unit")
    n2o_per_unit: Decimal = Field(default=Decimal("0"), ge=0, description="kg N2O per unit")

    @field_validator("co2_per_unit", "ch4_per_unit", "n2o_per_unit", mode="before")
    @classmethod
    def _coerce_amounts(cls, v: Any) -> Any:
        return _coerce_decimal(v)


FactorIntensity = Annotated[
    Union[BlendedIntensity, ComponentIntensity],
    Field(discriminator="kind"),
]


# =============================================================================
# EmissionFactor
# =============================================================================


class EmissionFactor(BaseModel):
    """A single catalog entry.

    Attributes:
        factor_id: Unique identifier of the factor.
        category: Activity category (diesel, electricity, ...), lowercase.
        subcategory: Optional refinement (grid, average_car, ...).
        region: ISO code or ``GLOBAL``, uppercase.
        year: Vintage year the factor applies to.
        unit: Activity unit the factor expects (liter, kWh, ...).
        intensity: Blended or per-gas intensity.
        source: Publishing body label (EPA, DEFRA, UBA, ...).
        organization_id: Owning organization; None for global factors.
        is_active: Inactive factors never match a resolution.
        description: Optional free text.
    """

    model_config = ConfigDict(frozen=True)

    factor_id: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    subcategory: Optional[str] = None
    region: str = Field(default=GLOBAL_REGION, min_length=1)
    year: int = Field(..., ge=1900, le=2200)
    unit: str = Field(..., min_length=1)
    intensity: FactorIntensity
    source: str = Field(default="unspecified")
    organization_id: Optional[str] = None
    is_active: bool = True
    description: Optional[str] = None

    @field_validator("category")
    @classmethod
    def _normalize_category(cls, v: str) -> str:
        normalized = normalize_category(v)
        if normalized is None:
            raise ValueError("category must not be blank")
        return normalized

    @field_validator("subcategory")
    @classmethod
    def _normalize_subcategory(cls, v: Optional[str]) -> Optional[str]:
        return normalize_category(v)

    @field_validator("region")
    @classmethod
    def _normalize_region(cls, v: str) -> str:
        return normalize_region(v)

    @field_validator("unit")
    @classmethod
    def _strip_legacy_unit_label(cls, v: str) -> str:
        """Accept labels such as ``kgCO2e/kWh`` and keep only the activity unit."""
        unit = _LEGACY_UNIT_PREFIX.sub("", v).strip()
        if not unit:
            raise ValueError(f"unit label {v!r} names no activity unit")
        return unit

    @field_validator("organization_id")
    @classmethod
    def _blank_organization_is_global(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    @property
    def is_pre_weighted(self) -> bool:
        return isinstance(self.intensity, BlendedIntensity)

    @property
    def is_global(self) -> bool:
        return self.organization_id is None

    @property
    def co2_per_unit(self) -> Decimal:
        """CO2 (or CO2e, for blended factors) per unit."""
        if isinstance(self.intensity, BlendedIntensity):
            return self.intensity.co2e_per_unit
        return self.intensity.co2_per_unit

    @property
    def ch4_per_unit(self) -> Decimal:
        return self.intensity.ch4_per_unit

    @property
    def n2o_per_unit(self) -> Decimal:
        return self.intensity.n2o_per_unit

    def is_accessible_to(self, organization_id: Optional[str]) -> bool:
        """Global factors are public; owned factors only serve their owner."""
        return self.is_global or self.organization_id == organization_id

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> EmissionFactor:
        """Build a factor from the flat catalog-file record shape.

        Accepted keys: ``id``/``factor_id``, ``category``, ``subcategory``,
        ``region``, ``year``, ``unit``, ``co2_per_unit``, ``co2e_per_unit``,
        ``ch4_per_unit``, ``n2o_per_unit``, ``pre_weighted``, ``source``,
        ``organization_id``/``organization``, ``is_active``,
        ``description``. A nested ``intensity`` mapping is passed through.

        When ``pre_weighted`` is true, ``co2e_per_unit`` (or, failing that,
        ``co2_per_unit``) becomes a blended intensity. When it is absent, a
        record with ``co2_per_unit`` is per-gas and one with only
        ``co2e_per_unit`` is blended.
        """
        record = dict(data)
        if "factor_id" not in record and "id" in record:
            record["factor_id"] = record.pop("id")
        if "organization_id" not in record and "organization" in record:
            record["organization_id"] = record.pop("organization")

        if "intensity" not in record:
            pre_weighted = record.pop("pre_weighted", None)
            co2 = record.pop("co2_per_unit", None)
            co2e = record.pop("co2e_per_unit", None)
            gases = {
                key: record.pop(key)
                for key in ("ch4_per_unit", "n2o_per_unit")
                if record.get(key) is not None
            }
            if pre_weighted is None:
                pre_weighted = co2 is None and co2e is not None

            if pre_weighted:
                record["intensity"] = {
                    "kind": "blended",
                    "co2e_per_unit": co2e if co2e is not None else co2,
                    **gases,
                }
            else:
                record["intensity"] = {
                    "kind": "components",
                    "co2_per_unit": co2,
                    **gases,
                }
            record.pop("ch4_per_unit", None)
            record.pop("n2o_per_unit", None)

        return cls.model_validate(record)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")


# =============================================================================
# ActivityInput
# =============================================================================


class ActivityInput(BaseModel):
    """One activity quantity to convert into CO2e.

    Positivity of ``activity_value`` is deliberately not enforced here: the
    calculator rejects non-positive values with ``InvalidInput``.
    """

    model_config = ConfigDict(frozen=True)

    activity_value: Decimal = Field(..., allow_inf_nan=True)
    activity_unit: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    subcategory: Optional[str] = None
    region: str = Field(..., min_length=1)
    year: int
    factor_id: Optional[str] = Field(
        default=None, description="Explicit factor id overriding resolution"
    )

    @field_validator("activity_value", mode="before")
    @classmethod
    def _coerce_activity_value(cls, v: Any) -> Any:
        return _coerce_decimal(v)

    @field_validator("category")
    @classmethod
    def _normalize_category(cls, v: str) -> str:
        normalized = normalize_category(v)
        if normalized is None:
            raise ValueError("category must not be blank")
        return normalized

    @field_validator("subcategory")
    @classmethod
    def _normalize_subcategory(cls, v: Optional[str]) -> Optional[str]:
        return normalize_category(v)

    @field_validator("region")
    @classmethod
    def _normalize_region(cls, v: str) -> str:
        return normalize_region(v)

    @field_validator("factor_id")
    @classmethod
    def _blank_factor_id_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


# =============================================================================
# Result models
# =============================================================================


class FactorProvenance(BaseModel):
    """Which factor vintage produced a number, and how it was selected."""

    model_config = ConfigDict(frozen=True)

    factor_id: str
    source: str
    year: int
    region: str
    organization_id: Optional[str] = None
    category: str
    subcategory: Optional[str] = None
    unit: str
    pre_weighted: bool
    fallback_level: FallbackLevel
    requested_year: int
    year_fallback: bool = False

    @classmethod
    def from_factor(
        cls,
        factor: EmissionFactor,
        fallback_level: FallbackLevel,
        requested_year: int,
    ) -> FactorProvenance:
        return cls(
            factor_id=factor.factor_id,
            source=factor.source,
            year=factor.year,
            region=factor.region,
            organization_id=factor.organization_id,
            category=factor.category,
            subcategory=factor.subcategory,
            unit=factor.unit,
            pre_weighted=factor.is_pre_weighted,
            fallback_level=fallback_level,
            requested_year=requested_year,
            year_fallback=factor.year != requested_year,
        )


class CalculationResult(BaseModel):
    """
    Complete calculation result with full provenance.

    ``co2e`` is the only rounded figure. ``co2e_exact`` and the gas
    components keep full precision so downstream aggregation stays
    additive-consistent.
    """

    model_config = ConfigDict(frozen=True)

    co2e: Decimal = Field(..., ge=0, description="Presented kg CO2e (rounded)")
    co2e_exact: Decimal = Field(..., ge=0, description="Unrounded kg CO2e")
    co2_component: Decimal = Field(..., ge=0)
    ch4_component: Decimal = Field(..., ge=0)
    n2o_component: Decimal = Field(..., ge=0)
    factor_used: FactorProvenance
    converted_activity_value: Decimal = Field(..., gt=0)
    converted_unit: str
    gwp_set: str
    gwp_ch4: Decimal
    gwp_n2o: Decimal
    methodology: str = ""
    calculation_steps: List[Dict[str, Any]] = Field(default_factory=list)
    provenance_hash: str = ""

    def calculate_provenance_hash(self) -> str:
        """SHA-256 over every field except the hash itself (sorted keys)."""
        payload = self.model_dump(mode="json", exclude={"provenance_hash"})
        return hashlib.sha256(
            json.dumps(payload, sort_keys=True).encode("utf-8")
        ).hexdigest()

    def verify_provenance(self) -> bool:
        """True if the stored hash matches the current contents."""
        return self.provenance_hash == self.calculate_provenance_hash()

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)


__all__ = [
    "GLOBAL_REGION",
    "FallbackLevel",
    "BlendedIntensity",
    "ComponentIntensity",
    "FactorIntensity",
    "EmissionFactor",
    "ActivityInput",
    "FactorProvenance",
    "CalculationResult",
    "normalize_category",
    "normalize_region",
]
