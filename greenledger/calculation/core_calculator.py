# -*- coding: utf-8 -*-
"""
Core Emission Calculation Engine

GUARANTEES:
- 100% deterministic (same input + same catalog snapshot -> same output)
- Full provenance tracking with SHA-256 hashing
- Fail loudly on missing data or invalid inputs; never a partial number

This module turns one ActivityInput into a CalculationResult:

    1. Validate the activity value (positive, finite)
    2. Resolve the emission factor (with fallback logic)
    3. Convert the activity into the factor's unit
    4. Compute per-gas components and the CO2e total
    5. Round the presented figure and assemble the audit trail
"""

import logging
import time
from decimal import ROUND_HALF_UP, Decimal, DecimalException, localcontext
from typing import Any, Dict, List, Optional

from greenledger.calculation.catalog import (
    CatalogProvider,
    load_catalog,
    load_default_catalog,
)
from greenledger.calculation.models import (
    ActivityInput,
    BlendedIntensity,
    CalculationResult,
    ComponentIntensity,
    EmissionFactor,
)
from greenledger.calculation.resolver import FactorResolution, FactorResolver
from greenledger.calculation.unit_converter import UnitConverter
from greenledger.config import EngineConfig, get_config
from greenledger.exceptions import FactorNotFound, InvalidInput, UnitException
from greenledger.metrics import MetricsCollector

logger = logging.getLogger(__name__)

_KG_PER_TONNE = Decimal("1000")

# Upper bound on significant digits of the presented CO2e figure
_MAX_PRESENTED_DIGITS = 100


class EmissionCalculator:
    """
    Emission calculator over an injected factor catalog.

    GUARANTEES:
    - Deterministic: Same input -> Same output (byte-identical JSON)
    - Reproducible: Full provenance tracking with SHA-256 hashing
    - Auditable: Complete calculation trail
    - Fail-Loud: Typed errors on missing data or invalid inputs
    - Stateless: each call reads exactly one catalog snapshot

    Example:
        >>> calc = EmissionCalculator(load_default_catalog())
        >>> result = calc.calculate(ActivityInput(
        ...     activity_value=1000, activity_unit="liter",
        ...     category="diesel", region="GLOBAL", year=2025,
        ... ))
        >>> result.co2e
        Decimal('2680.000')
    """

    def __init__(
        self,
        catalog: Optional[CatalogProvider] = None,
        unit_converter: Optional[UnitConverter] = None,
        config: Optional[EngineConfig] = None,
    ):
        """
        Initialize emission calculator.

        Args:
            catalog: FactorCatalog or CatalogHandle (loads the configured or
                bundled catalog if None)
            unit_converter: Unit converter (auto-creates if None)
            config: Engine configuration (process-wide config if None)
        """
        self.config = config or get_config()
        if catalog is None:
            if self.config.catalog_path:
                catalog = load_catalog(self.config.catalog_path)
            else:
                catalog = load_default_catalog()
        self.catalog = catalog
        self.unit_converter = unit_converter or UnitConverter()

        logger.info(
            "EmissionCalculator initialized (gwp_set=%s, co2e_decimal_places=%d)",
            self.config.gwp_label, self.config.co2e_decimal_places,
        )

    def calculate(
        self,
        activity: ActivityInput,
        organization_id: Optional[str] = None,
    ) -> CalculationResult:
        """
        Execute one emission calculation.

        Args:
            activity: Activity quantity and lookup key
            organization_id: Requesting organization; enables its overrides

        Returns:
            CalculationResult with emissions and complete provenance

        Raises:
            InvalidInput: Non-positive or non-finite activity value, or an
                activity unit incompatible with the resolved factor
            FactorNotFound: No factor matched, or the explicit id is not
                accessible to the organization
        """
        start = time.perf_counter()
        try:
            result = self._calculate(activity, organization_id)
        except InvalidInput:
            self._record_outcome(activity.category, "invalid_input")
            raise
        except FactorNotFound:
            self._record_outcome(activity.category, "factor_not_found")
            raise

        duration = time.perf_counter() - start
        self._record_outcome(activity.category, "success", result, duration)
        logger.info(
            "Calculation completed: %s %s %s -> %s kg CO2e via %s (%.2fms)",
            activity.activity_value,
            activity.activity_unit,
            activity.category,
            result.co2e,
            result.factor_used.factor_id,
            duration * 1000,
        )
        return result

    def _calculate(
        self,
        activity: ActivityInput,
        organization_id: Optional[str],
    ) -> CalculationResult:
        calculation_steps: List[Dict[str, Any]] = []

        # Step 1: Validate inputs (before any catalog access)
        value = activity.activity_value
        if not value.is_finite() or value <= 0:
            raise InvalidInput(
                f"activity_value must be a finite positive number, got {value}",
                field="activity_value",
            )
        calculation_steps.append({
            'step': 1,
            'description': 'Validate input parameters',
            'activity_value': str(value),
            'activity_unit': activity.activity_unit,
        })

        # Step 2: Resolve emission factor against one snapshot
        stage_start = time.perf_counter()
        snapshot = self.catalog.snapshot()
        resolution = FactorResolver(snapshot).resolve_with_trace(
            category=activity.category,
            subcategory=activity.subcategory,
            region=activity.region,
            year=activity.year,
            organization_id=organization_id,
            explicit_factor_id=activity.factor_id,
        )
        factor = resolution.factor
        self._observe_stage("resolve", stage_start)
        calculation_steps.append({
            'step': 2,
            'description': 'Resolve emission factor',
            'factor_id': factor.factor_id,
            'fallback_level': resolution.fallback_level.value,
            'factor_year': factor.year,
            'requested_year': activity.year,
        })

        # Step 3: Unit conversion
        stage_start = time.perf_counter()
        try:
            converted = self.unit_converter.convert(
                value, activity.activity_unit, factor.unit
            )
        except UnitException as e:
            raise InvalidInput(
                f"Activity unit '{activity.activity_unit}' cannot be used with "
                f"emission factor '{factor.factor_id}' (expects '{factor.unit}'): "
                f"{e.message}",
                field="activity_unit",
                cause=e,
            ) from e
        except DecimalException as e:
            raise _out_of_range(value, e) from e
        self._observe_stage("convert", stage_start)
        calculation_steps.append({
            'step': 3,
            'description': 'Convert units',
            'original_value': str(value),
            'original_unit': activity.activity_unit,
            'converted_value': str(converted),
            'converted_unit': factor.unit,
        })

        # Step 4: Per-gas components and CO2e
        gwp_ch4 = self.config.gwp_ch4
        gwp_n2o = self.config.gwp_n2o
        intensity = factor.intensity
        try:
            co2_component = converted * factor.co2_per_unit
            ch4_component = converted * factor.ch4_per_unit
            n2o_component = converted * factor.n2o_per_unit

            if isinstance(intensity, BlendedIntensity):
                co2e_exact = co2_component
                formula = 'co2e = activity × co2e_per_unit'
            elif isinstance(intensity, ComponentIntensity):
                co2e_exact = (
                    co2_component
                    + ch4_component * gwp_ch4
                    + n2o_component * gwp_n2o
                )
                formula = 'co2e = co2 + ch4 × GWP_CH4 + n2o × GWP_N2O'
            else:
                raise TypeError(f"Unsupported intensity type: {type(intensity).__name__}")

            # Only the presented figure is rounded
            co2e = _round_co2e(co2e_exact, self.config.co2e_decimal_places)
        except DecimalException as e:
            raise _out_of_range(value, e) from e

        calculation_steps.append({
            'step': 4,
            'description': 'Calculate emissions',
            'formula': formula,
            'pre_weighted': factor.is_pre_weighted,
            'co2_component': str(co2_component),
            'ch4_component': str(ch4_component),
            'n2o_component': str(n2o_component),
            'gwp_ch4': str(gwp_ch4),
            'gwp_n2o': str(gwp_n2o),
            'co2e_exact': str(co2e_exact),
            'co2e': str(co2e),
        })

        result = CalculationResult(
            co2e=co2e,
            co2e_exact=co2e_exact,
            co2_component=co2_component,
            ch4_component=ch4_component,
            n2o_component=n2o_component,
            factor_used=resolution.to_provenance(),
            converted_activity_value=converted,
            converted_unit=factor.unit,
            gwp_set=self.config.gwp_label,
            gwp_ch4=gwp_ch4,
            gwp_n2o=gwp_n2o,
            methodology=build_methodology(activity, converted, resolution, co2e_exact),
            calculation_steps=calculation_steps,
        )
        return result.model_copy(
            update={'provenance_hash': result.calculate_provenance_hash()}
        )

    def _record_outcome(
        self,
        category: str,
        status: str,
        result: Optional[CalculationResult] = None,
        duration: Optional[float] = None,
    ) -> None:
        if not self.config.enable_metrics:
            return
        MetricsCollector.record_calculation(category, status)
        if result is not None:
            MetricsCollector.record_resolution(_fallback_label(result))
            MetricsCollector.record_emissions(category, float(result.co2e))
        if duration is not None:
            MetricsCollector.observe_duration("calculate", duration)

    def _observe_stage(self, operation: str, started: float) -> None:
        if self.config.enable_metrics:
            MetricsCollector.observe_duration(operation, time.perf_counter() - started)


def _round_co2e(co2e_exact: Decimal, places: int) -> Decimal:
    """Round half-up to ``places`` decimals, widening precision to fit the integer part."""
    quantum = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        needed = max(co2e_exact.adjusted(), 0) + 1 + places
        if needed > ctx.prec:
            ctx.prec = min(needed, _MAX_PRESENTED_DIGITS)
        return co2e_exact.quantize(quantum, rounding=ROUND_HALF_UP)


def _out_of_range(value: Decimal, cause: DecimalException) -> InvalidInput:
    return InvalidInput(
        f"activity_value {value} is outside the range the engine can compute",
        field="activity_value",
        cause=cause,
    )


def _fallback_label(result: CalculationResult) -> str:
    used = result.factor_used
    if used.year_fallback:
        return f"{used.fallback_level.value}+year"
    return used.fallback_level.value


def _format_factor_value(factor: EmissionFactor) -> str:
    if factor.is_pre_weighted:
        return f"{factor.co2_per_unit} kgCO2e/{factor.unit}"
    parts = [f"{factor.co2_per_unit} kgCO2"]
    if factor.ch4_per_unit:
        parts.append(f"{factor.ch4_per_unit} kgCH4")
    if factor.n2o_per_unit:
        parts.append(f"{factor.n2o_per_unit} kgN2O")
    return " + ".join(parts) + f" per {factor.unit}"


def build_methodology(
    activity: ActivityInput,
    converted: Decimal,
    resolution: FactorResolution,
    co2e_exact: Decimal,
) -> str:
    """Human-readable breakdown of a calculation, one line per stage."""
    factor = resolution.factor
    subcategory = f" ({activity.subcategory})" if activity.subcategory else ""
    lines = [
        f"Activity: {activity.activity_value} {activity.activity_unit} "
        f"of {activity.category}{subcategory}"
    ]

    if UnitConverter.normalize(activity.activity_unit) != UnitConverter.normalize(factor.unit):
        lines.append(
            f"Unit conversion: {activity.activity_value} {activity.activity_unit} "
            f"-> {converted:.4f} {factor.unit}"
        )

    fallback = resolution.fallback_level.value
    if resolution.year_fallback:
        fallback += f", year {factor.year} for requested {resolution.requested_year}"
    lines.append(
        f"Emission factor: {_format_factor_value(factor)} "
        f"(Source: {factor.source} {factor.year}, Region: {factor.region}, "
        f"Match: {fallback})"
    )
    lines.append(
        f"Calculation: {converted:.4f} {factor.unit} × factor = {co2e_exact:.4f} kgCO2e"
    )
    lines.append(f"Total: {co2e_exact / _KG_PER_TONNE:.4f} tCO2e")
    return "\n".join(lines)


__all__ = ["EmissionCalculator", "build_methodology"]
