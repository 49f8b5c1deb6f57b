# -*- coding: utf-8 -*-
"""
Prometheus Metrics - GreenLedger Emissions Engine

All metric names use the ``gl_ledger_`` prefix for consistent
identification in Prometheus queries and dashboards.

Metrics:
    1. gl_ledger_calculations_total              (Counter,   labels: category, status)
    2. gl_ledger_factor_resolutions_total        (Counter,   labels: fallback_level)
    3. gl_ledger_emissions_kg_co2e_total         (Counter,   labels: category)
    4. gl_ledger_calculation_duration_seconds    (Histogram, labels: operation)
    5. gl_ledger_catalog_factors                 (Gauge)

Label Values Reference:
    status:
        success, invalid_input, factor_not_found.
    fallback_level:
        explicit, organization, exact, region, subcategory,
        region_subcategory (each optionally suffixed with ``+year``).
    operation:
        calculate, resolve, convert.

Metrics are observational only: nothing recorded here feeds back into a
calculation result.

Example:
    >>> from greenledger.metrics import MetricsCollector
    >>> MetricsCollector.record_calculation("diesel", "success")
    >>> MetricsCollector.observe_duration("calculate", 0.0012)
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# 1. Calculations by category and outcome
ledger_calculations_total = Counter(
    "gl_ledger_calculations_total",
    "Total emissions calculations performed",
    labelnames=["category", "status"],
)

# 2. Factor resolutions by the precedence level that matched
ledger_factor_resolutions_total = Counter(
    "gl_ledger_factor_resolutions_total",
    "Total emission factor resolutions by fallback level",
    labelnames=["fallback_level"],
)

# 3. Cumulative presented emissions by category
ledger_emissions_kg_co2e_total = Counter(
    "gl_ledger_emissions_kg_co2e_total",
    "Cumulative calculated emissions in kg CO2e by category",
    labelnames=["category"],
)

# 4. Duration histogram by operation
ledger_calculation_duration_seconds = Histogram(
    "gl_ledger_calculation_duration_seconds",
    "Duration of engine operations in seconds",
    labelnames=["operation"],
    buckets=(
        0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0,
    ),
)

# 5. Size of the catalog snapshot most recently installed
ledger_catalog_factors = Gauge(
    "gl_ledger_catalog_factors",
    "Number of emission factors in the active catalog snapshot",
)


class MetricsCollector:
    """Facade for recording engine Prometheus metrics.

    Example:
        >>> MetricsCollector.record_resolution("region")
        >>> MetricsCollector.set_catalog_size(412)
    """

    @staticmethod
    def record_calculation(category: str, status: str) -> None:
        """Record a calculation outcome.

        Args:
            category: Activity category.
            status: success, invalid_input or factor_not_found.
        """
        ledger_calculations_total.labels(category=category, status=status).inc()

    @staticmethod
    def record_resolution(fallback_level: str) -> None:
        """Record which precedence level produced a factor."""
        ledger_factor_resolutions_total.labels(fallback_level=fallback_level).inc()

    @staticmethod
    def record_emissions(category: str, kg_co2e: float) -> None:
        """Add presented emissions to the per-category counter."""
        if kg_co2e < 0:
            logger.debug("Skipping negative emissions sample for %s", category)
            return
        ledger_emissions_kg_co2e_total.labels(category=category).inc(kg_co2e)

    @staticmethod
    def observe_duration(operation: str, seconds: float) -> None:
        """Observe the duration of an engine operation."""
        ledger_calculation_duration_seconds.labels(operation=operation).observe(seconds)

    @staticmethod
    def set_catalog_size(count: int) -> None:
        """Set the number of factors in the active snapshot."""
        ledger_catalog_factors.set(count)


__all__ = [
    "MetricsCollector",
    "ledger_calculations_total",
    "ledger_factor_resolutions_total",
    "ledger_emissions_kg_co2e_total",
    "ledger_calculation_duration_seconds",
    "ledger_catalog_factors",
]
