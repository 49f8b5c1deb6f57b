# -*- coding: utf-8 -*-
"""
Unit Conversion Engine

All conversions are deterministic Decimal operations over a fixed alias
table. Unknown units fail loudly; nothing is guessed.

Supports:
- Mass: kg, g, tonnes, short tons, lbs (canonical: kg)
- Volume: liters, ml, m3, US/imperial gallons, cubic feet (canonical: liter)
- Energy: kWh, Wh, MWh, GWh, MJ, GJ, therms, BTU, MMBtu (canonical: kWh)
- Distance: km, m, miles, nautical miles, feet (canonical: km)
- Count: unit, item, piece (canonical: unit)
"""

import logging
import re
from decimal import Decimal
from typing import Dict, List, Optional, Union

from greenledger.exceptions import InvalidInput, UnitMismatch, UnknownUnit

logger = logging.getLogger(__name__)

Number = Union[Decimal, float, int, str]


class UnitConverter:
    """
    Deterministic unit converter with validation.

    GUARANTEES:
    - convert(v, a, b) = v * factor(a -> canonical) / factor(b -> canonical)
    - Same input -> same output (Decimal arithmetic, no float drift)
    - Unknown units -> UnknownUnit, cross-dimension -> UnitMismatch
    - Holds only static tables, safe to share between threads
    """

    # Mass conversions (to kg as canonical unit)
    MASS_TO_KG: Dict[str, Decimal] = {
        'kg': Decimal('1'),
        'kgs': Decimal('1'),
        'kilogram': Decimal('1'),
        'kilograms': Decimal('1'),
        'g': Decimal('0.001'),
        'gram': Decimal('0.001'),
        'grams': Decimal('0.001'),
        't': Decimal('1000'),
        'tonne': Decimal('1000'),
        'tonnes': Decimal('1000'),
        'metric_ton': Decimal('1000'),
        'metric_tons': Decimal('1000'),
        'ton': Decimal('907.18474'),  # US short ton
        'tons': Decimal('907.18474'),
        'short_ton': Decimal('907.18474'),
        'lb': Decimal('0.45359237'),
        'lbs': Decimal('0.45359237'),
        'pound': Decimal('0.45359237'),
        'pounds': Decimal('0.45359237'),
    }

    # Volume conversions (to liters as canonical unit)
    VOLUME_TO_LITERS: Dict[str, Decimal] = {
        'l': Decimal('1'),
        'liter': Decimal('1'),
        'liters': Decimal('1'),
        'litre': Decimal('1'),
        'litres': Decimal('1'),
        'ml': Decimal('0.001'),
        'milliliter': Decimal('0.001'),
        'milliliters': Decimal('0.001'),
        'm3': Decimal('1000'),
        'cubic_meter': Decimal('1000'),
        'cubic_meters': Decimal('1000'),
        'gal': Decimal('3.785411784'),  # US gallon
        'gallon': Decimal('3.785411784'),
        'gallons': Decimal('3.785411784'),
        'us_gallon': Decimal('3.785411784'),
        'imperial_gallon': Decimal('4.54609'),
        'ft3': Decimal('28.316846592'),
        'cubic_foot': Decimal('28.316846592'),
        'cubic_feet': Decimal('28.316846592'),
        'scf': Decimal('28.316846592'),  # Standard cubic foot
        'ccf': Decimal('2831.6846592'),  # 100 cubic feet
        'mcf': Decimal('28316.846592'),  # 1000 cubic feet
    }

    # Energy conversions (to kWh as canonical unit)
    ENERGY_TO_KWH: Dict[str, Decimal] = {
        'kwh': Decimal('1'),
        'wh': Decimal('0.001'),
        'mwh': Decimal('1000'),
        'gwh': Decimal('1000000'),
        'mj': Decimal('1') / Decimal('3.6'),
        'gj': Decimal('1000') / Decimal('3.6'),
        'therm': Decimal('29.3071070172'),
        'therms': Decimal('29.3071070172'),
        'btu': Decimal('0.000293071070172'),
        'mmbtu': Decimal('293.071070172'),
    }

    # Distance conversions (to km as canonical unit)
    DISTANCE_TO_KM: Dict[str, Decimal] = {
        'km': Decimal('1'),
        'kilometer': Decimal('1'),
        'kilometers': Decimal('1'),
        'kilometre': Decimal('1'),
        'kilometres': Decimal('1'),
        'm': Decimal('0.001'),
        'meter': Decimal('0.001'),
        'meters': Decimal('0.001'),
        'mi': Decimal('1.609344'),
        'mile': Decimal('1.609344'),
        'miles': Decimal('1.609344'),
        'nmi': Decimal('1.852'),
        'nautical_mile': Decimal('1.852'),
        'nautical_miles': Decimal('1.852'),
        'ft': Decimal('0.0003048'),
        'foot': Decimal('0.0003048'),
        'feet': Decimal('0.0003048'),
    }

    # Count conversions (to unit as canonical unit)
    COUNT_TO_UNITS: Dict[str, Decimal] = {
        'unit': Decimal('1'),
        'units': Decimal('1'),
        'count': Decimal('1'),
        'item': Decimal('1'),
        'items': Decimal('1'),
        'piece': Decimal('1'),
        'pieces': Decimal('1'),
        'pcs': Decimal('1'),
        'each': Decimal('1'),
        'dozen': Decimal('12'),
    }

    CANONICAL_UNITS: Dict[str, str] = {
        'mass': 'kg',
        'volume': 'liter',
        'energy': 'kWh',
        'distance': 'km',
        'count': 'unit',
    }

    def __init__(self):
        """Initialize unit converter"""
        self.conversion_tables = {
            'mass': self.MASS_TO_KG,
            'volume': self.VOLUME_TO_LITERS,
            'energy': self.ENERGY_TO_KWH,
            'distance': self.DISTANCE_TO_KM,
            'count': self.COUNT_TO_UNITS,
        }
        self._dimension_index: Dict[str, str] = {}
        for dimension, table in self.conversion_tables.items():
            for alias in table:
                self._dimension_index[alias] = dimension

    @staticmethod
    def normalize(unit: str) -> str:
        """
        Normalize a unit string for alias lookup.

        Lowercases, trims, and folds runs of spaces/hyphens into a single
        underscore ("Cubic Meters" -> "cubic_meters").
        """
        if not isinstance(unit, str):
            raise UnknownUnit(repr(unit))
        return re.sub(r'[\s\-]+', '_', unit.strip().lower())

    def convert(
        self,
        value: Number,
        from_unit: str,
        to_unit: str,
    ) -> Decimal:
        """
        Convert value from one unit to another.

        Args:
            value: Positive quantity to convert
            from_unit: Source unit (e.g., 'gallon', 'MWh')
            to_unit: Target unit (e.g., 'liter', 'kWh')

        Returns:
            Converted value as Decimal

        Raises:
            InvalidInput: If value is not a finite positive number
            UnknownUnit: If either unit is not in the alias table
            UnitMismatch: If the units belong to different dimensions
        """
        value = self._to_positive_decimal(value)

        from_key = self.normalize(from_unit)
        to_key = self.normalize(to_unit)

        from_dimension = self._dimension_index.get(from_key)
        if from_dimension is None:
            raise UnknownUnit(from_unit)

        to_dimension = self._dimension_index.get(to_key)
        if to_dimension is None:
            raise UnknownUnit(to_unit)

        if from_dimension != to_dimension:
            raise UnitMismatch(from_unit, to_unit, from_dimension, to_dimension)

        if from_key == to_key:
            return value

        table = self.conversion_tables[from_dimension]
        converted = value * table[from_key] / table[to_key]

        logger.debug(
            "Converted %s %s -> %s %s (%s)",
            value, from_unit, converted, to_unit, from_dimension,
        )
        return converted

    def conversion_factor(self, from_unit: str, to_unit: str) -> Decimal:
        """Return the multiplier that converts one unit of from_unit to to_unit."""
        return self.convert(Decimal('1'), from_unit, to_unit)

    def dimension_of(self, unit: str) -> str:
        """
        Get dimension for a unit.

        Raises:
            UnknownUnit: If unit unknown
        """
        dimension = self._dimension_index.get(self.normalize(unit))
        if dimension is None:
            raise UnknownUnit(unit)
        return dimension

    def canonical_unit(self, dimension: str) -> str:
        """Return the canonical unit name for a dimension."""
        if dimension not in self.CANONICAL_UNITS:
            raise ValueError(f"Unknown dimension: {dimension}")
        return self.CANONICAL_UNITS[dimension]

    def is_known(self, unit: str) -> bool:
        """Check whether a unit string is in the alias table."""
        try:
            return self.normalize(unit) in self._dimension_index
        except UnknownUnit:
            return False

    def is_compatible(self, unit1: str, unit2: str) -> bool:
        """
        Check if two units are compatible (same dimension).

        Returns:
            True if both are known and share a dimension, False otherwise
        """
        if not (self.is_known(unit1) and self.is_known(unit2)):
            return False
        return self.dimension_of(unit1) == self.dimension_of(unit2)

    def list_supported_units(self, dimension: Optional[str] = None) -> Dict[str, List[str]]:
        """
        List all supported unit aliases.

        Args:
            dimension: Optional dimension filter ('mass', 'energy', ...)

        Returns:
            Dictionary mapping dimensions to alias lists
        """
        if dimension:
            if dimension not in self.conversion_tables:
                raise ValueError(f"Unknown dimension: {dimension}")
            return {dimension: list(self.conversion_tables[dimension].keys())}

        return {
            dim: list(table.keys())
            for dim, table in self.conversion_tables.items()
        }

    @staticmethod
    def _to_positive_decimal(value: Number) -> Decimal:
        if isinstance(value, bool):
            raise InvalidInput(f"Quantity must be numeric, got {value!r}", field="value")
        if not isinstance(value, Decimal):
            try:
                value = Decimal(str(value))
            except ArithmeticError as e:
                raise InvalidInput(
                    f"Quantity must be numeric, got {value!r}", field="value", cause=e
                ) from e
        if not value.is_finite() or value <= 0:
            raise InvalidInput(
                f"Quantity must be a finite positive number, got {value}",
                field="value",
            )
        return value
