"""GreenLedger Exception Hierarchy.

Typed failures raised by the emissions calculation engine. Every failure is
terminal for the call that raised it: the engine never returns a partial or
approximate number, and it never logs-and-swallows an error. Callers
translate these exceptions into their own semantics (for example "not
found" versus "bad request") and use ``remediation`` to guide the user.

Exception Hierarchy:
    GreenLedgerException (base)
    ├── CalculationException
    │   ├── InvalidInput
    │   └── FactorNotFound
    ├── UnitException
    │   ├── UnknownUnit
    │   └── UnitMismatch
    └── CatalogException
        └── CatalogIntegrityError

All exceptions include rich context:
- error_code: Unique error identifier
- context: Dictionary with error-specific details
- remediation: Short hint telling the caller what to try next
- timestamp: When the error occurred

Example:
    >>> from greenledger.exceptions import FactorNotFound
    >>> raise FactorNotFound(
    ...     category="unknown_fuel",
    ...     region="ZZ",
    ...     year=2024,
    ... )
"""

import json
import re
from datetime import datetime
from typing import Any, Dict, Optional


# ==============================================================================
# Base Exception
# ==============================================================================

class GreenLedgerException(Exception):
    """Base exception for all GreenLedger errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "GL_CALC_INVALID_INPUT")
        context: Dictionary with error-specific details
        remediation: Suggested next step for the caller (optional)
        timestamp: When the error occurred
    """

    ERROR_PREFIX = "GL"
    DEFAULT_REMEDIATION: Optional[str] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        remediation: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.context = context or {}
        self.remediation = remediation or self.DEFAULT_REMEDIATION
        self.timestamp = datetime.now()

    def _generate_error_code(self) -> str:
        """Generate error code from the class name.

        Returns:
            Error code like "GL_CALC_FACTOR_NOT_FOUND"
        """
        error_type = re.sub(r'(?<!^)(?=[A-Z])', '_', self.__class__.__name__).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary with all error details
        """
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "remediation": self.remediation,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        return f"[{self.error_code}] - {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}')"
        )


# ==============================================================================
# Calculation Exceptions
# ==============================================================================

class CalculationException(GreenLedgerException):
    """Base exception for failures of a single emissions calculation."""
    ERROR_PREFIX = "GL_CALC"


class InvalidInput(CalculationException):
    """Activity input was rejected.

    Raised for non-positive activity values and for unit pairings the
    converter cannot handle. When raised on behalf of a converter error, the
    original exception is attached as ``__cause__`` and summarised in
    ``context``.

    Example:
        >>> raise InvalidInput(
        ...     message="activity_value must be positive, got -5",
        ...     field="activity_value",
        ... )
    """

    DEFAULT_REMEDIATION = "Check the activity value and unit, then retry."

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        cause: Optional[Exception] = None,
        remediation: Optional[str] = None,
    ):
        """Initialize invalid input error.

        Args:
            message: Error message
            context: Error context
            field: Name of the offending input field
            cause: Underlying exception (e.g. a unit error)
            remediation: Override for the default remediation hint
        """
        context = context or {}
        if field:
            context["field"] = field
        if cause is not None:
            context["cause"] = str(cause)
            context["cause_type"] = type(cause).__name__
            if remediation is None and isinstance(cause, GreenLedgerException):
                remediation = cause.remediation
        super().__init__(message, context=context, remediation=remediation)


class FactorNotFound(CalculationException):
    """No emission factor matched at any level of the precedence chain.

    Carries the attempted lookup key for diagnostics.

    Example:
        >>> raise FactorNotFound(category="diesel", region="ZZ", year=2024)
    """

    DEFAULT_REMEDIATION = (
        "Add a custom emission factor for your organization, or try a "
        "different region or year."
    )

    def __init__(
        self,
        message: Optional[str] = None,
        category: Optional[str] = None,
        region: Optional[str] = None,
        year: Optional[int] = None,
        subcategory: Optional[str] = None,
        factor_id: Optional[str] = None,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize factor-not-found error.

        Args:
            message: Error message (built from the key when omitted)
            category: Requested category
            region: Requested region
            year: Requested year
            subcategory: Requested subcategory
            factor_id: Explicit factor id, when one was requested
            reason: Short machine-readable reason
            context: Error context
        """
        self.category = category
        self.region = region
        self.year = year
        self.subcategory = subcategory
        self.factor_id = factor_id
        self.reason = reason

        context = context or {}
        for key, value in (
            ("category", category),
            ("subcategory", subcategory),
            ("region", region),
            ("year", year),
            ("factor_id", factor_id),
            ("reason", reason),
        ):
            if value is not None:
                context[key] = value

        if message is None:
            if factor_id is not None:
                message = f"Emission factor '{factor_id}' {reason or 'not found'}"
            else:
                message = (
                    f"No emission factor found for category='{category}', "
                    f"subcategory='{subcategory or 'none'}', region='{region}', "
                    f"year={year}"
                )
        super().__init__(message, context=context)


# ==============================================================================
# Unit Exceptions
# ==============================================================================

class UnitException(GreenLedgerException):
    """Base exception for unit conversion failures."""
    ERROR_PREFIX = "GL_UNIT"


class UnknownUnit(UnitException):
    """Unit string is not in the alias table.

    Example:
        >>> raise UnknownUnit("furlongs")
    """

    DEFAULT_REMEDIATION = "Use one of the supported unit names (see `greenledger units`)."

    def __init__(self, unit: str, context: Optional[Dict[str, Any]] = None):
        self.unit = unit
        context = context or {}
        context["unit"] = unit
        super().__init__(f"Unknown unit: '{unit}'", context=context)


class UnitMismatch(UnitException):
    """Units belong to different physical dimensions.

    Example:
        >>> raise UnitMismatch("liter", "kg", "volume", "mass")
    """

    DEFAULT_REMEDIATION = (
        "Provide the activity in a unit of the same dimension as the "
        "emission factor."
    )

    def __init__(
        self,
        from_unit: str,
        to_unit: str,
        from_dimension: str,
        to_dimension: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.from_unit = from_unit
        self.to_unit = to_unit
        self.from_dimension = from_dimension
        self.to_dimension = to_dimension
        context = context or {}
        context.update({
            "from_unit": from_unit,
            "to_unit": to_unit,
            "from_dimension": from_dimension,
            "to_dimension": to_dimension,
        })
        super().__init__(
            f"Cannot convert between different dimensions: "
            f"{from_unit} ({from_dimension}) -> {to_unit} ({to_dimension})",
            context=context,
        )


# ==============================================================================
# Catalog Exceptions
# ==============================================================================

class CatalogException(GreenLedgerException):
    """Base exception for factor catalog problems."""
    ERROR_PREFIX = "GL_CATALOG"


class CatalogIntegrityError(CatalogException):
    """Catalog data violates a structural invariant.

    Raised while building a snapshot, e.g. for duplicate factor ids, two
    active factors at the same (category, subcategory, region, year,
    organization) key, or a malformed catalog file.

    Example:
        >>> raise CatalogIntegrityError(
        ...     message="Duplicate factor id",
        ...     context={"factor_id": "ef-diesel-de-2024"},
        ... )
    """

    DEFAULT_REMEDIATION = "Fix the catalog data and reload the snapshot."


# ==============================================================================
# Exception Utilities
# ==============================================================================

def format_exception_chain(exc: BaseException) -> str:
    """Format exception chain for logging/display.

    Args:
        exc: Exception to format

    Returns:
        Formatted string with full exception chain
    """
    lines = []
    current = exc

    while current is not None:
        if isinstance(current, GreenLedgerException):
            lines.append(str(current))
            lines.append(f"  Context: {current.context}")
        else:
            lines.append(f"{type(current).__name__}: {current}")
        current = getattr(current, "__cause__", None)

    return "\n".join(lines)


__all__ = [
    "GreenLedgerException",
    "CalculationException",
    "InvalidInput",
    "FactorNotFound",
    "UnitException",
    "UnknownUnit",
    "UnitMismatch",
    "CatalogException",
    "CatalogIntegrityError",
    "format_exception_chain",
]
