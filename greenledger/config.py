# -*- coding: utf-8 -*-
"""
Emissions Engine Configuration

Centralized configuration for the GreenLedger calculation engine covering:
- Logging level
- GWP reference set used to weight CH4 and N2O (IPCC SAR/AR4/AR5/AR6)
- Optional explicit CH4/N2O multipliers overriding the selected set
- Decimal places of the presented CO2e figure
- Optional catalog file to load instead of the bundled defaults
- Prometheus metrics export toggle

All settings can be overridden via environment variables with the
``GL_LEDGER_`` prefix (e.g. ``GL_LEDGER_GWP_SET``,
``GL_LEDGER_CO2E_DECIMAL_PLACES``).

Environment Variable Reference (GL_LEDGER_ prefix):
    GL_LEDGER_LOG_LEVEL            - Logging level
    GL_LEDGER_GWP_SET              - GWP reference set (default AR4_100)
    GL_LEDGER_GWP_CH4              - Explicit CH4 multiplier
    GL_LEDGER_GWP_N2O              - Explicit N2O multiplier
    GL_LEDGER_CO2E_DECIMAL_PLACES  - Decimal places of presented CO2e
    GL_LEDGER_CATALOG_PATH         - YAML/JSON factor catalog file
    GL_LEDGER_ENABLE_METRICS       - Enable Prometheus metrics

Example:
    >>> from greenledger.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.gwp_set, cfg.gwp_ch4, cfg.gwp_n2o)
    AR4_100 25 298

    >>> # Override for testing
    >>> from greenledger.config import EngineConfig, set_config, reset_config
    >>> set_config(EngineConfig(gwp_set="AR6_100"))
    >>> reset_config()  # teardown
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_ENV_PREFIX = "GL_LEDGER_"

_VALID_LOG_LEVELS = frozenset(
    {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
)

#: 100-year and 20-year GWP values for CH4 and N2O by IPCC assessment report.
GWP_SETS: Dict[str, Dict[str, Decimal]] = {
    "AR6_100": {"CH4": Decimal("27.9"), "N2O": Decimal("273")},
    "AR6_20": {"CH4": Decimal("82.5"), "N2O": Decimal("273")},
    "AR5_100": {"CH4": Decimal("28"), "N2O": Decimal("265")},
    "AR5_20": {"CH4": Decimal("84"), "N2O": Decimal("264")},
    "AR4_100": {"CH4": Decimal("25"), "N2O": Decimal("298")},
    "SAR_100": {"CH4": Decimal("21"), "N2O": Decimal("310")},
}

DEFAULT_GWP_SET = "AR4_100"


@dataclass
class EngineConfig:
    """Configuration for the GreenLedger calculation engine.

    Attributes:
        log_level: Logging verbosity level.
        gwp_set: IPCC GWP reference set used for component factors.
        gwp_ch4_override: Explicit CH4 multiplier; wins over ``gwp_set``.
        gwp_n2o_override: Explicit N2O multiplier; wins over ``gwp_set``.
        co2e_decimal_places: Decimal places of the presented ``co2e``.
        catalog_path: Optional YAML/JSON catalog file.
        enable_metrics: Enable Prometheus metrics recording.
    """

    log_level: str = "INFO"
    gwp_set: str = DEFAULT_GWP_SET
    gwp_ch4_override: Optional[Decimal] = None
    gwp_n2o_override: Optional[Decimal] = None
    co2e_decimal_places: int = 3
    catalog_path: Optional[str] = None
    enable_metrics: bool = True

    def __post_init__(self) -> None:
        """Validate configuration constraints after initialisation.

        Collects all validation errors before raising a single ValueError.
        """
        errors: list[str] = []

        normalised_log = str(self.log_level).upper()
        if normalised_log not in _VALID_LOG_LEVELS:
            errors.append(
                f"log_level must be one of {sorted(_VALID_LOG_LEVELS)}, "
                f"got '{self.log_level}'"
            )
        else:
            self.log_level = normalised_log

        normalised_gwp = str(self.gwp_set).upper()
        if normalised_gwp not in GWP_SETS:
            errors.append(
                f"gwp_set must be one of {sorted(GWP_SETS)}, "
                f"got '{self.gwp_set}'"
            )
        else:
            self.gwp_set = normalised_gwp

        for field_name in ("gwp_ch4_override", "gwp_n2o_override"):
            value = getattr(self, field_name)
            if value is None:
                continue
            try:
                value = Decimal(str(value))
            except InvalidOperation:
                errors.append(f"{field_name} must be numeric, got {value!r}")
                continue
            if not value.is_finite() or value < 0:
                errors.append(f"{field_name} must be >= 0, got {value}")
            setattr(self, field_name, value)

        if not (0 <= self.co2e_decimal_places <= 12):
            errors.append(
                f"co2e_decimal_places must be in [0, 12], "
                f"got {self.co2e_decimal_places}"
            )

        if errors:
            raise ValueError(
                "EngineConfig validation failed:\n"
                + "\n".join(f"  - {e}" for e in errors)
            )

        logger.debug(
            "EngineConfig validated: gwp_set=%s, gwp_ch4=%s, gwp_n2o=%s, "
            "co2e_decimal_places=%d, metrics=%s",
            self.gwp_set,
            self.gwp_ch4,
            self.gwp_n2o,
            self.co2e_decimal_places,
            self.enable_metrics,
        )

    @property
    def gwp_ch4(self) -> Decimal:
        """Effective CH4 multiplier."""
        if self.gwp_ch4_override is not None:
            return self.gwp_ch4_override
        return GWP_SETS[self.gwp_set]["CH4"]

    @property
    def gwp_n2o(self) -> Decimal:
        """Effective N2O multiplier."""
        if self.gwp_n2o_override is not None:
            return self.gwp_n2o_override
        return GWP_SETS[self.gwp_set]["N2O"]

    @property
    def gwp_label(self) -> str:
        """Label recorded in results; marks explicit overrides."""
        if self.gwp_ch4_override is None and self.gwp_n2o_override is None:
            return self.gwp_set
        return f"{self.gwp_set}+override"

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Build an EngineConfig from environment variables.

        Every field can be overridden via ``GL_LEDGER_<NAME>``. Malformed
        integers fall back to the class default and emit a WARNING log.

        Example:
            >>> import os
            >>> os.environ["GL_LEDGER_GWP_SET"] = "AR5_100"
            >>> EngineConfig.from_env().gwp_ch4
            Decimal('28')
        """
        prefix = _ENV_PREFIX

        def _env(name: str) -> Optional[str]:
            val = os.environ.get(f"{prefix}{name}")
            if val is None or not val.strip():
                return None
            return val.strip()

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%r, using default %d",
                    prefix, name, val, default,
                )
                return default

        return cls(
            log_level=_env("LOG_LEVEL") or cls.log_level,
            gwp_set=_env("GWP_SET") or cls.gwp_set,
            gwp_ch4_override=_env("GWP_CH4"),
            gwp_n2o_override=_env("GWP_N2O"),
            co2e_decimal_places=_int("CO2E_DECIMAL_PLACES", cls.co2e_decimal_places),
            catalog_path=_env("CATALOG_PATH"),
            enable_metrics=_bool("ENABLE_METRICS", cls.enable_metrics),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the configuration to a plain dictionary."""
        return {
            "log_level": self.log_level,
            "gwp_set": self.gwp_set,
            "gwp_ch4": str(self.gwp_ch4),
            "gwp_n2o": str(self.gwp_n2o),
            "co2e_decimal_places": self.co2e_decimal_places,
            "catalog_path": self.catalog_path,
            "enable_metrics": self.enable_metrics,
        }


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[EngineConfig] = None
_config_lock = threading.Lock()


def get_config() -> EngineConfig:
    """Return the process-wide EngineConfig, creating it from env if needed."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = EngineConfig.from_env()
    return _config_instance


def set_config(config: EngineConfig) -> None:
    """Replace the process-wide EngineConfig (tests, dependency injection)."""
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info(
        "EngineConfig replaced programmatically: gwp_set=%s, "
        "gwp_ch4=%s, gwp_n2o=%s, co2e_decimal_places=%d",
        config.gwp_set,
        config.gwp_ch4,
        config.gwp_n2o,
        config.co2e_decimal_places,
    )


def reset_config() -> None:
    """Drop the EngineConfig so the next get_config() re-reads the env."""
    global _config_instance
    with _config_lock:
        _config_instance = None
    logger.debug("EngineConfig singleton reset")


__all__ = [
    "EngineConfig",
    "GWP_SETS",
    "DEFAULT_GWP_SET",
    "get_config",
    "set_config",
    "reset_config",
]
