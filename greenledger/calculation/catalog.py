# -*- coding: utf-8 -*-
"""
Emission Factor Catalog

Immutable, indexed snapshots of emission factors plus a small handle that
swaps snapshots atomically.

- ``FactorCatalog`` is built once from a list of factors and never mutated.
  Building it enforces the catalog invariants (unique ids, at most one
  active factor per (category, subcategory, region, year, organization)).
- ``CatalogHandle`` holds the current snapshot. Readers call
  ``snapshot()`` once per calculation and keep using that object, so a
  concurrent ``swap()`` never changes the data a calculation sees.
- ``load_catalog()`` reads YAML or JSON catalog files with a top-level
  ``factors`` list.

Example:
    >>> catalog = load_default_catalog()
    >>> catalog.find("diesel", None, "GLOBAL", 2025).factor_id
    'ef-diesel-global-2025'
"""

import bisect
import json
import logging
import threading
from pathlib import Path
from types import MappingProxyType
from typing import (
    Any, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple, Union,
    runtime_checkable,
)

import yaml
from pydantic import ValidationError

from greenledger.calculation.models import (
    GLOBAL_REGION,
    EmissionFactor,
    normalize_category,
    normalize_region,
)
from greenledger.config import get_config
from greenledger.exceptions import CatalogException, CatalogIntegrityError
from greenledger.metrics import MetricsCollector

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent.parent / "data" / "emission_factors.yaml"

# (category, subcategory, region, organization_id)
SeriesKey = Tuple[str, Optional[str], str, Optional[str]]


def _series_key(factor: EmissionFactor) -> SeriesKey:
    return (factor.category, factor.subcategory, factor.region, factor.organization_id)


class FactorCatalog:
    """
    Immutable snapshot of emission factors.

    Lookups only consider active factors; ``get()`` returns inactive ones
    too so that callers can report why an explicit id was refused.
    """

    def __init__(self, factors: Iterable[EmissionFactor] = ()):
        by_id: Dict[str, EmissionFactor] = {}
        by_key: Dict[Tuple[SeriesKey, int], EmissionFactor] = {}
        years: Dict[SeriesKey, List[int]] = {}

        for factor in factors:
            if factor.factor_id in by_id:
                raise CatalogIntegrityError(
                    f"Duplicate emission factor id '{factor.factor_id}'",
                    context={"factor_id": factor.factor_id},
                )
            by_id[factor.factor_id] = factor

            if not factor.is_active:
                continue

            series = _series_key(factor)
            existing = by_key.get((series, factor.year))
            if existing is not None:
                raise CatalogIntegrityError(
                    "Two active emission factors share the key "
                    f"category='{factor.category}', subcategory='{factor.subcategory}', "
                    f"region='{factor.region}', year={factor.year}, "
                    f"organization='{factor.organization_id}': "
                    f"'{existing.factor_id}' and '{factor.factor_id}'",
                    context={
                        "factor_ids": [existing.factor_id, factor.factor_id],
                        "category": factor.category,
                        "subcategory": factor.subcategory,
                        "region": factor.region,
                        "year": factor.year,
                        "organization_id": factor.organization_id,
                    },
                )
            by_key[(series, factor.year)] = factor
            bisect.insort(years.setdefault(series, []), factor.year)

        self._factors: Tuple[EmissionFactor, ...] = tuple(by_id.values())
        self._by_id = MappingProxyType(by_id)
        self._by_key = MappingProxyType(by_key)
        self._years = MappingProxyType({k: tuple(v) for k, v in years.items()})

        logger.debug(
            "Built factor catalog: %d factors (%d active)",
            len(self._factors), len(by_key),
        )

    def snapshot(self) -> "FactorCatalog":
        """A catalog is its own snapshot."""
        return self

    @property
    def factors(self) -> Tuple[EmissionFactor, ...]:
        return self._factors

    def __len__(self) -> int:
        return len(self._factors)

    def __iter__(self) -> Iterator[EmissionFactor]:
        return iter(self._factors)

    def __contains__(self, factor_id: object) -> bool:
        return factor_id in self._by_id

    def get(self, factor_id: str) -> Optional[EmissionFactor]:
        """Look up a factor by id, active or not."""
        return self._by_id.get(factor_id)

    def find(
        self,
        category: str,
        subcategory: Optional[str],
        region: str,
        year: int,
        organization_id: Optional[str] = None,
    ) -> Optional[EmissionFactor]:
        """
        Exact lookup of the active factor at one key.

        ``subcategory=None`` matches only factors without a subcategory and
        ``organization_id=None`` matches only global factors.
        """
        key = (
            normalize_category(category),
            normalize_category(subcategory),
            normalize_region(region),
            organization_id,
        )
        return self._by_key.get((key, year))

    def latest_year(
        self,
        category: str,
        subcategory: Optional[str],
        region: str,
        year: int,
        organization_id: Optional[str] = None,
    ) -> Optional[int]:
        """Most recent active vintage at or before ``year`` for one key."""
        key = (
            normalize_category(category),
            normalize_category(subcategory),
            normalize_region(region),
            organization_id,
        )
        years = self._years.get(key)
        if not years:
            return None
        index = bisect.bisect_right(years, year)
        if index == 0:
            return None
        return years[index - 1]

    def list_factors(
        self,
        category: Optional[str] = None,
        region: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> List[EmissionFactor]:
        """
        List active factors visible to an organization.

        Args:
            category: Only this category
            region: This region plus ``GLOBAL`` factors
            organization_id: Include this organization's own factors
                (global factors are always included)

        Returns:
            Factors ordered by category, region, then newest year first
        """
        category = normalize_category(category)
        regions = None
        if region:
            regions = {normalize_region(region), GLOBAL_REGION}

        selected = [
            f for f in self._factors
            if f.is_active
            and f.is_accessible_to(organization_id)
            and (category is None or f.category == category)
            and (regions is None or f.region in regions)
        ]
        selected.sort(key=lambda f: f.factor_id)
        selected.sort(key=lambda f: f.year, reverse=True)
        selected.sort(key=lambda f: (f.category, f.region))
        return selected

    def categories(self) -> List[str]:
        """Sorted list of categories with at least one active factor."""
        return sorted({f.category for f in self._factors if f.is_active})


@runtime_checkable
class CatalogProvider(Protocol):
    """Anything that can hand out a consistent catalog snapshot."""

    def snapshot(self) -> FactorCatalog:
        ...


class CatalogHandle:
    """
    Holds the current catalog snapshot and replaces it atomically.

    Example:
        >>> handle = CatalogHandle(load_default_catalog())
        >>> previous = handle.swap(FactorCatalog([]))
    """

    def __init__(
        self,
        catalog: Optional[FactorCatalog] = None,
        source_path: Optional[Union[str, Path]] = None,
        record_metrics: Optional[bool] = None,
    ):
        self._lock = threading.Lock()
        self._source_path = Path(source_path) if source_path else None
        if record_metrics is None:
            record_metrics = get_config().enable_metrics
        self._record_metrics = record_metrics
        if catalog is None:
            catalog = load_catalog(self._source_path) if self._source_path else FactorCatalog()
        self._catalog = catalog
        self._publish_size(catalog)

    def snapshot(self) -> FactorCatalog:
        with self._lock:
            return self._catalog

    def swap(self, catalog: FactorCatalog) -> FactorCatalog:
        """Install a new snapshot and return the one it replaced."""
        if not isinstance(catalog, FactorCatalog):
            raise TypeError(f"expected FactorCatalog, got {type(catalog).__name__}")
        with self._lock:
            previous = self._catalog
            self._catalog = catalog
        self._publish_size(catalog)
        logger.info(
            "Catalog snapshot swapped: %d -> %d factors", len(previous), len(catalog)
        )
        return previous

    def refresh_from_file(self, path: Optional[Union[str, Path]] = None) -> FactorCatalog:
        """
        Reload the catalog file and swap it in.

        The file is fully parsed and validated before the swap, so a broken
        file leaves the current snapshot in place and raises.
        """
        if path is not None:
            self._source_path = Path(path)
        if self._source_path is None:
            raise CatalogException("No catalog file configured for refresh")
        catalog = load_catalog(self._source_path)
        self.swap(catalog)
        return catalog

    def _publish_size(self, catalog: FactorCatalog) -> None:
        if self._record_metrics:
            MetricsCollector.set_catalog_size(len(catalog))


# ---------------------------------------------------------------------------
# File loading
# ---------------------------------------------------------------------------


def _read_catalog_file(path: Path) -> Any:
    suffix = path.suffix.lower()
    try:
        with open(path, "r", encoding="utf-8") as f:
            if suffix == ".json":
                return json.load(f)
            if suffix in (".yaml", ".yml"):
                return yaml.safe_load(f)
    except FileNotFoundError as e:
        raise CatalogException(
            f"Emission factor catalog not found: {path}",
            context={"path": str(path)},
            remediation="Check GL_LEDGER_CATALOG_PATH or the --catalog option.",
        ) from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise CatalogIntegrityError(
            f"Failed to parse emission factor catalog {path}: {e}",
            context={"path": str(path)},
        ) from e
    raise CatalogException(
        f"Unsupported catalog format '{suffix}' (expected .yaml, .yml or .json)",
        context={"path": str(path)},
    )


def parse_catalog(data: Any, source: str = "<memory>") -> FactorCatalog:
    """
    Build a catalog from already-parsed data.

    Accepts a mapping with a ``factors`` list or a bare list of records.
    """
    if isinstance(data, dict):
        records = data.get("factors")
    else:
        records = data
    if not isinstance(records, list):
        raise CatalogIntegrityError(
            f"Catalog {source} must contain a 'factors' list",
            context={"source": source},
        )

    factors = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise CatalogIntegrityError(
                f"Catalog {source} entry #{index} is not a mapping",
                context={"source": source, "index": index},
            )
        try:
            factors.append(EmissionFactor.from_dict(record))
        except ValidationError as e:
            factor_id = record.get("factor_id", record.get("id"))
            raise CatalogIntegrityError(
                f"Invalid emission factor #{index} ({factor_id}) in {source}: "
                f"{e.error_count()} validation error(s)",
                context={
                    "source": source,
                    "index": index,
                    "factor_id": factor_id,
                    "errors": [err["msg"] for err in e.errors()],
                },
            ) from e
    return FactorCatalog(factors)


def load_catalog(path: Union[str, Path]) -> FactorCatalog:
    """Load a YAML or JSON catalog file into an immutable snapshot."""
    path = Path(path)
    catalog = parse_catalog(_read_catalog_file(path), source=str(path))
    logger.info("Loaded %d emission factors from %s", len(catalog), path)
    return catalog


def load_default_catalog() -> FactorCatalog:
    """Load the reference factors bundled with the package."""
    return load_catalog(DEFAULT_CATALOG_PATH)


__all__ = [
    "FactorCatalog",
    "CatalogProvider",
    "CatalogHandle",
    "load_catalog",
    "load_default_catalog",
    "parse_catalog",
    "DEFAULT_CATALOG_PATH",
]
