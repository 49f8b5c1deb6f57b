# -*- coding: utf-8 -*-
"""
Emission Factor Resolution

Selects the single best-matching factor for an activity.

Precedence (first match wins):
    1. Explicit factor id (global, or owned by the requesting organization)
    2. Organization-owned factor at the exact key
    3. Global factor at the exact key
    4. Global factor in region GLOBAL
    5. Global factor without subcategory (only if one was requested)
    6. Global factor in region GLOBAL without subcategory

Levels 2-6 are first tried at the requested year. If none matches, each
level is retried at its most recent earlier vintage; the newest vintage
wins and ties go to the more specific level. Later vintages are never
used.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from greenledger.calculation.catalog import CatalogProvider, FactorCatalog
from greenledger.calculation.models import (
    GLOBAL_REGION,
    EmissionFactor,
    FactorProvenance,
    FallbackLevel,
    normalize_category,
    normalize_region,
)
from greenledger.exceptions import FactorNotFound

logger = logging.getLogger(__name__)

# (level, subcategory, region, organization_id)
_Candidate = Tuple[FallbackLevel, Optional[str], str, Optional[str]]


@dataclass(frozen=True)
class FactorResolution:
    """
    Tracks how an emission factor was resolved.
    Critical for audit trails and data quality assessment.
    """
    factor: EmissionFactor
    fallback_level: FallbackLevel
    requested_year: int

    @property
    def year_fallback(self) -> bool:
        return self.factor.year != self.requested_year

    def to_provenance(self) -> FactorProvenance:
        return FactorProvenance.from_factor(
            self.factor, self.fallback_level, self.requested_year
        )


class FactorResolver:
    """
    Resolves emission factors against a catalog snapshot.

    The resolver holds no mutable state: every call takes one snapshot
    from its provider and uses it for the whole lookup.
    """

    def __init__(self, catalog: CatalogProvider):
        self.catalog = catalog

    def resolve(
        self,
        category: str,
        subcategory: Optional[str],
        region: str,
        year: int,
        organization_id: Optional[str] = None,
        explicit_factor_id: Optional[str] = None,
    ) -> EmissionFactor:
        """
        Resolve the best-matching emission factor.

        Raises:
            FactorNotFound: If no level of the precedence chain matches, or
                the explicit factor id is unknown or not accessible
        """
        return self.resolve_with_trace(
            category, subcategory, region, year, organization_id, explicit_factor_id
        ).factor

    def resolve_with_trace(
        self,
        category: str,
        subcategory: Optional[str],
        region: str,
        year: int,
        organization_id: Optional[str] = None,
        explicit_factor_id: Optional[str] = None,
    ) -> FactorResolution:
        """Like ``resolve()`` but also reports which level matched."""
        snapshot = self.catalog.snapshot()
        category = normalize_category(category)
        subcategory = normalize_category(subcategory)
        region = normalize_region(region)

        if explicit_factor_id is not None:
            return self._resolve_explicit(snapshot, explicit_factor_id, organization_id, year)

        candidates = self._candidates(subcategory, region, organization_id)

        for level, sub, reg, org in candidates:
            factor = snapshot.find(category, sub, reg, year, org)
            if factor is not None:
                logger.debug(
                    "Resolved %s/%s/%s/%d -> %s (%s)",
                    category, subcategory, region, year, factor.factor_id, level.value,
                )
                return FactorResolution(factor, level, year)

        best: Optional[Tuple[int, _Candidate]] = None
        for candidate in candidates:
            _, sub, reg, org = candidate
            earlier = snapshot.latest_year(category, sub, reg, year, org)
            # Strictly newer wins; equal years keep the more specific level
            if earlier is not None and (best is None or earlier > best[0]):
                best = (earlier, candidate)

        if best is None:
            raise FactorNotFound(
                category=category,
                subcategory=subcategory,
                region=region,
                year=year,
            )

        best_year, (level, sub, reg, org) = best
        factor = snapshot.find(category, sub, reg, best_year, org)
        logger.debug(
            "Resolved %s/%s/%s/%d -> %s (%s, year %d)",
            category, subcategory, region, year, factor.factor_id, level.value, best_year,
        )
        return FactorResolution(factor, level, year)

    @staticmethod
    def _candidates(
        subcategory: Optional[str],
        region: str,
        organization_id: Optional[str],
    ) -> List[_Candidate]:
        """Lookup keys for levels 2-6, most specific first, without duplicates."""
        candidates: List[_Candidate] = []
        if organization_id is not None:
            candidates.append((FallbackLevel.ORGANIZATION, subcategory, region, organization_id))
        candidates.append((FallbackLevel.EXACT, subcategory, region, None))
        if region != GLOBAL_REGION:
            candidates.append((FallbackLevel.REGION, subcategory, GLOBAL_REGION, None))
        if subcategory is not None:
            candidates.append((FallbackLevel.SUBCATEGORY, None, region, None))
            if region != GLOBAL_REGION:
                candidates.append((FallbackLevel.REGION_SUBCATEGORY, None, GLOBAL_REGION, None))
        return candidates

    @staticmethod
    def _resolve_explicit(
        snapshot: FactorCatalog,
        factor_id: str,
        organization_id: Optional[str],
        year: int,
    ) -> FactorResolution:
        factor = snapshot.get(factor_id)
        if factor is None:
            raise FactorNotFound(factor_id=factor_id, reason="unknown factor id")
        if not factor.is_active or not factor.is_accessible_to(organization_id):
            raise FactorNotFound(factor_id=factor_id, reason="not accessible")
        logger.debug("Resolved explicit factor %s", factor_id)
        return FactorResolution(factor, FallbackLevel.EXPLICIT, year)


__all__ = ["FactorResolver", "FactorResolution"]
