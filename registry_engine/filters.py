"""
Registry Engine — Territory filters.

The table and statistics views narrow the loaded territory set by region,
district, municipality, derived risk tier and free-text search, or compare a
handful of districts side by side.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from config.settings import COMPARE_DISTRICTS_MIN, COMPARE_DISTRICTS_MAX
from registry_engine.classifier import Classifier, UnmatchedLabelLog
from registry_engine.contracts import ProbabilityBand, RiskTier, TerritoryRecord
from registry_engine.errors import FilterError


@dataclass
class TerritoryFilter:
    region: Optional[str] = None
    district: Optional[str] = None
    municipality: Optional[str] = None
    risk: Optional[str] = None
    search: Optional[str] = None
    districts: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.risk and RiskTier.parse(self.risk) is None:
            raise FilterError(f"Unknown risk level '{self.risk}'")
        if self.districts and not (COMPARE_DISTRICTS_MIN <= len(self.districts) <= COMPARE_DISTRICTS_MAX):
            raise FilterError(
                f"District comparison needs {COMPARE_DISTRICTS_MIN} to "
                f"{COMPARE_DISTRICTS_MAX} districts, got {len(self.districts)}"
            )

    @property
    def is_empty(self) -> bool:
        return not any([self.region, self.district, self.municipality, self.risk, self.search, self.districts])

    def describe(self) -> dict:
        """Active filters only, for export headers."""
        active = {
            "region": self.region,
            "district": self.district,
            "municipality": self.municipality,
            "risk": self.risk,
            "search": self.search,
            "districts": ", ".join(self.districts) if self.districts else None,
        }
        return {k: v for k, v in active.items() if v}


def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle in value.casefold()


def apply_filters(
    records: Sequence[TerritoryRecord],
    bands: Sequence[ProbabilityBand],
    flt: Optional[TerritoryFilter] = None,
    diagnostics: Optional[UnmatchedLabelLog] = None
) -> List[TerritoryRecord]:
    """
    Return the records matching every active filter, sorted by municipality name.
    The input sequence is left untouched.
    """
    flt = flt or TerritoryFilter()
    filtered = list(records)

    if flt.region:
        filtered = [r for r in filtered if r.region == flt.region]

    if flt.district:
        filtered = [r for r in filtered if r.district == flt.district]

    if flt.districts:
        wanted = set(flt.districts)
        filtered = [r for r in filtered if r.district in wanted]

    if flt.municipality:
        filtered = [r for r in filtered if r.municipality_name == flt.municipality]

    if flt.risk:
        tier = RiskTier.parse(flt.risk)
        classify = Classifier(bands, diagnostics)
        filtered = [r for r in filtered if classify(r.probability) is tier]

    if flt.search:
        needle = flt.search.casefold()
        filtered = [
            r for r in filtered
            if _contains(r.municipality_name, needle)
            or _contains(r.event_name, needle)
            or _contains(r.factor_name, needle)
            or _contains(r.risk_source, needle)
        ]

    filtered.sort(key=lambda r: (r.municipality_name or "").casefold())
    return filtered


def districts(records: Sequence[TerritoryRecord]) -> List[str]:
    """Distinct non-empty districts of the loaded records, sorted."""
    return sorted({r.district for r in records if r.district}, key=str.casefold)
