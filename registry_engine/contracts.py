"""
Registry Engine — Shared data contracts.

Plain value types passed between the codelist store, the repository, the
classifier and the aggregation engine. None of them carries a stored risk
tier for a territory: tiers are derived from the probability label on read.
"""

import enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Tuple

from config.settings import RISK_TIER_LABELS


class RiskTier(str, enum.Enum):
    """Classified severity of a territory."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value: Any) -> Optional["RiskTier"]:
        """Return the tier for `value`, or None when it is not a known tier."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @property
    def label(self) -> str:
        return RISK_TIER_LABELS[self.value]


# Histogram / rollup order, most severe first
TIER_ORDER: Tuple[RiskTier, ...] = (
    RiskTier.CRITICAL, RiskTier.HIGH, RiskTier.MEDIUM, RiskTier.LOW
)


def _get(row: Any, *names: str, default: Any = None) -> Any:
    """Read the first present attribute/key from an ORM row or a dict."""
    for name in names:
        if isinstance(row, dict):
            if name in row:
                return row[name]
        elif hasattr(row, name):
            return getattr(row, name)
    return default


@dataclass(frozen=True)
class ProbabilityBand:
    """One row of the probability codelist."""
    name: str
    risk_tier: Optional[RiskTier] = None
    order: int = 0
    id: Optional[int] = None

    @classmethod
    def from_row(cls, row: Any) -> "ProbabilityBand":
        """Build from an ORM row or a dict (snake_case or legacy camelCase)."""
        order = _get(row, "order", default=0)
        try:
            order = int(order)
        except (TypeError, ValueError):
            order = 0
        return cls(
            name=_get(row, "name", default="") or "",
            risk_tier=RiskTier.parse(_get(row, "risk_level", "riskLevel", "risk_tier")),
            order=order,
            id=_get(row, "id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order": self.order,
            "name": self.name,
            "risk_level": self.risk_tier.value if self.risk_tier else None,
        }


@dataclass(frozen=True)
class MunicipalityRef:
    code: str
    name: str
    district: str = ""
    district_code: Optional[str] = None
    region: str = ""
    region_code: Optional[str] = None
    population: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_row(cls, row: Any) -> "MunicipalityRef":
        return cls(
            code=str(_get(row, "code", default="")),
            name=_get(row, "name", default="") or "",
            district=_get(row, "district", default="") or "",
            district_code=_get(row, "district_code", "districtCode"),
            region=_get(row, "region", default="") or "",
            region_code=_get(row, "region_code", "regionCode"),
            population=_get(row, "population"),
            latitude=_get(row, "latitude"),
            longitude=_get(row, "longitude"),
        )


@dataclass(frozen=True)
class HazardEventRef:
    code: str
    name: str
    name_en: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_row(cls, row: Any) -> "HazardEventRef":
        return cls(
            code=str(_get(row, "code", default="")),
            name=_get(row, "name_sk", "nameSk", "name", default="") or "",
            name_en=_get(row, "name_en", "nameEn"),
            category=_get(row, "category"),
            description=_get(row, "description"),
        )


@dataclass(frozen=True)
class FactorRef:
    id: int
    name: str
    order: int = 0

    @classmethod
    def from_row(cls, row: Any) -> "FactorRef":
        return cls(
            id=_get(row, "id"),
            name=_get(row, "name", default="") or "",
            order=_get(row, "order", default=0) or 0,
        )


@dataclass
class TerritoryRecord:
    """
    Flattened territory with display names of the joined codelists resolved.
    This is the only record shape the aggregation engine reads.
    """
    id: Optional[int] = None
    municipality_code: str = ""
    municipality_name: str = ""
    district: str = ""
    district_code: Optional[str] = None
    region: str = ""
    region_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    event_code: str = ""
    event_name: str = ""
    factor_id: Optional[int] = None
    factor_name: str = ""
    risk_source: str = ""
    probability: str = ""
    endangered_population: Any = 0
    endangered_area: Any = 0.0
    predicted_disruption: str = ""
    created_at: Optional[datetime] = None
    source: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        return data


@dataclass(frozen=True)
class Codelists:
    """
    Immutable, versioned snapshot of the four reference tables.

    A new snapshot (with a higher version) is produced on every replace; holders
    of an older snapshot keep a consistent view until they re-fetch.
    """
    version: int = 0
    municipalities: Tuple[MunicipalityRef, ...] = ()
    events: Tuple[HazardEventRef, ...] = ()
    factors: Tuple[FactorRef, ...] = ()
    probabilities: Tuple[ProbabilityBand, ...] = ()
    _index: Dict[str, Dict[Any, Any]] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        index = {
            "municipalities": {m.code: m for m in self.municipalities},
            "events": {e.code: e for e in self.events},
            "factors": {f.id: f for f in self.factors},
            "probabilities": {p.id: p for p in self.probabilities if p.id is not None},
        }
        object.__setattr__(self, "_index", index)

    def municipality(self, code: str) -> Optional[MunicipalityRef]:
        return self._index["municipalities"].get(code)

    def event(self, code: str) -> Optional[HazardEventRef]:
        return self._index["events"].get(code)

    def factor(self, factor_id: int) -> Optional[FactorRef]:
        return self._index["factors"].get(factor_id)

    def probability_band(self, band_id: int) -> Optional[ProbabilityBand]:
        return self._index["probabilities"].get(band_id)

    def districts(self) -> Iterable[str]:
        return sorted({m.district for m in self.municipalities if m.district}, key=str.casefold)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "municipalities": [asdict(m) for m in self.municipalities],
            "events": [asdict(e) for e in self.events],
            "factors": [asdict(f) for f in self.factors],
            "probabilities": [p.to_dict() for p in self.probabilities],
        }
