"""
Registry Engine — Aggregation.

Folds a collection of flattened territories into the numbers shown on the
dashboard and in exports:

    histogram   critical / high / medium / low counts
    rollups     counts by municipality, district, hazard, factor, probability
    scores      Σ weight(tier) per municipality / district
    totals      endangered population and area

Every function is a pure function of (records, bands). Tiers are always
re-derived through the classifier; nothing here trusts a stored tier.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from config.settings import RISK_TIER_WEIGHTS
from registry_engine.classifier import Classifier, UnmatchedLabelLog, normalize_label
from registry_engine.coercion import coerce_non_negative
from registry_engine.contracts import ProbabilityBand, RiskTier, TerritoryRecord, TIER_ORDER

KeyFn = Callable[[TerritoryRecord], Any]

GROUP_KEYS: Dict[str, KeyFn] = {
    "municipality": lambda r: r.municipality_name,
    "district": lambda r: r.district,
    "event": lambda r: r.event_name,
    "factor": lambda r: r.factor_name,
    "probability": lambda r: r.probability,
}


def empty_histogram() -> Dict[str, int]:
    return {tier.value: 0 for tier in TIER_ORDER}


@dataclass
class DistrictRollup:
    """Per-district counts with tier breakdown and endangered population."""
    total: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    population: int = 0

    def add(self, tier: RiskTier, population: int):
        self.total += 1
        setattr(self, tier.value, getattr(self, tier.value) + 1)
        self.population += population

    @property
    def score(self) -> int:
        return sum(getattr(self, tier.value) * RISK_TIER_WEIGHTS[tier.value] for tier in TIER_ORDER)

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
            "population": self.population,
            "score": self.score,
        }


@dataclass
class RegistryStatistics:
    """Result of `aggregate`. Plain data, no UI coupling."""
    total: int = 0
    risk_levels: Dict[str, int] = field(default_factory=empty_histogram)
    municipalities: Dict[str, int] = field(default_factory=dict)
    districts: Dict[str, DistrictRollup] = field(default_factory=dict)
    events: Dict[str, int] = field(default_factory=dict)
    factors: Dict[str, int] = field(default_factory=dict)
    probabilities: Dict[str, int] = field(default_factory=dict)
    municipality_scores: Dict[str, int] = field(default_factory=dict)
    district_scores: Dict[str, int] = field(default_factory=dict)
    total_population: int = 0
    total_area: float = 0.0

    def rollup(self, dimension: str) -> Dict[str, Any]:
        """Return the rollup for a dimension name used by the API."""
        rollups = {
            "municipality": self.municipalities,
            "district": self.districts,
            "event": self.events,
            "factor": self.factors,
            "probability": self.probabilities,
            "municipality_score": self.municipality_scores,
            "district_score": self.district_scores,
        }
        return rollups[dimension]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "risk_levels": dict(self.risk_levels),
            "municipalities": dict(self.municipalities),
            "districts": {k: v.to_dict() for k, v in self.districts.items()},
            "events": dict(self.events),
            "factors": dict(self.factors),
            "probabilities": dict(self.probabilities),
            "municipality_ranking": rank_scores(self.municipality_scores),
            "district_ranking": rank_scores(self.district_scores),
            "total_population": self.total_population,
            "total_area": self.total_area,
        }


def _classifier(bands: Sequence[ProbabilityBand], diagnostics: Optional[UnmatchedLabelLog]) -> Classifier:
    if isinstance(bands, Classifier):
        return bands
    return Classifier(bands, diagnostics)


def tier_histogram(
    records: Iterable[TerritoryRecord],
    bands: Sequence[ProbabilityBand],
    diagnostics: Optional[UnmatchedLabelLog] = None
) -> Dict[str, int]:
    """Count records per classified tier."""
    classify = _classifier(bands, diagnostics)
    histogram = empty_histogram()
    for record in records:
        histogram[classify(record.probability).value] += 1
    return histogram


def group_counts(records: Iterable[TerritoryRecord], key: Union[str, KeyFn]) -> Dict[Any, int]:
    """Occurrence count per group key, in first-seen order."""
    key_fn = GROUP_KEYS[key] if isinstance(key, str) else key
    counts: Dict[Any, int] = {}
    for record in records:
        group = key_fn(record)
        counts[group] = counts.get(group, 0) + 1
    return counts


def group_scores(
    records: Iterable[TerritoryRecord],
    bands: Sequence[ProbabilityBand],
    key: Union[str, KeyFn],
    diagnostics: Optional[UnmatchedLabelLog] = None
) -> Dict[Any, int]:
    """Weighted risk score per group (critical=10, high=5, medium=2, low=1)."""
    key_fn = GROUP_KEYS[key] if isinstance(key, str) else key
    classify = _classifier(bands, diagnostics)
    scores: Dict[Any, int] = {}
    for record in records:
        group = key_fn(record)
        scores[group] = scores.get(group, 0) + RISK_TIER_WEIGHTS[classify(record.probability).value]
    return scores


def district_rollup(
    records: Iterable[TerritoryRecord],
    bands: Sequence[ProbabilityBand],
    diagnostics: Optional[UnmatchedLabelLog] = None
) -> Dict[str, DistrictRollup]:
    """Per-district totals with tier sub-counts and summed endangered population."""
    classify = _classifier(bands, diagnostics)
    districts: Dict[str, DistrictRollup] = {}
    for record in records:
        rollup = districts.setdefault(record.district, DistrictRollup())
        rollup.add(
            classify(record.probability),
            coerce_non_negative(record.endangered_population, integer=True)
        )
    return districts


def totals(records: Iterable[TerritoryRecord]) -> Tuple[int, float]:
    """Sum of endangered population and area; bad values count as zero."""
    population = 0
    area = 0.0
    for record in records:
        population += coerce_non_negative(record.endangered_population, integer=True)
        area += coerce_non_negative(record.endangered_area)
    return population, area


def _sort_value(value: Any, key: Optional[Callable[[Any], Any]]) -> Any:
    if key is not None:
        return key(value)
    if isinstance(value, DistrictRollup):
        return value.total
    if isinstance(value, dict):
        return value.get("total", 0)
    return value


def top_n(
    rollup: Dict[Any, Any],
    n: int,
    key: Optional[Callable[[Any], Any]] = None
) -> List[Tuple[Any, Any]]:
    """
    The `n` entries with the largest count/score.

    Args:
        rollup: group key → count, score or DistrictRollup
        n: maximum number of entries
        key: optional sort value extractor for rollup values

    Returns:
        List of (group, value) pairs, largest first; ties keep rollup order.
    """
    if n <= 0:
        return []
    # sorted() is stable, so equal values keep their first-seen order
    ordered = sorted(rollup.items(), key=lambda item: _sort_value(item[1], key), reverse=True)
    return ordered[:n]


def rank_scores(scores: Dict[Any, int]) -> List[Dict[str, Any]]:
    """Groups ranked from most to least risky; ties keep first-seen order."""
    ordered = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    return [
        {"rank": position, "name": name, "score": score}
        for position, (name, score) in enumerate(ordered, start=1)
    ]


def aggregate(
    records: Sequence[TerritoryRecord],
    bands: Sequence[ProbabilityBand],
    diagnostics: Optional[UnmatchedLabelLog] = None
) -> RegistryStatistics:
    """
    Compute every dashboard aggregate in a single pass.

    Args:
        records: Flattened territories (already filtered by the caller)
        bands: Current probability codelist
        diagnostics: Sink for unmatched probability labels

    Returns:
        RegistryStatistics; all zeros for an empty collection.
    """
    classify = _classifier(bands, diagnostics)
    stats = RegistryStatistics()

    for record in records:
        tier = classify(record.probability)
        weight = RISK_TIER_WEIGHTS[tier.value]
        population = coerce_non_negative(record.endangered_population, integer=True)
        area = coerce_non_negative(record.endangered_area)

        stats.total += 1
        stats.risk_levels[tier.value] += 1

        municipality = record.municipality_name
        stats.municipalities[municipality] = stats.municipalities.get(municipality, 0) + 1
        stats.municipality_scores[municipality] = stats.municipality_scores.get(municipality, 0) + weight

        stats.districts.setdefault(record.district, DistrictRollup()).add(tier, population)
        stats.district_scores[record.district] = stats.district_scores.get(record.district, 0) + weight

        stats.events[record.event_name] = stats.events.get(record.event_name, 0) + 1
        stats.factors[record.factor_name] = stats.factors.get(record.factor_name, 0) + 1
        stats.probabilities[record.probability] = stats.probabilities.get(record.probability, 0) + 1

        stats.total_population += population
        stats.total_area += area

    return stats


def tier_share(stats: RegistryStatistics) -> Dict[str, float]:
    """Percentage of records per tier, rounded to one decimal; zeros when empty."""
    if stats.total == 0:
        return {tier: 0.0 for tier in stats.risk_levels}
    return {
        tier: round(count / stats.total * 100, 1)
        for tier, count in stats.risk_levels.items()
    }


def probability_breakdown(
    stats: RegistryStatistics,
    bands: Sequence[ProbabilityBand]
) -> List[Dict[str, Any]]:
    """
    Record count per probability band in codelist order.

    Raw labels that differ only in case/whitespace are merged into their
    band; labels outside the codelist follow at the end in first-seen order.
    """
    by_normalized: Dict[str, int] = {}
    raw_for: Dict[str, str] = {}
    for label, count in stats.probabilities.items():
        normalized = normalize_label(label)
        by_normalized[normalized] = by_normalized.get(normalized, 0) + count
        raw_for.setdefault(normalized, label or "")

    rows = []
    seen = set()
    for band in sorted(bands, key=lambda b: b.order):
        normalized = normalize_label(band.name)
        if normalized in seen:
            continue
        seen.add(normalized)
        rows.append({
            "name": band.name,
            "risk_level": band.risk_tier.value if band.risk_tier else None,
            "count": by_normalized.get(normalized, 0),
            "in_codelist": True,
        })

    classify = Classifier(bands, UnmatchedLabelLog(cap=0))
    for normalized, count in by_normalized.items():
        if normalized in seen:
            continue
        rows.append({
            "name": raw_for[normalized],
            "risk_level": classify(raw_for[normalized]).value,
            "count": count,
            "in_codelist": False,
        })
    return rows


def critical_territories(
    records: Iterable[TerritoryRecord],
    bands: Sequence[ProbabilityBand],
    limit: int = 20,
    diagnostics: Optional[UnmatchedLabelLog] = None
) -> List[TerritoryRecord]:
    """Critical territories with the largest endangered population first."""
    classify = _classifier(bands, diagnostics)
    critical = [r for r in records if classify(r.probability) is RiskTier.CRITICAL]
    critical.sort(key=lambda r: coerce_non_negative(r.endangered_population, integer=True), reverse=True)
    return critical[:max(limit, 0)]
