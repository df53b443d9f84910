"""
Registry Engine — Probability classifier.

Maps a free-text occurrence-probability label to a risk tier.

Lookup chain: probability codelist → static fallback table → LOW.

Labels in the source data are typed by hand ("Každé 2 - 3 roky",
"každých  2- 3 rokov", ...) and the codelist itself is edited at runtime by
administrators, so the lookup compares normalized text and never fails.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from config.settings import get_settings, RISK_TIER_LABELS
from registry_engine.contracts import ProbabilityBand, RiskTier

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_label(label: Optional[str]) -> str:
    """Trim, lowercase and collapse runs of whitespace to single spaces."""
    if not label:
        return ""
    return _WHITESPACE.sub(" ", str(label).strip().lower())


def _interval_variants(low: int, high: int, tier: RiskTier) -> Dict[str, RiskTier]:
    """Spelling variants of one recurrence interval seen in imported data."""
    variants = {}
    for span in (f"{low} - {high}", f"{low}- {high}", f"{low} -{high}", f"{low}-{high}"):
        for prefix in ("každé", "každých"):
            for unit in ("roky", "rokov"):
                variants[f"{prefix} {span} {unit}"] = tier
        variants[f"every {span} years"] = tier
    return variants


def _build_fallback_table() -> Dict[str, RiskTier]:
    table = {
        # Legacy single-word values and numeric codes
        "ročne": RiskTier.CRITICAL,
        "každoročne": RiskTier.CRITICAL,
        "annually": RiskTier.CRITICAL,
        "every year": RiskTier.CRITICAL,
        "1": RiskTier.CRITICAL,
        "2": RiskTier.CRITICAL,
        "3": RiskTier.HIGH,
        "4": RiskTier.HIGH,
        "5": RiskTier.MEDIUM,
        "neznáme": RiskTier.LOW,
        "neurčené": RiskTier.LOW,
        "unknown": RiskTier.LOW,
        "": RiskTier.LOW,
    }
    intervals = [
        (2, 3, RiskTier.CRITICAL),
        (4, 5, RiskTier.CRITICAL),
        (6, 10, RiskTier.HIGH),
        (11, 20, RiskTier.HIGH),
        (21, 30, RiskTier.MEDIUM),
        (31, 50, RiskTier.MEDIUM),
        (50, 100, RiskTier.LOW),
        (100, 200, RiskTier.LOW),
    ]
    for low, high, tier in intervals:
        table.update(_interval_variants(low, high, tier))
    for prefix in ("každé", "každých"):
        table[f"{prefix} 200 a viac rokov"] = RiskTier.LOW
    table["every 200 or more years"] = RiskTier.LOW
    table["every 200+ years"] = RiskTier.LOW

    # Keys follow the same normalization as lookups
    return {normalize_label(key): tier for key, tier in table.items()}


FALLBACK_TIERS: Dict[str, RiskTier] = _build_fallback_table()


class UnmatchedLabelLog:
    """
    Deduplicated, capped record of labels that matched neither the codelist
    nor the fallback table. Exposed to operators through the diagnostics API.
    """

    def __init__(self, cap: Optional[int] = None):
        self.cap = cap if cap is not None else get_settings().unmatched_label_cap
        self._labels: List[str] = []
        self._seen = set()
        self.empty_codelist_reported = False

    def record(self, label: str) -> bool:
        """Remember `label`; returns True only the first time it is stored."""
        if label in self._seen or len(self._labels) >= self.cap:
            return False
        self._seen.add(label)
        self._labels.append(label)
        return True

    def report_empty_codelist(self) -> bool:
        if self.empty_codelist_reported:
            return False
        self.empty_codelist_reported = True
        return True

    def codelist_available(self):
        """Re-arm the empty-codelist warning once bands are back."""
        self.empty_codelist_reported = False

    @property
    def labels(self) -> List[str]:
        return list(self._labels)

    def clear(self):
        self._labels.clear()
        self._seen.clear()
        self.empty_codelist_reported = False

    def __len__(self):
        return len(self._labels)


def _fallback_tier(probability_label, wanted: str, diagnostics: UnmatchedLabelLog) -> RiskTier:
    tier = FALLBACK_TIERS.get(wanted)
    if tier is not None:
        return tier
    if diagnostics.record(wanted):
        logger.warning(
            f"Probability '{probability_label}' not found in codelist or fallback table, using low"
        )
    return RiskTier.LOW


# Operator-facing sink used when callers do not bring their own
unmatched_labels = UnmatchedLabelLog()


def classify(
    probability_label: Optional[str],
    bands: Sequence[ProbabilityBand],
    diagnostics: Optional[UnmatchedLabelLog] = None
) -> RiskTier:
    """
    Classify a probability label into a risk tier.

    Args:
        probability_label: Free-text interval label of a territory
        bands: Current probability codelist (order is irrelevant here)
        diagnostics: Sink for unmatched labels; defaults to `unmatched_labels`

    Returns:
        The tier of the matching band, else the fallback-table tier, else LOW.
    """
    diagnostics = diagnostics if diagnostics is not None else unmatched_labels

    if not bands:
        if diagnostics.report_empty_codelist():
            logger.warning("Probability codelist is empty, classifying everything as low")
        return RiskTier.LOW
    diagnostics.codelist_available()

    wanted = normalize_label(probability_label)

    for band in bands:
        if normalize_label(band.name) == wanted and band.risk_tier is not None:
            return band.risk_tier

    return _fallback_tier(probability_label, wanted, diagnostics)


def risk_label(tier) -> str:
    """Display label for a tier (or tier string); unknown values read as low."""
    parsed = RiskTier.parse(tier)
    if parsed is None:
        return RISK_TIER_LABELS["low"]
    return RISK_TIER_LABELS[parsed.value]


class Classifier:
    """
    Classifier bound to one codelist snapshot.

    Normalizes the band names once, so classifying thousands of records does
    not re-normalize the codelist per record. Results are identical to
    `classify` for the same bands.
    """

    def __init__(self, bands: Sequence[ProbabilityBand], diagnostics: Optional[UnmatchedLabelLog] = None):
        self.bands = tuple(bands)
        self.diagnostics = diagnostics if diagnostics is not None else unmatched_labels
        if self.bands:
            self.diagnostics.codelist_available()
        self._lookup: Dict[str, RiskTier] = {}
        for band in self.bands:
            key = normalize_label(band.name)
            # First matching band with a tier wins, as in the linear search
            if band.risk_tier is not None and key not in self._lookup:
                self._lookup[key] = band.risk_tier

    def __call__(self, probability_label: Optional[str]) -> RiskTier:
        if not self.bands:
            return classify(probability_label, self.bands, self.diagnostics)
        tier = self._lookup.get(normalize_label(probability_label))
        if tier is not None:
            return tier
        return _fallback_tier(probability_label, normalize_label(probability_label), self.diagnostics)
