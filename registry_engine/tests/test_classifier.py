"""
Probability classifier tests.
"""

import pytest

from registry_engine.classifier import (
    Classifier, FALLBACK_TIERS, UnmatchedLabelLog, classify, normalize_label, risk_label
)
from registry_engine.contracts import ProbabilityBand, RiskTier


def test_normalize_label():
    assert normalize_label("  Každé   2 - 3\tROKY ") == "každé 2 - 3 roky"
    assert normalize_label(None) == ""
    assert normalize_label("") == ""


@pytest.mark.parametrize("label, expected", [
    ("Každé 2 - 3 roky", RiskTier.CRITICAL),
    ("každé 2 - 3 roky", RiskTier.CRITICAL),
    ("  KAŽDÉ  2 - 3   ROKY  ", RiskTier.CRITICAL),
    ("Každých 6 - 10 rokov", RiskTier.HIGH),
    ("Každých 21 - 30 rokov", RiskTier.MEDIUM),
    ("Každých 100 - 200 rokov", RiskTier.LOW),
])
def test_codelist_match(bands, diagnostics, label, expected):
    assert classify(label, bands, diagnostics) is expected
    assert diagnostics.labels == []


@pytest.mark.parametrize("label, expected", [
    ("Každé 4- 5 rokov", RiskTier.CRITICAL),
    ("každých 11-20 rokov", RiskTier.HIGH),
    ("Každých 31 - 50 rokov", RiskTier.MEDIUM),
    ("Každých 200 a viac rokov", RiskTier.LOW),
    ("ročne", RiskTier.CRITICAL),
    ("Annually", RiskTier.CRITICAL),
    ("every 6-10 years", RiskTier.HIGH),
    ("1", RiskTier.CRITICAL),
    ("3", RiskTier.HIGH),
    ("5", RiskTier.MEDIUM),
    ("neznáme", RiskTier.LOW),
])
def test_fallback_table(bands, diagnostics, label, expected):
    assert classify(label, bands, diagnostics) is expected
    assert diagnostics.labels == [], "fallback hits are not diagnostics"


def test_fallback_keys_are_normalized():
    for key in FALLBACK_TIERS:
        assert key == normalize_label(key)


def test_codelist_takes_precedence_over_fallback(diagnostics):
    bands = [ProbabilityBand(name="Ročne", risk_tier=RiskTier.MEDIUM, order=1, id=1)]
    assert classify("ročne", bands, diagnostics) is RiskTier.MEDIUM


def test_first_matching_band_wins(diagnostics):
    bands = [
        ProbabilityBand(name="Občas", risk_tier=RiskTier.HIGH, order=1, id=1),
        ProbabilityBand(name="občas ", risk_tier=RiskTier.LOW, order=2, id=2),
    ]
    assert classify("OBČAS", bands, diagnostics) is RiskTier.HIGH
    assert Classifier(bands, diagnostics)("OBČAS") is RiskTier.HIGH


def test_band_without_tier_is_skipped(diagnostics):
    bands = [ProbabilityBand(name="ročne", risk_tier=None, order=1, id=1)]
    assert classify("ročne", bands, diagnostics) is RiskTier.CRITICAL


def test_unknown_label_is_low_and_recorded(bands, diagnostics):
    assert classify("Raz za storočie", bands, diagnostics) is RiskTier.LOW
    assert classify("raz za  storočie", bands, diagnostics) is RiskTier.LOW
    assert diagnostics.labels == ["raz za storočie"]


def test_empty_and_missing_labels_are_low(bands, diagnostics):
    assert classify("", bands, diagnostics) is RiskTier.LOW
    assert classify(None, bands, diagnostics) is RiskTier.LOW
    assert classify("   ", bands, diagnostics) is RiskTier.LOW
    assert len(diagnostics) == 0


def test_empty_codelist(diagnostics):
    assert classify("Každé 2 - 3 roky", [], diagnostics) is RiskTier.LOW
    assert classify("ročne", [], diagnostics) is RiskTier.LOW
    assert diagnostics.empty_codelist_reported
    assert diagnostics.report_empty_codelist() is False, "reported only once"


def test_empty_codelist_warning_rearms_after_bands_return(bands, diagnostics, caplog):
    with caplog.at_level("WARNING", logger="registry_engine.classifier"):
        classify("ročne", [], diagnostics)
        assert classify("Každé 2 - 3 roky", bands, diagnostics) is RiskTier.CRITICAL
        assert not diagnostics.empty_codelist_reported

        classify("ročne", [], diagnostics)
        assert diagnostics.empty_codelist_reported

        Classifier(bands, diagnostics)
        assert not diagnostics.empty_codelist_reported
        Classifier([], diagnostics)("ročne")

    empty_warnings = [r for r in caplog.records if "codelist is empty" in r.getMessage()]
    assert len(empty_warnings) == 3


def test_unmatched_log_is_capped():
    log = UnmatchedLabelLog(cap=3)
    for i in range(10):
        classify(f"neplatné {i}", [ProbabilityBand(name="x", risk_tier=RiskTier.HIGH)], log)
    assert len(log) == 3
    assert log.labels == ["neplatné 0", "neplatné 1", "neplatné 2"]
    log.clear()
    assert log.labels == []


def test_classifier_matches_classify(bands):
    labels = [
        "Každé 2 - 3 roky", "KAŽDÝCH 6 - 10 ROKOV", "ročne", "4", "", None,
        "každé 4 -5 roky", "neznámy údaj",
    ]
    bound = Classifier(bands, UnmatchedLabelLog())
    for label in labels:
        assert bound(label) is classify(label, bands, UnmatchedLabelLog()), label


def test_classifier_does_not_touch_bands(bands):
    before = list(bands)
    Classifier(bands)("Každé 2 - 3 roky")
    classify("ročne", bands, UnmatchedLabelLog())
    assert bands == before


def test_risk_label():
    assert risk_label(RiskTier.CRITICAL) == "Kritické"
    assert risk_label("high") == "Vysoké"
    assert risk_label("medium") == "Stredné"
    assert risk_label("nonsense") == "Nízke"
    assert risk_label(None) == "Nízke"
