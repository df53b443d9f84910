"""
Aggregation engine tests.
"""

import math

from registry_engine.aggregation import (
    DistrictRollup, aggregate, critical_territories, district_rollup, group_counts,
    group_scores, probability_breakdown, rank_scores, tier_histogram, tier_share, top_n, totals
)
from registry_engine.classifier import Classifier, UnmatchedLabelLog
from registry_engine.contracts import ProbabilityBand, RiskTier


def _english_bands():
    return [
        ProbabilityBand(name="Every 2-3 years", risk_tier=RiskTier.CRITICAL, order=1, id=1),
        ProbabilityBand(name="Every 50-100 years", risk_tier=RiskTier.LOW, order=2, id=2),
    ]


def test_concrete_scenario_histogram_and_score(make_record, diagnostics):
    """Three exact matches, one case/space variant and one unknown label."""
    records = [make_record(probability="Every 2-3 years") for _ in range(3)]
    records.append(make_record(probability="every   2-3 YEARS"))
    records.append(make_record(probability="foo"))

    stats = aggregate(records, _english_bands(), diagnostics)

    assert stats.total == 5
    assert stats.risk_levels == {"critical": 4, "high": 0, "medium": 0, "low": 1}
    assert stats.municipality_scores == {"Brezno": 41}
    assert stats.district_scores == {"Brezno": 41}
    assert diagnostics.labels == ["foo"]


def test_histogram_sums_to_total(make_record, bands, diagnostics):
    labels = ["Každé 2 - 3 roky", "Každých 6 - 10 rokov", "ročne", "x", "", "Každých 21 - 30 rokov"]
    records = [make_record(probability=label) for label in labels]
    stats = aggregate(records, bands, diagnostics)
    assert sum(stats.risk_levels.values()) == stats.total == len(records)
    assert tier_histogram(records, bands, diagnostics) == stats.risk_levels


def test_empty_input_is_all_zero(bands):
    stats = aggregate([], bands)
    assert stats.total == 0
    assert stats.risk_levels == {"critical": 0, "high": 0, "medium": 0, "low": 0}
    assert stats.municipalities == {}
    assert stats.districts == {}
    assert stats.total_population == 0
    assert stats.total_area == 0.0
    assert tier_share(stats) == {"critical": 0.0, "high": 0.0, "medium": 0.0, "low": 0.0}
    assert stats.to_dict()["municipality_ranking"] == []


def test_rollups_keep_insertion_order(make_record, bands):
    records = [
        make_record(municipality_name="Zvolen", district="Zvolen"),
        make_record(municipality_name="Brezno", district="Brezno"),
        make_record(municipality_name="Zvolen", district="Zvolen"),
    ]
    stats = aggregate(records, bands)
    assert list(stats.municipalities) == ["Zvolen", "Brezno"]
    assert stats.municipalities == {"Zvolen": 2, "Brezno": 1}
    assert group_counts(records, "municipality") == stats.municipalities
    assert group_counts(records, lambda r: r.region) == {"Banskobystrický kraj": 3}


def test_district_rollup(make_record, bands):
    records = [
        make_record(district="Brezno", probability="Každé 2 - 3 roky", endangered_population=100),
        make_record(district="Brezno", probability="Každých 6 - 10 rokov", endangered_population="50"),
        make_record(district="Zvolen", probability="Každých 100 - 200 rokov", endangered_population=-5),
    ]
    rollup = district_rollup(records, bands)
    assert rollup["Brezno"] == DistrictRollup(total=2, critical=1, high=1, medium=0, low=0, population=150)
    assert rollup["Zvolen"].population == 0
    assert rollup["Brezno"].score == 15
    assert aggregate(records, bands).districts == rollup


def test_totals_coerce_bad_values(make_record):
    records = [
        make_record(endangered_population="1 200", endangered_area="2,5"),
        make_record(endangered_population=None, endangered_area=float("nan")),
        make_record(endangered_population="abc", endangered_area=-3),
        make_record(endangered_population=10.9, endangered_area=float("inf")),
    ]
    population, area = totals(records)
    assert population == 1210
    assert area == 2.5
    stats = aggregate(records, [])
    assert stats.total_population == 1210
    assert not math.isnan(stats.total_area)


def test_totals_ignore_oversized_ints(make_record):
    records = [
        make_record(endangered_population=10 ** 400, endangered_area=10 ** 400),
        make_record(endangered_population=5, endangered_area=1.5),
    ]
    assert totals(records) == (5, 1.5)
    assert aggregate(records, []).total_population == 5


def test_score_is_monotonic_in_critical_records(make_record, bands):
    records = [
        make_record(municipality_name="A", probability="Každých 6 - 10 rokov"),
        make_record(municipality_name="B", probability="Každých 6 - 10 rokov"),
        make_record(municipality_name="B", probability="Každých 21 - 30 rokov"),
    ]
    before = group_scores(records, bands, "municipality")
    ranking_before = [entry["name"] for entry in rank_scores(before)]

    more = records + [make_record(municipality_name="A", probability="Každé 2 - 3 roky") for _ in range(3)]
    after = group_scores(more, bands, "municipality")
    ranking_after = [entry["name"] for entry in rank_scores(after)]

    assert after["A"] == before["A"] + 30
    assert after["B"] == before["B"]
    assert ranking_after.index("A") <= ranking_before.index("A")


def test_rank_scores_ties_keep_first_seen_order():
    ranking = rank_scores({"Brezno": 10, "Zvolen": 20, "Detva": 10})
    assert [(e["rank"], e["name"]) for e in ranking] == [(1, "Zvolen"), (2, "Brezno"), (3, "Detva")]


def test_top_n_bounds():
    rollup = {"a": 3, "b": 7, "c": 7, "d": 1}
    assert top_n(rollup, 2) == [("b", 7), ("c", 7)]
    assert top_n(rollup, 10) == [("b", 7), ("c", 7), ("a", 3), ("d", 1)]
    assert top_n(rollup, 0) == []
    assert top_n(rollup, -1) == []
    assert top_n({}, 5) == []

    for n in range(6):
        top = top_n(rollup, n)
        assert len(top) == min(n, len(rollup))
        returned = {name for name, _ in top}
        rest = [v for name, v in rollup.items() if name not in returned]
        assert all(v >= r for _, v in top for r in rest)


def test_top_n_district_rollups_by_total():
    rollup = {
        "Brezno": DistrictRollup(total=2, low=2),
        "Zvolen": DistrictRollup(total=5, critical=5),
    }
    assert [name for name, _ in top_n(rollup, 1)] == ["Zvolen"]
    by_population = top_n({"x": DistrictRollup(total=9, population=1), "y": DistrictRollup(total=1, population=5)},
                          1, key=lambda r: r.population)
    assert by_population[0][0] == "y"


def test_band_names_classify_to_own_tier(bands):
    classify = Classifier(bands, UnmatchedLabelLog())
    for band in bands:
        assert classify(band.name) is band.risk_tier


def test_accepts_prebuilt_classifier(make_record, bands):
    records = [make_record(), make_record(probability="Každých 100 - 200 rokov")]
    assert aggregate(records, Classifier(bands)).risk_levels == aggregate(records, bands).risk_levels


def test_critical_territories(make_record, bands):
    records = [
        make_record(municipality_name="A", endangered_population=10),
        make_record(municipality_name="B", endangered_population=500),
        make_record(municipality_name="C", probability="Každých 6 - 10 rokov", endangered_population=9999),
        make_record(municipality_name="D", endangered_population="200"),
    ]
    top = critical_territories(records, bands, limit=2)
    assert [r.municipality_name for r in top] == ["B", "D"]
    assert critical_territories(records, bands, limit=0) == []


def test_probability_breakdown(make_record, bands):
    records = [
        make_record(probability="Každé 2 - 3 roky"),
        make_record(probability="každé 2 - 3  roky"),
        make_record(probability="ročne"),
    ]
    stats = aggregate(records, bands)
    rows = probability_breakdown(stats, bands)

    assert [row["name"] for row in rows[:4]] == [band.name for band in bands]
    assert rows[0]["count"] == 2
    assert rows[1]["count"] == 0
    assert rows[-1] == {"name": "ročne", "risk_level": "critical", "count": 1, "in_codelist": False}


def test_tier_share(make_record, bands):
    records = [make_record(), make_record(), make_record(probability="Každých 100 - 200 rokov")]
    share = tier_share(aggregate(records, bands))
    assert share == {"critical": 66.7, "high": 0.0, "medium": 0.0, "low": 33.3}


def test_to_dict_is_json_ready(make_record, bands):
    data = aggregate([make_record()], bands).to_dict()
    assert data["districts"]["Brezno"]["critical"] == 1
    assert data["municipality_ranking"] == [{"rank": 1, "name": "Brezno", "score": 10}]
