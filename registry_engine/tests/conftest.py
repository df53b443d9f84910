"""
Shared fixtures: an in-memory SQLite registry, a probability codelist and a
record factory.
"""

import pytest

from database.connection import init_db, dispose_db, get_session_context
from database.models import Municipality, HazardEvent, Factor, ProbabilityBand as ProbabilityBandRow, UserRole
from registry_engine.classifier import UnmatchedLabelLog, unmatched_labels
from registry_engine.contracts import ProbabilityBand, RiskTier, TerritoryRecord

BAND_ROWS = [
    (1, "Každé 2 - 3 roky", "critical"),
    (2, "Každých 6 - 10 rokov", "high"),
    (3, "Každých 21 - 30 rokov", "medium"),
    (4, "Každých 100 - 200 rokov", "low"),
]


@pytest.fixture
def bands():
    return [
        ProbabilityBand(name=name, risk_tier=RiskTier(level), order=order, id=order)
        for order, name, level in BAND_ROWS
    ]


@pytest.fixture
def diagnostics():
    return UnmatchedLabelLog(cap=10)


@pytest.fixture
def make_record():
    counter = {"id": 0}

    def _make(**fields):
        counter["id"] += 1
        defaults = {
            "id": counter["id"],
            "municipality_code": "508012",
            "municipality_name": "Brezno",
            "district": "Brezno",
            "region": "Banskobystrický kraj",
            "event_code": "P01",
            "event_name": "Povodeň",
            "factor_id": 1,
            "factor_name": "Prívalové dažde",
            "risk_source": "Hron",
            "probability": "Každé 2 - 3 roky",
            "endangered_population": 100,
            "endangered_area": 1.5,
        }
        defaults.update(fields)
        return TerritoryRecord(**defaults)

    return _make


@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    init_db("sqlite://")
    unmatched_labels.clear()
    yield get_session_context
    dispose_db()
    unmatched_labels.clear()


@pytest.fixture
def seeded(db):
    """Database with two municipalities, two events, one factor and the bands."""
    with db() as session:
        session.add_all([
            Municipality(code="508012", name="Brezno", district="Brezno",
                         region="Banskobystrický kraj", population=20000),
            Municipality(code="509001", name="Banská Bystrica", district="Banská Bystrica",
                         region="Banskobystrický kraj", population=76000),
            HazardEvent(code="P01", name_sk="Povodeň", name_en="Flood"),
            HazardEvent(code="P02", name_sk="Zosuv pôdy", name_en="Landslide"),
            Factor(id=1, order=1, name="Prívalové dažde"),
        ])
        for order, name, level in BAND_ROWS:
            session.add(ProbabilityBandRow(id=order, order=order, name=name, risk_level=level))
        session.add(UserRole(user_id="admin-1", email="admin@example.sk", role="admin"))
        session.add(UserRole(user_id="user-1", email="user@example.sk", role="user"))
    return db


@pytest.fixture
def territory_data():
    return {
        "municipality_code": "508012",
        "event_code": "P01",
        "factor_id": 1,
        "risk_source": "Hron",
        "probability": "Každé 2 - 3 roky",
        "endangered_population": "1 200",
        "endangered_area": "2,5",
        "predicted_disruption": "Prerušenie dopravy",
    }
