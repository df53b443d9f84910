"""
Notification feed tests.
"""

import pytest

from registry_engine.contracts import RiskTier
from registry_engine.notifications import NotificationFeed, territory_message


def test_territory_message(make_record):
    record = make_record()
    assert territory_message("NEW_RISK", record, RiskTier.CRITICAL) == (
        "Pridané Kritické riziko v obci Brezno - Povodeň"
    )
    assert "aktualizované" in territory_message("RISK_UPDATE", record)
    assert "odstránené" in territory_message("RISK_DELETED", record)


def test_feed_lifecycle(db, make_record):
    feed = NotificationFeed(db)
    first = feed.territory_changed("NEW_RISK", make_record(), RiskTier.HIGH)
    second = feed.territory_changed("RISK_DELETED", make_record(municipality_name="Zvolen"))
    assert first and second

    items = feed.list()
    assert [n["id"] for n in items] == [second, first]
    assert items[1]["title"] == "Nové riziko pridané"
    assert items[1]["metadata"] == {"municipality": "Brezno", "event": "Povodeň", "risk_level": "high"}
    assert feed.unread_count() == 2

    assert feed.mark_read(first) is True
    assert feed.mark_read(12345) is False
    assert [n["id"] for n in feed.list(unread_only=True)] == [second]

    assert feed.mark_all_read() == 1
    assert feed.unread_count() == 0

    assert feed.clear() == 2
    assert feed.list() == []


def test_unknown_type(db):
    with pytest.raises(ValueError):
        NotificationFeed(db).create("SOMETHING", "x")


def test_create_failure_is_swallowed(make_record):
    def broken_session():
        from sqlalchemy.exc import OperationalError
        raise OperationalError("SELECT 1", {}, Exception("database is down"))

    feed = NotificationFeed(broken_session)
    assert feed.territory_changed("NEW_RISK", make_record(), RiskTier.LOW) is None
