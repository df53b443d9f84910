"""
Territory repository tests: pagination loop and CRUD against SQLite.
"""

import pytest

from database.models import Territory
from registry_engine.codelists import CodelistStore
from registry_engine.errors import ReferentialIntegrityError, TerritoryNotFound
from registry_engine.repository import TerritoryRepository, paginate


def _page_source(total):
    calls = []

    def fetch(offset, limit):
        calls.append((offset, limit))
        return list(range(offset, min(offset + limit, total)))

    return fetch, calls


def test_pagination_progress():
    """2500 records with page size 1000: three pages, the last one short."""
    fetch, calls = _page_source(2500)
    progress = []

    rows = paginate(fetch, 2500, 1000, lambda *args: progress.append(args))

    assert len(rows) == 2500
    assert rows[:3] == [0, 1, 2] and rows[-1] == 2499
    assert calls == [(0, 1000), (1000, 1000), (2000, 1000)]
    assert progress == [(40, 1000, 2500), (80, 2000, 2500), (100, 2500, 2500)]


def test_pagination_exact_multiple_fetches_one_empty_page():
    fetch, calls = _page_source(2000)
    progress = []
    rows = paginate(fetch, 2000, 1000, lambda *args: progress.append(args))
    assert len(rows) == 2000
    assert len(calls) == 3
    assert progress[-1] == (100, 2000, 2000)


def test_pagination_empty_store_skips_progress():
    fetch, calls = _page_source(0)
    progress = []
    assert paginate(fetch, 0, 1000, lambda *args: progress.append(args)) == []
    assert calls == [(0, 1000)]
    assert progress == []


def test_pagination_percent_is_capped():
    # More rows than the count reported at the start
    fetch, _ = _page_source(30)
    progress = []
    paginate(fetch, 20, 10, lambda *args: progress.append(args))
    assert [p[0] for p in progress] == [50, 100, 100, 100]


def test_pagination_rejects_bad_page_size():
    with pytest.raises(ValueError):
        paginate(lambda o, l: [], 0, 0)


@pytest.fixture
def repo(seeded):
    return TerritoryRepository(seeded, page_size=2)


@pytest.fixture
def store_bands(seeded):
    return CodelistStore(seeded).load().probabilities


def test_create_and_get(repo, store_bands, territory_data):
    territory_id = repo.create(territory_data, store_bands)
    record = repo.get(territory_id)

    assert record.municipality_name == "Brezno"
    assert record.district == "Brezno"
    assert record.region == "Banskobystrický kraj"
    assert record.event_name == "Povodeň"
    assert record.factor_name == "Prívalové dažde"
    assert record.endangered_population == 1200
    assert record.endangered_area == 2.5
    assert record.source == "manual_entry"
    assert record.created_at is not None


def test_write_stores_risk_level_snapshot(repo, store_bands, territory_data, seeded):
    territory_id = repo.create(territory_data, store_bands)
    with seeded() as session:
        assert session.get(Territory, territory_id).risk_level == "critical"

    repo.update(territory_id, dict(territory_data, probability="Každých 21 - 30 rokov"), store_bands)
    with seeded() as session:
        assert session.get(Territory, territory_id).risk_level == "medium"


def test_update_replaces_fields(repo, store_bands, territory_data):
    territory_id = repo.create(territory_data, store_bands)
    repo.update(territory_id, dict(territory_data, municipality_code="509001", endangered_population=-3), store_bands)
    record = repo.get(territory_id)
    assert record.municipality_name == "Banská Bystrica"
    assert record.endangered_population == 0


def test_out_of_range_population_is_stored_as_zero(repo, store_bands, territory_data):
    territory_id = repo.create(dict(territory_data, endangered_population=10 ** 30), store_bands)
    assert repo.get(territory_id).endangered_population == 0

    repo.update(territory_id, dict(territory_data, endangered_population=10 ** 400), store_bands)
    assert repo.get(territory_id).endangered_population == 0


def test_missing_territory(repo, store_bands, territory_data):
    with pytest.raises(TerritoryNotFound):
        repo.get(999)
    with pytest.raises(TerritoryNotFound):
        repo.update(999, territory_data, store_bands)
    with pytest.raises(TerritoryNotFound):
        repo.delete(999)


def test_foreign_key_violation(repo, store_bands, territory_data):
    with pytest.raises(ReferentialIntegrityError):
        repo.create(dict(territory_data, municipality_code="000000"), store_bands)
    with pytest.raises(ReferentialIntegrityError):
        repo.create(dict(territory_data, factor_id=42), store_bands)
    assert repo.count() == 0


def test_delete_returns_record(repo, store_bands, territory_data):
    territory_id = repo.create(territory_data, store_bands)
    record = repo.delete(territory_id)
    assert record.id == territory_id
    assert record.event_name == "Povodeň"
    assert repo.count() == 0


def test_load_all_pages_newest_first(repo, store_bands, territory_data):
    ids = [
        repo.create(dict(territory_data, risk_source=f"zdroj {i}"), store_bands)
        for i in range(5)
    ]
    progress = []
    records = repo.load_all(lambda *args: progress.append(args))

    assert len(records) == 5
    assert {r.id for r in records} == set(ids)
    assert records[0].id == max(ids)
    assert progress == [(40, 2, 5), (80, 4, 5), (100, 5, 5)]
