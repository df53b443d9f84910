"""
Registry Engine — Territory repository.

CRUD for analysed territories plus the paginated bulk loader that assembles
the full in-memory record set for the dashboard. Records leave this module
flattened (`TerritoryRecord`) with municipality, event and factor display
fields resolved; the classifier never sees ORM rows.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from config.settings import get_settings
from database.models import Territory
from registry_engine.classifier import classify
from registry_engine.coercion import coerce_non_negative
from registry_engine.contracts import ProbabilityBand, TerritoryRecord
from registry_engine.errors import RepositoryError, TerritoryNotFound, ReferentialIntegrityError

logger = logging.getLogger(__name__)

# Largest population an Integer column holds on every supported backend
POPULATION_MAX = 2 ** 31 - 1

ProgressSink = Callable[[int, int, int], None]
PageSource = Callable[[int, int], Sequence[Any]]


def paginate(
    fetch_page: PageSource,
    total: int,
    page_size: int,
    progress: Optional[ProgressSink] = None
) -> List[Any]:
    """
    Fetch pages until one comes back shorter than `page_size`.

    Args:
        fetch_page: callable(offset, limit) returning one page
        total: expected row count, used only for progress reporting
        page_size: rows requested per page
        progress: called after every page with (percent, loaded, total);
            percent is floor(loaded / total * 100), capped at 100.
            Not called when total is 0.

    Returns:
        All rows in page order.
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    rows: List[Any] = []
    page_number = 0
    while True:
        page = list(fetch_page(page_number * page_size, page_size))
        rows.extend(page)
        page_number += 1

        if progress is not None and total:
            percent = min(100, len(rows) * 100 // total)
            progress(percent, len(rows), total)

        logger.debug(f"Loaded page {page_number}, {len(rows)} records so far (of {total})")

        if len(page) < page_size:
            break
    return rows


def flatten_territory(row: Territory) -> TerritoryRecord:
    """Copy a territory row and its joined codelist rows into a flat record."""
    municipality = row.municipality
    event = row.event
    factor = row.factor
    return TerritoryRecord(
        id=row.id,
        municipality_code=row.municipality_code or "",
        municipality_name=municipality.name if municipality else "",
        district=(municipality.district or "") if municipality else "",
        district_code=municipality.district_code if municipality else None,
        region=(municipality.region or "") if municipality else "",
        region_code=municipality.region_code if municipality else None,
        latitude=municipality.latitude if municipality else None,
        longitude=municipality.longitude if municipality else None,
        event_code=row.event_code or "",
        event_name=event.name_sk if event else "",
        factor_id=row.factor_id,
        factor_name=factor.name if factor else "",
        risk_source=row.risk_source or "",
        probability=row.probability or "",
        endangered_population=row.endangered_population,
        endangered_area=row.endangered_area,
        predicted_disruption=row.predicted_disruption or "",
        created_at=row.created_at,
        source=row.source or "",
    )


def _population(value) -> int:
    population = coerce_non_negative(value, integer=True)
    if population > POPULATION_MAX:
        logger.warning(f"Endangered population {population} is out of range, storing 0")
        return 0
    return population


def _territory_values(data: Dict[str, Any], bands: Sequence[ProbabilityBand]) -> Dict[str, Any]:
    """Column values for a create/update; an edit replaces every field."""
    probability = (data.get("probability") or "").strip()
    return {
        "municipality_code": data.get("municipality_code"),
        "event_code": data.get("event_code"),
        "factor_id": data.get("factor_id"),
        "risk_source": data.get("risk_source") or "",
        "probability": probability,
        "risk_level": classify(probability, bands).value,
        "endangered_population": _population(data.get("endangered_population")),
        "endangered_area": coerce_non_negative(data.get("endangered_area")),
        "predicted_disruption": data.get("predicted_disruption") or "",
    }


class TerritoryRepository:
    """Territory CRUD against the backing store."""

    def __init__(self, session_factory: Callable, page_size: Optional[int] = None):
        self._session_factory = session_factory
        self.page_size = page_size or get_settings().page_size

    def _query(self, session):
        return session.query(Territory).options(
            joinedload(Territory.municipality),
            joinedload(Territory.event),
            joinedload(Territory.factor),
        )

    def count(self) -> int:
        try:
            with self._session_factory() as session:
                return session.query(Territory).count()
        except SQLAlchemyError as e:
            logger.error(f"Error counting territories: {e}")
            raise RepositoryError(f"Could not count territories: {e}") from e

    def fetch_page(self, offset: int, limit: int) -> List[TerritoryRecord]:
        """One page of flattened territories, newest first."""
        try:
            with self._session_factory() as session:
                rows = (
                    self._query(session)
                    .order_by(Territory.created_at.desc(), Territory.id.desc())
                    .offset(offset)
                    .limit(limit)
                    .all()
                )
                return [flatten_territory(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error loading territories page at offset {offset}: {e}")
            raise RepositoryError(f"Could not load territories: {e}") from e

    def load_all(self, progress: Optional[ProgressSink] = None) -> List[TerritoryRecord]:
        """Assemble the complete record set page by page."""
        total = self.count()
        records = paginate(self.fetch_page, total, self.page_size, progress)
        logger.info(f"Loaded {len(records)} territories")
        return records

    def get(self, territory_id: int) -> TerritoryRecord:
        try:
            with self._session_factory() as session:
                row = self._query(session).filter(Territory.id == territory_id).one_or_none()
                if row is None:
                    raise TerritoryNotFound(territory_id)
                return flatten_territory(row)
        except SQLAlchemyError as e:
            logger.error(f"Error reading territory {territory_id}: {e}")
            raise RepositoryError(f"Could not read territory {territory_id}: {e}") from e

    def create(self, data: Dict[str, Any], bands: Sequence[ProbabilityBand]) -> int:
        """Insert a territory; returns its id."""
        values = _territory_values(data, bands)
        values["source"] = data.get("source") or "manual_entry"
        try:
            with self._session_factory() as session:
                row = Territory(**values)
                session.add(row)
                session.flush()
                territory_id = row.id
        except IntegrityError as e:
            logger.error(f"Territory references missing codelist entries: {e.orig}")
            raise ReferentialIntegrityError(
                "Municipality, event or factor does not exist"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating territory: {e}")
            raise RepositoryError(f"Could not create territory: {e}") from e

        logger.info(f"Territory created with ID: {territory_id}")
        return territory_id

    def update(self, territory_id: int, data: Dict[str, Any], bands: Sequence[ProbabilityBand]) -> int:
        values = _territory_values(data, bands)
        try:
            with self._session_factory() as session:
                row = session.get(Territory, territory_id)
                if row is None:
                    raise TerritoryNotFound(territory_id)
                for name, value in values.items():
                    setattr(row, name, value)
                session.flush()
        except IntegrityError as e:
            logger.error(f"Territory {territory_id} update references missing codelist entries: {e.orig}")
            raise ReferentialIntegrityError(
                "Municipality, event or factor does not exist"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error updating territory {territory_id}: {e}")
            raise RepositoryError(f"Could not update territory {territory_id}: {e}") from e

        logger.info(f"Territory updated: {territory_id}")
        return territory_id

    def delete(self, territory_id: int) -> TerritoryRecord:
        """Delete a territory; returns the removed record (for notifications)."""
        try:
            with self._session_factory() as session:
                row = self._query(session).filter(Territory.id == territory_id).one_or_none()
                if row is None:
                    raise TerritoryNotFound(territory_id)
                record = flatten_territory(row)
                session.delete(row)
                session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error deleting territory {territory_id}: {e}")
            raise RepositoryError(f"Could not delete territory {territory_id}: {e}") from e

        logger.info(f"Territory deleted: {territory_id}")
        return record
