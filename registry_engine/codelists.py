"""
Registry Engine — Codelist store.

Holds the four reference tables (municipalities, hazard events, factors,
probability bands) as an immutable `Codelists` snapshot. Every load or
administrator edit swaps in a new snapshot with a higher version; the
classifier and the aggregation engine always receive the snapshot the caller
fetched via `current()`.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from database.models import Municipality, HazardEvent, Factor, ProbabilityBand as ProbabilityBandRow
from registry_engine.classifier import normalize_label
from registry_engine.contracts import (
    Codelists, MunicipalityRef, HazardEventRef, FactorRef, ProbabilityBand, RiskTier
)
from registry_engine.errors import (
    CodelistError, CodelistItemNotFound, ReferentialIntegrityError, RepositoryError
)

logger = logging.getLogger(__name__)

# table name → (ORM model, primary key attribute, contract type, snapshot attribute)
TABLES = {
    "municipalities": (Municipality, "code", MunicipalityRef, "municipalities"),
    "events": (HazardEvent, "code", HazardEventRef, "events"),
    "factors": (Factor, "id", FactorRef, "factors"),
    "probabilities": (ProbabilityBandRow, "id", ProbabilityBand, "probabilities"),
}

# Columns an administrator may set per table
EDITABLE_FIELDS = {
    "municipalities": ("code", "name", "district", "district_code", "region", "region_code",
                       "evid_code", "population", "latitude", "longitude"),
    "events": ("code", "name_sk", "name_en", "category", "is_category", "plan_type",
               "ministry", "parent_code", "description"),
    "factors": ("order", "name"),
    "probabilities": ("order", "name", "risk_level"),
}


# Columns a new row cannot do without; updates may omit them but not blank them
REQUIRED_FIELDS = {
    "municipalities": ("code", "name"),
    "events": ("code", "name_sk"),
    "factors": ("name",),
    "probabilities": ("name",),
}


def _sort_rows(table: str, rows: list) -> list:
    if table == "municipalities":
        return sorted(rows, key=lambda m: (m.name or "").casefold())
    if table == "events":
        return sorted(rows, key=lambda e: e.code)
    return sorted(rows, key=lambda r: r.order or 0)


def _check_table(table: str):
    if table not in TABLES:
        raise CodelistError(f"Unknown codelist '{table}'")


def _check_required(table: str, values: Dict[str, Any], creating: bool):
    for field in REQUIRED_FIELDS[table]:
        value = values.get(field)
        if isinstance(value, str):
            value = value.strip()
        if value is None or value == "":
            if creating or field in values:
                raise CodelistError(f"{table} item needs a non-empty '{field}'")


class CodelistStore:
    """In-memory cache of the reference tables, backed by the database."""

    def __init__(self, session_factory: Optional[Callable] = None):
        self._session_factory = session_factory
        self._snapshot = Codelists()

    # ---- Snapshot access ----

    def current(self) -> Codelists:
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    def municipality(self, code: str) -> Optional[MunicipalityRef]:
        return self._snapshot.municipality(code)

    def event(self, code: str) -> Optional[HazardEventRef]:
        return self._snapshot.event(code)

    def factor(self, factor_id: int) -> Optional[FactorRef]:
        return self._snapshot.factor(factor_id)

    def probability_band(self, band_id: int) -> Optional[ProbabilityBand]:
        return self._snapshot.probability_band(band_id)

    # ---- Replacement ----

    def replace(self, table: str, rows: Iterable[Any]) -> Codelists:
        """Replace one table wholesale (rows may be ORM objects or dicts)."""
        _check_table(table)
        _, _, contract, attr = TABLES[table]
        converted = tuple(contract.from_row(row) for row in rows)
        if table == "probabilities":
            _ensure_unique_names(converted)
        current = self._snapshot
        tables = {
            "municipalities": current.municipalities,
            "events": current.events,
            "factors": current.factors,
            "probabilities": current.probabilities,
        }
        tables[attr] = converted
        self._snapshot = Codelists(version=current.version + 1, **tables)
        return self._snapshot

    def load(self, session=None) -> Codelists:
        """Bulk-load all four tables into a new snapshot."""
        if session is None:
            with self._session() as own_session:
                return self.load(own_session)

        try:
            tables = {}
            for table, (model, _, contract, attr) in TABLES.items():
                rows = _sort_rows(table, session.query(model).all())
                tables[attr] = tuple(contract.from_row(row) for row in rows)
        except SQLAlchemyError as e:
            logger.error(f"Error loading codelists: {e}")
            raise RepositoryError(f"Could not load codelists: {e}") from e

        self._snapshot = Codelists(version=self._snapshot.version + 1, **tables)
        logger.info(
            f"Loaded codelists v{self._snapshot.version}: "
            f"{len(tables['municipalities'])} municipalities, {len(tables['events'])} events, "
            f"{len(tables['factors'])} factors, {len(tables['probabilities'])} probabilities"
        )
        return self._snapshot

    # ---- Administrator edits ----

    def save(self, table: str, data: Dict[str, Any], key: Any = None) -> Codelists:
        """
        Create (key=None) or update a codelist row, then reload.

        Returns:
            The new snapshot.
        """
        _check_table(table)
        model, pk, _, _ = TABLES[table]
        values = {k: v for k, v in data.items() if k in EDITABLE_FIELDS[table]}
        if isinstance(values.get("name"), str):
            values["name"] = values["name"].strip()
        _check_required(table, values, creating=key is None)

        if table == "probabilities":
            if self._snapshot.version == 0:
                self.load()
            self._validate_band(values, key)

        try:
            with self._session() as session:
                if key is None:
                    row = model(**values)
                    session.add(row)
                else:
                    row = session.get(model, key)
                    if row is None:
                        raise CodelistItemNotFound(table, key)
                    values.pop(pk, None)
                    for name, value in values.items():
                        setattr(row, name, value)
                session.flush()
                logger.info(f"Saved {table} item {getattr(row, pk)}")
        except IntegrityError as e:
            raise ReferentialIntegrityError(f"Could not save {table} item: {e.orig}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error saving {table} item: {e}")
            raise RepositoryError(f"Could not save {table} item: {e}") from e

        return self.load()

    def save_municipality(self, data: Dict[str, Any], code: Optional[str] = None) -> Codelists:
        return self.save("municipalities", data, code)

    def save_event(self, data: Dict[str, Any], code: Optional[str] = None) -> Codelists:
        return self.save("events", data, code)

    def save_factor(self, data: Dict[str, Any], factor_id: Optional[int] = None) -> Codelists:
        return self.save("factors", data, factor_id)

    def save_probability_band(self, data: Dict[str, Any], band_id: Optional[int] = None) -> Codelists:
        return self.save("probabilities", data, band_id)

    def delete_item(self, table: str, key: Any) -> Codelists:
        """Delete a codelist row; rows still referenced by territories are refused."""
        _check_table(table)
        model, _, _, _ = TABLES[table]
        try:
            with self._session() as session:
                row = session.get(model, key)
                if row is None:
                    raise CodelistItemNotFound(table, key)
                session.delete(row)
                session.flush()
                logger.info(f"Deleted {table} item {key}")
        except IntegrityError as e:
            raise ReferentialIntegrityError(f"{table} item '{key}' is still referenced") from e
        except SQLAlchemyError as e:
            logger.error(f"Error deleting {table} item: {e}")
            raise RepositoryError(f"Could not delete {table} item: {e}") from e

        return self.load()

    # ---- Helpers ----

    def _session(self):
        if self._session_factory is None:
            raise RepositoryError("Codelist store has no database session factory")
        return self._session_factory()

    def _validate_band(self, values: Dict[str, Any], band_id: Any):
        if "name" in values and not values["name"]:
            raise CodelistError("Probability name must not be empty")
        if "risk_level" in values:
            tier = RiskTier.parse(values["risk_level"])
            if tier is None:
                raise CodelistError(f"Unknown risk level '{values['risk_level']}'")
            values["risk_level"] = tier.value
        if "name" in values:
            wanted = normalize_label(values["name"])
            for band in self._snapshot.probabilities:
                if band.id != band_id and normalize_label(band.name) == wanted:
                    raise CodelistError(f"Probability '{values['name']}' already exists")


def _ensure_unique_names(bands: Iterable[ProbabilityBand]):
    seen = set()
    for band in bands:
        normalized = normalize_label(band.name)
        if normalized in seen:
            raise CodelistError(f"Duplicate probability name '{band.name}'")
        seen.add(normalized)
