"""
Helpers shared by the registry route modules: query-string filters,
loading the filtered record set, and mapping registry errors to HTTP.
"""

import logging
from typing import List, Optional

from fastapi import HTTPException, Query

from registry_engine.classifier import Classifier, risk_label
from registry_engine.contracts import TerritoryRecord
from registry_engine.errors import (
    RegistryError, TerritoryNotFound, ReferentialIntegrityError, CodelistError, CodelistItemNotFound, FilterError
)
from registry_engine.filters import TerritoryFilter, apply_filters

logger = logging.getLogger(__name__)


def http_error(exc: RegistryError) -> HTTPException:
    """Translate a registry error into the matching HTTP status."""
    if isinstance(exc, (TerritoryNotFound, CodelistItemNotFound)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ReferentialIntegrityError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (CodelistError, FilterError)):
        return HTTPException(status_code=400, detail=str(exc))
    logger.error(f"Registry unavailable: {exc}")
    return HTTPException(status_code=503, detail="Registry storage unavailable")


def territory_filter(
    region: Optional[str] = None,
    district: Optional[str] = None,
    municipality: Optional[str] = None,
    risk: Optional[str] = None,
    search: Optional[str] = None,
    districts: Optional[List[str]] = Query(None)
) -> TerritoryFilter:
    """FastAPI dependency building the table filter from query parameters."""
    try:
        return TerritoryFilter(
            region=region,
            district=district,
            municipality=municipality,
            risk=risk,
            search=search,
            districts=[d for d in (districts or []) if d],
        )
    except FilterError as e:
        raise http_error(e) from e


def load_filtered(repository, bands, flt: TerritoryFilter) -> List[TerritoryRecord]:
    """Reload every territory and apply the filter."""
    try:
        records = repository.load_all()
    except RegistryError as e:
        raise http_error(e) from e
    return apply_filters(records, bands, flt)


def territory_rows(records: List[TerritoryRecord], bands) -> List[dict]:
    """JSON rows with the tier derived at read time."""
    classify = Classifier(bands)
    rows = []
    for record in records:
        tier = classify(record.probability)
        row = record.to_dict()
        row["risk_level"] = tier.value
        row["risk_label"] = risk_label(tier)
        rows.append(row)
    return rows
