"""
Territory endpoints (V1 API).

- GET    /api/v1/territories          filtered, paged table view
- GET    /api/v1/territories/{id}
- POST   /api/v1/territories
- PUT    /api/v1/territories/{id}
- DELETE /api/v1/territories/{id}
- GET    /api/v1/classify?label=      tier for a single probability label
"""

from typing import Optional, Union

from fastapi import Depends, Query
from pydantic import BaseModel

from registry_engine.classifier import Classifier, classify, risk_label
from registry_engine.errors import RegistryError
from registry_engine.filters import TerritoryFilter
from registry_engine.repository import TerritoryRepository
from routes.common import http_error, load_filtered, territory_filter, territory_rows

Number = Union[int, float, str, None]


# ============== Pydantic Models ==============

class TerritoryIn(BaseModel):
    municipality_code: str
    event_code: str
    factor_id: int
    risk_source: str = ""
    probability: str = ""
    endangered_population: Number = 0
    endangered_area: Number = 0
    predicted_disruption: str = ""
    source: Optional[str] = None


def register_territory_routes(app, get_session_fn, codelists, notifications):
    """Register territory endpoints on the FastAPI app."""
    repository = TerritoryRepository(get_session_fn)

    @app.get("/api/v1/territories")
    async def list_territories(
        flt: TerritoryFilter = Depends(territory_filter),
        skip: int = Query(0, ge=0),
        limit: int = Query(100, ge=1, le=1000)
    ):
        """Filtered territories, sorted by municipality name."""
        bands = codelists.current().probabilities
        records = load_filtered(repository, bands, flt)
        page = records[skip:skip + limit]
        return {
            "total": len(records),
            "skip": skip,
            "limit": limit,
            "codelist_version": codelists.version,
            "territories": territory_rows(page, bands),
        }

    @app.get("/api/v1/territories/{territory_id}")
    async def get_territory(territory_id: int):
        try:
            record = repository.get(territory_id)
        except RegistryError as e:
            raise http_error(e) from e
        return territory_rows([record], codelists.current().probabilities)[0]

    @app.post("/api/v1/territories", status_code=201)
    async def create_territory(territory: TerritoryIn):
        bands = codelists.current().probabilities
        try:
            territory_id = repository.create(territory.model_dump(), bands)
            record = repository.get(territory_id)
        except RegistryError as e:
            raise http_error(e) from e

        tier = classify(record.probability, bands)
        notifications.territory_changed("NEW_RISK", record, tier)
        return territory_rows([record], bands)[0]

    @app.put("/api/v1/territories/{territory_id}")
    async def update_territory(territory_id: int, territory: TerritoryIn):
        """Replace every field of a territory."""
        bands = codelists.current().probabilities
        try:
            repository.update(territory_id, territory.model_dump(), bands)
            record = repository.get(territory_id)
        except RegistryError as e:
            raise http_error(e) from e

        notifications.territory_changed("RISK_UPDATE", record, classify(record.probability, bands))
        return territory_rows([record], bands)[0]

    @app.delete("/api/v1/territories/{territory_id}")
    async def delete_territory(territory_id: int):
        try:
            record = repository.delete(territory_id)
        except RegistryError as e:
            raise http_error(e) from e

        notifications.territory_changed("RISK_DELETED", record)
        return {"status": "deleted", "id": territory_id}

    @app.get("/api/v1/classify")
    async def classify_label(label: str = Query(..., description="Probability label")):
        bands = codelists.current().probabilities
        tier = Classifier(bands)(label)
        return {
            "label": label,
            "risk_level": tier.value,
            "risk_label": risk_label(tier),
            "codelist_version": codelists.version,
        }

    @app.get("/api/v1/districts")
    async def list_districts():
        """Districts known to the municipality codelist."""
        return {"districts": list(codelists.current().districts())}
