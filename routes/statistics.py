"""
Statistics and diagnostics endpoints (V1 API).
"""

from typing import Optional

from fastapi import Depends, HTTPException, Query

from config.settings import get_settings
from registry_engine.aggregation import (
    DistrictRollup, aggregate, critical_territories, probability_breakdown, tier_share, top_n
)
from registry_engine.classifier import unmatched_labels
from registry_engine.filters import TerritoryFilter
from registry_engine.identity import CurrentUser, require_admin
from registry_engine.repository import TerritoryRepository
from routes.common import load_filtered, territory_filter, territory_rows

DIMENSIONS = (
    "municipality", "district", "event", "factor", "probability",
    "municipality_score", "district_score",
)


def register_statistics_routes(app, get_session_fn, codelists):
    """Register statistics endpoints on the FastAPI app."""
    repository = TerritoryRepository(get_session_fn)
    settings = get_settings()

    @app.get("/api/v1/statistics")
    async def get_statistics(flt: TerritoryFilter = Depends(territory_filter)):
        """Full aggregate of the filtered territories."""
        bands = codelists.current().probabilities
        records = load_filtered(repository, bands, flt)
        stats = aggregate(records, bands)

        result = stats.to_dict()
        result["risk_share"] = tier_share(stats)
        result["probability_breakdown"] = probability_breakdown(stats, bands)
        result["top_risks"] = territory_rows(
            critical_territories(records, bands, limit=settings.top_risks_limit), bands
        )
        result["filters"] = flt.describe()
        result["codelist_version"] = codelists.version
        return result

    @app.get("/api/v1/statistics/top/{dimension}")
    async def get_top(
        dimension: str,
        n: Optional[int] = Query(None, ge=0, le=1000),
        flt: TerritoryFilter = Depends(territory_filter)
    ):
        """Top-N groups of one rollup, largest first."""
        if dimension not in DIMENSIONS:
            raise HTTPException(
                status_code=400,
                detail=f"Unknown dimension '{dimension}', expected one of {', '.join(DIMENSIONS)}"
            )
        n = settings.top_n_default if n is None else n
        bands = codelists.current().probabilities
        stats = aggregate(load_filtered(repository, bands, flt), bands)

        entries = []
        for name, value in top_n(stats.rollup(dimension), n):
            if isinstance(value, DistrictRollup):
                entries.append({"name": name, **value.to_dict()})
            else:
                entries.append({"name": name, "value": value})
        return {"dimension": dimension, "n": n, "total": stats.total, "entries": entries}

    @app.get("/api/v1/diagnostics/unmatched-probabilities")
    async def get_unmatched_probabilities():
        """Probability labels that matched neither the codelist nor the fallback table."""
        return {
            "labels": unmatched_labels.labels,
            "cap": unmatched_labels.cap,
            "empty_codelist_reported": unmatched_labels.empty_codelist_reported,
        }

    @app.delete("/api/v1/diagnostics/unmatched-probabilities")
    async def clear_unmatched_probabilities(user: CurrentUser = Depends(require_admin)):
        """Forget recorded labels and re-arm the empty-codelist warning."""
        cleared = len(unmatched_labels)
        unmatched_labels.clear()
        return {"cleared": cleared}
