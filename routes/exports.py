"""
Export endpoints (V1 API): xlsx, csv and the PDF report of the filtered
territories.
"""

from datetime import datetime

from fastapi import Depends, Response

from registry_engine.aggregation import aggregate
from registry_engine.exports import build_csv, build_pdf_report, build_workbook
from registry_engine.filters import TerritoryFilter
from registry_engine.repository import TerritoryRepository
from routes.common import load_filtered, territory_filter

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _attachment(content: bytes, media_type: str, extension: str) -> Response:
    filename = f"analyza_rizik_{datetime.now().strftime('%Y-%m-%d')}.{extension}"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


def register_export_routes(app, get_session_fn, codelists):
    """Register export endpoints on the FastAPI app."""
    repository = TerritoryRepository(get_session_fn)

    @app.get("/api/v1/export/xlsx")
    async def export_xlsx(flt: TerritoryFilter = Depends(territory_filter)):
        bands = codelists.current().probabilities
        records = load_filtered(repository, bands, flt)
        content = build_workbook(records, aggregate(records, bands), bands, flt.describe())
        return _attachment(content, XLSX_MEDIA_TYPE, "xlsx")

    @app.get("/api/v1/export/csv")
    async def export_csv(flt: TerritoryFilter = Depends(territory_filter)):
        bands = codelists.current().probabilities
        records = load_filtered(repository, bands, flt)
        return _attachment(build_csv(records, bands), "text/csv; charset=utf-8", "csv")

    @app.get("/api/v1/export/pdf")
    async def export_pdf(flt: TerritoryFilter = Depends(territory_filter)):
        bands = codelists.current().probabilities
        records = load_filtered(repository, bands, flt)
        content = build_pdf_report(aggregate(records, bands), bands, filters=flt.describe())
        return _attachment(content, "application/pdf", "pdf")
