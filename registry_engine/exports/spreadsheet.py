"""
Spreadsheet export.

One row per territory on the "Territories" sheet, tier counts and totals on
the "Summary" sheet. The tier column is derived through the classifier at
export time.
"""

from datetime import datetime
from io import BytesIO
from typing import Dict, List, Optional, Sequence

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment
from openpyxl.utils import get_column_letter

from config.settings import get_settings, RISK_TIER_LABELS
from registry_engine.aggregation import RegistryStatistics, tier_share
from registry_engine.classifier import Classifier, UnmatchedLabelLog
from registry_engine.coercion import coerce_non_negative
from registry_engine.contracts import ProbabilityBand, TerritoryRecord, TIER_ORDER

# (header, width)
COLUMNS = [
    ("Kód obce", 12),
    ("Obec", 18),
    ("Okres", 18),
    ("Kraj", 18),
    ("Kód javu", 12),
    ("Krízový jav", 27),
    ("Ohrozujúci faktor", 18),
    ("Zdroj rizika", 27),
    ("Pravdepodobnosť", 22),
    ("Úroveň rizika", 12),
    ("Ohrozené obyvateľstvo", 14),
    ("Ohrozená plocha (km²)", 15),
    ("Predpokladaný sekundárny krízový jav", 27),
]

FILTER_LABELS = {
    "region": "Kraj",
    "district": "Okres",
    "municipality": "Obec",
    "risk": "Úroveň rizika",
    "search": "Hľadanie",
    "districts": "Porovnávané okresy",
}

HEADER_FILL = PatternFill("solid", fgColor="1F4E79")
HEADER_FONT = Font(bold=True, color="FFFFFF")


def sort_for_export(records: Sequence[TerritoryRecord]) -> List[TerritoryRecord]:
    """District first, then municipality."""
    return sorted(
        records,
        key=lambda r: ((r.district or "").casefold(), (r.municipality_name or "").casefold())
    )


def territory_rows(
    records: Sequence[TerritoryRecord],
    bands: Sequence[ProbabilityBand],
    diagnostics: Optional[UnmatchedLabelLog] = None
) -> List[list]:
    classify = Classifier(bands, diagnostics)
    rows = []
    for r in sort_for_export(records):
        rows.append([
            r.municipality_code,
            r.municipality_name,
            r.district,
            r.region,
            r.event_code,
            r.event_name,
            r.factor_name,
            r.risk_source,
            r.probability,
            RISK_TIER_LABELS[classify(r.probability).value],
            coerce_non_negative(r.endangered_population, integer=True),
            coerce_non_negative(r.endangered_area),
            r.predicted_disruption,
        ])
    return rows


def territories_frame(
    records: Sequence[TerritoryRecord],
    bands: Sequence[ProbabilityBand],
    diagnostics: Optional[UnmatchedLabelLog] = None
) -> pd.DataFrame:
    return pd.DataFrame(
        territory_rows(records, bands, diagnostics),
        columns=[header for header, _ in COLUMNS]
    )


def build_csv(
    records: Sequence[TerritoryRecord],
    bands: Sequence[ProbabilityBand],
    diagnostics: Optional[UnmatchedLabelLog] = None
) -> bytes:
    """Territories as UTF-8 CSV (with BOM so spreadsheet apps pick the encoding)."""
    df = territories_frame(records, bands, diagnostics)
    return df.to_csv(index=False).encode('utf-8-sig')


def build_workbook(
    records: Sequence[TerritoryRecord],
    stats: RegistryStatistics,
    bands: Sequence[ProbabilityBand],
    filters: Optional[Dict[str, str]] = None,
    diagnostics: Optional[UnmatchedLabelLog] = None
) -> bytes:
    """Generate the xlsx export and return its bytes."""
    settings = get_settings()
    wb = Workbook()
    wb.properties.creator = settings.export_creator

    # Sheet 1: one row per territory
    ws = wb.active
    ws.title = "Territories"

    for col, (header, width) in enumerate(COLUMNS, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = Alignment(wrap_text=True, vertical="top")
        ws.column_dimensions[get_column_letter(col)].width = width

    wrap = Alignment(wrap_text=True, vertical="top")
    for row_idx, values in enumerate(territory_rows(records, bands, diagnostics), 2):
        for col, value in enumerate(values, 1):
            ws.cell(row=row_idx, column=col, value=value).alignment = wrap
    ws.freeze_panes = "A2"
    if ws.max_row > 1:
        ws.auto_filter.ref = f"A1:{get_column_letter(len(COLUMNS))}{ws.max_row}"

    # Sheet 2: summary
    ws_sum = wb.create_sheet("Summary")
    ws_sum['A1'] = settings.report_title
    ws_sum['A1'].font = Font(bold=True, size=16)

    ws_sum['A3'] = "Vygenerované:"
    ws_sum['B3'] = datetime.now().strftime("%d-%m-%Y %H:%M")
    ws_sum['A4'] = "Počet záznamov:"
    ws_sum['B4'] = stats.total
    ws_sum['A5'] = "Ohrozené obyvateľstvo:"
    ws_sum['B5'] = stats.total_population
    ws_sum['B5'].number_format = '#,##0'
    ws_sum['A6'] = "Ohrozená plocha (km²):"
    ws_sum['B6'] = round(stats.total_area, 2)
    ws_sum['B6'].number_format = '#,##0.00'

    ws_sum['A8'] = "Úroveň rizika"
    ws_sum['B8'] = "Počet"
    ws_sum['C8'] = "Podiel"
    for cell in (ws_sum['A8'], ws_sum['B8'], ws_sum['C8']):
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT

    shares = tier_share(stats)
    row = 9
    for tier in TIER_ORDER:
        ws_sum[f'A{row}'] = RISK_TIER_LABELS[tier.value]
        ws_sum[f'B{row}'] = stats.risk_levels[tier.value]
        ws_sum[f'C{row}'] = shares[tier.value] / 100
        ws_sum[f'C{row}'].number_format = '0.0%'
        row += 1

    if filters:
        row += 1
        ws_sum[f'A{row}'] = "Použité filtre"
        ws_sum[f'A{row}'].font = Font(bold=True)
        row += 1
        for name, value in filters.items():
            ws_sum[f'A{row}'] = FILTER_LABELS.get(name, name)
            ws_sum[f'B{row}'] = value
            row += 1

    ws_sum.column_dimensions['A'].width = 28
    ws_sum.column_dimensions['B'].width = 22
    ws_sum.column_dimensions['C'].width = 12

    output = BytesIO()
    wb.save(output)
    output.seek(0)

    return output.getvalue()
