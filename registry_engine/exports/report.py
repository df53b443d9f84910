"""
PDF report export.

Paginated A4 report: key totals, tier breakdown, top-N tables by
municipality, hazard, district and factor, and the probability-band
breakdown. Built with reportlab platypus; every table repeats its header row
when it spills over a page.
"""

import logging
from datetime import datetime
from functools import lru_cache
from io import BytesIO
from pathlib import Path
from xml.sax.saxutils import escape
from typing import Dict, List, Optional, Sequence, Tuple

import matplotlib
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.pdfmetrics import registerFontFamily
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from config.settings import get_settings, RISK_TIER_LABELS
from registry_engine.aggregation import (
    RegistryStatistics, probability_breakdown, tier_share, top_n
)
from registry_engine.contracts import ProbabilityBand, TIER_ORDER

logger = logging.getLogger(__name__)

FONT_NAME = "RegistrySans"
FONT_NAME_BOLD = "RegistrySans-Bold"

HEADER_COLOR = colors.HexColor("#1F4E79")
TIER_COLORS = {
    "critical": colors.HexColor("#DC2626"),
    "high": colors.HexColor("#EA580C"),
    "medium": colors.HexColor("#D97706"),
    "low": colors.HexColor("#16A34A"),
}


def _bundled_font(filename: str) -> str:
    return str(Path(matplotlib.get_data_path()) / "fonts" / "ttf" / filename)


@lru_cache()
def report_fonts() -> Tuple[str, str]:
    """
    Register the report's Unicode TTF faces with reportlab.

    The standard PDF fonts cover Latin-1 only, so Slovak letters such as
    ľ, č, ň and ť need an embedded TrueType font.

    Returns:
        (regular, bold) font names usable in styles and on the canvas.
    """
    settings = get_settings()
    regular_path = settings.report_font_path or _bundled_font("DejaVuSans.ttf")
    bold_path = settings.report_font_bold_path or _bundled_font("DejaVuSans-Bold.ttf")

    pdfmetrics.registerFont(TTFont(FONT_NAME, regular_path))
    pdfmetrics.registerFont(TTFont(FONT_NAME_BOLD, bold_path))
    registerFontFamily(FONT_NAME, normal=FONT_NAME, bold=FONT_NAME_BOLD,
                       italic=FONT_NAME, boldItalic=FONT_NAME_BOLD)
    logger.info(f"Registered report fonts {regular_path}, {bold_path}")
    return FONT_NAME, FONT_NAME_BOLD


def _percent(count: int, total: int) -> str:
    if not total:
        return "0.0%"
    return f"{count / total * 100:.1f}%"


def _number(value) -> str:
    return f"{value:,}".replace(",", " ")


def _text(value, style) -> Paragraph:
    return Paragraph(escape(str(value or "-")), style)


def _table(data: List[list], col_widths: Optional[List[float]] = None) -> Table:
    regular, bold = report_fonts()
    table = Table(data, colWidths=col_widths, repeatRows=1, hAlign="LEFT")
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, -1), regular),
                ("FONTNAME", (0, 0), (-1, 0), bold),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ALIGN", (1, 1), (-1, -1), "CENTER"),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F3F4F6")]),
            ]
        )
    )
    return table


def _ranked_table(title: str, rollup: Dict, n: int, total: int, styles) -> list:
    rows = [["#", title, "Počet", "Podiel"]]
    for position, (name, count) in enumerate(top_n(rollup, n), 1):
        rows.append([position, _text(name, styles["BodyText"]), count, _percent(count, total)])
    if len(rows) == 1:
        rows.append(["", "Žiadne údaje", "", ""])
    return [_table(rows, [10 * mm, 100 * mm, 25 * mm, 25 * mm])]


def _footer(canvas, doc):
    canvas.saveState()
    canvas.setFont(report_fonts()[0], 8)
    canvas.setFillColor(colors.grey)
    canvas.drawString(15 * mm, 10 * mm, datetime.now().strftime("%d-%m-%Y"))
    canvas.drawRightString(A4[0] - 15 * mm, 10 * mm, f"Strana {doc.page}")
    canvas.restoreState()


def build_pdf_report(
    stats: RegistryStatistics,
    bands: Sequence[ProbabilityBand],
    top: Optional[int] = None,
    title: Optional[str] = None,
    filters: Optional[Dict[str, str]] = None
) -> bytes:
    """Render the statistics report and return the PDF bytes."""
    settings = get_settings()
    top = top or settings.top_n_default
    title = title or settings.report_title

    output = BytesIO()
    doc = SimpleDocTemplate(
        output,
        pagesize=A4,
        title=title,
        author=settings.export_creator,
        leftMargin=15 * mm,
        rightMargin=15 * mm,
        topMargin=15 * mm,
        bottomMargin=18 * mm,
    )
    regular, bold = report_fonts()
    styles = getSampleStyleSheet()
    heading = ParagraphStyle(name="ReportTitle", parent=styles["Heading1"], fontName=bold)
    sub_heading = ParagraphStyle(
        name="SubHeading", parent=styles["Heading2"], fontName=bold, fontSize=13, leading=16, spaceBefore=12
    )
    body = styles["BodyText"]
    body.fontName = regular

    elements = [
        Paragraph(escape(title), heading),
        Paragraph(f"Vygenerované: {datetime.now().strftime('%d-%m-%Y %H:%M')}", body),
    ]
    if filters:
        described = ", ".join(f"{k}: {v}" for k, v in filters.items())
        elements.append(Paragraph(f"Filtre: {escape(described)}", body))
    elements.append(Spacer(1, 8))

    # Key totals
    elements.append(Paragraph("Kľúčové ukazovatele", sub_heading))
    elements.append(_table([
        ["Ukazovateľ", "Hodnota"],
        ["Počet analyzovaných území", _number(stats.total)],
        ["Počet obcí", _number(len(stats.municipalities))],
        ["Počet krízových javov", _number(len(stats.events))],
        ["Ohrozené obyvateľstvo", _number(stats.total_population)],
        ["Ohrozená plocha (km²)", f"{stats.total_area:,.2f}".replace(",", " ")],
    ], [100 * mm, 60 * mm]))

    # Tier breakdown
    elements.append(Paragraph("Rozdelenie podľa úrovne rizika", sub_heading))
    shares = tier_share(stats)
    tier_rows = [["Úroveň rizika", "Počet", "Podiel"]]
    for tier in TIER_ORDER:
        tier_rows.append([RISK_TIER_LABELS[tier.value], stats.risk_levels[tier.value], f"{shares[tier.value]:.1f}%"])
    tier_table = _table(tier_rows, [70 * mm, 40 * mm, 40 * mm])
    for row_idx, tier in enumerate(TIER_ORDER, 1):
        tier_table.setStyle(TableStyle([("TEXTCOLOR", (0, row_idx), (0, row_idx), TIER_COLORS[tier.value])]))
    elements.append(tier_table)

    # Top-N tables
    elements.append(Paragraph(f"Top {top} obcí podľa počtu analýz", sub_heading))
    elements.extend(_ranked_table("Obec", stats.municipalities, top, stats.total, styles))

    elements.append(Paragraph(f"Top {top} krízových javov", sub_heading))
    elements.extend(_ranked_table("Krízový jav", stats.events, top, stats.total, styles))

    elements.append(Paragraph("Okresy", sub_heading))
    district_rows = [["Okres", "Spolu", "Kritické", "Vysoké", "Stredné", "Nízke", "Obyvatelia"]]
    for name, rollup in top_n(stats.districts, top):
        district_rows.append([
            _text(name, body), rollup.total, rollup.critical, rollup.high,
            rollup.medium, rollup.low, _number(rollup.population)
        ])
    if len(district_rows) == 1:
        district_rows.append(["Žiadne údaje", "", "", "", "", "", ""])
    elements.append(_table(district_rows, [48 * mm, 18 * mm, 18 * mm, 18 * mm, 18 * mm, 18 * mm, 24 * mm]))

    elements.append(Paragraph(f"Top {top} ohrozujúcich faktorov", sub_heading))
    elements.extend(_ranked_table("Faktor", stats.factors, top, stats.total, styles))

    # Probability bands
    elements.append(Paragraph("Pravdepodobnosť výskytu", sub_heading))
    prob_rows = [["Pravdepodobnosť", "Úroveň rizika", "Počet", "Podiel"]]
    for entry in probability_breakdown(stats, bands):
        level = entry["risk_level"]
        prob_rows.append([
            _text(entry["name"], body),
            RISK_TIER_LABELS.get(level, "-") if level else "-",
            entry["count"],
            _percent(entry["count"], stats.total),
        ])
    elements.append(_table(prob_rows, [80 * mm, 35 * mm, 20 * mm, 25 * mm]))

    doc.build(elements, onFirstPage=_footer, onLaterPages=_footer)
    return output.getvalue()
