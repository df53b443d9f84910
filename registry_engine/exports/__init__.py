"""
Export writers: xlsx/csv spreadsheets and the PDF statistics report.
"""

from .spreadsheet import build_workbook, build_csv, territories_frame
from .report import build_pdf_report

__all__ = [
    'build_workbook',
    'build_csv',
    'territories_frame',
    'build_pdf_report',
]
