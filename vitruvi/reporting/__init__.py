"""Project report exports (Excel, PDF and PowerPoint)."""

from vitruvi.reporting.excel_export import generate_project_excel
from vitruvi.reporting.pdf_export import generate_project_pdf
from vitruvi.reporting.pptx_export import generate_project_pptx
from vitruvi.reporting.writer import MEDIA_TYPES, write_report

REPORT_TYPES = ("summary", "detailed", "financial", "compliance")
REPORT_FORMATS = ("pdf", "excel", "pptx")

__all__ = [
    "generate_project_excel",
    "generate_project_pdf",
    "generate_project_pptx",
    "write_report",
    "MEDIA_TYPES",
    "REPORT_TYPES",
    "REPORT_FORMATS",
]
