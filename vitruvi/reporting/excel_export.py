"""Excel export for project reports.

One "Summary" sheet with project details and insights, then one sheet per
report section, plus a progress-history sheet when history is supplied.
"""
from __future__ import annotations

from datetime import datetime
from io import BytesIO
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from vitruvi.reporting.sections import Section, build_sections

HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=12)


def generate_project_excel(
    project_name: str,
    location: str | None,
    data: dict[str, Any],
    report_type: str = "summary",
    history: list[dict[str, Any]] | None = None,
) -> BytesIO:
    """Build the workbook for one project's latest Project Data.

    Args:
        history: Optional chronological trend points (``date``, ``progress``,
            ``budget_spent``, ``workers``, ``safety_score``)
    """
    wb = Workbook()

    # Remove default sheet
    if "Sheet" in wb.sheetnames:
        wb.remove(wb["Sheet"])

    _create_summary_sheet(wb, project_name, location, data, report_type)
    for section in build_sections(data, report_type):
        _create_section_sheet(wb, section)
    if history:
        _create_history_sheet(wb, history)

    output = BytesIO()
    wb.save(output)
    output.seek(0)
    return output


def _style_header(ws, row: int, headers: list[str]) -> None:
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT


def _fit_columns(ws, widths: int = 22) -> None:
    for col in range(1, ws.max_column + 1):
        ws.column_dimensions[get_column_letter(col)].width = widths


def _create_summary_sheet(wb: Workbook, project_name, location, data, report_type) -> None:
    ws = wb.create_sheet("Summary", 0)

    ws["A1"] = f"Vitruvi {report_type.title()} Report"
    ws["A1"].font = Font(bold=True, size=16)
    ws.merge_cells("A1:D1")

    ws["A3"] = "Project:"
    ws["B3"] = project_name
    ws["A4"] = "Location:"
    ws["B4"] = location or "Unknown"
    ws["A5"] = "Generated:"
    ws["B5"] = datetime.now().strftime("%Y-%m-%d %H:%M")
    ws["A6"] = "Stage:"
    ws["B6"] = data.get("stage", "Unknown")
    ws["A7"] = "Progress:"
    ws["B7"] = f"{data.get('progressPercentage', 0):g}%"

    ws["A9"] = "Insights"
    ws["A9"].font = Font(bold=True, size=14)
    for offset, insight in enumerate(data.get("insights", []), start=10):
        ws.cell(row=offset, column=1, value=f"- {insight}")

    ws.column_dimensions["A"].width = 20
    ws.column_dimensions["B"].width = 40


def _create_section_sheet(wb: Workbook, section: Section) -> None:
    # Sheet titles are capped at 31 characters and may not contain "&"
    ws = wb.create_sheet(section.title.replace("&", "and")[:31])
    _style_header(ws, 1, section.header)
    for row_index, row in enumerate(section.rows, start=2):
        for col_index, value in enumerate(row, start=1):
            ws.cell(row=row_index, column=col_index, value=value)
    _fit_columns(ws)


def _create_history_sheet(wb: Workbook, history: list[dict[str, Any]]) -> None:
    ws = wb.create_sheet("Progress History")
    columns = ["date", "progress", "budget_spent", "workers", "safety_score"]
    _style_header(ws, 1, ["Date", "Progress %", "Budget Spent", "Workers", "Safety Score"])
    for row_index, point in enumerate(history, start=2):
        for col_index, key in enumerate(columns, start=1):
            ws.cell(row=row_index, column=col_index, value=point.get(key))
    _fit_columns(ws, 18)
