"""PDF export for project reports using ReportLab."""

from __future__ import annotations

from datetime import datetime
from io import BytesIO
from typing import Any
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch, mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from vitruvi.reporting.sections import Section, build_sections

# Styles
styles = getSampleStyleSheet()
title_style = ParagraphStyle(
    "ReportTitle",
    parent=styles["Heading1"],
    fontSize=22,
    spaceAfter=20,
    textColor=colors.HexColor("#2d3748"),
)
section_style = ParagraphStyle(
    "ReportSection",
    parent=styles["Heading2"],
    fontSize=15,
    spaceBefore=12,
    spaceAfter=8,
    textColor=colors.HexColor("#4a5568"),
)
normal_style = ParagraphStyle(
    "ReportNormal",
    parent=styles["Normal"],
    fontSize=10,
    leading=14,
    textColor=colors.HexColor("#2d3748"),
)

TABLE_STYLE = TableStyle(
    [
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#366092")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cbd5e0")),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f7fafc")]),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]
)


def _section_table(section: Section) -> Table:
    rows = [section.header] + [[str(value) for value in row] for row in section.rows]
    width = 6.5 * inch / len(section.header)
    table = Table(rows, colWidths=[width] * len(section.header), repeatRows=1)
    table.setStyle(TABLE_STYLE)
    return table


def generate_project_pdf(
    project_name: str,
    location: str | None,
    data: dict[str, Any],
    report_type: str = "summary",
) -> BytesIO:
    """Render one project's latest Project Data as a PDF report."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=20 * mm,
        leftMargin=20 * mm,
        topMargin=20 * mm,
        bottomMargin=20 * mm,
        title=f"{project_name} - {report_type} report",
    )

    story: list[Any] = [
        Paragraph(f"{escape(project_name)}: {report_type.title()} Report", title_style),
        Paragraph(f"Location: {escape(location or 'Unknown')}", normal_style),
        Paragraph(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}", normal_style),
        Spacer(1, 0.3 * inch),
    ]

    for section in build_sections(data, report_type):
        story.append(Paragraph(escape(section.title), section_style))
        if section.rows:
            story.append(_section_table(section))
        else:
            story.append(Paragraph("No data recorded.", normal_style))

    insights = data.get("insights", [])
    if insights:
        story.append(Paragraph("Insights", section_style))
        for insight in insights:
            story.append(Paragraph(f"&bull; {escape(insight)}", normal_style))

    doc.build(story)
    buffer.seek(0)
    return buffer
