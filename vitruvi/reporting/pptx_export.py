"""PowerPoint export for project reports.

A title slide, one table slide per report section (long sections continue on
further slides), and an insights slide when the analysis produced any.
"""
from __future__ import annotations

from datetime import datetime
from io import BytesIO
from typing import Any

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.util import Inches, Pt

from vitruvi.reporting.sections import Section, build_sections

ROWS_PER_SLIDE = 12

# Layout indices in the default template
TITLE_LAYOUT = 0
BLANK_LAYOUT = 6

HEADER_FILL = RGBColor(0x36, 0x60, 0x92)
HEADER_TEXT = RGBColor(0xFF, 0xFF, 0xFF)
TITLE_TEXT = RGBColor(0x2D, 0x37, 0x48)
MUTED_TEXT = RGBColor(0x4A, 0x55, 0x68)


def generate_project_pptx(
    project_name: str,
    location: str | None,
    data: dict[str, Any],
    report_type: str = "summary",
) -> BytesIO:
    """Build the slide deck for one project's latest Project Data."""
    prs = Presentation()
    prs.core_properties.author = "VitruviAI"
    prs.core_properties.title = f"{project_name} - Analysis Report"

    _add_title_slide(prs, project_name, location, report_type)
    for section in build_sections(data, report_type):
        _add_section_slides(prs, section)

    insights = data.get("insights") or []
    if insights:
        _add_insights_slide(prs, insights)

    output = BytesIO()
    prs.save(output)
    output.seek(0)
    return output


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def _add_title_slide(prs, project_name: str, location: str | None, report_type: str) -> None:
    slide = prs.slides.add_slide(prs.slide_layouts[TITLE_LAYOUT])
    slide.shapes.title.text = f"Vitruvi {report_type.title()} Report"

    subtitle = slide.placeholders[1].text_frame
    subtitle.text = project_name
    for line in (
        f"Location: {location or 'Unknown'}",
        f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}",
    ):
        para = subtitle.add_paragraph()
        para.text = line
        para.font.size = Pt(14)
        para.font.color.rgb = MUTED_TEXT


def _add_heading(slide, text: str) -> None:
    box = slide.shapes.add_textbox(Inches(0.5), Inches(0.3), Inches(9), Inches(0.8))
    para = box.text_frame.paragraphs[0]
    para.text = text
    para.font.size = Pt(28)
    para.font.bold = True
    para.font.color.rgb = TITLE_TEXT


def _add_section_slides(prs, section: Section) -> None:
    pages = [
        section.rows[start : start + ROWS_PER_SLIDE]
        for start in range(0, len(section.rows), ROWS_PER_SLIDE)
    ] or [[]]
    columns = len(section.header)

    for page_number, rows in enumerate(pages):
        slide = prs.slides.add_slide(prs.slide_layouts[BLANK_LAYOUT])
        title = section.title if page_number == 0 else f"{section.title} (cont.)"
        _add_heading(slide, title)

        table = slide.shapes.add_table(
            len(rows) + 1,
            columns,
            Inches(0.5),
            Inches(1.2),
            Inches(9),
            Inches(0.4) * (len(rows) + 1),
        ).table

        for col, header in enumerate(section.header):
            cell = table.cell(0, col)
            cell.text = header
            cell.fill.solid()
            cell.fill.fore_color.rgb = HEADER_FILL
            para = cell.text_frame.paragraphs[0]
            para.font.bold = True
            para.font.size = Pt(14)
            para.font.color.rgb = HEADER_TEXT

        for row_index, row in enumerate(rows, start=1):
            for col, value in enumerate(row[:columns]):
                cell = table.cell(row_index, col)
                cell.text = _cell_text(value)
                cell.text_frame.paragraphs[0].font.size = Pt(12)


def _add_insights_slide(prs, insights: list[str]) -> None:
    slide = prs.slides.add_slide(prs.slide_layouts[BLANK_LAYOUT])
    _add_heading(slide, "Key Insights")

    frame = slide.shapes.add_textbox(Inches(0.5), Inches(1.2), Inches(9), Inches(5)).text_frame
    frame.word_wrap = True
    for index, insight in enumerate(insights):
        para = frame.paragraphs[0] if index == 0 else frame.add_paragraph()
        para.text = f"- {insight}"
        para.font.size = Pt(16)
