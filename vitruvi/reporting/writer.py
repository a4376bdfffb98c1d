"""Write generated reports into the configured upload directory."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from vitruvi.config import get_config
from vitruvi.reporting.excel_export import generate_project_excel
from vitruvi.reporting.pdf_export import generate_project_pdf
from vitruvi.reporting.pptx_export import generate_project_pptx

logger = logging.getLogger(__name__)

FILE_EXTENSIONS = {"pdf": "pdf", "excel": "xlsx", "pptx": "pptx"}
MEDIA_TYPES = {
    "pdf": "application/pdf",
    "excel": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}


def report_filename(project_name: str, report_type: str, report_format: str) -> str:
    slug = "".join(c if c.isalnum() else "_" for c in project_name).strip("_") or "project"
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{slug}_{report_type}_{stamp}.{FILE_EXTENSIONS[report_format]}"


def write_report(
    project: Any,
    data: dict[str, Any],
    report_type: str,
    report_format: str,
    history: list[dict[str, Any]] | None = None,
    directory: Path | None = None,
) -> Path:
    """Render a report for ``project`` and write it to disk.

    Args:
        project: Object with ``id``, ``name`` and ``location``
        data: Project Data document (camelCase keys)
        history: Chronological trend points, Excel only
        directory: Target directory; defaults to ``UPLOAD_DIR/reports/<project id>``

    Returns:
        Path of the written file
    """
    if report_format not in FILE_EXTENSIONS:
        raise ValueError(f"Unsupported report format: {report_format}")

    if report_format == "excel":
        buffer = generate_project_excel(
            project.name, project.location, data, report_type, history=history
        )
    elif report_format == "pptx":
        buffer = generate_project_pptx(project.name, project.location, data, report_type)
    else:
        buffer = generate_project_pdf(project.name, project.location, data, report_type)

    target_dir = directory or get_config().storage.upload_dir / "reports" / str(project.id)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / report_filename(project.name, report_type, report_format)
    path.write_bytes(buffer.getvalue())

    logger.info("Report written: %s (%s, %s)", path, report_type, report_format)
    return path
