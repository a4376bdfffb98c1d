"""Report routes: list, generate (paid plans) and download."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from vitruvi.analysis.normalizer import normalize_analysis
from vitruvi.db import store
from vitruvi.db.connection import get_session
from vitruvi.forecasting.trends import trend_point
from vitruvi.reporting import MEDIA_TYPES, write_report
from vitruvi.web.auth import AuthContext, get_current_user, require_premium
from vitruvi.web.dependencies import get_owned_project, parse_uuid
from vitruvi.web.schemas import ReportRequest, ReportResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])

HISTORY_ROWS = 30


@router.get("/projects/{project_id}", response_model=list[ReportResponse])
async def list_project_reports(project_id: str, auth: AuthContext = Depends(get_current_user)):
    async with get_session() as session:
        project = await get_owned_project(session, project_id, auth.user_id)
        reports = await store.list_reports(session, project.id)
        return [ReportResponse.model_validate(r) for r in reports]


@router.post(
    "/projects/{project_id}",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_report(
    project_id: str,
    payload: ReportRequest,
    auth: AuthContext = Depends(require_premium),
):
    async with get_session() as session:
        project = await get_owned_project(session, project_id, auth.user_id)
        entries = await store.list_history(session, project.id, limit=HISTORY_ROWS)

    data = project.project_data or normalize_analysis({}, project).to_document()
    history = [trend_point(entry) for entry in reversed(entries)]

    # openpyxl / reportlab / python-pptx are blocking
    path = await asyncio.to_thread(
        write_report, project, data, payload.report_type, payload.report_format, history
    )

    async with get_session() as session:
        report = await store.create_report_record(
            session,
            project.id,
            auth.user_id,
            report_type=payload.report_type,
            report_format=payload.report_format,
            file_path=str(path),
        )
        response = ReportResponse.model_validate(report)

    logger.info(
        "report_generated",
        report_id=str(response.id),
        project_id=str(project.id),
        report_type=payload.report_type,
        report_format=payload.report_format,
    )
    return response


@router.get("/{report_id}/download")
async def download_report(report_id: str, auth: AuthContext = Depends(get_current_user)):
    async with get_session() as session:
        report = await store.get_report(session, parse_uuid(report_id, "report"), auth.user_id)

    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    path = Path(report.file_path)
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Report file no longer exists")

    return FileResponse(path, media_type=MEDIA_TYPES[report.report_format], filename=path.name)
