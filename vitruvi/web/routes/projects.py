"""Project routes: CRUD, photo analysis, history, trends and forecast."""

from __future__ import annotations

from typing import Literal

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse

from vitruvi.analysis.service import run_analysis
from vitruvi.analysis.vision import InvalidImageError, VisionAnalyzer, VisionError, decode_image
from vitruvi.config import get_config
from vitruvi.db import store
from vitruvi.db.connection import get_session
from vitruvi.db.models import as_utc
from vitruvi.exceptions import InsufficientDataError
from vitruvi.forecasting.trends import FORECAST_WINDOW, build_trends, forecast_completion
from vitruvi.models import ProjectMode
from vitruvi.web.auth import AuthContext, get_current_user, require_scan_available
from vitruvi.web.dependencies import get_owned_project, get_vision_analyzer
from vitruvi.web.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectUpdate,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    auth: AuthContext = Depends(get_current_user),
):
    """The caller's projects, newest first."""
    async with get_session() as session:
        projects, total = await store.list_projects(session, auth.user_id, page, per_page)
    return ProjectListResponse(
        projects=[ProjectResponse.from_model(p) for p in projects],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(payload: ProjectCreate, auth: AuthContext = Depends(get_current_user)):
    async with get_session() as session:
        owned = await store.count_projects(session, auth.user_id)
        if owned >= auth.subscription.max_projects:
            raise HTTPException(
                status_code=403,
                detail=(
                    f"Project limit reached ({auth.subscription.max_projects}). "
                    "Please upgrade your plan."
                ),
            )
        project = await store.create_project(
            session,
            auth.user_id,
            name=payload.name,
            description=payload.description,
            location=payload.location,
            mode=payload.mode.value,
        )

    logger.info("project_created", project_id=str(project.id), user_id=str(auth.user_id))
    return ProjectResponse.from_model(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, auth: AuthContext = Depends(get_current_user)):
    async with get_session() as session:
        project = await get_owned_project(session, project_id, auth.user_id)
    return ProjectResponse.from_model(project)


@router.get("/{project_id}/data")
async def get_project_data(project_id: str, auth: AuthContext = Depends(get_current_user)):
    """Latest normalized Project Data, or 404 before the first analysis."""
    async with get_session() as session:
        project = await get_owned_project(session, project_id, auth.user_id)
    if project.project_data is None:
        raise HTTPException(status_code=404, detail="No analysis data for this project yet")
    return project.project_data


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    payload: ProjectUpdate,
    auth: AuthContext = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "mode" in changes:
        changes["mode"] = ProjectMode(changes["mode"]).value

    async with get_session() as session:
        project = await get_owned_project(session, project_id, auth.user_id)
        if changes:
            project = await store.update_project(session, project, changes)
    return ProjectResponse.from_model(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(project_id: str, auth: AuthContext = Depends(get_current_user)):
    async with get_session() as session:
        project = await get_owned_project(session, project_id, auth.user_id)
        await store.delete_project(session, project)

    logger.info("project_deleted", project_id=project_id, user_id=str(auth.user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{project_id}/analyze", response_model=AnalyzeResponse)
async def analyze_project(
    project_id: str,
    payload: AnalyzeRequest,
    auth: AuthContext = Depends(require_scan_available),
    analyzer: VisionAnalyzer = Depends(get_vision_analyzer),
):
    """Analyze a site photo and store the normalized result.

    Model failures return 400 with a ``reason`` and leave history and scan
    usage untouched.
    """
    async with get_session() as session:
        project = await get_owned_project(session, project_id, auth.user_id)

    try:
        image, mime_type = decode_image(payload.image)
    except InvalidImageError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    max_size = get_config().storage.max_upload_size
    if len(image) > max_size:
        raise HTTPException(
            status_code=413, detail=f"Image exceeds {max_size // (1024 * 1024)}MB limit"
        )

    mode = payload.mode or ProjectMode(project.mode)
    try:
        outcome = await run_analysis(
            analyzer,
            project,
            auth.user_id,
            image,
            mode,
            mime_type=mime_type,
            analysis_date=payload.analysis_date,
        )
    except VisionError as exc:
        logger.warning(
            "analysis_rejected", project_id=project_id, reason=exc.reason, error=str(exc)
        )
        return JSONResponse(
            status_code=400,
            content={"detail": str(exc), "reason": exc.reason, "is_valid": False},
        )

    return AnalyzeResponse(
        project_id=project.id,
        project_data=outcome.project_data.to_document(),
        confidence_score=outcome.confidence,
        insights=outcome.insights,
        scans_used=outcome.scans_used,
        history_recorded=outcome.history_entry_id is not None,
    )


@router.get("/{project_id}/analyses")
async def list_analyses(
    project_id: str,
    limit: int = Query(20, ge=1, le=100),
    skip: int = Query(0, ge=0),
    auth: AuthContext = Depends(get_current_user),
):
    """Analysis history, newest first."""
    async with get_session() as session:
        project = await get_owned_project(session, project_id, auth.user_id)
        entries = await store.list_history(session, project.id, limit=limit, skip=skip)
        total = await store.count_history(session, project.id)

    return {
        "project_id": str(project.id),
        "total": total,
        "analyses": [
            {
                "id": str(entry.id),
                "analysis_date": as_utc(entry.analysis_date).isoformat(),
                "snapshot": {k: v for k, v in entry.snapshot.items() if k != "project_data"},
                "deltas": entry.deltas,
            }
            for entry in entries
        ],
    }


@router.get("/{project_id}/trends")
async def get_trends(
    project_id: str,
    metric: Literal["progress", "budget", "manpower", "safety", "all"] = "all",
    limit: int = Query(30, ge=1, le=365),
    auth: AuthContext = Depends(get_current_user),
):
    async with get_session() as session:
        project = await get_owned_project(session, project_id, auth.user_id)
        entries = await store.list_history(session, project.id, limit=limit)

    report = build_trends(entries, metric)
    return {"project_id": str(project.id), **report.model_dump(exclude_none=True)}


@router.get("/{project_id}/forecast")
async def get_forecast(project_id: str, auth: AuthContext = Depends(get_current_user)):
    async with get_session() as session:
        project = await get_owned_project(session, project_id, auth.user_id)
        entries = await store.list_history(session, project.id, limit=FORECAST_WINDOW)

    try:
        forecast = forecast_completion(entries)
    except InsufficientDataError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    body = forecast.model_dump()
    based_on = body.pop("based_on")
    return {"project_id": str(project.id), "forecast": body, "based_on": based_on}
