"""Analyze workflow: photo -> vision model -> normalized Project Data.

Write order after a successful model call:

1. save the project's latest Project Data (failure propagates)
2. increment the owner's scan usage (separate write, failure propagates)
3. append a history entry with deltas (logged and swallowed on failure)
4. create an in-app notification (logged and swallowed on failure)

Steps 1 and 2 are not atomic together; a crash between them leaves usage
one short.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog

from vitruvi.analysis.normalizer import extract_confidence, extract_insights, normalize_analysis
from vitruvi.analysis.vision import VisionAnalyzer
from vitruvi.db import store
from vitruvi.db.connection import get_session
from vitruvi.db.models import ProjectModel, as_utc
from vitruvi.history.tracker import build_snapshot, record_analysis
from vitruvi.models import ProjectData, ProjectMode

logger = structlog.get_logger(__name__)

CHART_HISTORY_POINTS = 5


@dataclass
class AnalysisOutcome:
    project_data: ProjectData
    confidence: float
    insights: list[str]
    scans_used: int
    history_entry_id: UUID | None


async def _progress_history(project_id: UUID) -> list[tuple[str, float]]:
    async with get_session() as session:
        entries = await store.list_history(session, project_id, limit=CHART_HISTORY_POINTS)
    points = []
    for entry in reversed(entries):
        progress = (entry.snapshot or {}).get("progressPercentage", 0)
        points.append((as_utc(entry.analysis_date).strftime("%b %d"), progress))
    return points


async def _record_history(
    project_id: UUID,
    user_id: UUID,
    snapshot: dict[str, Any],
    analysis_date: datetime | None,
) -> UUID | None:
    try:
        async with get_session() as session:
            entry = await record_analysis(
                session, project_id, user_id, snapshot, analysis_date=analysis_date
            )
            return entry.id
    except Exception as exc:
        logger.error("history_record_failed", project_id=str(project_id), error=str(exc))
        return None


async def _notify(user_id: UUID, project: ProjectModel, project_data: ProjectData) -> None:
    try:
        async with get_session() as session:
            await store.create_notification(
                session,
                user_id,
                title="Analysis complete",
                message=(
                    f"{project.name}: {project_data.stage}, "
                    f"{project_data.progress_percentage:g}% complete"
                ),
                type="analysis",
                project_id=project.id,
            )
    except Exception as exc:
        logger.error("analysis_notification_failed", project_id=str(project.id), error=str(exc))


async def run_analysis(
    analyzer: VisionAnalyzer,
    project: ProjectModel,
    user_id: UUID,
    image: bytes,
    mode: ProjectMode,
    mime_type: str = "image/jpeg",
    analysis_date: datetime | None = None,
) -> AnalysisOutcome:
    """Analyze one photo for ``project`` and persist the result.

    Raises:
        VisionError: Model unavailable, failed or unparsable; nothing is written
    """
    raw = await analyzer.analyze(image, mode, mime_type=mime_type)

    project_data = normalize_analysis(
        raw,
        project,
        progress_history=await _progress_history(project.id),
        now=as_utc(analysis_date) if analysis_date else None,
    )
    confidence = extract_confidence(raw)
    insights = extract_insights(raw)

    async with get_session() as session:
        await store.save_project_data(session, project.id, project_data.to_document())

    async with get_session() as session:
        scans_used = await store.increment_scan_usage(session, user_id)

    snapshot = build_snapshot(project_data, confidence, insights)
    entry_id = await _record_history(project.id, user_id, snapshot, analysis_date)
    await _notify(user_id, project, project_data)

    logger.info(
        "analysis_completed",
        project_id=str(project.id),
        stage=project_data.stage,
        progress=project_data.progress_percentage,
        confidence=confidence,
        scans_used=scans_used,
    )
    return AnalysisOutcome(
        project_data=project_data,
        confidence=confidence,
        insights=insights,
        scans_used=scans_used,
        history_entry_id=entry_id,
    )
