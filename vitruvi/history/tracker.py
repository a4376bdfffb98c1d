"""Append-only analysis history with deltas against the prior snapshot."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from vitruvi.db import store
from vitruvi.db.models import AnalysisHistoryModel
from vitruvi.models import ProjectData

logger = structlog.get_logger(__name__)

# delta name -> key path inside a snapshot
DELTA_METRICS: dict[str, tuple[str, ...]] = {
    "progress": ("progressPercentage",),
    "budget_spent": ("financials", "budgetSpentPercent"),
    "workers": ("manpower", "total"),
    "safety_score": ("manpower", "safetyScore"),
    "delays": ("delaysFlagged",),
    "productivity": ("manpower", "productivityIndex"),
}


def build_snapshot(
    project_data: ProjectData,
    confidence: float,
    insights: list[str],
) -> dict[str, Any]:
    """Headline metrics of one analysis plus the full Project Data document."""
    document = project_data.to_document()
    manpower = document["manpower"]
    financials = document["financials"]
    return {
        "stage": document["stage"],
        "progressPercentage": document["progressPercentage"],
        "timeRemaining": document["timeRemaining"],
        "criticalPath": document["criticalPath"],
        "delaysFlagged": document["delaysFlagged"],
        "confidence_score": confidence,
        "insights": list(insights),
        "manpower": {
            "total": manpower["total"],
            "skilled": manpower["skilled"],
            "unskilled": manpower["unskilled"],
            "safetyScore": manpower["safetyScore"],
            "productivityIndex": manpower["productivityIndex"],
        },
        "machinery": {
            "activeUnits": document["machinery"]["activeUnits"],
            "utilization": document["machinery"]["utilization"],
        },
        "financials": {
            "budgetTotal": financials["budgetTotal"],
            "budgetSpent": financials["budgetSpent"],
            "budgetSpentPercent": financials["budgetSpentPercent"],
            "costOverrun": financials["costOverrun"],
        },
        "project_data": document,
    }


def snapshot_metric(snapshot: dict[str, Any] | None, path: tuple[str, ...]) -> float | None:
    """Numeric value at ``path``, or None when the snapshot lacks it."""
    value: Any = snapshot
    for key in path:
        if not isinstance(value, dict) or key not in value:
            return None
        value = value[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def compute_deltas(
    current: dict[str, Any], previous: dict[str, Any] | None
) -> dict[str, float] | None:
    """Signed change per metric, or None when there is no prior snapshot.

    A metric is omitted (rather than reported as 0) when either snapshot
    lacks it.
    """
    if previous is None:
        return None

    deltas: dict[str, float] = {}
    for name, path in DELTA_METRICS.items():
        new_value = snapshot_metric(current, path)
        old_value = snapshot_metric(previous, path)
        if new_value is None or old_value is None:
            continue
        deltas[name] = round(new_value - old_value, 2)
    return deltas


async def record_analysis(
    session: AsyncSession,
    project_id: UUID,
    user_id: UUID,
    snapshot: dict[str, Any],
    analysis_date: datetime | None = None,
) -> AnalysisHistoryModel:
    """Append a history entry and attach deltas against its predecessor.

    The predecessor is the latest entry dated at or before this one, so
    backfilled analyses compare against the right neighbour.
    """
    entry = await store.add_history_entry(
        session, project_id, user_id, snapshot, analysis_date=analysis_date
    )
    previous = await store.previous_history_entry(
        session, project_id, entry.analysis_date, exclude_id=entry.id
    )
    entry.deltas = compute_deltas(snapshot, previous.snapshot if previous else None)
    await session.flush()

    logger.info(
        "history_recorded",
        project_id=str(project_id),
        entry_id=str(entry.id),
        has_previous=previous is not None,
    )
    return entry
