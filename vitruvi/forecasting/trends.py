"""Trend series, velocity and linear completion forecast from analysis history."""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime
from statistics import linear_regression
from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field

from vitruvi.db.models import as_utc
from vitruvi.exceptions import InsufficientDataError
from vitruvi.history.tracker import snapshot_metric

TrendMetric = Literal["progress", "budget", "manpower", "safety", "all"]

# Fields reported per metric filter (besides date)
METRIC_FIELDS: dict[str, tuple[str, ...]] = {
    "progress": ("progress",),
    "budget": ("budget_spent", "budget_spent_percent", "budget_total"),
    "manpower": ("workers", "productivity"),
    "safety": ("safety_score",),
}

FORECAST_WINDOW = 10
DAYS_PER_ANALYSIS = 7  # one analysis per week
BUDGET_OVERRUN_PERCENT = 110

ADVICE_SLOW_VELOCITY = "Project velocity is slowing. Consider increasing resources."
ADVICE_BUDGET_OVERRUN = "Budget overrun projected. Review cost controls."
ADVICE_HIGH_RISK = "High risk detected. Schedule review meeting with stakeholders."

NO_HISTORY_MESSAGE = "No historical data available yet. Upload more analyses to see trends."
INSUFFICIENT_FORECAST_MESSAGE = "Insufficient data for forecasting. Need at least 2 analyses."


class HistoryEntry(Protocol):
    analysis_date: datetime
    snapshot: dict[str, Any]
    deltas: dict[str, Any] | None


class TrendReport(BaseModel):
    data_points: int
    velocity: float = 0.0
    velocity_unit: str = "% per day"
    insufficient_data: bool = False
    message: str | None = None
    trends: list[dict[str, Any]] = Field(default_factory=list)


class Forecast(BaseModel):
    completion_days: int | None
    completion_date_estimate: str
    completion_confidence: str
    slope: float
    intercept: float
    final_budget_projection: float  # percent of total budget
    projected_final_cost: float  # currency
    budget_overrun_risk: str
    recent_progress_gain: float
    risk_level: str
    recommendations: list[str]
    based_on: str


def _metric(snapshot: dict[str, Any], *path: str) -> float:
    value = snapshot_metric(snapshot, path)
    return 0.0 if value is None else value


def trend_point(entry: HistoryEntry) -> dict[str, Any]:
    snapshot = entry.snapshot or {}
    return {
        "date": as_utc(entry.analysis_date).isoformat(),
        "progress": _metric(snapshot, "progressPercentage"),
        "stage": snapshot.get("stage", "Unknown"),
        "budget_spent": _metric(snapshot, "financials", "budgetSpent"),
        "budget_spent_percent": _metric(snapshot, "financials", "budgetSpentPercent"),
        "budget_total": _metric(snapshot, "financials", "budgetTotal"),
        "workers": _metric(snapshot, "manpower", "total"),
        "safety_score": _metric(snapshot, "manpower", "safetyScore"),
        "productivity": _metric(snapshot, "manpower", "productivityIndex"),
        "delays": _metric(snapshot, "delaysFlagged"),
        "confidence": snapshot.get("confidence_score"),
        "deltas": entry.deltas or {},
    }


def progress_velocity(points: Sequence[tuple[datetime, float]]) -> float:
    """Progress points per elapsed day between the first and last point.

    Zero for fewer than two points or no elapsed time.
    """
    if len(points) < 2:
        return 0.0
    (first_date, first_progress), (last_date, last_progress) = points[0], points[-1]
    days = (as_utc(last_date) - as_utc(first_date)).total_seconds() / 86400
    if days <= 0:
        return 0.0
    return (last_progress - first_progress) / days


def build_trends(newest_first: Sequence[HistoryEntry], metric: TrendMetric = "all") -> TrendReport:
    """Chronological trend series from entries fetched newest first."""
    if not newest_first:
        return TrendReport(data_points=0, insufficient_data=True, message=NO_HISTORY_MESSAGE)

    entries = list(reversed(newest_first))
    points = [trend_point(entry) for entry in entries]
    velocity = progress_velocity(
        [(entry.analysis_date, point["progress"]) for entry, point in zip(entries, points)]
    )

    if metric != "all":
        fields = METRIC_FIELDS[metric]
        points = [{"date": p["date"], **{f: p[f] for f in fields}} for p in points]

    return TrendReport(
        data_points=len(points),
        velocity=round(velocity, 2),
        insufficient_data=len(points) < 2,
        trends=points,
    )


def risk_from_gain(gain: float) -> str:
    if gain < 5:
        return "high"
    if gain < 10:
        return "medium"
    return "low"


def completion_confidence(slope: float) -> str:
    if slope > 0.5:
        return "high"
    if slope > 0.2:
        return "medium"
    return "low"


def forecast_completion(newest_first: Sequence[HistoryEntry]) -> Forecast:
    """Linear forecast over the most recent analyses.

    Raises:
        InsufficientDataError: Fewer than two history entries
    """
    if len(newest_first) < 2:
        raise InsufficientDataError(INSUFFICIENT_FORECAST_MESSAGE, available=len(newest_first))

    window = list(reversed(newest_first[:FORECAST_WINDOW]))
    progress = [_metric(e.snapshot or {}, "progressPercentage") for e in window]
    slope, intercept = linear_regression(list(range(len(window))), progress)

    completion_days: int | None = None
    if slope > 0:
        steps_to_complete = (100 - intercept) / slope
        completion_days = max(0, math.ceil(steps_to_complete * DAYS_PER_ANALYSIS))

    latest = window[-1].snapshot or {}
    current_progress = progress[-1]
    spent_percent = _metric(latest, "financials", "budgetSpentPercent")
    budget_total = _metric(latest, "financials", "budgetTotal")
    projection = spent_percent / current_progress * 100 if current_progress > 0 else 0.0

    # Gain since the entry two analyses back (or the first, for short windows)
    reference = progress[-3] if len(progress) >= 3 else progress[0]
    recent_gain = current_progress - reference
    risk_level = risk_from_gain(recent_gain)

    recommendations = []
    if recent_gain < 5:
        recommendations.append(ADVICE_SLOW_VELOCITY)
    if projection > BUDGET_OVERRUN_PERCENT:
        recommendations.append(ADVICE_BUDGET_OVERRUN)
    if risk_level == "high":
        recommendations.append(ADVICE_HIGH_RISK)

    return Forecast(
        completion_days=completion_days,
        completion_date_estimate=(
            f"{completion_days} days from latest analysis"
            if completion_days is not None
            else "Unable to estimate"
        ),
        completion_confidence=(
            completion_confidence(slope) if completion_days is not None else "insufficient data"
        ),
        slope=round(slope, 4),
        intercept=round(intercept, 4),
        final_budget_projection=round(projection, 2),
        projected_final_cost=round(budget_total * projection / 100, 2),
        budget_overrun_risk="Yes" if projection > 100 else "No",
        recent_progress_gain=round(recent_gain, 2),
        risk_level=risk_level,
        recommendations=recommendations,
        based_on=f"{len(window)} historical analyses",
    )
