"""Portfolio aggregation across all of a user's projects.

Two per-project classifications are computed here and must stay separate:
``classify_status`` labels the current trajectory, ``score_risk_level``
grades overall risk. Their thresholds differ on purpose.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass
from typing import Any, Literal, Protocol

Status = Literal["on_track", "at_risk", "delayed"]
RiskLevel = Literal["low", "medium", "high"]

RISK_ORDER: dict[str, int] = {"high": 3, "medium": 2, "low": 1}


class PortfolioProject(Protocol):
    id: Any
    name: str
    project_data: dict[str, Any] | None


@dataclass
class ProjectComparison:
    project_id: str
    name: str
    progress: float
    budget_spent_pct: float
    safety_score: float
    delays: int
    risk_level: RiskLevel
    status: Status

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _value(data: dict[str, Any], *path: str) -> float:
    value: Any = data
    for key in path:
        if not isinstance(value, dict):
            return 0.0
        value = value.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def classify_status(progress: float, budget_spent_pct: float, delays: float) -> Status:
    """Current trajectory; first matching rule wins."""
    if delays > 2:
        return "delayed"
    if progress < 50 and budget_spent_pct > 60:
        return "at_risk"
    return "on_track"


def score_risk_level(
    progress: float, budget_spent_pct: float, safety_score: float, delays: float
) -> RiskLevel:
    if delays > 3 or safety_score < 70 or (progress < 50 and budget_spent_pct > 60):
        return "high"
    if delays > 1 or safety_score < 85 or (progress < 70 and budget_spent_pct > 80):
        return "medium"
    return "low"


def format_millions(amount: float) -> str:
    if amount == 0:
        return "$0"
    return f"${amount / 1_000_000:.1f}M"


def summarize_portfolio(projects: Sequence[PortfolioProject]) -> dict[str, Any]:
    """Headline totals for a user's portfolio.

    Projects without Project Data count towards ``total_projects`` but are
    otherwise skipped. Progress is averaged over projects with data; safety
    over projects reporting a non-zero score.
    """
    total_value = 0.0
    total_progress = 0.0
    total_spent = 0.0
    total_workers = 0
    safety_total = 0.0
    safety_count = 0
    with_data = 0
    counts: dict[str, int] = {"on_track": 0, "at_risk": 0, "delayed": 0}

    for project in projects:
        data = project.project_data
        if not data:
            continue
        with_data += 1

        progress = _value(data, "progressPercentage")
        spent_pct = _value(data, "financials", "budgetSpentPercent")
        budget_total = _value(data, "financials", "budgetTotal")
        safety = _value(data, "manpower", "safetyScore")

        total_value += _value(data, "valuation", "current")
        total_progress += progress
        total_spent += budget_total * spent_pct / 100
        total_workers += int(_value(data, "manpower", "total"))
        if safety > 0:
            safety_total += safety
            safety_count += 1

        counts[classify_status(progress, spent_pct, _value(data, "delaysFlagged"))] += 1

    roi = (total_value - total_spent) / total_spent * 100 if total_spent > 0 else 0.0

    return {
        "total_projects": len(projects),
        "projects_with_data": with_data,
        "total_value": format_millions(total_value),
        "avg_progress": round(total_progress / with_data, 1) if with_data else 0,
        "projects_on_track": counts["on_track"],
        "projects_at_risk": counts["at_risk"],
        "projects_delayed": counts["delayed"],
        "total_budget_spent": format_millions(total_spent),
        "portfolio_roi": f"{roi:.1f}%" if total_spent > 0 else "0%",
        "total_workers": total_workers,
        "avg_safety_score": round(safety_total / safety_count) if safety_count else 0,
    }


def compare_project(project: PortfolioProject) -> ProjectComparison:
    data = project.project_data or {}
    progress = _value(data, "progressPercentage")
    spent_pct = _value(data, "financials", "budgetSpentPercent")
    safety = _value(data, "manpower", "safetyScore")
    delays = _value(data, "delaysFlagged")
    return ProjectComparison(
        project_id=str(project.id),
        name=project.name,
        progress=progress,
        budget_spent_pct=spent_pct,
        safety_score=safety,
        delays=int(delays),
        risk_level=score_risk_level(progress, spent_pct, safety, delays),
        status=classify_status(progress, spent_pct, delays),
    )


def compare_projects(
    projects: Iterable[PortfolioProject], project_ids: Iterable[str] | None = None
) -> list[ProjectComparison]:
    """Comparison rows for projects with data, optionally limited to ``project_ids``."""
    wanted = {str(pid) for pid in project_ids} if project_ids else None
    return [
        compare_project(project)
        for project in projects
        if project.project_data and (wanted is None or str(project.id) in wanted)
    ]


def top_risk_projects(
    comparisons: Iterable[ProjectComparison], limit: int = 5
) -> list[ProjectComparison]:
    """Highest risk first; ties keep their input order."""
    ranked = sorted(comparisons, key=lambda c: RISK_ORDER[c.risk_level], reverse=True)
    return ranked[:limit]


def resource_allocation(projects: Sequence[PortfolioProject]) -> dict[str, Any]:
    by_project = []
    for project in projects:
        data = project.project_data or {}
        by_project.append({
            "project_id": str(project.id),
            "name": project.name,
            "workers": int(_value(data, "manpower", "total")),
            "machinery_units": int(_value(data, "machinery", "activeUnits")),
            "budget_allocated": _value(data, "financials", "budgetTotal"),
        })

    return {
        "by_project": by_project,
        "totals": {
            "total_workers": sum(p["workers"] for p in by_project),
            "total_machinery": sum(p["machinery_units"] for p in by_project),
            "total_budget": sum(p["budget_allocated"] for p in by_project),
            "projects_count": len(projects),
        },
    }
