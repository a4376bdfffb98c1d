"""Read-only slices of a project's Project Data for the dashboard tabs."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from vitruvi.analysis.normalizer import normalize_analysis
from vitruvi.db.connection import get_session
from vitruvi.db.models import ProjectModel
from vitruvi.web.auth import AuthContext, get_current_user
from vitruvi.web.dependencies import get_owned_project

router = APIRouter(prefix="/api/projects", tags=["project-data"])


def _document(project: ProjectModel) -> dict[str, Any]:
    # Before the first analysis the tabs render zeroed defaults
    if project.project_data is None:
        return normalize_analysis({}, project).to_document()
    return project.project_data


async def _load(project_id: str, auth: AuthContext) -> tuple[ProjectModel, dict[str, Any]]:
    async with get_session() as session:
        project = await get_owned_project(session, project_id, auth.user_id)
    return project, _document(project)


@router.get("/{project_id}/construction")
async def construction_view(project_id: str, auth: AuthContext = Depends(get_current_user)):
    project, data = await _load(project_id, auth)
    return {
        "project_id": str(project.id),
        "has_data": project.project_data is not None,
        "stage": data.get("stage"),
        "progress_percentage": data.get("progressPercentage"),
        "delays_flagged": data.get("delaysFlagged"),
        "manpower": data.get("manpower", {}),
        "machinery": data.get("machinery", {}),
        "materials": data.get("materials", []),
        "progress_chart": data.get("charts", {}).get("progressOverTime", []),
    }


@router.get("/{project_id}/financial")
async def financial_view(project_id: str, auth: AuthContext = Depends(get_current_user)):
    project, data = await _load(project_id, auth)
    return {
        "project_id": str(project.id),
        "has_data": project.project_data is not None,
        "financials": data.get("financials", {}),
        "valuation": data.get("valuation", {}),
        "budget_distribution": data.get("charts", {}).get("budgetDistribution", []),
        "valuation_chart": data.get("charts", {}).get("valuationGrowth", []),
    }


@router.get("/{project_id}/compliance")
async def compliance_view(project_id: str, auth: AuthContext = Depends(get_current_user)):
    project, data = await _load(project_id, auth)
    return {
        "project_id": str(project.id),
        "has_data": project.project_data is not None,
        "compliance": data.get("compliance", {}),
        "geo": data.get("geo", {}),
        "safety_score": data.get("manpower", {}).get("safetyScore"),
    }
