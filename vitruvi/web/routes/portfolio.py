"""Portfolio routes: cross-project summary, comparison and risk ranking."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from vitruvi.db import store
from vitruvi.db.connection import get_session
from vitruvi.db.models import ProjectModel
from vitruvi.portfolio.aggregator import (
    compare_projects,
    resource_allocation,
    summarize_portfolio,
    top_risk_projects,
)
from vitruvi.web.auth import AuthContext, get_current_user

router = APIRouter(prefix="/api/portfolio", tags=["portfolio"])


async def _user_projects(auth: AuthContext) -> list[ProjectModel]:
    async with get_session() as session:
        return await store.list_all_projects(session, auth.user_id)


@router.get("/summary")
async def portfolio_summary(auth: AuthContext = Depends(get_current_user)):
    return summarize_portfolio(await _user_projects(auth))


@router.get("/comparison")
async def portfolio_comparison(
    projects: str | None = Query(None, description="Comma-separated project IDs"),
    auth: AuthContext = Depends(get_current_user),
):
    wanted = [p.strip() for p in projects.split(",") if p.strip()] if projects else None
    rows = compare_projects(await _user_projects(auth), wanted)
    return {"projects": [row.to_dict() for row in rows], "count": len(rows)}


@router.get("/top-risks")
async def portfolio_top_risks(
    limit: int = Query(5, ge=1, le=50),
    auth: AuthContext = Depends(get_current_user),
):
    ranked = top_risk_projects(compare_projects(await _user_projects(auth)), limit)
    return {"projects": [row.to_dict() for row in ranked]}


@router.get("/resource-allocation")
async def portfolio_resources(auth: AuthContext = Depends(get_current_user)):
    return resource_allocation(await _user_projects(auth))
