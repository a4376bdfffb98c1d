"""Subscription plan and usage routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from vitruvi.models import PlanTier
from vitruvi.subscriptions import PLAN_DETAILS
from vitruvi.web.auth import AuthContext, get_current_user

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


@router.get("/plans")
async def list_plans():
    return {"plans": PLAN_DETAILS}


@router.get("/current")
async def current_subscription(auth: AuthContext = Depends(get_current_user)):
    sub = auth.subscription
    return {
        "plan": sub.plan.value,
        "status": sub.status,
        "scans_used": sub.scans_used,
        "scans_limit": sub.scans_limit,
        "has_report_access": sub.has_report_access,
        "has_api_access": sub.has_api_access,
        "max_projects": sub.max_projects,
    }


@router.get("/usage")
async def usage(auth: AuthContext = Depends(get_current_user)):
    sub = auth.subscription
    return {
        "plan": sub.plan.value,
        "scans_used": sub.scans_used,
        "scans_limit": sub.scans_limit,
        "scans_remaining": sub.scans_remaining,
        "is_paywall_active": sub.plan is PlanTier.FREE and sub.scans_exhausted,
    }
