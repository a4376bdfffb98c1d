"""Subscription plan catalogue and plan-change helpers."""

from __future__ import annotations

from datetime import datetime, timezone

from vitruvi.config import get_config
from vitruvi.models import PlanTier, Subscription

PLAN_DETAILS: list[dict] = [
    {
        "id": "free",
        "name": "Free",
        "price": 0,
        "features": ["3 project scans", "Basic analytics", "1 project"],
        "scans_limit": 3,
        "max_projects": 1,
    },
    {
        "id": "pro",
        "name": "Pro",
        "price": 49,
        "features": [
            "Unlimited scans",
            "Advanced analytics",
            "10 projects",
            "Report generation",
            "Email support",
        ],
        "scans_limit": -1,
        "max_projects": 10,
    },
    {
        "id": "enterprise",
        "name": "Enterprise",
        "price": 199,
        "features": [
            "Unlimited everything",
            "API access",
            "100 projects",
            "White-label option",
            "Priority support",
        ],
        "scans_limit": -1,
        "max_projects": 100,
    },
]


def subscription_for_plan(plan: PlanTier | str) -> Subscription:
    """Build a fresh subscription for a plan tier with usage reset to zero."""
    plan = PlanTier(plan)
    limits = get_config().plans

    if plan is PlanTier.FREE:
        return Subscription(
            plan=plan,
            scans_limit=limits.free_scan_limit,
            max_projects=limits.free_max_projects,
        )

    enterprise = plan is PlanTier.ENTERPRISE
    return Subscription(
        plan=plan,
        scans_limit=-1,
        has_report_access=True,
        has_api_access=enterprise,
        max_projects=(
            limits.enterprise_max_projects if enterprise else limits.pro_max_projects
        ),
        started_at=datetime.now(timezone.utc),
        features={"reports": True, "api": enterprise, "advanced_analytics": True},
    )
