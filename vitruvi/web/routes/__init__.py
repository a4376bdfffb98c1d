"""Vitruvi API route modules.

Each module exports a ``router`` (APIRouter) that ``vitruvi.web.app``
includes. Shared dependencies live in ``vitruvi.web.dependencies``; request
and response models in ``vitruvi.web.schemas``.

Usage:
    from vitruvi.web.routes import projects
    app.include_router(projects.router)
"""

from vitruvi.web.routes import (
    alerts,
    auth,
    health,
    notifications,
    portfolio,
    project_data,
    projects,
    reports,
    subscriptions,
)

__all__ = [
    "auth",
    "subscriptions",
    "projects",
    "project_data",  # construction / financial / compliance tabs
    "portfolio",
    "alerts",
    "notifications",
    "reports",
    "health",
]
