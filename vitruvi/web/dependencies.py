"""Shared dependencies for Vitruvi API routes.

Usage:
    from fastapi import Depends
    from vitruvi.web.dependencies import get_vision_analyzer

    @router.post("/thing")
    async def handler(analyzer = Depends(get_vision_analyzer)):
        ...
"""

from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from vitruvi.analysis.vision import VisionAnalyzer
from vitruvi.db import store
from vitruvi.db.models import ProjectModel

# Global singleton for the vision client
_analyzer: VisionAnalyzer | None = None


def get_vision_analyzer() -> VisionAnalyzer:
    """Shared Gemini adapter; built on first use from configuration."""
    global _analyzer
    if _analyzer is None:
        _analyzer = VisionAnalyzer()
    return _analyzer


def parse_uuid(value: str, label: str = "project") -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID format")


async def get_owned_project(
    session: AsyncSession, project_id: str, user_id: UUID
) -> ProjectModel:
    """Load a project owned by ``user_id``.

    Projects owned by someone else are reported as missing.
    """
    project = await store.get_project(session, parse_uuid(project_id), user_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project
