"""Health check route.

Verifies database connectivity.
"""

from fastapi import APIRouter, status
from sqlalchemy import text

from vitruvi import __version__
from vitruvi.db.connection import get_session

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", status_code=status.HTTP_200_OK)
async def health_check():
    try:
        async with get_session() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        return {"status": "error", "database": "disconnected", "detail": str(e)}
    return {"status": "ok", "database": "connected", "version": __version__}
