"""Pytest configuration and fixtures for Vitruvi tests.

Every test runs against a fresh in-memory SQLite database and a freshly
loaded configuration; no vision or messaging credentials are set.
"""

from __future__ import annotations

import os
from types import SimpleNamespace
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio

# The web app reads configuration at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import vitruvi.config  # noqa: E402
import vitruvi.web.dependencies  # noqa: E402
from vitruvi.db.connection import close_db, init_db  # noqa: E402

ENV_VARS_TO_CLEAR = (
    "ENVIRONMENT",
    "SECRET_KEY",
    "GEMINI_API_KEY",
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "TWILIO_PHONE_NUMBER",
    "TWILIO_WHATSAPP_NUMBER",
    "FREE_SCAN_LIMIT",
)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Fresh config singleton pointed at an in-memory database."""
    for name in ENV_VARS_TO_CLEAR:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setattr(vitruvi.config, "_config", None)
    monkeypatch.setattr(vitruvi.web.dependencies, "_analyzer", None)
    yield


@pytest_asyncio.fixture
async def db():
    """Create the schema for one test and dispose the engine afterwards."""
    await init_db()
    yield
    await close_db()


@pytest.fixture
def raw_analysis() -> dict[str, Any]:
    """A well-formed vision model response for a mid-construction site."""
    return {
        "aec_related": True,
        "stage": "Structure",
        "progressPercentage": 42,
        "timeRemaining": "8 months",
        "criticalPath": "Slab casting, level 4",
        "delaysFlagged": 1,
        "confidence_score": 88,
        "insights": ["Formwork on level 4 in progress", "  ", 7],
        "manpower": {
            "total": 40,
            "skilled": 24,
            "unskilled": 16,
            "productivityIndex": 81,
            "safetyScore": 90,
        },
        "machinery": {"utilization": 70, "activeUnits": 3, "fuelConsumption": 120},
        "materials": [
            {"name": "Cement", "allocated": 500, "used": 210, "wastage": 4, "risk": "low"},
            {"name": "Steel", "allocated": 80, "used": 35, "wastage": 2, "risk": "HIGH"},
        ],
        "financials": {
            "budgetTotal": 2_000_000,
            "budgetSpent": 45,
            "costOverrun": 5,
            "roiProjection": 14,
        },
        "valuation": {"current": 3_500_000, "landValue": 900_000, "appreciationForecast": 6},
        "compliance": {"structuralScore": 92, "codeViolations": 0},
        "geo": {"soilType": "Clay", "floodRisk": "Low", "climateScore": 70},
    }


@pytest.fixture
def project_stub():
    """Object with the attributes the normalizer reads from a project."""
    return SimpleNamespace(id=uuid4(), name="Riverside Towers", location="Pune")
