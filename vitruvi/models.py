"""Vitruvi Pydantic models for the canonical Project Data document.

Field names are snake_case in Python and camelCase on the wire, so stored
documents and API payloads keep the dashboard's key names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProjectMode(str, Enum):
    """What kind of site a project photographs."""

    UNDER_CONSTRUCTION = "under-construction"
    COMPLETED = "completed"


class PlanTier(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Dump as a JSON-safe dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


# ============================================================================
# Project Data sub-structures
# ============================================================================


class SkillShare(_Document):
    name: str
    count: int = 0


class Manpower(_Document):
    total: int = 0
    skilled: int = 0
    unskilled: int = 0
    productivity_index: float = 0
    safety_score: float = 0
    skill_distribution: list[SkillShare] = Field(default_factory=list)
    idle_workers: int = 0


class Machinery(_Document):
    utilization: float = 0
    active_units: int = 0
    maintenance_alerts: int = 0
    fuel_consumption: float = 0
    efficiency_ratio: float = 0


class Material(_Document):
    name: str = "Unknown"
    allocated: float = 0
    used: float = 0
    wastage: float = 0  # percent
    risk: str = "Low"


class CashFlowPoint(_Document):
    month: str
    inflow: float = 0
    outflow: float = 0


class Financials(_Document):
    """Budget figures in currency units, plus the spent share in percent."""

    budget_total: float = 0
    budget_spent: float = 0
    budget_spent_percent: float = 0
    budget_remaining: float = 0
    cost_overrun: float = 0
    projected_final_cost: float = 0
    cash_flow_health: str = "Positive"
    roi_projection: float = 0
    monthly_cash_flow: list[CashFlowPoint] = Field(default_factory=list)


class Transaction(_Document):
    address: str
    price: float = 0
    date: str = ""


class Valuation(_Document):
    current: float = 0
    land_value: float = 0
    projected_completed_value: float = 0
    appreciation_forecast: float = 0
    rental_yield: float = 0
    nearby_transactions: list[Transaction] = Field(default_factory=list)


class Compliance(_Document):
    structural_score: float = 0
    fsi_used: float = 0
    sustainability_rating: str = "N/A"
    code_violations: int = 0
    embodied_carbon: str = "N/A"


class GeoRisk(_Document):
    soil_type: str = "Unknown"
    flood_risk: str = "Unknown"
    seismic_zone: str = "Unknown"
    climate_score: float = 0
    groundwater_level: str = "Unknown"
    wind_load: str = "Unknown"


class ProgressPoint(_Document):
    name: str
    actual: float = 0
    projected: float = 0


class ValuationPoint(_Document):
    year: str
    value: float = 0


class BudgetSlice(_Document):
    name: str
    value: float = 0


class Charts(_Document):
    progress_over_time: list[ProgressPoint] = Field(default_factory=list)
    valuation_growth: list[ValuationPoint] = Field(default_factory=list)
    budget_distribution: list[BudgetSlice] = Field(default_factory=list)


class ProjectData(_Document):
    """Canonical, fully-populated metrics record for one project."""

    id: str
    name: str
    location: str
    last_updated: str
    stage: str = "Unknown"
    progress_percentage: float = 0
    time_remaining: str = "Unknown"
    critical_path: str = "Unknown"
    delays_flagged: int = 0
    burn_rate: float = 0

    manpower: Manpower = Field(default_factory=Manpower)
    machinery: Machinery = Field(default_factory=Machinery)
    materials: list[Material] = Field(default_factory=list)
    financials: Financials = Field(default_factory=Financials)
    valuation: Valuation = Field(default_factory=Valuation)
    compliance: Compliance = Field(default_factory=Compliance)
    geo: GeoRisk = Field(default_factory=GeoRisk)
    charts: Charts = Field(default_factory=Charts)
    insights: list[str] = Field(default_factory=list)


# ============================================================================
# Subscription
# ============================================================================


class Subscription(BaseModel):
    """Subscription embedded in a user record."""

    plan: PlanTier = PlanTier.FREE
    status: str = "active"
    scans_used: int = 0
    scans_limit: int = 3  # -1 = unlimited
    has_report_access: bool = False
    has_api_access: bool = False
    max_projects: int = 1
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    features: dict[str, bool] = Field(default_factory=dict)

    @property
    def unlimited_scans(self) -> bool:
        return self.scans_limit < 0

    @property
    def scans_remaining(self) -> int:
        if self.unlimited_scans:
            return -1
        return max(0, self.scans_limit - self.scans_used)

    @property
    def scans_exhausted(self) -> bool:
        """True when a scan-limited plan has used every scan."""
        return not self.unlimited_scans and self.scans_used >= self.scans_limit
