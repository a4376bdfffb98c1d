"""Normalize raw vision-model output into canonical Project Data.

The model's JSON is treated as untrusted: any field may be missing, have the
wrong type, or sit outside its range. ``normalize_analysis`` never raises;
every field of the returned record is populated.

Range rules applied here:
- percentages and 0-100 scores are clamped to [0, 100]
- counts and currency amounts are clamped to >= 0 (counts rounded to int)
- signed percentages (cost overrun, ROI, appreciation) are left as given
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any

from vitruvi.models import (
    BudgetSlice,
    CashFlowPoint,
    Charts,
    Compliance,
    Financials,
    GeoRisk,
    Machinery,
    Manpower,
    Material,
    ProgressPoint,
    ProjectData,
    SkillShare,
    Transaction,
    Valuation,
    ValuationPoint,
)

# Share of skilled workers per trade; unskilled workers are all "Laborer"
SKILL_RATIOS: tuple[tuple[str, float], ...] = (
    ("Mason", 0.30),
    ("Carpenter", 0.20),
    ("Electrician", 0.15),
    ("Plumber", 0.10),
)
BURN_RATE_PERIODS = 6
DEFAULT_CONFIDENCE = 75
RISK_TIERS = {"low": "Low", "medium": "Medium", "high": "High"}
# Enough digits to hold any finite float as an integer
ROUNDING_PRECISION = 400


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero.

    Non-finite input (an overflowed product) rounds to 0.
    """
    if not math.isfinite(value):
        return 0
    with localcontext() as ctx:
        ctx.prec = ROUNDING_PRECISION
        return int(Decimal(repr(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ============================================================================
# Coercion helpers
# ============================================================================


def _number(value: Any, default: float = 0.0) -> float:
    # bool is an int subclass but never a metric
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().rstrip("%").replace(",", ""))
        except ValueError:
            return default
    else:
        return default
    return number if math.isfinite(number) else default


def _percent(value: Any, default: float = 0.0) -> float:
    return min(100.0, max(0.0, _number(value, default)))


def _amount(value: Any) -> float:
    return max(0.0, _number(value))


def _count(value: Any) -> int:
    return max(0, round_half_up(_number(value)))


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    return value if isinstance(value, Mapping) else {}


def _records(value: Any) -> list[Mapping[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


# ============================================================================
# Sections
# ============================================================================


def _manpower(raw: Mapping[str, Any]) -> Manpower:
    skilled = _count(raw.get("skilled"))
    unskilled = _count(raw.get("unskilled"))
    total = _count(raw.get("total")) or skilled + unskilled

    if "idleWorkers" in raw:
        idle = _count(raw.get("idleWorkers"))
    else:
        idle = max(0, total - skilled - unskilled)

    explicit = [
        SkillShare(name=_text(entry.get("name"), "Unknown"), count=_count(entry.get("count")))
        for entry in _records(raw.get("skillDistribution"))
    ]
    distribution = explicit or [
        SkillShare(name=trade, count=round_half_up(skilled * ratio))
        for trade, ratio in SKILL_RATIOS
    ] + [SkillShare(name="Laborer", count=unskilled)]

    return Manpower(
        total=total,
        skilled=skilled,
        unskilled=unskilled,
        productivity_index=_percent(raw.get("productivityIndex")),
        safety_score=_percent(raw.get("safetyScore")),
        skill_distribution=distribution,
        idle_workers=idle,
    )


def _machinery(raw: Mapping[str, Any]) -> Machinery:
    utilization = _percent(raw.get("utilization"))
    efficiency = raw.get("efficiencyRatio")
    return Machinery(
        utilization=utilization,
        active_units=_count(raw.get("activeUnits")),
        maintenance_alerts=_count(raw.get("maintenanceAlerts")),
        fuel_consumption=_amount(raw.get("fuelConsumption")),
        efficiency_ratio=utilization if efficiency is None else _percent(efficiency),
    )


def _materials(raw: Any) -> list[Material]:
    materials = []
    for entry in _records(raw):
        risk = entry.get("risk")
        materials.append(
            Material(
                name=_text(entry.get("name"), "Unknown"),
                allocated=_amount(entry.get("allocated")),
                used=_amount(entry.get("used")),
                wastage=_percent(entry.get("wastage")),
                risk=RISK_TIERS.get(risk.strip().lower(), "Unknown")
                if isinstance(risk, str)
                else "Unknown",
            )
        )
    return materials


def cash_flow_health(cost_overrun: float) -> str:
    """Positive when on/under budget, Neutral under 10% overrun, else Negative."""
    if cost_overrun <= 0:
        return "Positive"
    if cost_overrun < 10:
        return "Neutral"
    return "Negative"


def _financials(raw: Mapping[str, Any]) -> Financials:
    budget_total = _amount(raw.get("budgetTotal"))
    # The model reports spend as a percentage of the total budget
    spent_percent = _percent(raw.get("budgetSpent"))
    budget_spent = round_half_up(budget_total * spent_percent / 100)
    cost_overrun = _number(raw.get("costOverrun"))

    cash_flow = [
        CashFlowPoint(
            month=_text(entry.get("month"), "Unknown"),
            inflow=_amount(entry.get("inflow")),
            outflow=_amount(entry.get("outflow")),
        )
        for entry in _records(raw.get("monthlyCashFlow"))
    ]

    return Financials(
        budget_total=budget_total,
        budget_spent=budget_spent,
        budget_spent_percent=spent_percent,
        budget_remaining=budget_total - budget_spent,
        cost_overrun=cost_overrun,
        projected_final_cost=max(0, round_half_up(budget_total * (1 + cost_overrun / 100))),
        cash_flow_health=cash_flow_health(cost_overrun),
        roi_projection=_number(raw.get("roiProjection")),
        monthly_cash_flow=cash_flow,
    )


def _valuation(raw: Mapping[str, Any]) -> Valuation:
    transactions = [
        Transaction(
            address=_text(entry.get("address"), "Unknown"),
            price=_amount(entry.get("price")),
            date=_text(entry.get("date"), "N/A"),
        )
        for entry in _records(raw.get("nearbyTransactions"))
    ]
    return Valuation(
        current=_amount(raw.get("current")),
        land_value=_amount(raw.get("landValue")),
        projected_completed_value=_amount(raw.get("projectedCompletedValue")),
        appreciation_forecast=_number(raw.get("appreciationForecast")),
        rental_yield=_percent(raw.get("rentalYield")),
        nearby_transactions=transactions,
    )


def _compliance(raw: Mapping[str, Any]) -> Compliance:
    return Compliance(
        structural_score=_percent(raw.get("structuralScore")),
        fsi_used=_amount(raw.get("fsiUsed")),
        sustainability_rating=_text(raw.get("sustainabilityRating"), "N/A"),
        code_violations=_count(raw.get("codeViolations")),
        embodied_carbon=_text(raw.get("embodiedCarbon"), "N/A"),
    )


def _geo(raw: Mapping[str, Any]) -> GeoRisk:
    return GeoRisk(
        soil_type=_text(raw.get("soilType"), "Unknown"),
        flood_risk=_text(raw.get("floodRisk"), "Unknown"),
        seismic_zone=_text(raw.get("seismicZone"), "Unknown"),
        climate_score=_percent(raw.get("climateScore")),
        groundwater_level=_text(raw.get("groundwaterLevel"), "Unknown"),
        wind_load=_text(raw.get("windLoad"), "Unknown"),
    )


def _charts(
    progress: float,
    valuation: Valuation,
    materials: list[Material],
    progress_history: Iterable[tuple[str, float]] | None,
    now: datetime,
) -> Charts:
    points = [
        ProgressPoint(name=str(label), actual=_percent(value), projected=_percent(value))
        for label, value in (progress_history or [])
    ]
    points.append(ProgressPoint(name="Current", actual=progress, projected=progress))

    return Charts(
        progress_over_time=points,
        valuation_growth=[ValuationPoint(year=str(now.year), value=valuation.current)],
        budget_distribution=[BudgetSlice(name=m.name, value=m.used) for m in materials],
    )


# ============================================================================
# Entry points
# ============================================================================


def normalize_analysis(
    raw: Any,
    project: Any | None = None,
    *,
    progress_history: Iterable[tuple[str, float]] | None = None,
    now: datetime | None = None,
) -> ProjectData:
    """Map a raw model response onto a fully-shaped ``ProjectData``.

    Args:
        raw: Parsed model output. Non-mapping input is treated as empty.
        project: Optional owning project (``id``, ``name``, ``location``
            attributes) used for identity fields.
        progress_history: Earlier (label, progress) points, oldest first,
            prepended to the progress chart.
        now: Timestamp for ``lastUpdated``; defaults to current UTC time.
    """
    if not isinstance(raw, Mapping):
        raw = {}
    now = now or datetime.now(timezone.utc)

    progress = _percent(raw.get("progressPercentage"))
    materials = _materials(raw.get("materials"))
    financials = _financials(_section(raw, "financials"))
    valuation = _valuation(_section(raw, "valuation"))

    project_id = getattr(project, "id", None)
    return ProjectData(
        id=str(project_id) if project_id is not None else "unassigned",
        name=_text(getattr(project, "name", None), "Untitled Project"),
        location=_text(getattr(project, "location", None), "Unknown Location"),
        last_updated=now.isoformat(),
        stage=_text(raw.get("stage"), "Unknown"),
        progress_percentage=progress,
        time_remaining=_text(raw.get("timeRemaining"), "Unknown"),
        critical_path=_text(raw.get("criticalPath"), "Unknown"),
        delays_flagged=_count(raw.get("delaysFlagged")),
        burn_rate=(
            round_half_up(financials.budget_spent / BURN_RATE_PERIODS)
            if financials.budget_spent > 0
            else 0
        ),
        manpower=_manpower(_section(raw, "manpower")),
        machinery=_machinery(_section(raw, "machinery")),
        materials=materials,
        financials=financials,
        valuation=valuation,
        compliance=_compliance(_section(raw, "compliance")),
        geo=_geo(_section(raw, "geo")),
        charts=_charts(progress, valuation, materials, progress_history, now),
        insights=extract_insights(raw),
    )


def extract_confidence(raw: Any) -> float:
    """Model confidence (0-100); 75 when the model did not report one."""
    if not isinstance(raw, Mapping):
        return float(DEFAULT_CONFIDENCE)
    return _percent(raw.get("confidence_score"), default=DEFAULT_CONFIDENCE)


def extract_insights(raw: Any) -> list[str]:
    if not isinstance(raw, Mapping) or not isinstance(raw.get("insights"), list):
        return []
    return [item.strip() for item in raw["insights"] if isinstance(item, str) and item.strip()]
