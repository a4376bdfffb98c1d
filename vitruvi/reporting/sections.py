"""Report sections shared by the Excel and PDF exporters.

Each section is a title plus a header row and data rows, built from a stored
Project Data document (camelCase keys).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Section:
    title: str
    header: list[str]
    rows: list[list[Any]] = field(default_factory=list)


# report type -> sections included
SECTIONS_BY_TYPE: dict[str, tuple[str, ...]] = {
    "summary": ("overview", "financials"),
    "detailed": ("overview", "manpower", "machinery", "materials", "financials", "compliance"),
    "financial": ("financials", "valuation", "materials"),
    "compliance": ("overview", "compliance", "geo"),
}


def _money(value: Any) -> str:
    return f"${float(value or 0):,.0f}"


def _overview(data: dict[str, Any]) -> Section:
    return Section(
        "Progress Overview",
        ["Metric", "Value"],
        [
            ["Stage", data.get("stage", "Unknown")],
            ["Progress", f"{data.get('progressPercentage', 0):g}%"],
            ["Time Remaining", data.get("timeRemaining", "Unknown")],
            ["Critical Path", data.get("criticalPath", "Unknown")],
            ["Delays Flagged", data.get("delaysFlagged", 0)],
            ["Last Updated", data.get("lastUpdated", "")],
        ],
    )


def _financials(data: dict[str, Any]) -> Section:
    fin = data.get("financials", {})
    return Section(
        "Financials",
        ["Metric", "Value"],
        [
            ["Budget Total", _money(fin.get("budgetTotal"))],
            ["Budget Spent", f"{_money(fin.get('budgetSpent'))} ({fin.get('budgetSpentPercent', 0):g}%)"],
            ["Budget Remaining", _money(fin.get("budgetRemaining"))],
            ["Cost Overrun", f"{fin.get('costOverrun', 0):g}%"],
            ["Projected Final Cost", _money(fin.get("projectedFinalCost"))],
            ["Cash Flow Health", fin.get("cashFlowHealth", "Unknown")],
            ["Burn Rate", _money(data.get("burnRate"))],
        ],
    )


def _manpower(data: dict[str, Any]) -> Section:
    mp = data.get("manpower", {})
    rows = [
        ["Total Workers", mp.get("total", 0)],
        ["Skilled", mp.get("skilled", 0)],
        ["Unskilled", mp.get("unskilled", 0)],
        ["Idle", mp.get("idleWorkers", 0)],
        ["Productivity Index", mp.get("productivityIndex", 0)],
        ["Safety Score", mp.get("safetyScore", 0)],
    ]
    rows += [[f"  {s['name']}", s["count"]] for s in mp.get("skillDistribution", [])]
    return Section("Manpower", ["Metric", "Value"], rows)


def _machinery(data: dict[str, Any]) -> Section:
    mc = data.get("machinery", {})
    return Section(
        "Machinery",
        ["Metric", "Value"],
        [
            ["Active Units", mc.get("activeUnits", 0)],
            ["Utilization", f"{mc.get('utilization', 0):g}%"],
            ["Maintenance Alerts", mc.get("maintenanceAlerts", 0)],
            ["Efficiency Ratio", f"{mc.get('efficiencyRatio', 0):g}%"],
        ],
    )


def _materials(data: dict[str, Any]) -> Section:
    return Section(
        "Materials",
        ["Material", "Allocated", "Used", "Wastage %", "Risk"],
        [
            [m["name"], m["allocated"], m["used"], m["wastage"], m["risk"]]
            for m in data.get("materials", [])
        ],
    )


def _valuation(data: dict[str, Any]) -> Section:
    val = data.get("valuation", {})
    return Section(
        "Valuation",
        ["Metric", "Value"],
        [
            ["Current Value", _money(val.get("current"))],
            ["Land Value", _money(val.get("landValue"))],
            ["Projected Completed Value", _money(val.get("projectedCompletedValue"))],
            ["Appreciation Forecast", f"{val.get('appreciationForecast', 0):g}%"],
            ["Rental Yield", f"{val.get('rentalYield', 0):g}%"],
        ],
    )


def _compliance(data: dict[str, Any]) -> Section:
    comp = data.get("compliance", {})
    return Section(
        "Compliance",
        ["Metric", "Value"],
        [
            ["Structural Score", comp.get("structuralScore", 0)],
            ["FSI Used", comp.get("fsiUsed", 0)],
            ["Sustainability Rating", comp.get("sustainabilityRating", "N/A")],
            ["Code Violations", comp.get("codeViolations", 0)],
            ["Embodied Carbon", comp.get("embodiedCarbon", "N/A")],
        ],
    )


def _geo(data: dict[str, Any]) -> Section:
    geo = data.get("geo", {})
    return Section(
        "Site & Geo Risk",
        ["Metric", "Value"],
        [
            ["Soil Type", geo.get("soilType", "Unknown")],
            ["Flood Risk", geo.get("floodRisk", "Unknown")],
            ["Seismic Zone", geo.get("seismicZone", "Unknown")],
            ["Climate Score", geo.get("climateScore", 0)],
        ],
    )


_BUILDERS = {
    "overview": _overview,
    "financials": _financials,
    "manpower": _manpower,
    "machinery": _machinery,
    "materials": _materials,
    "valuation": _valuation,
    "compliance": _compliance,
    "geo": _geo,
}


def build_sections(data: dict[str, Any], report_type: str) -> list[Section]:
    names = SECTIONS_BY_TYPE.get(report_type, SECTIONS_BY_TYPE["summary"])
    return [_BUILDERS[name](data) for name in names]
