"""Unit tests for portfolio aggregation, status and risk classification."""

from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest

from vitruvi.portfolio.aggregator import (
    classify_status,
    compare_projects,
    format_millions,
    resource_allocation,
    score_risk_level,
    summarize_portfolio,
    top_risk_projects,
)


def _project(name, progress=50, spent=40, safety=90, delays=0, value=2_000_000,
             budget=1_000_000, workers=20, machines=2, with_data=True):
    data = None
    if with_data:
        data = {
            "progressPercentage": progress,
            "delaysFlagged": delays,
            "manpower": {"total": workers, "safetyScore": safety},
            "machinery": {"activeUnits": machines},
            "financials": {"budgetTotal": budget, "budgetSpentPercent": spent},
            "valuation": {"current": value},
        }
    return SimpleNamespace(id=uuid4(), name=name, project_data=data)


class TestClassification:
    @pytest.mark.parametrize(
        ("progress", "spent", "delays", "expected"),
        [
            (80, 30, 3, "delayed"),
            (40, 65, 0, "at_risk"),
            (40, 60, 2, "on_track"),
            (90, 95, 0, "on_track"),
        ],
    )
    def test_classify_status(self, progress, spent, delays, expected):
        assert classify_status(progress, spent, delays) == expected

    @pytest.mark.parametrize(
        ("progress", "spent", "safety", "delays", "expected"),
        [
            (90, 10, 95, 4, "high"),
            (90, 10, 65, 0, "high"),
            (40, 65, 95, 0, "high"),
            (90, 10, 95, 2, "medium"),
            (90, 10, 80, 0, "medium"),
            (60, 85, 95, 0, "medium"),
            (90, 50, 90, 1, "low"),
        ],
    )
    def test_score_risk_level(self, progress, spent, safety, delays, expected):
        assert score_risk_level(progress, spent, safety, delays) == expected

    def test_status_and_risk_are_independent(self):
        # Two delays: risk is medium while the status is still on track
        assert score_risk_level(90, 10, 95, 2) == "medium"
        assert classify_status(90, 10, 2) == "on_track"


class TestSummary:
    def test_empty_portfolio(self):
        summary = summarize_portfolio([])

        assert summary["total_projects"] == 0
        assert summary["total_value"] == "$0"
        assert summary["total_budget_spent"] == "$0"
        assert summary["portfolio_roi"] == "0%"
        assert summary["avg_progress"] == 0
        assert summary["avg_safety_score"] == 0

    def test_totals_and_averages(self):
        projects = [
            _project("A", progress=40, spent=50, safety=90, value=3_000_000),
            _project("B", progress=70, spent=30, safety=0, value=1_500_000, workers=10),
            _project("C", with_data=False),
        ]
        summary = summarize_portfolio(projects)

        assert summary["total_projects"] == 3
        assert summary["projects_with_data"] == 2
        assert summary["avg_progress"] == 55.0
        assert summary["total_value"] == "$4.5M"
        # spent: 500k + 300k
        assert summary["total_budget_spent"] == "$0.8M"
        assert summary["portfolio_roi"] == "462.5%"
        assert summary["total_workers"] == 30
        # Only A reports a safety score
        assert summary["avg_safety_score"] == 90

    def test_status_counts(self):
        projects = [
            _project("on", progress=80, spent=40),
            _project("risk", progress=30, spent=70),
            _project("late", delays=4),
        ]
        summary = summarize_portfolio(projects)

        assert summary["projects_on_track"] == 1
        assert summary["projects_at_risk"] == 1
        assert summary["projects_delayed"] == 1

    def test_format_millions(self):
        assert format_millions(0) == "$0"
        assert format_millions(1_250_000) == "$1.2M"
        assert format_millions(12_000_000) == "$12.0M"


class TestComparison:
    def test_projects_without_data_are_skipped(self):
        rows = compare_projects([_project("A"), _project("B", with_data=False)])
        assert [r.name for r in rows] == ["A"]

    def test_filter_by_ids(self):
        a, b = _project("A"), _project("B")
        rows = compare_projects([a, b], [str(b.id)])
        assert [r.name for r in rows] == ["B"]

    def test_row_fields(self):
        row = compare_projects([_project("A", progress=40, spent=65, delays=1)])[0]

        assert row.progress == 40
        assert row.budget_spent_pct == 65
        assert row.risk_level == "high"
        assert row.status == "at_risk"
        assert row.to_dict()["delays"] == 1

    def test_top_risks_are_stable(self):
        rows = compare_projects([
            _project("low-1"),
            _project("high-1", safety=60),
            _project("medium-1", safety=80),
            _project("high-2", delays=5),
        ])
        ranked = top_risk_projects(rows, limit=3)

        assert [r.name for r in ranked] == ["high-1", "high-2", "medium-1"]


class TestResourceAllocation:
    def test_totals(self):
        allocation = resource_allocation([
            _project("A", workers=12, machines=3, budget=500_000),
            _project("B", with_data=False),
        ])

        assert allocation["totals"] == {
            "total_workers": 12,
            "total_machinery": 3,
            "total_budget": 500_000,
            "projects_count": 2,
        }
        assert allocation["by_project"][1]["workers"] == 0
