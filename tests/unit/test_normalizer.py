"""Unit tests for vitruvi.analysis.normalizer.

The normalizer must turn any model output, however malformed, into a fully
populated Project Data record.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from vitruvi.analysis.normalizer import (
    cash_flow_health,
    extract_confidence,
    extract_insights,
    normalize_analysis,
    round_half_up,
)


class TestWellFormedResponse:
    def test_identity_comes_from_project(self, raw_analysis, project_stub):
        data = normalize_analysis(raw_analysis, project_stub)

        assert data.id == str(project_stub.id)
        assert data.name == "Riverside Towers"
        assert data.location == "Pune"

    def test_budget_spent_is_converted_from_percent(self, raw_analysis, project_stub):
        fin = normalize_analysis(raw_analysis, project_stub).financials

        assert fin.budget_spent_percent == 45
        assert fin.budget_spent == 900_000
        assert fin.budget_remaining == 1_100_000
        assert fin.projected_final_cost == 2_100_000
        assert fin.cash_flow_health == "Neutral"

    def test_burn_rate_spreads_spend_over_six_periods(self, raw_analysis, project_stub):
        data = normalize_analysis(raw_analysis, project_stub)
        assert data.burn_rate == 150_000

    def test_skill_distribution_derived_from_skilled_count(self, raw_analysis, project_stub):
        manpower = normalize_analysis(raw_analysis, project_stub).manpower
        shares = {s.name: s.count for s in manpower.skill_distribution}

        assert shares == {
            "Mason": 7,
            "Carpenter": 5,
            "Electrician": 4,
            "Plumber": 2,
            "Laborer": 16,
        }
        assert manpower.idle_workers == 0

    def test_material_risk_is_normalized(self, raw_analysis, project_stub):
        materials = normalize_analysis(raw_analysis, project_stub).materials
        assert [m.risk for m in materials] == ["Low", "High"]

    def test_efficiency_defaults_to_utilization(self, raw_analysis, project_stub):
        machinery = normalize_analysis(raw_analysis, project_stub).machinery
        assert machinery.efficiency_ratio == 70

    def test_progress_chart_ends_with_current_point(self, raw_analysis, project_stub):
        data = normalize_analysis(
            raw_analysis, project_stub, progress_history=[("Jan 01", 20), ("Jan 08", 30)]
        )
        points = data.charts.progress_over_time

        assert [p.name for p in points] == ["Jan 01", "Jan 08", "Current"]
        assert points[-1].actual == 42

    def test_valuation_chart_uses_analysis_year(self, raw_analysis, project_stub):
        now = datetime(2024, 3, 1, tzinfo=timezone.utc)
        data = normalize_analysis(raw_analysis, project_stub, now=now)

        assert data.last_updated.startswith("2024-03-01")
        assert data.charts.valuation_growth[0].year == "2024"
        assert data.charts.valuation_growth[0].value == 3_500_000

    def test_document_uses_camel_case_keys(self, raw_analysis, project_stub):
        doc = normalize_analysis(raw_analysis, project_stub).to_document()

        assert doc["progressPercentage"] == 42
        assert doc["financials"]["budgetSpentPercent"] == 45
        assert "skillDistribution" in doc["manpower"]
        assert "progress_percentage" not in doc


class TestMalformedResponse:
    @pytest.mark.parametrize("raw", [None, [], "not json", 42, {}])
    def test_never_raises_and_fills_defaults(self, raw):
        data = normalize_analysis(raw)

        assert data.id == "unassigned"
        assert data.name == "Untitled Project"
        assert data.location == "Unknown Location"
        assert data.stage == "Unknown"
        assert data.progress_percentage == 0
        assert data.manpower.total == 0
        assert data.materials == []
        assert data.burn_rate == 0

    def test_percentages_are_clamped(self):
        data = normalize_analysis({
            "progressPercentage": 140,
            "manpower": {"safetyScore": -5, "productivityIndex": "85%"},
        })

        assert data.progress_percentage == 100
        assert data.manpower.safety_score == 0
        assert data.manpower.productivity_index == 85

    def test_counts_and_amounts_never_negative(self):
        data = normalize_analysis({
            "delaysFlagged": -2,
            "manpower": {"total": -10},
            "financials": {"budgetTotal": -500},
        })

        assert data.delays_flagged == 0
        assert data.manpower.total == 0
        assert data.financials.budget_total == 0

    def test_signed_fields_keep_their_sign(self):
        data = normalize_analysis({
            "financials": {"costOverrun": -8, "roiProjection": -3},
            "valuation": {"appreciationForecast": -2.5},
        })

        assert data.financials.cost_overrun == -8
        assert data.financials.cash_flow_health == "Positive"
        assert data.financials.roi_projection == -3
        assert data.valuation.appreciation_forecast == -2.5

    def test_wrong_types_fall_back(self):
        data = normalize_analysis({
            "progressPercentage": True,
            "stage": 12,
            "manpower": "lots",
            "materials": [{"name": "Sand", "used": "n/a"}, "junk"],
            "financials": {"budgetTotal": "1,200,000"},
        })

        assert data.progress_percentage == 0
        assert data.stage == "Unknown"
        assert data.manpower.total == 0
        assert len(data.materials) == 1
        assert data.materials[0].used == 0
        assert data.financials.budget_total == 1_200_000

    def test_non_finite_numbers_are_ignored(self):
        data = normalize_analysis({"progressPercentage": float("nan")})
        assert data.progress_percentage == 0

    @pytest.mark.parametrize(
        "raw",
        [
            {"financials": {"budgetTotal": 1e29}},
            {"delaysFlagged": 1e30},
            {"manpower": {"total": "1e29"}},
            {"financials": {"budgetTotal": 1e308, "budgetSpent": 50}},
            {"financials": {"budgetTotal": 1e308, "costOverrun": 900}},
        ],
    )
    def test_huge_numbers_do_not_raise(self, raw):
        data = normalize_analysis(raw)

        assert data.financials.budget_remaining >= 0
        assert data.financials.projected_final_cost >= 0

    def test_huge_counts_round_exactly(self):
        data = normalize_analysis({"delaysFlagged": 1e30, "manpower": {"total": "1e29"}})

        assert data.delays_flagged == 10**30
        assert data.manpower.total == 10**29

    def test_overflowing_projection_falls_back_to_zero(self):
        data = normalize_analysis({"financials": {"budgetTotal": 1e308, "costOverrun": 900}})

        assert data.financials.budget_total == 1e308
        assert data.financials.projected_final_cost == 0

    def test_total_derived_from_skill_split(self):
        data = normalize_analysis({"manpower": {"skilled": 6, "unskilled": 4}})
        assert data.manpower.total == 10


class TestHelpers:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(2.5, 3), (3.5, 4), (-2.5, -3), (7.2, 7), (0.49, 0)],
    )
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_round_half_up_beyond_default_precision(self):
        assert round_half_up(1e300) == int(Decimal("1e300"))
        assert round_half_up(float("inf")) == 0
        assert round_half_up(float("nan")) == 0

    @pytest.mark.parametrize(
        ("overrun", "expected"),
        [(-5, "Positive"), (0, "Positive"), (9.9, "Neutral"), (10, "Negative")],
    )
    def test_cash_flow_health(self, overrun, expected):
        assert cash_flow_health(overrun) == expected

    def test_confidence_defaults_to_75(self):
        assert extract_confidence({}) == 75
        assert extract_confidence(None) == 75
        assert extract_confidence({"confidence_score": 130}) == 100

    def test_insights_keep_non_empty_strings(self, raw_analysis):
        assert extract_insights(raw_analysis) == ["Formwork on level 4 in progress"]
        assert extract_insights({"insights": "single string"}) == []
