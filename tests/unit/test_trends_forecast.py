"""Unit tests for vitruvi.forecasting.trends."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from vitruvi.exceptions import InsufficientDataError
from vitruvi.forecasting.trends import (
    ADVICE_BUDGET_OVERRUN,
    ADVICE_HIGH_RISK,
    ADVICE_SLOW_VELOCITY,
    NO_HISTORY_MESSAGE,
    build_trends,
    completion_confidence,
    forecast_completion,
    progress_velocity,
    risk_from_gain,
)

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _entries(progress_values, spent_percent=None, budget_total=1_000_000):
    """History entries newest first, one week apart, oldest at START."""
    entries = []
    for week, progress in enumerate(progress_values):
        spent = spent_percent[week] if spent_percent else progress
        entries.append(
            SimpleNamespace(
                analysis_date=START + timedelta(days=7 * week),
                snapshot={
                    "stage": "Structure",
                    "progressPercentage": progress,
                    "delaysFlagged": 0,
                    "manpower": {"total": 20 + week, "safetyScore": 90, "productivityIndex": 80},
                    "financials": {
                        "budgetTotal": budget_total,
                        "budgetSpent": budget_total * spent / 100,
                        "budgetSpentPercent": spent,
                    },
                },
                deltas=None,
            )
        )
    return list(reversed(entries))


class TestTrends:
    def test_no_history(self):
        report = build_trends([])

        assert report.data_points == 0
        assert report.insufficient_data is True
        assert report.message == NO_HISTORY_MESSAGE

    def test_single_point_is_insufficient(self):
        report = build_trends(_entries([10]))

        assert report.data_points == 1
        assert report.insufficient_data is True
        assert report.velocity == 0

    def test_series_is_chronological(self):
        report = build_trends(_entries([10, 17, 24]))

        assert [p["progress"] for p in report.trends] == [10, 17, 24]
        assert report.trends[0]["date"].startswith("2024-01-01")

    def test_velocity_is_progress_per_day(self):
        report = build_trends(_entries([10, 17, 24]))
        assert report.velocity == 1.0

    def test_metric_filter_limits_fields(self):
        report = build_trends(_entries([10, 20]), metric="budget")

        assert set(report.trends[0]) == {
            "date",
            "budget_spent",
            "budget_spent_percent",
            "budget_total",
        }

    def test_velocity_zero_without_elapsed_time(self):
        same_day = [(START, 10.0), (START, 30.0)]
        assert progress_velocity(same_day) == 0.0


class TestForecast:
    def test_requires_two_entries(self):
        with pytest.raises(InsufficientDataError) as exc_info:
            forecast_completion(_entries([10]))

        assert exc_info.value.available == 1

    def test_linear_progress(self):
        forecast = forecast_completion(_entries([10, 20, 30, 40]))

        assert forecast.slope == 10
        assert forecast.intercept == 10
        # (100 - 10) / 10 = 9 analyses, one week each
        assert forecast.completion_days == 63
        assert forecast.completion_date_estimate == "63 days from latest analysis"
        assert forecast.completion_confidence == "high"
        assert forecast.recent_progress_gain == 20
        assert forecast.risk_level == "low"
        assert forecast.recommendations == []
        assert forecast.based_on == "4 historical analyses"

    def test_stalled_progress_cannot_be_estimated(self):
        forecast = forecast_completion(_entries([30, 30, 30]))

        assert forecast.completion_days is None
        assert forecast.completion_date_estimate == "Unable to estimate"
        assert forecast.risk_level == "high"
        assert ADVICE_SLOW_VELOCITY in forecast.recommendations
        assert ADVICE_HIGH_RISK in forecast.recommendations

    def test_budget_projection(self):
        # 60% spent at 40% progress -> 150% of budget at completion
        forecast = forecast_completion(_entries([20, 40], spent_percent=[30, 60]))

        assert forecast.final_budget_projection == 150
        assert forecast.projected_final_cost == 1_500_000
        assert forecast.budget_overrun_risk == "Yes"
        assert ADVICE_BUDGET_OVERRUN in forecast.recommendations

    def test_uses_only_the_ten_most_recent(self):
        forecast = forecast_completion(_entries(list(range(0, 60, 5))))
        assert forecast.based_on == "10 historical analyses"

    def test_two_entries_use_first_as_reference(self):
        forecast = forecast_completion(_entries([10, 16]))
        assert forecast.recent_progress_gain == 6
        assert forecast.risk_level == "medium"

    @pytest.mark.parametrize(("gain", "risk"), [(4.9, "high"), (5, "medium"), (10, "low")])
    def test_risk_from_gain(self, gain, risk):
        assert risk_from_gain(gain) == risk

    @pytest.mark.parametrize(
        ("slope", "label"), [(0.6, "high"), (0.5, "medium"), (0.3, "medium"), (0.2, "low")]
    )
    def test_completion_confidence(self, slope, label):
        assert completion_confidence(slope) == label
