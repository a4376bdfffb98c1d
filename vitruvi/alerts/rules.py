"""Alert rule vocabulary, templates and pure evaluation against project data."""

from __future__ import annotations

import operator
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any


class AlertMetric(str, Enum):
    BUDGET_OVERRUN = "budget_overrun"
    PROGRESS_DELAY = "progress_delay"
    SAFETY_SCORE = "safety_score"
    WORKER_SHORTAGE = "worker_shortage"
    COMPLIANCE_VIOLATION = "compliance_violation"
    DELAYS_INCREASE = "delays_increase"


class AlertCondition(str, Enum):
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    EQ = "=="
    CHANGED = "changed"


class NotificationChannel(str, Enum):
    SMS = "sms"
    WHATSAPP = "whatsapp"
    EMAIL = "email"


ALERT_TEMPLATES: list[dict[str, Any]] = [
    {
        "name": "Budget Overrun Warning",
        "metric": "budget_overrun",
        "condition": ">",
        "threshold": 80,
        "enabled": True,
        "notification_channels": ["email"],
    },
    {
        "name": "Schedule Delay Alert",
        "metric": "progress_delay",
        "condition": "<",
        "threshold": -10,  # progress fell 10 points
        "enabled": True,
        "notification_channels": ["email", "sms"],
    },
    {
        "name": "Safety Risk Alert",
        "metric": "safety_score",
        "condition": "<",
        "threshold": 75,
        "enabled": True,
        "notification_channels": ["email", "sms"],
    },
    {
        "name": "Worker Shortage Alert",
        "metric": "worker_shortage",
        "condition": "<",
        "threshold": -30,  # workforce shrank 30%
        "enabled": False,
        "notification_channels": ["email"],
    },
    {
        "name": "Compliance Violation",
        "metric": "compliance_violation",
        "condition": ">",
        "threshold": 0,
        "enabled": True,
        "notification_channels": ["email", "sms"],
    },
]

_COMPARATORS: dict[AlertCondition, Callable[[float, float], bool]] = {
    AlertCondition.GT: operator.gt,
    AlertCondition.LT: operator.lt,
    AlertCondition.GE: operator.ge,
    AlertCondition.LE: operator.le,
    AlertCondition.EQ: operator.eq,
}

# delta key used by the "changed" condition
_CHANGE_KEYS: dict[AlertMetric, str] = {
    AlertMetric.BUDGET_OVERRUN: "budget_spent",
    AlertMetric.PROGRESS_DELAY: "progress",
    AlertMetric.SAFETY_SCORE: "safety_score",
    AlertMetric.WORKER_SHORTAGE: "workers",
    AlertMetric.DELAYS_INCREASE: "delays",
}


@dataclass
class AlertEvaluation:
    triggered: bool
    metric: str
    condition: str
    threshold: float
    value: float | None
    message: str


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _get(data: dict[str, Any] | None, *path: str) -> Any:
    value: Any = data
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def metric_value(
    metric: AlertMetric,
    project_data: dict[str, Any] | None,
    deltas: dict[str, Any] | None,
) -> float | None:
    """Observed value of ``metric``; None when the data cannot say."""
    if metric is AlertMetric.BUDGET_OVERRUN:
        return _number(_get(project_data, "financials", "budgetSpentPercent"))
    if metric is AlertMetric.SAFETY_SCORE:
        return _number(_get(project_data, "manpower", "safetyScore"))
    if metric is AlertMetric.COMPLIANCE_VIOLATION:
        return _number(_get(project_data, "compliance", "codeViolations"))
    if metric is AlertMetric.PROGRESS_DELAY:
        return _number(_get(deltas, "progress"))
    if metric is AlertMetric.DELAYS_INCREASE:
        return _number(_get(deltas, "delays"))

    # worker_shortage: percent change in headcount since the previous analysis
    change = _number(_get(deltas, "workers"))
    current = _number(_get(project_data, "manpower", "total"))
    if change is None or current is None:
        return None
    previous = current - change
    if previous <= 0:
        return None
    return round(change / previous * 100, 2)


def evaluate_rule(
    metric: str,
    condition: str,
    threshold: float,
    project_data: dict[str, Any] | None,
    deltas: dict[str, Any] | None = None,
) -> AlertEvaluation:
    metric_enum = AlertMetric(metric)
    condition_enum = AlertCondition(condition)

    if condition_enum is AlertCondition.CHANGED:
        key = _CHANGE_KEYS.get(metric_enum)
        value = _number(_get(deltas, key)) if key else None
        triggered = value is not None and value != 0
    else:
        value = metric_value(metric_enum, project_data, deltas)
        triggered = value is not None and _COMPARATORS[condition_enum](value, threshold)

    label = metric_enum.value.replace("_", " ")
    if value is None:
        message = f"No {label} data available"
    elif condition_enum is AlertCondition.CHANGED:
        message = f"{label.capitalize()} changed by {value:g}"
    else:
        message = f"{label.capitalize()} is {value:g} (rule: {condition_enum.value} {threshold:g})"

    return AlertEvaluation(
        triggered=triggered,
        metric=metric_enum.value,
        condition=condition_enum.value,
        threshold=threshold,
        value=value,
        message=message,
    )
