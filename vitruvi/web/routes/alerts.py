"""Alert rule routes: templates, per-project CRUD, toggle and manual evaluation."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response, status

from vitruvi.alerts.rules import ALERT_TEMPLATES, evaluate_rule
from vitruvi.db import store
from vitruvi.db.connection import get_session
from vitruvi.db.models import AlertRuleModel
from vitruvi.exceptions import MessagingError
from vitruvi.notifications import messaging
from vitruvi.web.auth import AuthContext, get_current_user
from vitruvi.web.dependencies import get_owned_project, parse_uuid
from vitruvi.web.schemas import AlertRuleCreate, AlertRuleResponse, AlertRuleUpdate

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


def _enum_values(fields: dict) -> dict:
    """Store enum members as their plain string values."""
    out = {}
    for key, value in fields.items():
        if isinstance(value, list):
            out[key] = [getattr(v, "value", v) for v in value]
        else:
            out[key] = getattr(value, "value", value)
    return out


async def _owned_rule(session, rule_id: str, auth: AuthContext) -> AlertRuleModel:
    rule = await store.get_alert_rule(session, parse_uuid(rule_id, "alert rule"))
    if rule is None:
        raise HTTPException(status_code=404, detail="Alert rule not found")
    if rule.user_id != auth.user_id:
        raise HTTPException(status_code=403, detail="Not authorized to modify this alert rule")
    return rule


@router.get("/templates")
async def alert_templates():
    return {"templates": ALERT_TEMPLATES}


@router.get("/projects/{project_id}/alerts", response_model=list[AlertRuleResponse])
async def list_project_alerts(project_id: str, auth: AuthContext = Depends(get_current_user)):
    async with get_session() as session:
        project = await get_owned_project(session, project_id, auth.user_id)
        rules = await store.list_alert_rules(session, project.id)
        return [AlertRuleResponse.model_validate(rule) for rule in rules]


@router.post(
    "/projects/{project_id}/alerts",
    response_model=AlertRuleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_project_alert(
    project_id: str,
    payload: AlertRuleCreate,
    auth: AuthContext = Depends(get_current_user),
):
    async with get_session() as session:
        project = await get_owned_project(session, project_id, auth.user_id)
        rule = await store.create_alert_rule(
            session, project.id, auth.user_id, _enum_values(payload.model_dump())
        )
        response = AlertRuleResponse.model_validate(rule)

    logger.info("alert_rule_created", rule_id=str(response.id), metric=response.metric)
    return response


@router.put("/{rule_id}", response_model=AlertRuleResponse)
async def update_alert(
    rule_id: str,
    payload: AlertRuleUpdate,
    auth: AuthContext = Depends(get_current_user),
):
    changes = _enum_values(payload.model_dump(exclude_unset=True, exclude_none=True))
    async with get_session() as session:
        rule = await _owned_rule(session, rule_id, auth)
        if changes:
            rule = await store.update_alert_rule(session, rule, changes)
        return AlertRuleResponse.model_validate(rule)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_alert(rule_id: str, auth: AuthContext = Depends(get_current_user)):
    async with get_session() as session:
        rule = await _owned_rule(session, rule_id, auth)
        await store.delete_alert_rule(session, rule)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{rule_id}/toggle", response_model=AlertRuleResponse)
async def toggle_alert(rule_id: str, auth: AuthContext = Depends(get_current_user)):
    async with get_session() as session:
        rule = await _owned_rule(session, rule_id, auth)
        rule = await store.update_alert_rule(session, rule, {"enabled": not rule.enabled})
        return AlertRuleResponse.model_validate(rule)


@router.post("/{rule_id}/evaluate")
async def evaluate_alert(rule_id: str, auth: AuthContext = Depends(get_current_user)):
    """Evaluate one rule against the project's latest data and history deltas.

    A triggered rule bumps its counter, records an in-app notification and
    sends to each configured channel. Delivery failures are reported per
    channel and do not undo the trigger.
    """
    async with get_session() as session:
        rule = await _owned_rule(session, rule_id, auth)
        project = await store.get_project(session, rule.project_id, auth.user_id)
        if project is None:
            raise HTTPException(status_code=404, detail="Project not found")
        latest = await store.latest_history_entry(session, project.id)

        result = evaluate_rule(
            rule.metric,
            rule.condition,
            rule.threshold,
            project.project_data,
            latest.deltas if latest else None,
        )
        if not rule.enabled or not result.triggered:
            return {
                "rule_id": str(rule.id),
                "enabled": rule.enabled,
                "triggered": False,
                "value": result.value,
                "message": result.message,
                "deliveries": [],
            }

        await store.record_alert_trigger(session, rule)
        alert_text = f"[{project.name}] {rule.name}: {result.message}"
        await store.create_notification(
            session,
            auth.user_id,
            title=f"Alert: {rule.name}",
            message=result.message,
            type="alert",
            project_id=project.id,
        )
        channels = list(rule.notification_channels or [])
        recipients = list(rule.recipients or [])
        trigger_count = rule.trigger_count

    deliveries = []
    for channel in channels:
        try:
            receipts = await messaging.dispatch(channel, recipients, alert_text)
        except MessagingError as exc:
            logger.warning("alert_delivery_failed", rule_id=rule_id, channel=channel, error=str(exc))
            deliveries.append({"channel": channel, "status": "failed", "error": str(exc)})
            continue
        deliveries.append({
            "channel": channel,
            "status": "sent",
            "simulated": all(r.simulated for r in receipts),
            "recipients": len(receipts),
        })

    logger.info(
        "alert_triggered",
        rule_id=rule_id,
        metric=result.metric,
        value=result.value,
        trigger_count=trigger_count,
    )
    return {
        "rule_id": rule_id,
        "enabled": True,
        "triggered": True,
        "value": result.value,
        "message": result.message,
        "trigger_count": trigger_count,
        "deliveries": deliveries,
    }
