"""In-app notifications plus direct SMS / WhatsApp sends."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from vitruvi.db import store
from vitruvi.db.connection import get_session
from vitruvi.exceptions import MessagingError
from vitruvi.notifications.messaging import send_sms, send_whatsapp
from vitruvi.web.auth import AuthContext, get_current_user
from vitruvi.web.dependencies import get_owned_project, parse_uuid
from vitruvi.web.schemas import NotificationCreate, NotificationResponse, SendMessageRequest

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    auth: AuthContext = Depends(get_current_user),
):
    async with get_session() as session:
        items = await store.list_notifications(session, auth.user_id, unread_only, limit)
        return [NotificationResponse.model_validate(n) for n in items]


@router.post("", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def create_notification(
    payload: NotificationCreate, auth: AuthContext = Depends(get_current_user)
):
    async with get_session() as session:
        if payload.project_id is not None:
            await get_owned_project(session, str(payload.project_id), auth.user_id)
        notification = await store.create_notification(
            session,
            auth.user_id,
            title=payload.title,
            message=payload.message,
            type=payload.type,
            project_id=payload.project_id,
        )
        return NotificationResponse.model_validate(notification)


@router.post("/{notification_id}/read")
async def mark_read(notification_id: str, auth: AuthContext = Depends(get_current_user)):
    async with get_session() as session:
        updated = await store.mark_notification_read(
            session, parse_uuid(notification_id, "notification"), auth.user_id
        )
    if not updated:
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"message": "Notification marked as read"}


@router.post("/send-sms")
async def send_sms_message(
    payload: SendMessageRequest, auth: AuthContext = Depends(get_current_user)
):
    try:
        receipt = await send_sms(payload.to, payload.message)
    except MessagingError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    logger.info("sms_requested", user_id=str(auth.user_id), simulated=receipt.simulated)
    return {"sid": receipt.sid, "status": receipt.status, "simulated": receipt.simulated}


@router.post("/send-whatsapp")
async def send_whatsapp_message(
    payload: SendMessageRequest, auth: AuthContext = Depends(get_current_user)
):
    try:
        receipt = await send_whatsapp(payload.to, payload.message)
    except MessagingError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    logger.info("whatsapp_requested", user_id=str(auth.user_id), simulated=receipt.simulated)
    return {"sid": receipt.sid, "status": receipt.status, "simulated": receipt.simulated}
