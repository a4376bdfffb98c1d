"""SMS and WhatsApp delivery through the Twilio REST API.

Without credentials and a sender number the message is only logged and a
simulated receipt is returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from vitruvi.config import get_config
from vitruvi.exceptions import MessagingError

logger = logging.getLogger(__name__)

WHATSAPP_PREFIX = "whatsapp:"


@dataclass
class MessageReceipt:
    sid: str
    status: str

    @property
    def simulated(self) -> bool:
        return self.sid == "simulated"


SIMULATED = MessageReceipt(sid="simulated", status="sent")


def _whatsapp_address(number: str) -> str:
    return number if number.startswith(WHATSAPP_PREFIX) else f"{WHATSAPP_PREFIX}{number}"


async def _post_message(to: str, sender: str, body: str) -> MessageReceipt:
    twilio = get_config().twilio
    url = f"{twilio.api_base}/Accounts/{twilio.account_sid}/Messages.json"

    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.post(
                url,
                data={"To": to, "From": sender, "Body": body},
                auth=(twilio.account_sid, twilio.auth_token),
            )
    except httpx.HTTPError as exc:
        logger.error("message_send_error: to=%s error=%s", to, exc)
        raise MessagingError(f"Failed to send message to {to}: {exc}") from exc

    if response.status_code >= 400:
        logger.error(
            "message_send_failed: to=%s status=%s response=%s",
            to,
            response.status_code,
            response.text,
        )
        raise MessagingError(f"Gateway rejected message to {to} ({response.status_code})")

    payload = response.json()
    logger.info("message_sent: to=%s sid=%s", to, payload.get("sid"))
    return MessageReceipt(sid=payload.get("sid", ""), status=payload.get("status", "queued"))


async def send_sms(to: str, message: str) -> MessageReceipt:
    twilio = get_config().twilio
    if not twilio.configured or not twilio.phone_number:
        logger.info("sms_simulated: to=%s message=%s", to, message)
        return SIMULATED
    return await _post_message(to, twilio.phone_number, message)


async def send_whatsapp(to: str, message: str) -> MessageReceipt:
    twilio = get_config().twilio
    if not twilio.configured or not twilio.whatsapp_number:
        logger.info("whatsapp_simulated: to=%s message=%s", to, message)
        return SIMULATED
    return await _post_message(
        _whatsapp_address(to), _whatsapp_address(twilio.whatsapp_number), message
    )


async def dispatch(channel: str, recipients: list[str], message: str) -> list[MessageReceipt]:
    """Send one message to every recipient over ``channel``.

    Email delivery is not wired to a provider; it is logged as simulated.
    """
    receipts = []
    for recipient in recipients:
        if channel == "sms":
            receipts.append(await send_sms(recipient, message))
        elif channel == "whatsapp":
            receipts.append(await send_whatsapp(recipient, message))
        else:
            logger.info("email_simulated: to=%s message=%s", recipient, message)
            receipts.append(SIMULATED)
    return receipts
