"""Unit tests for SMS / WhatsApp delivery."""

from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from vitruvi.exceptions import MessagingError
from vitruvi.notifications import messaging


@pytest.fixture
def twilio_env(monkeypatch):
    monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setenv("TWILIO_AUTH_TOKEN", "token")
    monkeypatch.setenv("TWILIO_PHONE_NUMBER", "+15550001111")
    monkeypatch.setenv("TWILIO_WHATSAPP_NUMBER", "+15550002222")


@pytest.fixture
def gateway(monkeypatch):
    """Route httpx calls to an in-process handler and record requests."""
    state = {"requests": [], "status": 201}
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        if state["status"] >= 400:
            return httpx.Response(state["status"], json={"message": "invalid number"})
        return httpx.Response(state["status"], json={"sid": "SM42", "status": "queued"})

    monkeypatch.setattr(
        messaging.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )
    return state


class TestSimulated:
    @pytest.mark.asyncio
    async def test_sms_without_credentials(self):
        receipt = await messaging.send_sms("+15557654321", "Slab poured")

        assert receipt.sid == "simulated"
        assert receipt.status == "sent"
        assert receipt.simulated

    @pytest.mark.asyncio
    async def test_whatsapp_without_credentials(self):
        receipt = await messaging.send_whatsapp("+15557654321", "Slab poured")
        assert receipt.simulated

    @pytest.mark.asyncio
    async def test_email_is_always_simulated(self, twilio_env):
        receipts = await messaging.dispatch("email", ["pm@example.com", "cfo@example.com"], "hi")
        assert [r.simulated for r in receipts] == [True, True]


class TestGateway:
    @pytest.mark.asyncio
    async def test_sms_posts_form_to_twilio(self, twilio_env, gateway):
        receipt = await messaging.send_sms("+15557654321", "Budget alert")

        assert receipt.sid == "SM42"
        assert not receipt.simulated
        request = gateway["requests"][0]
        assert request.url.path.endswith("/Accounts/AC123/Messages.json")
        form = parse_qs(request.content.decode())
        assert form["To"] == ["+15557654321"]
        assert form["From"] == ["+15550001111"]
        assert form["Body"] == ["Budget alert"]

    @pytest.mark.asyncio
    async def test_whatsapp_numbers_are_prefixed(self, twilio_env, gateway):
        await messaging.send_whatsapp("+15557654321", "Safety alert")

        form = parse_qs(gateway["requests"][0].content.decode())
        assert form["To"] == ["whatsapp:+15557654321"]
        assert form["From"] == ["whatsapp:+15550002222"]

    @pytest.mark.asyncio
    async def test_gateway_error_propagates(self, twilio_env, gateway):
        gateway["status"] = 400

        with pytest.raises(MessagingError):
            await messaging.send_sms("+1", "x")

    @pytest.mark.asyncio
    async def test_dispatch_sends_to_every_recipient(self, twilio_env, gateway):
        receipts = await messaging.dispatch("sms", ["+15550000001", "+15550000002"], "Alert")

        assert len(receipts) == 2
        assert len(gateway["requests"]) == 2
