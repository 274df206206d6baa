"""Tests for WhatsApp/SMS clients and OTP delivery."""

import asyncio
from typing import Any, List, Optional
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from wa2fa.services.messaging import (
    ApiOutcome,
    LoginDetails,
    MessageService,
    SmsClient,
    WhatsAppClient,
    detect_coding,
    to_meta_locale,
)


class FakeResponse:
    """Minimal stand-in for an aiohttp response context manager."""

    def __init__(self, status: int, json_body: Any = None, text: str = "", yields: int = 0):
        self.status = status
        self._json = json_body
        self._text = text
        self._yields = yields

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def json(self, content_type: Optional[str] = None):
        for _ in range(self._yields):
            await asyncio.sleep(0)
        if self._json is None:
            raise ValueError("no json")
        return self._json

    async def text(self):
        return self._text


def _session(response: FakeResponse) -> MagicMock:
    session = MagicMock(spec=aiohttp.ClientSession)
    session.post.return_value = response
    session.get.return_value = response
    return session


class TestWhatsAppPayloads:
    """Tests for Cloud API payload builders."""

    def test_text_payload(self):
        payload = WhatsAppClient.build_text_payload("+15550001234", "hi")
        assert payload == {
            "messaging_product": "whatsapp",
            "to": "+15550001234",
            "type": "text",
            "text": {"body": "hi"},
        }

    def test_auth_template_carries_code_in_body_and_button(self):
        payload = WhatsAppClient.build_auth_template_payload(
            "+15550001234", "otp_message", "pt", "123456"
        )
        template = payload["template"]
        assert template["name"] == "otp_message"
        assert template["language"] == {"code": "pt_BR"}
        body, button = template["components"]
        assert body["parameters"][0]["text"] == "123456"
        assert button["sub_type"] == "url"
        assert button["parameters"][0]["text"] == "123456"

    @pytest.mark.parametrize(
        "language,expected", [("en", "en_US"), ("pt", "pt_BR"), ("de", "de"), (None, "en_US")]
    )
    def test_to_meta_locale(self, language, expected):
        assert to_meta_locale(language) == expected

    def test_endpoint(self):
        client = WhatsAppClient("token", "12345", "v22.0")
        assert client.endpoint == "https://graph.facebook.com/v22.0/12345/messages"


class TestWhatsAppClient:
    """Tests for sending through the Cloud API."""

    @pytest.mark.asyncio
    async def test_send_text_success(self):
        session = _session(FakeResponse(200, {"messages": [{"id": "wamid.1"}]}))
        client = WhatsAppClient("token", "12345", session=session)

        assert await client.send_text("+15550001234", "hello") == ApiOutcome(True)
        _, kwargs = session.post.call_args
        assert kwargs["headers"]["Authorization"] == "Bearer token"
        assert kwargs["json"]["text"] == {"body": "hello"}

    @pytest.mark.asyncio
    async def test_api_error_is_recorded(self):
        body = {"error": {"message": "Template not found"}}
        client = WhatsAppClient("token", "12345", session=_session(FakeResponse(404, body)))

        outcome = await client.send_auth_template("+15550001234", "otp", "en", "123456")
        assert outcome == ApiOutcome(False, "WA_API_404: Template not found")

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        client = WhatsAppClient("token", "12345", session=_session(FakeResponse(500, text="oops")))

        assert await client.send_text("+15550001234", "hello") == ApiOutcome(False, "WA_TEXT_500: oops")

    @pytest.mark.asyncio
    async def test_client_error_returns_false(self):
        session = MagicMock(spec=aiohttp.ClientSession)
        session.post.side_effect = aiohttp.ClientConnectionError("refused")
        client = WhatsAppClient("token", "12345", session=session)

        outcome = await client.send_text("+15550001234", "hello")
        assert outcome.ok is False
        assert outcome.error.startswith("WA_TEXT_EXCEPTION")

    @pytest.mark.asyncio
    async def test_concurrent_sends_keep_their_own_errors(self):
        session = MagicMock(spec=aiohttp.ClientSession)
        session.post.side_effect = [
            FakeResponse(400, {"error": {"message": "first"}}, yields=3),
            FakeResponse(500, {"error": {"message": "second"}}),
        ]
        client = WhatsAppClient("token", "12345", session=session)

        first, second = await asyncio.gather(
            client.send_auth_template("+15550001234", "otp", "en", "111111"),
            client.send_auth_template("+15550005678", "otp", "en", "222222"),
        )

        assert first.error == "WA_API_400: first"
        assert second.error == "WA_API_500: second"

    @pytest.mark.asyncio
    async def test_send_template_body_parameters(self):
        session = _session(FakeResponse(200))
        client = WhatsAppClient("token", "12345", session=session)

        outcome = await client.send_template(
            "+15550001234", "login_notification", "en", ["bob", "now"]
        )

        assert outcome.ok is True
        template = session.post.call_args.kwargs["json"]["template"]
        assert template["name"] == "login_notification"
        assert template["components"] == [
            {
                "type": "body",
                "parameters": [{"type": "text", "text": "bob"}, {"type": "text", "text": "now"}],
            }
        ]


class TestSmsClient:
    """Tests for the SMS gateway client."""

    @pytest.mark.parametrize(
        "content,expected", [("123456 is your code", 0), ("Código 123456", 8), ("", 0), (None, 0)]
    )
    def test_detect_coding(self, content, expected):
        assert detect_coding(content) == expected

    def test_build_params(self):
        params = SmsClient.build_params("+15550001234", "hello", "WA_API_500: down")
        assert params == {
            "to": "+15550001234",
            "content": "hello",
            "coding": "0",
            "_fallback_reason": "WA_API_500: down",
        }

    def test_method_defaults_to_get(self):
        assert SmsClient("https://sms.example.com", "put").method == "GET"
        assert SmsClient("https://sms.example.com", "post").method == "POST"

    @pytest.mark.asyncio
    async def test_not_configured(self):
        assert SmsClient(None).configured is False
        assert await SmsClient("  ").send("+15550001234", "hi") is False

    @pytest.mark.asyncio
    async def test_get_sends_query_params(self):
        session = _session(FakeResponse(200))
        client = SmsClient("https://sms.example.com/send", "GET", session=session)

        assert await client.send("+15550001234", "hi", "reason") is True
        _, kwargs = session.get.call_args
        assert kwargs["params"] == {"to": "+15550001234", "content": "hi", "coding": "0"}
        session.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_post_sends_form_with_reason(self):
        session = _session(FakeResponse(202))
        client = SmsClient("https://sms.example.com/send", "POST", session=session)

        assert await client.send("+15550001234", "hi", "reason") is True
        _, kwargs = session.post.call_args
        assert kwargs["data"]["_fallback_reason"] == "reason"

    @pytest.mark.asyncio
    async def test_gateway_error(self):
        client = SmsClient("https://sms.example.com", session=_session(FakeResponse(500, text="x")))
        assert await client.send("+15550001234", "hi") is False


def _whatsapp(ok: bool, error: Optional[str] = None) -> MagicMock:
    outcome = ApiOutcome(ok, error)
    client = MagicMock(spec=WhatsAppClient)
    client.send_auth_template = AsyncMock(return_value=outcome)
    client.send_text = AsyncMock(return_value=outcome)
    client.send_template = AsyncMock(return_value=outcome)
    return client


def _sms(ok: bool, configured: bool = True) -> MagicMock:
    client = MagicMock(spec=SmsClient)
    client.configured = configured
    client.send = AsyncMock(return_value=ok)
    return client


class TestMessageService:
    """Tests for OTP delivery with fallback."""

    @pytest.mark.asyncio
    async def test_whatsapp_success(self):
        sms = _sms(True)
        service = MessageService(_whatsapp(True), sms)

        result = await service.send_otp("+15550001234", "en", "123456")

        assert result.success is True
        assert result.channel == "whatsapp"
        sms.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_falls_back_to_sms(self):
        sms = _sms(True)
        service = MessageService(_whatsapp(False, "WA_API_400: bad"), sms)

        result = await service.send_otp("+15550001234", "en", "123456")

        assert result.success is True
        assert result.channel == "sms"
        assert result.sms_attempted is True
        args = sms.send.call_args.args
        assert args[0] == "+15550001234"
        assert "123456" in args[1]
        assert args[2] == "WA_API_400: bad"

    @pytest.mark.asyncio
    async def test_both_channels_fail(self):
        service = MessageService(_whatsapp(False), _sms(False))
        result = await service.send_otp("+15550001234", "en", "123456")
        assert result.success is False
        assert result.channel == "none"
        assert "SMS fallback also failed" in result.failure_reason

    @pytest.mark.asyncio
    async def test_unconfigured_sms_is_ignored(self):
        sms = _sms(True, configured=False)
        service = MessageService(_whatsapp(False), sms)

        result = await service.send_otp("+15550001234", "en", "123456")

        assert result.success is False
        assert result.sms_attempted is False
        sms.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_uses_configured_template(self):
        whatsapp = _whatsapp(True)
        service = MessageService(whatsapp, otp_template="login_code")
        await service.send_otp("+15550001234", "pt", "123456")
        whatsapp.send_auth_template.assert_awaited_once_with(
            "+15550001234", "login_code", "pt", "123456"
        )

    @pytest.mark.asyncio
    async def test_notice_falls_back_to_sms_with_same_text(self):
        sms = _sms(True)
        whatsapp = _whatsapp(False, "WA_TEXT_400: outside window")
        service = MessageService(whatsapp, sms)

        result = await service.send_notice("+15550001234", "open https://x")

        assert result.channel == "sms"
        whatsapp.send_text.assert_awaited_once_with("+15550001234", "open https://x")
        sms.send.assert_awaited_once_with(
            "+15550001234", "open https://x", "WA_TEXT_400: outside window"
        )


class TestLoginNotification:
    """Tests for login alerts."""

    DETAILS = LoginDetails("alice", "2026-01-01 10:00:00", "203.0.113.7", "Firefox 121 on Linux")

    @pytest.mark.asyncio
    async def test_template_parameters_in_order(self):
        whatsapp = _whatsapp(True)
        service = MessageService(whatsapp, login_template="login_alert")

        result = await service.send_login_notification("+15550001234", "en", self.DETAILS)

        assert result.success is True
        whatsapp.send_template.assert_awaited_once_with(
            "+15550001234",
            "login_alert",
            "en",
            ["alice", "2026-01-01 10:00:00", "203.0.113.7", "Firefox 121 on Linux"],
        )

    @pytest.mark.asyncio
    async def test_sms_fallback_uses_layout(self):
        sms = _sms(True)
        service = MessageService(
            _whatsapp(False, "WA_API_404: missing"),
            sms,
            login_layout="{{username}} logged in from {{ip_address}} using {{browser}}",
        )

        result = await service.send_login_notification("+15550001234", "en", self.DETAILS)

        assert result.channel == "sms"
        assert sms.send.call_args.args[1] == "alice logged in from 203.0.113.7 using Firefox 121 on Linux"

    @pytest.mark.asyncio
    async def test_default_layout(self):
        sms = _sms(True)
        service = MessageService(_whatsapp(False), sms)

        await service.send_login_notification("+15550001234", "en", self.DETAILS)

        text = sms.send.call_args.args[1]
        assert text.startswith("New login for alice at 2026-01-01 10:00:00 from IP 203.0.113.7")
        assert "{{" not in text

    @pytest.mark.asyncio
    async def test_no_fallback_configured(self):
        service = MessageService(_whatsapp(False))
        result = await service.send_login_notification("+15550001234", "en", self.DETAILS)
        assert result.success is False
        assert "no SMS fallback configured for login notification" in result.failure_reason
