"""WhatsApp Cloud API client for OTP templates and free-form replies."""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp
from loguru import logger

from ...constants import Dispatcher
from ...utils.masking import mask_phone

GRAPH_API_BASE = "https://graph.facebook.com"

# Short language codes to Meta template locales; unknown codes pass through
META_LOCALES: Dict[str, str] = {"en": "en_US", "pt": "pt_BR"}


def to_meta_locale(language: Optional[str]) -> str:
    """Convert a short language code to the locale Meta expects for templates."""
    if not language:
        return "en_US"
    return META_LOCALES.get(language, language)


@dataclass(frozen=True)
class ApiOutcome:
    """
    Result of a single Cloud API call.

    Attributes:
        ok: The API answered 2xx
        error: Short error summary (e.g. "WA_API_404: Template not found") when not ok
    """

    ok: bool
    error: Optional[str] = None


def _error_summary(status: int, body: Any, prefix: str) -> str:
    message = None
    if isinstance(body, dict):
        message = (body.get("error") or {}).get("message")
    if not message:
        message = str(body)[:100] if body else "empty_response"
    return f"{prefix}_{status}: {message[:120]}"


class WhatsAppClient:
    """Sends messages through the Cloud API ``messages`` endpoint."""

    def __init__(
        self,
        access_token: str,
        phone_number_id: str,
        api_version: str = "v22.0",
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize WhatsApp client.

        Args:
            access_token: Permanent access token
            phone_number_id: Business phone number ID
            api_version: Graph API version
            session: Shared HTTP session; a short-lived one is opened per call if None
        """
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.api_version = api_version or "v22.0"
        self._session = session

    @property
    def endpoint(self) -> str:
        return f"{GRAPH_API_BASE}/{self.api_version}/{self.phone_number_id}/messages"

    @staticmethod
    def build_text_payload(recipient: str, text: str) -> Dict[str, Any]:
        return {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "text",
            "text": {"body": text},
        }

    @staticmethod
    def build_template_payload(
        recipient: str, template_name: str, language: str, parameters: List[str]
    ) -> Dict[str, Any]:
        return {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "template",
            "template": {
                "name": template_name,
                "language": {"code": to_meta_locale(language)},
                "components": [
                    {
                        "type": "body",
                        "parameters": [{"type": "text", "text": p} for p in parameters],
                    }
                ],
            },
        }

    @staticmethod
    def build_auth_template_payload(
        recipient: str, template_name: str, language: str, code: str
    ) -> Dict[str, Any]:
        """
        Build an authentication template message.

        Authentication templates with a copy-code button need the code twice:
        once as body parameter and once as the URL button suffix.
        """
        return {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "template",
            "template": {
                "name": template_name,
                "language": {"code": to_meta_locale(language)},
                "components": [
                    {"type": "body", "parameters": [{"type": "text", "text": code}]},
                    {
                        "type": "button",
                        "sub_type": "url",
                        "index": "0",
                        "parameters": [{"type": "text", "text": code}],
                    },
                ],
            },
        }

    async def send_text(self, recipient: str, text: str) -> ApiOutcome:
        """
        Send a free-form text message (inside the 24h customer service window).

        Returns:
            ApiOutcome; ``ok`` is True if the API accepted the message
        """
        outcome = await self._post(self.build_text_payload(recipient, text), "WA_TEXT")
        if outcome.ok:
            logger.info(f"WhatsApp text message sent to {mask_phone(recipient)}")
        return outcome

    async def send_auth_template(
        self, recipient: str, template_name: str, language: str, code: str
    ) -> ApiOutcome:
        """
        Send an OTP through an authentication template.

        Returns:
            ApiOutcome; ``error`` feeds the SMS fallback reason
        """
        payload = self.build_auth_template_payload(recipient, template_name, language, code)
        outcome = await self._post(payload, "WA_API")
        if outcome.ok:
            logger.info(
                f"WhatsApp message sent to {mask_phone(recipient)} "
                f"(template={template_name}, lang={language})"
            )
        return outcome

    async def send_template(
        self, recipient: str, template_name: str, language: str, parameters: List[str]
    ) -> ApiOutcome:
        """Send a pre-approved template with body parameters only."""
        payload = self.build_template_payload(recipient, template_name, language, parameters)
        outcome = await self._post(payload, "WA_API")
        if outcome.ok:
            logger.info(f"WhatsApp template {template_name} sent to {mask_phone(recipient)}")
        return outcome

    async def _post(self, payload: Dict[str, Any], error_prefix: str) -> ApiOutcome:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        timeout = aiohttp.ClientTimeout(
            total=Dispatcher.HTTP_TOTAL_TIMEOUT, connect=Dispatcher.HTTP_CONNECT_TIMEOUT
        )
        try:
            if self._session is not None:
                return await self._do_post(self._session, payload, headers, timeout, error_prefix)
            async with aiohttp.ClientSession() as session:
                return await self._do_post(session, payload, headers, timeout, error_prefix)
        except aiohttp.ClientError as e:
            logger.error(f"HTTP client error sending WhatsApp message: {e}")
            return ApiOutcome(False, f"{error_prefix}_EXCEPTION: {e}")
        except asyncio.TimeoutError:
            logger.error("Timeout sending WhatsApp message")
            return ApiOutcome(False, f"{error_prefix}_EXCEPTION: timeout")

    async def _do_post(
        self,
        session: aiohttp.ClientSession,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        timeout: aiohttp.ClientTimeout,
        error_prefix: str,
    ) -> ApiOutcome:
        async with session.post(
            self.endpoint, json=payload, headers=headers, timeout=timeout
        ) as response:
            if 200 <= response.status < 300:
                return ApiOutcome(True)
            try:
                body: Any = await response.json(content_type=None)
            except (aiohttp.ContentTypeError, ValueError):
                body = await response.text()
            error = _error_summary(response.status, body, error_prefix)
            logger.error(f"WhatsApp API error {response.status}: {error}")
            return ApiOutcome(False, error)
