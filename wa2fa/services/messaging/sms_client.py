"""HTTP SMS gateway client used as OTP fallback."""

import asyncio
from typing import Dict, Optional

import aiohttp
from loguru import logger

from ...constants import Dispatcher
from ...utils.masking import mask_phone

# Gateway "coding" parameter
CODING_GSM7 = 0
CODING_UCS2 = 8


def detect_coding(content: Optional[str]) -> int:
    """UCS-2 when the text has any non-ASCII character, GSM 7-bit otherwise."""
    if content and any(ord(c) > 0x7F for c in content):
        return CODING_UCS2
    return CODING_GSM7


class SmsClient:
    """
    Sends SMS through a plain HTTP gateway.

    GET requests carry ``to``, ``content`` and ``coding`` in the query string;
    POST requests send them form-encoded together with ``_fallback_reason``.
    """

    def __init__(
        self,
        base_url: Optional[str],
        method: str = "GET",
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url
        self.method = "POST" if method and method.strip().upper() == "POST" else "GET"
        self._session = session

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.base_url.strip())

    @staticmethod
    def build_params(
        to: str, content: str, fallback_reason: Optional[str] = None
    ) -> Dict[str, str]:
        params = {"to": to, "content": content, "coding": str(detect_coding(content))}
        if fallback_reason and fallback_reason.strip():
            params["_fallback_reason"] = fallback_reason
        return params

    async def send(self, to: str, content: str, fallback_reason: Optional[str] = None) -> bool:
        """
        Send an SMS.

        Args:
            to: Recipient phone number
            content: Message text
            fallback_reason: Why the primary channel failed (POST only)

        Returns:
            True if the gateway answered 2xx
        """
        if not self.configured:
            logger.warning("SMS fallback URL not configured, skipping SMS")
            return False

        timeout = aiohttp.ClientTimeout(
            total=Dispatcher.HTTP_TOTAL_TIMEOUT, connect=Dispatcher.HTTP_CONNECT_TIMEOUT
        )
        try:
            if self._session is not None:
                return await self._send(self._session, to, content, fallback_reason, timeout)
            async with aiohttp.ClientSession() as session:
                return await self._send(session, to, content, fallback_reason, timeout)
        except aiohttp.ClientError as e:
            logger.error(f"HTTP client error sending SMS via fallback: {e}")
            return False
        except asyncio.TimeoutError:
            logger.error("Timeout sending SMS via fallback")
            return False

    async def _send(
        self,
        session: aiohttp.ClientSession,
        to: str,
        content: str,
        fallback_reason: Optional[str],
        timeout: aiohttp.ClientTimeout,
    ) -> bool:
        if self.method == "POST":
            request = session.post(
                self.base_url, data=self.build_params(to, content, fallback_reason), timeout=timeout
            )
        else:
            request = session.get(
                self.base_url, params=self.build_params(to, content), timeout=timeout
            )

        async with request as response:
            if 200 <= response.status < 300:
                logger.info(
                    f"SMS sent to {mask_phone(to)} via fallback [{self.method}] "
                    f"(coding={detect_coding(content)})"
                )
                return True
            body = await response.text()
            logger.error(f"SMS fallback error {response.status}: {body[:200]}")
            return False
