"""OTP, notice and login-alert delivery over WhatsApp with SMS fallback."""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from loguru import logger

from ...utils.masking import mask_phone
from .sms_client import SmsClient
from .whatsapp_client import ApiOutcome, WhatsAppClient

OTP_SMS_TEXT = (
    "{code} is your verification code. For your security, do not share this code. "
    "Expires in 5 minutes."
)

LOGIN_SMS_LAYOUT = (
    "New login for {{username}} at {{login_time}} from IP {{ip_address}} ({{browser}}). "
    "If this wasn't you, secure your account."
)


@dataclass(frozen=True)
class SendResult:
    """
    Outcome of a message delivery.

    Attributes:
        success: Whether any channel delivered the message
        channel: "whatsapp", "sms" or "none"
        whatsapp_attempted: WhatsApp was tried
        sms_attempted: SMS fallback was tried
        failure_reason: Human-readable reason when nothing was delivered
    """

    success: bool
    channel: str
    whatsapp_attempted: bool = True
    sms_attempted: bool = False
    failure_reason: Optional[str] = None


@dataclass(frozen=True)
class LoginDetails:
    """Fields of a login alert, in template parameter order."""

    username: str
    login_time: str
    ip_address: str = "unknown"
    browser: str = "unknown"

    def render(self, layout: str) -> str:
        return (
            layout.replace("{{username}}", self.username)
            .replace("{{login_time}}", self.login_time)
            .replace("{{ip_address}}", self.ip_address)
            .replace("{{browser}}", self.browser)
        )


class MessageService:
    """Send messages through WhatsApp first, then the SMS gateway."""

    def __init__(
        self,
        whatsapp: WhatsAppClient,
        sms: Optional[SmsClient] = None,
        otp_template: str = "otp_message",
        login_template: str = "login_notification",
        login_layout: Optional[str] = None,
    ):
        self.whatsapp = whatsapp
        self.sms = sms if sms is not None and sms.configured else None
        self.otp_template = otp_template
        self.login_template = login_template
        self.login_layout = login_layout or LOGIN_SMS_LAYOUT

    async def _deliver(
        self,
        phone: str,
        whatsapp_send: Callable[[], Awaitable[ApiOutcome]],
        sms_text: str,
        what: str,
    ) -> SendResult:
        outcome = await whatsapp_send()
        if outcome.ok:
            return SendResult(success=True, channel="whatsapp")

        if self.sms is None:
            return SendResult(
                success=False,
                channel="none",
                failure_reason=f"WhatsApp API failed; no SMS fallback configured for {what}",
            )

        logger.info(
            f"WhatsApp failed for {mask_phone(phone)}, falling back to SMS for {what} "
            f"(reason: {outcome.error})"
        )
        if await self.sms.send(phone, sms_text, outcome.error):
            return SendResult(success=True, channel="sms", sms_attempted=True)

        return SendResult(
            success=False,
            channel="none",
            sms_attempted=True,
            failure_reason=f"WhatsApp API failed; SMS fallback also failed for {what}",
        )

    async def send_otp(self, phone: str, language: str, code: str) -> SendResult:
        """
        Deliver an OTP code.

        Args:
            phone: Recipient phone number
            language: Short language code for the template
            code: OTP code

        Returns:
            SendResult describing which channel was used
        """
        return await self._deliver(
            phone,
            lambda: self.whatsapp.send_auth_template(phone, self.otp_template, language, code),
            OTP_SMS_TEXT.format(code=code),
            "OTP",
        )

    async def send_notice(self, phone: str, text: str) -> SendResult:
        """Deliver free text to a phone number (identity confirmation links)."""
        return await self._deliver(
            phone, lambda: self.whatsapp.send_text(phone, text), text, "notice"
        )

    async def send_login_notification(
        self, phone: str, language: str, details: LoginDetails
    ) -> SendResult:
        """Alert the phone owner about a completed login."""
        parameters = [details.username, details.login_time, details.ip_address, details.browser]
        return await self._deliver(
            phone,
            lambda: self.whatsapp.send_template(phone, self.login_template, language, parameters),
            details.render(self.login_layout),
            "login notification",
        )
