"""Second-factor login flow orchestration.

Ties the two verification methods together for one login attempt: the QR
challenge (token, deep link, completion through the webhook) and the
delivered OTP (send, resend, verify with lockout).
"""

import re
import time
from datetime import datetime
from typing import Any, Dict, Optional

from loguru import logger

from ...constants import SessionNoteKeys
from ...core.config import Wa2faSettings
from ...core.exceptions import (
    AttemptNotFoundError,
    MessageDeliveryError,
    MethodDisabledError,
    ValidationError,
)
from ...utils.masking import mask_phone
from ...utils.user_agent import describe_user_agent
from ..messaging import BackgroundDispatcher, LoginDetails, MessageService
from ..otp import OtpCodeManager
from ..verification import (
    VerificationStore,
    build_deep_link,
    generate_token,
    normalize_identity,
)
from ..verification.models import VerificationStatus
from .attempt_registry import AttemptRegistry, LoginAttempt

_E164 = re.compile(r"^\+[1-9]\d{7,14}$")

# Longer numbers that already start with the default calling code are
# read as international
_MAX_NATIONAL_DIGITS = 10

PURPOSE_LOGIN = "login"
PURPOSE_ENROLLMENT = "enrollment"


def _apply_country_code(compact: str, country_code: str) -> str:
    if compact.startswith("00"):
        return f"+{compact[2:]}"
    if compact.startswith("+") or not country_code:
        return compact
    if compact.startswith("0"):
        return f"+{country_code}{compact.lstrip('0')}"
    if compact.startswith(country_code) and len(compact) > _MAX_NATIONAL_DIGITS:
        return compact
    return f"+{country_code}{compact}"


def validate_phone(phone: Optional[str], default_country_code: str = "") -> str:
    """
    Validate and normalize a phone number to E.164 with a leading '+'.

    Numbers with a "00" prefix are international. With a default calling
    code, numbers without any international prefix are national: a trunk
    "0" is dropped and the calling code prepended. Without one, bare digits
    are read as an international number (the form WhatsApp reports senders in).

    Raises:
        ValidationError: If the number is not a plausible international number
    """
    if not phone:
        raise ValidationError("Phone number is required", field="phone")
    compact = re.sub(r"[\s\-().]", "", phone)
    normalized = normalize_identity(_apply_country_code(compact, default_country_code))
    if not _E164.match(normalized):
        raise ValidationError("Phone number must be in international format", field="phone")
    return normalized


class LoginFlowService:
    """Per-attempt orchestration of QR and OTP verification."""

    def __init__(
        self,
        settings: Wa2faSettings,
        store: VerificationStore,
        registry: AttemptRegistry,
        messages: MessageService,
        dispatcher: BackgroundDispatcher,
        code_manager: Optional[OtpCodeManager] = None,
    ):
        self.settings = settings
        self.store = store
        self.registry = registry
        self.messages = messages
        self.dispatcher = dispatcher
        self.code_manager = code_manager or OtpCodeManager()

    @property
    def enabled_methods(self) -> Dict[str, bool]:
        return {"otp": self.settings.otp_enabled, "qr": self.settings.qr_enabled}

    def _get_attempt(self, attempt_id: str) -> LoginAttempt:
        attempt = self.registry.get(attempt_id)
        if attempt is None:
            raise AttemptNotFoundError(attempt_id)
        return attempt

    def start_attempt(
        self,
        phone: str,
        language: Optional[str] = None,
        username: Optional[str] = None,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Begin a login attempt.

        QR-only and dual mode issue a QR challenge right away; OTP-only mode
        sends the code immediately. In dual mode the OTP is only sent when
        the user asks for it.

        Args:
            phone: Phone number to verify
            language: Short language code (defaults to configured language)
            username: Account name for the login notification
            client_ip: Caller address for the login notification
            user_agent: Raw User-Agent header for the login notification

        Returns:
            Attempt view including the QR challenge and/or OTP delivery state
        """
        attempt = self._register(phone, language, PURPOSE_LOGIN)
        attempt.username = username
        attempt.client_ip = client_ip
        attempt.user_agent = user_agent
        return self._issue_first_challenge(attempt)

    def start_enrollment(self, phone: str, language: Optional[str] = None) -> Dict[str, Any]:
        """
        Begin verifying a newly set or changed phone number.

        Runs the same QR/OTP challenge as a login; once it completes the view
        carries ``verified_phone`` for the caller to store.
        """
        return self._issue_first_challenge(self._register(phone, language, PURPOSE_ENROLLMENT))

    def change_phone(self, attempt_id: str, phone: str) -> Dict[str, Any]:
        """
        Switch an open enrollment to a different number.

        Drops the current QR challenge and OTP so nothing issued for the old
        number can complete the enrollment, then issues a fresh challenge.

        Raises:
            AttemptNotFoundError: Unknown or expired attempt
            ValidationError: Not an open enrollment, or invalid phone
        """
        attempt = self._get_attempt(attempt_id)
        if attempt.purpose != PURPOSE_ENROLLMENT or attempt.completed:
            raise ValidationError(
                "Only an open phone enrollment can change its number", field="attempt_id"
            )
        normalized = validate_phone(phone, self.settings.default_country_code)

        self.store.remove(attempt_id)
        self.code_manager.clear_code(attempt.notes)
        for key in (SessionNoteKeys.QR_TOKEN, SessionNoteKeys.OTP_SENT):
            attempt.notes.remove(key)
        attempt.phone = normalized
        attempt.resend_count = 0
        attempt.last_delivery = None
        logger.info(f"Enrollment {attempt_id} switched to {mask_phone(normalized)}")
        return self._issue_first_challenge(attempt)

    def _register(self, phone: str, language: Optional[str], purpose: str) -> LoginAttempt:
        normalized = validate_phone(phone, self.settings.default_country_code)
        attempt = self.registry.register(
            normalized, language or self.settings.default_language, purpose
        )
        logger.info(
            f"{purpose.capitalize()} attempt {attempt.attempt_id} started for {mask_phone(normalized)}"
        )
        return attempt

    def _issue_first_challenge(self, attempt: LoginAttempt) -> Dict[str, Any]:
        view = self.describe(attempt)
        if self.settings.qr_enabled:
            view["qr"] = self.issue_qr(attempt.attempt_id)
        elif self.settings.otp_enabled:
            view["otp"] = self.send_otp(attempt.attempt_id)
        return view

    def describe(self, attempt: LoginAttempt) -> Dict[str, Any]:
        view = {
            "attempt_id": attempt.attempt_id,
            "purpose": attempt.purpose,
            "phone": mask_phone(attempt.phone),
            "methods": self.enabled_methods,
            "completed": attempt.completed,
            "completed_method": attempt.completed_method,
        }
        if attempt.completed and attempt.purpose == PURPOSE_ENROLLMENT:
            view["verified_phone"] = attempt.phone
        return view

    def _complete(self, attempt: LoginAttempt, method: str) -> None:
        attempt.completed_method = method
        logger.info(
            f"{attempt.purpose.capitalize()} attempt {attempt.attempt_id} completed via {method}"
        )
        if attempt.purpose == PURPOSE_LOGIN and self.settings.login_notification_enabled:
            self._notify_login(attempt)

    def _notify_login(self, attempt: LoginAttempt) -> None:
        details = LoginDetails(
            username=attempt.username or mask_phone(attempt.phone),
            login_time=datetime.fromtimestamp(time.time()).strftime("%Y-%m-%d %H:%M:%S"),
            ip_address=attempt.client_ip or "unknown",
            browser=describe_user_agent(attempt.user_agent),
        )
        phone, language, attempt_id = attempt.phone, attempt.language, attempt.attempt_id
        messages = self.messages

        async def notify() -> None:
            result = await messages.send_login_notification(phone, language, details)
            if not result.success:
                raise MessageDeliveryError(
                    f"Login notification failed for attempt {attempt_id}: {result.failure_reason}",
                    channel="sms" if result.sms_attempted else "whatsapp",
                )
            logger.info(f"Login notification for attempt {attempt_id} sent via {result.channel}")

        self.dispatcher.submit(notify, "login notification")

    # QR challenge

    def issue_qr(self, attempt_id: str) -> Dict[str, Any]:
        """
        Issue (or reuse on refresh) the attempt's QR challenge.

        Raises:
            AttemptNotFoundError: Unknown or expired attempt
            MethodDisabledError: QR verification is disabled
        """
        if not self.settings.qr_enabled:
            raise MethodDisabledError("qr")
        attempt = self._get_attempt(attempt_id)

        if not self.settings.business_phone:
            raise ValidationError("QR verification needs a business phone number", field="business_phone")

        existing = attempt.notes.get(SessionNoteKeys.QR_TOKEN)
        entry = self.store.get_status(attempt_id)
        if (
            existing
            and entry is not None
            and entry.token == existing
            and not entry.is_expired(time.time())
        ):
            token = existing
            expires_in = int(entry.created_at + entry.ttl_seconds - time.time())
            logger.debug(f"Reusing QR token for attempt {attempt_id}")
        else:
            token = generate_token(self.settings.token_namespace)
            self.store.create_pending(token, attempt.phone, self.settings.qr_ttl, attempt_id)
            attempt.notes.set(SessionNoteKeys.QR_TOKEN, token)
            expires_in = self.settings.qr_ttl

        return {
            "token": token,
            "deep_link": build_deep_link(self.settings.business_phone, token),
            "expires_in": max(expires_in, 0),
        }

    def complete_qr(self, attempt_id: str) -> Dict[str, Any]:
        """
        Finish the attempt once the browser saw ``verified`` while polling.

        Returns:
            Attempt view; ``completed`` is False if the challenge is not verified
        """
        attempt = self._get_attempt(attempt_id)
        entry = self.store.get_status(attempt_id)
        token = attempt.notes.get(SessionNoteKeys.QR_TOKEN)

        if entry is None or entry.token != token or entry.status is not VerificationStatus.VERIFIED:
            logger.warning(f"QR completion requested but not verified for attempt {attempt_id}")
            view = self.describe(attempt)
            view["qr_status"] = entry.status.value if entry else "not_found"
            return view

        self.store.remove(attempt_id)
        attempt.notes.remove(SessionNoteKeys.QR_TOKEN)
        self._complete(attempt, "qr")
        return self.describe(attempt)

    # Delivered OTP

    def send_otp(self, attempt_id: str, resend: bool = False) -> Dict[str, Any]:
        """
        Send the OTP for an attempt.

        A still-valid code is re-sent instead of issuing a new one. Delivery
        runs on the background dispatcher; the result is recorded on the
        attempt.

        Raises:
            AttemptNotFoundError: Unknown or expired attempt
            MethodDisabledError: OTP verification is disabled
        """
        if not self.settings.otp_enabled:
            raise MethodDisabledError("otp")
        attempt = self._get_attempt(attempt_id)
        notes = attempt.notes

        if self.code_manager.is_locked_out(notes):
            return {"status": "locked_out"}

        already_sent = notes.get(SessionNoteKeys.OTP_SENT) is not None
        if resend or already_sent:
            max_resend = self.settings.otp_max_resend
            if max_resend > 0 and attempt.resend_count >= max_resend:
                logger.info(f"Max resend limit ({max_resend}) reached for attempt {attempt_id}")
                return {"status": "resend_limit_reached"}
            attempt.resend_count += 1

        code = None
        if self.code_manager.is_still_valid(notes, self.settings.otp_expiry):
            code = self.code_manager.get_stored_code(notes)
        reused = code is not None
        if code is None:
            code = self.code_manager.generate_code(self.settings.otp_length)
            self.code_manager.store_code(notes, code)
        notes.set(SessionNoteKeys.OTP_SENT, "true")

        phone, language = attempt.phone, attempt.language
        messages = self.messages

        async def deliver() -> None:
            result = await messages.send_otp(phone, language, code)
            attempt.last_delivery = result.channel if result.success else result.failure_reason
            if not result.success:
                raise MessageDeliveryError(
                    f"OTP delivery failed for attempt {attempt_id}: {result.failure_reason}",
                    channel="sms" if result.sms_attempted else "whatsapp",
                )

        queued = self.dispatcher.submit(deliver, "OTP delivery")
        return {
            "status": "queued" if queued else "dropped",
            "reused_code": reused,
            "expires_in": self.settings.otp_expiry,
            "resends_left": self._resends_left(attempt),
        }

    def _resends_left(self, attempt: LoginAttempt) -> Optional[int]:
        if self.settings.otp_max_resend == 0:
            return None
        return max(self.settings.otp_max_resend - attempt.resend_count, 0)

    def verify_otp(self, attempt_id: str, code: str) -> Dict[str, Any]:
        """
        Check a user-entered code.

        Returns:
            ``verified`` flag plus ``locked_out`` and remaining attempts
        """
        attempt = self._get_attempt(attempt_id)
        notes = attempt.notes

        if self.code_manager.is_locked_out(notes):
            return {"verified": False, "locked_out": True, "attempts_remaining": 0}

        verified = self.code_manager.validate(
            notes, (code or "").strip(), self.settings.otp_expiry, self.settings.otp_max_attempts
        )
        if verified:
            self._complete(attempt, "otp")
            result: Dict[str, Any] = {
                "verified": True,
                "locked_out": False,
                "attempts_remaining": None,
            }
            if attempt.purpose == PURPOSE_ENROLLMENT:
                result["verified_phone"] = attempt.phone
            return result

        locked_out = self.code_manager.is_locked_out(notes)
        remaining = None
        if self.settings.otp_max_attempts > 0:
            remaining = max(
                self.settings.otp_max_attempts - self.code_manager.get_attempt_count(notes), 0
            )
        if locked_out:
            remaining = 0
        return {"verified": False, "locked_out": locked_out, "attempts_remaining": remaining}

    # Status and lifecycle

    def get_status(self, attempt_id: str) -> Dict[str, Any]:
        attempt = self._get_attempt(attempt_id)
        view = self.describe(attempt)
        entry = self.store.get_status(attempt_id)
        view["qr_status"] = entry.status.value if entry else None
        view["otp_locked_out"] = self.code_manager.is_locked_out(attempt.notes)
        view["last_delivery"] = attempt.last_delivery
        return view

    def cancel(self, attempt_id: str) -> None:
        """Drop the attempt and its QR challenge."""
        self._get_attempt(attempt_id)
        self.store.remove(attempt_id)
        self.registry.unregister(attempt_id)

    def cleanup_expired(self) -> int:
        """Drop expired attempts together with their challenges."""
        expired = self.registry.cleanup_expired()
        for attempt_id in expired:
            self.store.remove(attempt_id)
        return len(expired)
