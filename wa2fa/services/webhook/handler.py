"""Inbound WhatsApp webhook processing and QR status polling.

The route layer authenticates the request and parses the payload; this
service turns each inbound text message into a store match, applies the
pseudonymous-sender policy and queues the acknowledgement reply.
"""

import time
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

from loguru import logger

from ...constants import Webhook
from ...core.config import Wa2faSettings
from ...utils.masking import last4, mask_code, mask_phone
from ...utils.webhook_utils import generate_signature, validate_signature
from ..messaging import BackgroundDispatcher, MessageService, SmsClient, WhatsAppClient
from ..verification import MatchResult, MatchStatus, VerificationStore, normalize_identity
from .identity_links import IdentityLinkRegistry
from .payload import InboundMessage, WebhookPayload


class PollStatus(Enum):
    """Status reported to the polling browser."""

    NOT_FOUND = "not_found"
    PENDING = "pending"
    PENDING_CONFIRM = "pending_confirm"
    VERIFIED = "verified"
    EXPIRED = "expired"


class ConfirmOutcome(Enum):
    """Result of following an identity confirmation link."""

    VERIFIED = "verified"
    INVALID_SIGNATURE = "invalid_signature"
    NOT_FOUND = "not_found"


class WebhookService:
    """Webhook/poll boundary around the verification store."""

    def __init__(
        self,
        settings: Wa2faSettings,
        store: VerificationStore,
        dispatcher: BackgroundDispatcher,
        identity_links: Optional[IdentityLinkRegistry] = None,
        whatsapp: Optional[WhatsAppClient] = None,
        messages: Optional[MessageService] = None,
    ):
        """
        Initialize webhook service.

        Args:
            settings: Application settings (reply texts, secrets, base URL)
            store: Verification store
            dispatcher: Background pool for acknowledgement replies
            identity_links: Confirmed pseudonym links
            whatsapp: Client for replies; built from settings if None
            messages: WhatsApp-then-SMS delivery for confirmation links
        """
        self.settings = settings
        self.store = store
        self.dispatcher = dispatcher
        self.identity_links = identity_links or IdentityLinkRegistry()
        self.whatsapp = whatsapp or WhatsAppClient(
            settings.access_token.get_secret_value(),
            settings.phone_number_id,
            settings.api_version,
        )
        self.messages = messages or MessageService(
            self.whatsapp,
            SmsClient(settings.sms_fallback_url, settings.sms_fallback_method),
            settings.template_otp,
        )

    # Subscription handshake

    def verify_subscription(
        self, mode: Optional[str], verify_token: Optional[str], challenge: Optional[str]
    ) -> Tuple[int, str]:
        """
        Answer Meta's webhook subscription check.

        Returns:
            (HTTP status, plain-text body)
        """
        if mode == "subscribe" and challenge is not None:
            if verify_token == self.settings.webhook_verify_token:
                logger.info("WhatsApp webhook verified successfully")
                return 200, challenge
            logger.warning("WhatsApp webhook verification failed: token mismatch")
            return 403, "Verify token mismatch"
        return 200, "wa2fa webhook active"

    # Inbound messages

    def authenticate(self, raw_body: bytes, signature_header: Optional[str]) -> bool:
        """Check X-Hub-Signature-256 before the body is looked at."""
        return validate_signature(raw_body, signature_header, self.settings.app_secret_value)

    def process_payload(self, payload: WebhookPayload) -> List[MatchResult]:
        """
        Match every inbound text message and queue the replies.

        Returns:
            One MatchResult per inbound message
        """
        results = []
        for message in payload.inbound_messages():
            results.append(self.handle_message(message))
        return results

    def handle_message(self, message: InboundMessage) -> MatchResult:
        """Process a single inbound message."""
        logger.info(
            f"Incoming WhatsApp message from {mask_phone(message.sender_identity)} "
            f"(pseudonymous={message.sender_is_pseudonymous})"
        )
        result = self.store.handle_incoming_message(
            message.sender_identity, message.message_text, message.sender_is_pseudonymous
        )

        if result.matched and message.sender_is_pseudonymous and result.token:
            return self._apply_pseudonymous_policy(message.sender_identity, result)

        logger.debug(f"QR verification status {result.status.value}")
        self._send_ack(message.sender_identity, message.sender_is_pseudonymous, self.reply_text(result))
        return result

    def _apply_pseudonymous_policy(self, sender: str, result: MatchResult) -> MatchResult:
        token = result.token
        entry = self.store.get_by_token(token) if token else None
        if token is None or entry is None:
            return MatchResult.no_match()

        linked = self.identity_links.get(sender)
        if linked and normalize_identity(linked) == entry.expected_identity:
            self.store.confirm_identity(token, linked)
            logger.info(f"Pseudonymous sender already linked, verified token {mask_code(token)}")
            self._send_ack(sender, True, self.settings.qr_ack_verified)
            return result

        self.store.mark_pending_identity_confirm(token)
        link = self.build_confirmation_link(token, sender)
        self._send_confirmation_link(entry.expected_identity, link)
        self._send_ack(
            sender,
            True,
            self.settings.qr_ack_confirm.replace("{{last4}}", last4(entry.expected_identity)),
        )
        return result

    def reply_text(self, result: MatchResult) -> str:
        """Pick the acknowledgement text for a match outcome."""
        if result.status is MatchStatus.MATCHED:
            return self.settings.qr_ack_verified
        if result.status is MatchStatus.IDENTITY_MISMATCH:
            return self.settings.qr_ack_mismatch.replace(
                "{{last4}}", result.expected_identity_last4 or "****"
            )
        if result.status is MatchStatus.EXPIRED:
            return self.settings.qr_ack_expired
        return self.settings.qr_ack_no_match

    def _send_ack(self, sender: str, pseudonymous: bool, text: str) -> None:
        if not self.settings.messaging_configured:
            logger.debug("Skipping QR ack reply - no access token or phone number ID configured")
            return

        recipient = sender if pseudonymous else normalize_identity(sender)
        client = self.whatsapp

        async def send() -> None:
            if not (await client.send_text(recipient, text)).ok:
                logger.warning(f"Failed to send QR ack reply to {mask_phone(recipient)}")

        self.dispatcher.submit(send, "QR ack reply")

    def _send_confirmation_link(self, phone: str, link: str) -> None:
        # Goes to the expected phone, never back to the pseudonym
        if not self.settings.messaging_configured and self.messages.sms is None:
            logger.warning("Cannot deliver identity confirmation link - no channel configured")
            return

        text = self.settings.qr_confirm_link_text.replace("{{link}}", link)
        messages = self.messages

        async def send() -> None:
            result = await messages.send_notice(phone, text)
            if not result.success:
                logger.warning(
                    f"Failed to deliver confirmation link to {mask_phone(phone)}: "
                    f"{result.failure_reason}"
                )

        self.dispatcher.submit(send, "identity confirmation link")

    # Identity confirmation links

    def _link_message(self, token: str, sender: str) -> bytes:
        return f"{token}|{sender}".encode("utf-8")

    def build_confirmation_link(self, token: str, sender: str) -> str:
        """Signed link delivered to the expected phone to prove it belongs to the sender."""
        signature = generate_signature(
            self._link_message(token, sender), self.settings.link_signing_key.get_secret_value()
        )
        query = urlencode(
            {"token": token, "sender": sender, "sig": signature[len(Webhook.SIGNATURE_PREFIX) :]}
        )
        return f"{self.settings.public_base_url.rstrip('/')}/api/wa2fa/confirm?{query}"

    def confirm_link(self, token: str, sender: str, signature: str) -> ConfirmOutcome:
        """
        Complete a pseudonymous match after the expected phone followed the link.

        The pseudonym is linked to the expected phone so later scans from the
        same sender verify immediately.
        """
        valid = validate_signature(
            self._link_message(token, sender),
            f"{Webhook.SIGNATURE_PREFIX}{signature}",
            self.settings.link_signing_key.get_secret_value(),
        )
        if not valid:
            logger.warning("Rejected identity confirmation link: bad signature")
            return ConfirmOutcome.INVALID_SIGNATURE

        entry = self.store.get_by_token(token)
        if entry is None:
            return ConfirmOutcome.NOT_FOUND
        if entry.is_verified:
            return ConfirmOutcome.VERIFIED
        if not self.store.confirm_identity(token, entry.expected_identity):
            return ConfirmOutcome.NOT_FOUND

        self.identity_links.link(sender, entry.expected_identity)
        return ConfirmOutcome.VERIFIED

    # Polling

    def poll_status(self, token: Optional[str]) -> Dict[str, Any]:
        """
        Report the status of a QR challenge.

        Read-only apart from the store's evict-on-read of expired entries.
        """
        entry = self.store.get_by_token(token.strip() if token else None)
        if entry is None:
            return {"status": PollStatus.NOT_FOUND.value}
        if entry.is_verified:
            return {"status": PollStatus.VERIFIED.value, "phone": entry.confirmed_identity}
        if entry.is_expired(time.time()):
            return {"status": PollStatus.EXPIRED.value}
        if entry.is_pending_identity_confirm:
            return {"status": PollStatus.PENDING_CONFIRM.value}
        return {"status": PollStatus.PENDING.value}
