"""WhatsApp webhook boundary: inbound messages, replies and status polling."""

from .handler import ConfirmOutcome, PollStatus, WebhookService
from .identity_links import IdentityLinkRegistry
from .payload import InboundMessage, WebhookPayload, is_pseudonymous_sender

__all__ = [
    "ConfirmOutcome",
    "IdentityLinkRegistry",
    "InboundMessage",
    "PollStatus",
    "WebhookPayload",
    "WebhookService",
    "is_pseudonymous_sender",
]
