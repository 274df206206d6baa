"""Meta WhatsApp Cloud API webhook payload models."""

from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def is_pseudonymous_sender(sender: str) -> bool:
    """
    Check whether a sender id is a surrogate rather than a phone number.

    WhatsApp may deliver a linked id such as ``1234567890@lid`` instead of
    the sender's number; anything that is not a plain digit string counts.
    """
    digits = sender.strip().lstrip("+")
    return not digits.isdigit()


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class WebhookText(_Lenient):
    body: str = ""


class WebhookMessage(_Lenient):
    sender: str = Field(default="", alias="from")
    id: Optional[str] = None
    type: str = "text"
    text: Optional[WebhookText] = None


class WebhookValue(_Lenient):
    messaging_product: Optional[str] = None
    messages: List[WebhookMessage] = Field(default_factory=list)


class WebhookChange(_Lenient):
    field: Optional[str] = None
    value: WebhookValue = Field(default_factory=WebhookValue)


class WebhookEntry(_Lenient):
    id: Optional[str] = None
    changes: List[WebhookChange] = Field(default_factory=list)


@dataclass(frozen=True)
class InboundMessage:
    """Fields of an inbound text message the verification store needs."""

    sender_identity: str
    message_text: str
    sender_is_pseudonymous: bool


class WebhookPayload(_Lenient):
    """
    Top-level webhook notification.

    Example::

        {"object": "whatsapp_business_account",
         "entry": [{"changes": [{"value": {"messages": [
             {"from": "919876543210", "text": {"body": "VERIFY-A3B7C9D2E"}}]}}]}]}
    """

    object: Optional[str] = None
    entry: List[WebhookEntry] = Field(default_factory=list)

    def inbound_messages(self) -> List[InboundMessage]:
        """Flatten all text messages; status callbacks and media are skipped."""
        messages = []
        for entry in self.entry:
            for change in entry.changes:
                for message in change.value.messages:
                    if not message.sender or message.text is None:
                        continue
                    messages.append(
                        InboundMessage(
                            sender_identity=message.sender,
                            message_text=message.text.body,
                            sender_is_pseudonymous=is_pseudonymous_sender(message.sender),
                        )
                    )
        return messages
