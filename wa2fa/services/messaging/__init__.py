"""Outbound WhatsApp/SMS messaging and the background send pool."""

from .dispatcher import BackgroundDispatcher
from .message_service import LoginDetails, MessageService, SendResult
from .sms_client import SmsClient, detect_coding
from .whatsapp_client import ApiOutcome, WhatsAppClient, to_meta_locale

__all__ = [
    "ApiOutcome",
    "BackgroundDispatcher",
    "LoginDetails",
    "MessageService",
    "SendResult",
    "SmsClient",
    "WhatsAppClient",
    "detect_coding",
    "to_meta_locale",
]
