"""Unified constants for wa2fa.

    from wa2fa.constants import OTP, QRVerification, Tokens
"""

from .verification import (
    OTP,
    Attempts,
    Dispatcher,
    QRVerification,
    SessionNoteKeys,
    Tokens,
    Webhook,
)

__all__ = [
    "OTP",
    "Attempts",
    "Dispatcher",
    "QRVerification",
    "SessionNoteKeys",
    "Tokens",
    "Webhook",
]
