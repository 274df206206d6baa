"""Utility functions for masking sensitive data in logs and outputs."""

from typing import Optional


def mask_phone(phone: Optional[str]) -> str:
    """
    Mask phone number for logging purposes.

    Example: +905551234567 -> +***4567

    Args:
        phone: Phone number (or pseudonymous sender id) to mask

    Returns:
        Masked phone number
    """
    if not phone or len(phone) < 4:
        return "***"

    # Show only the + and last 4 digits; country code length varies
    if phone.startswith("+"):
        return "+" + "***" + phone[-4:]
    return "***" + phone[-4:]


def mask_code(code: Optional[str]) -> str:
    """
    Mask a one-time code or verification token for logging.

    Example: ACME-AB3F7G2K9 -> ACME-*******K9, 123456 -> ******

    Args:
        code: Code or token to mask

    Returns:
        Masked value
    """
    if not code:
        return "***"
    if code.isdigit():
        return "*" * len(code)
    prefix, sep, body = code.rpartition("-")
    if len(body) <= 2:
        return f"{prefix}{sep}" + "*" * len(body)
    return f"{prefix}{sep}" + "*" * (len(body) - 2) + body[-2:]


def last4(identity: Optional[str]) -> str:
    """
    Last four characters of an identity for user-facing hints.

    Args:
        identity: Phone number

    Returns:
        Last 4 characters, or "****" when shorter than 4
    """
    if not identity or len(identity) < 4:
        return "****"
    return identity[-4:]
