"""Verification token and deep-link generation."""

import re
import secrets
from typing import Optional
from urllib.parse import quote

from ...constants import Tokens

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_NON_DIGIT = re.compile(r"\D")


def normalize_namespace(namespace: Optional[str]) -> str:
    """
    Build the token prefix from a namespace.

    Args:
        namespace: Realm or tenant name, may be None

    Returns:
        Uppercased alphanumeric prefix, or the fallback prefix when nothing remains
    """
    if not namespace or not namespace.strip():
        return Tokens.FALLBACK_PREFIX
    cleaned = _NON_ALNUM.sub("", namespace).upper()
    return cleaned or Tokens.FALLBACK_PREFIX


def generate_token(namespace: Optional[str] = None) -> str:
    """
    Generate a human-transcribable verification token.

    The random part draws from a 32-symbol alphabet without I, O, 0 and 1,
    giving 32^9 possible values per namespace.

    Args:
        namespace: Realm or tenant name used as prefix

    Returns:
        Token of the form ``{NAMESPACE}-XXXXXXXXX``
    """
    body = "".join(secrets.choice(Tokens.ALPHABET) for _ in range(Tokens.RANDOM_LENGTH))
    return f"{normalize_namespace(namespace)}-{body}"


def build_deep_link(business_identity: str, token: str) -> str:
    """
    Build the wa.me link that opens a chat with the token pre-filled.

    The caller must pass a business identity containing at least one digit.

    Args:
        business_identity: Business WhatsApp number in any format
        token: Verification token

    Returns:
        Deep link URL
    """
    digits = _NON_DIGIT.sub("", business_identity or "")
    return f"{Tokens.DEEP_LINK_BASE}/{digits}?text={quote(token, safe='')}"
