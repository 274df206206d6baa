"""Webhook signature verification utilities."""

import hashlib
import hmac
from typing import Optional, Union

from loguru import logger

from ..constants import Webhook


def _compute_hex_digest(raw_body: bytes, shared_secret: str) -> str:
    return hmac.new(shared_secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def validate_signature(
    raw_body: bytes, signature_header: Optional[str], shared_secret: Optional[str]
) -> bool:
    """
    Verify an inbound webhook body against its X-Hub-Signature-256 header.

    When no shared secret is configured the check is skipped and the body is
    accepted. This keeps local setups working without an App Secret but leaves
    the endpoint open to forged deliveries, so a warning is logged each time.

    Args:
        raw_body: Raw request body bytes, exactly as received
        signature_header: Header value (format: "sha256=<hex digest>")
        shared_secret: Meta App Secret, or None/empty to skip verification

    Returns:
        True if the signature is valid or verification is disabled
    """
    if not shared_secret:
        logger.warning("Webhook app secret not configured - skipping signature verification")
        return True

    if not signature_header or not signature_header.startswith(Webhook.SIGNATURE_PREFIX):
        logger.warning("Missing or malformed webhook signature header")
        return False

    try:
        provided = signature_header[len(Webhook.SIGNATURE_PREFIX) :]
        expected = _compute_hex_digest(raw_body, shared_secret)
        # Constant-time comparison to prevent timing attacks
        return hmac.compare_digest(expected.encode("ascii"), provided.encode("utf-8"))
    except Exception as e:
        logger.error(f"Signature verification error: {e}")
        return False


def generate_signature(raw_body: Union[bytes, str], shared_secret: str) -> str:
    """
    Generate a signature header value for a body.

    Args:
        raw_body: Body to sign (str is encoded as UTF-8)
        shared_secret: Secret key

    Returns:
        Signature header value ("sha256=<hex digest>")
    """
    if isinstance(raw_body, str):
        raw_body = raw_body.encode("utf-8")
    return f"{Webhook.SIGNATURE_PREFIX}{_compute_hex_digest(raw_body, shared_secret)}"
