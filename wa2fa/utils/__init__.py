"""Utility modules."""

from .masking import last4, mask_code, mask_phone
from .user_agent import describe_user_agent
from .webhook_utils import generate_signature, validate_signature

__all__ = [
    "describe_user_agent",
    "generate_signature",
    "last4",
    "mask_code",
    "mask_phone",
    "validate_signature",
]
