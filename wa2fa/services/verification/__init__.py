"""QR (scan-to-verify) challenge tokens and the pending verification store."""

from .models import MatchResult, MatchStatus, PendingVerification, VerificationStatus
from .store import (
    VerificationStore,
    get_verification_store,
    normalize_identity,
    reset_verification_store,
)
from .token_generator import build_deep_link, generate_token, normalize_namespace

__all__ = [
    "MatchResult",
    "MatchStatus",
    "PendingVerification",
    "VerificationStatus",
    "VerificationStore",
    "get_verification_store",
    "reset_verification_store",
    "normalize_identity",
    "build_deep_link",
    "generate_token",
    "normalize_namespace",
]
