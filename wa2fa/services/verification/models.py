"""Data models for QR verification.

This module contains the data classes and enums shared by the verification
store, the webhook boundary and the login flow.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class VerificationStatus(Enum):
    """Pending verification status enumeration (forward-only)."""

    PENDING = "pending"
    PENDING_IDENTITY_CONFIRM = "pending_identity_confirm"
    VERIFIED = "verified"


class MatchStatus(Enum):
    """Outcome of matching an inbound message against pending challenges."""

    MATCHED = "matched"
    NO_MATCH = "no_match"
    EXPIRED = "expired"
    IDENTITY_MISMATCH = "identity_mismatch"


@dataclass
class PendingVerification:
    """
    Represents an issued scan-to-verify challenge.

    Attributes:
        token: Unique verification token (primary key)
        expected_identity: Phone number that must send the token
        created_at: Creation time (epoch seconds)
        ttl_seconds: Validity window
        owner_id: Login attempt that owns the challenge
        status: Current status
        confirmed_identity: Identity that completed the challenge
    """

    token: str
    expected_identity: str
    created_at: float
    ttl_seconds: int
    owner_id: str
    status: VerificationStatus = VerificationStatus.PENDING
    confirmed_identity: Optional[str] = None

    def is_expired(self, now: float) -> bool:
        """Check whether the TTL has elapsed at ``now``."""
        return now - self.created_at > self.ttl_seconds

    @property
    def is_verified(self) -> bool:
        return self.status is VerificationStatus.VERIFIED

    @property
    def is_pending_identity_confirm(self) -> bool:
        return self.status is VerificationStatus.PENDING_IDENTITY_CONFIRM


@dataclass(frozen=True)
class MatchResult:
    """
    Typed result of ``VerificationStore.handle_incoming_message``.

    Attributes:
        status: Match outcome
        expected_identity_last4: Last 4 digits of the expected phone (for hints)
        token: Token of the entry the message resolved to, if any
    """

    status: MatchStatus
    expected_identity_last4: Optional[str] = None
    token: Optional[str] = None

    @classmethod
    def no_match(cls) -> "MatchResult":
        return cls(MatchStatus.NO_MATCH)

    @property
    def matched(self) -> bool:
        return self.status is MatchStatus.MATCHED
