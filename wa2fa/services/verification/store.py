"""In-memory store of pending scan-to-verify challenges.

The store is the single coordination point between the login flow that
issues challenges, the webhook that delivers the user's WhatsApp message and
the browser that polls for completion. One re-entrant lock guards both
indexes and is held across admission and matching, so a poll issued after a
successful match always observes ``verified``.
"""

import threading
import time
from typing import Any, Dict, Optional

from loguru import logger

from ...constants import QRVerification
from ...utils.masking import last4, mask_code, mask_phone
from .models import MatchResult, MatchStatus, PendingVerification, VerificationStatus


def normalize_identity(identity: str) -> str:
    """Bring a phone number to the stored representation (leading '+')."""
    identity = identity.strip()
    return identity if identity.startswith("+") else f"+{identity}"


class VerificationStore:
    """Thread-safe, size-bounded table of pending verifications."""

    def __init__(
        self,
        max_size: int = QRVerification.MAX_PENDING_SIZE,
        cleanup_interval_seconds: int = QRVerification.CLEANUP_INTERVAL_SECONDS,
    ):
        """
        Initialize verification store.

        Args:
            max_size: Hard cap on live entries
            cleanup_interval_seconds: Minimum interval between proactive cleanups
        """
        self._by_token: Dict[str, PendingVerification] = {}
        self._by_owner: Dict[str, str] = {}  # owner_id -> token
        self._lock = threading.RLock()
        self._max_size = max_size
        self._cleanup_interval = cleanup_interval_seconds
        self._last_cleanup: float = 0.0

    @property
    def max_size(self) -> int:
        return self._max_size

    def create_pending(
        self, token: str, expected_identity: str, ttl_seconds: int, owner_id: str
    ) -> PendingVerification:
        """
        Issue a new challenge for an owner.

        Any previous challenge of the same owner is dropped. When the table is
        full after cleanup the oldest entry is evicted instead of rejecting the
        caller.

        Args:
            token: Verification token from ``generate_token``
            expected_identity: Phone number that must send the token
            ttl_seconds: Validity window
            owner_id: Login attempt identity used for polling

        Returns:
            The new pending entry
        """
        with self._lock:
            now = time.time()
            if (
                len(self._by_token) > self._max_size // 2
                or now - self._last_cleanup > self._cleanup_interval
            ):
                self._cleanup_locked(now)

            if len(self._by_token) >= self._max_size:
                logger.warning(
                    f"VerificationStore at capacity ({len(self._by_token)} entries), "
                    "evicting oldest entry"
                )
                self._evict_oldest()

            old_token = self._by_owner.get(owner_id)
            if old_token is not None:
                self._by_token.pop(old_token, None)

            # A colliding token replaces the existing entry
            collided = self._by_token.get(token)
            if collided is not None:
                self._drop_locked(collided)

            entry = PendingVerification(
                token=token,
                expected_identity=normalize_identity(expected_identity),
                created_at=now,
                ttl_seconds=ttl_seconds,
                owner_id=owner_id,
            )
            self._by_token[token] = entry
            self._by_owner[owner_id] = token
            size = len(self._by_token)

        logger.debug(
            f"Created QR verification: token={mask_code(token)}, "
            f"phone={mask_phone(expected_identity)} (store size: {size})"
        )
        return entry

    def handle_incoming_message(
        self, sender_identity: str, message_text: Optional[str], sender_is_pseudonymous: bool = False
    ) -> MatchResult:
        """
        Match an inbound message against pending challenges.

        Pseudonymous senders are matched on token possession alone and the
        entry is left ``pending``; the caller decides whether to verify it
        right away or ask for identity confirmation first.

        Args:
            sender_identity: Sender phone number (or pseudonymous id)
            message_text: Free-text message body
            sender_is_pseudonymous: True when the sender id is not a phone number

        Returns:
            MatchResult describing the outcome
        """
        if not message_text or not message_text.strip():
            return MatchResult.no_match()

        body = message_text.strip().upper()

        with self._lock:
            entry = self._by_token.get(body)
            if entry is None:
                for candidate in self._by_token.values():
                    if candidate.token.upper() == body:
                        entry = candidate
                        break

            if entry is None:
                logger.debug("No pending QR verification found for inbound message")
                return MatchResult.no_match()

            if entry.is_verified:
                logger.debug(f"QR token already verified, ignoring duplicate: {mask_code(entry.token)}")
                return MatchResult.no_match()

            hint = last4(entry.expected_identity)

            if entry.is_expired(time.time()):
                logger.debug(f"QR verification expired for token: {mask_code(entry.token)}")
                self._drop_locked(entry)
                return MatchResult(MatchStatus.EXPIRED, hint, entry.token)

            if sender_is_pseudonymous:
                if entry.is_pending_identity_confirm:
                    logger.debug(
                        f"QR token already pending identity confirm, ignoring duplicate: "
                        f"{mask_code(entry.token)}"
                    )
                    return MatchResult.no_match()
                logger.info(
                    f"QR token matched by pseudonymous sender, verification deferred: "
                    f"token={mask_code(entry.token)}"
                )
                return MatchResult(MatchStatus.MATCHED, None, entry.token)

            sender = normalize_identity(sender_identity)
            expected = normalize_identity(entry.expected_identity)
            if sender != expected:
                logger.warning(
                    f"QR verification phone mismatch: expected={mask_phone(expected)}, "
                    f"got={mask_phone(sender)}, token={mask_code(entry.token)}"
                )
                return MatchResult(MatchStatus.IDENTITY_MISMATCH, hint, entry.token)

            entry.status = VerificationStatus.VERIFIED
            entry.confirmed_identity = sender

        logger.info(f"QR verification successful: token={mask_code(entry.token)}")
        return MatchResult(MatchStatus.MATCHED, None, entry.token)

    def mark_pending_identity_confirm(self, token: str) -> bool:
        """
        Move a ``pending`` entry to ``pending_identity_confirm``.

        Args:
            token: Verification token

        Returns:
            True if the transition happened
        """
        with self._lock:
            entry = self._by_token.get(token)
            if entry is None or entry.status is not VerificationStatus.PENDING:
                return False
            entry.status = VerificationStatus.PENDING_IDENTITY_CONFIRM
        logger.info(f"QR token awaiting identity confirmation: {mask_code(token)}")
        return True

    def confirm_identity(self, token: str, confirmed_identity: str) -> bool:
        """
        Complete a challenge whose sender identity was confirmed out of band.

        Args:
            token: Verification token
            confirmed_identity: Identity the owner confirmed

        Returns:
            True if the entry moved to ``verified``
        """
        with self._lock:
            entry = self._by_token.get(token)
            if entry is None or entry.is_verified:
                return False
            if entry.is_expired(time.time()):
                self._drop_locked(entry)
                return False
            entry.status = VerificationStatus.VERIFIED
            entry.confirmed_identity = normalize_identity(confirmed_identity)
        logger.info(f"QR verification confirmed out of band: token={mask_code(token)}")
        return True

    def get_status(self, owner_id: str) -> Optional[PendingVerification]:
        """
        Get the active challenge of an owner.

        Expired entries that are neither verified nor awaiting identity
        confirmation are evicted on read.

        Args:
            owner_id: Login attempt identity

        Returns:
            Entry or None
        """
        with self._lock:
            token = self._by_owner.get(owner_id)
            if token is None:
                return None
            return self._get_live_locked(token)

    def get_by_token(self, token: Optional[str]) -> Optional[PendingVerification]:
        """Get a challenge by token with the same evict-on-read behavior as ``get_status``."""
        if not token:
            return None
        with self._lock:
            return self._get_live_locked(token)

    def remove(self, owner_id: str) -> None:
        """Cancel the owner's challenge, if any."""
        with self._lock:
            token = self._by_owner.pop(owner_id, None)
            if token is not None:
                self._by_token.pop(token, None)

    def cleanup_expired(self) -> int:
        """
        Sweep the whole table.

        Removes expired unverified entries and verified entries older than
        twice their TTL.

        Returns:
            Number of entries removed
        """
        with self._lock:
            removed = self._cleanup_locked(time.time())
            remaining = len(self._by_token)

        if removed:
            logger.debug(f"VerificationStore cleanup: removed {removed}, remaining: {remaining}")
        return removed

    def size(self) -> int:
        with self._lock:
            return len(self._by_token)

    def health_check(self) -> Dict[str, Any]:
        """Report store usage for the health endpoint."""
        with self._lock:
            size = len(self._by_token)
            last_cleanup = self._last_cleanup
        return {
            "status": "healthy" if size < self._max_size else "at_capacity",
            "size": size,
            "max_size": self._max_size,
            "last_cleanup": last_cleanup or None,
        }

    # Internal helpers; callers must hold self._lock

    def _get_live_locked(self, token: str) -> Optional[PendingVerification]:
        entry = self._by_token.get(token)
        if entry is None:
            return None
        if (
            entry.status is VerificationStatus.PENDING
            and entry.is_expired(time.time())
        ):
            self._drop_locked(entry)
            return None
        return entry

    def _drop_locked(self, entry: PendingVerification) -> None:
        self._by_token.pop(entry.token, None)
        if self._by_owner.get(entry.owner_id) == entry.token:
            del self._by_owner[entry.owner_id]

    def _cleanup_locked(self, now: float) -> int:
        self._last_cleanup = now
        stale = [
            entry
            for entry in self._by_token.values()
            if (not entry.is_verified and entry.is_expired(now))
            or (entry.is_verified and now - entry.created_at > entry.ttl_seconds * 2)
        ]
        for entry in stale:
            self._drop_locked(entry)
        return len(stale)

    def _evict_oldest(self) -> None:
        if not self._by_token:
            return
        oldest = min(self._by_token.values(), key=lambda e: e.created_at)
        self._drop_locked(oldest)
        logger.warning(f"Evicted oldest QR verification: {mask_code(oldest.token)}")


# Global store instance
_verification_store: Optional[VerificationStore] = None
_store_lock = threading.Lock()


def get_verification_store() -> VerificationStore:
    """
    Get global verification store instance (thread-safe singleton).

    Web requests reach the store through ``app.state``; this accessor serves
    callers outside a request context. Uses double-checked locking.
    """
    global _verification_store

    if _verification_store is not None:
        return _verification_store

    with _store_lock:
        if _verification_store is None:
            _verification_store = VerificationStore()
            logger.info("Verification store singleton initialized")

        return _verification_store


def reset_verification_store() -> None:
    """Drop the global store (useful for testing)."""
    global _verification_store
    with _store_lock:
        _verification_store = None
