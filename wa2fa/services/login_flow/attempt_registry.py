"""Login attempt registry.

This module provides thread-safe storage of in-flight login attempts and the
per-attempt session notes the OTP manager works on.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ...constants import Attempts
from ..otp import InMemorySessionNotes

logger = logging.getLogger(__name__)


@dataclass
class LoginAttempt:
    """
    Represents a user's second-factor login attempt.

    Attributes:
        attempt_id: Unique attempt identifier (UUID), also the store owner id
        phone: Phone number being verified (E.164 with '+')
        language: Short language code for outbound templates
        created_at: Creation time (epoch seconds)
        notes: Per-attempt session notes
        resend_count: OTP sends after the first one
        completed_method: "otp" or "qr" once the attempt succeeded
        last_delivery: Channel or failure reason of the latest OTP send
        purpose: "login" or "enrollment" (verifying a new or changed phone)
        username: Account name shown in the login notification
        client_ip: Address the attempt was started from
        user_agent: Browser summary of the starting request
    """

    attempt_id: str
    phone: str
    language: str = "en"
    created_at: float = field(default_factory=lambda: time.time())
    notes: InMemorySessionNotes = field(default_factory=InMemorySessionNotes)
    resend_count: int = 0
    completed_method: Optional[str] = None
    last_delivery: Optional[str] = None
    purpose: str = "login"
    username: Optional[str] = None
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.completed_method is not None


class AttemptRegistry:
    """Thread-safe registry of login attempts."""

    def __init__(
        self,
        attempt_timeout_seconds: int = Attempts.TIMEOUT_SECONDS,
        max_attempts: int = Attempts.MAX_ATTEMPTS,
    ):
        """
        Initialize attempt registry.

        Args:
            attempt_timeout_seconds: Auto-expire attempts after this time
            max_attempts: Oldest attempt is dropped beyond this many
        """
        self._attempts: Dict[str, LoginAttempt] = {}
        self._lock = threading.RLock()
        self._attempt_timeout = attempt_timeout_seconds
        self._max_attempts = max_attempts

    def register(self, phone: str, language: str = "en", purpose: str = "login") -> LoginAttempt:
        """
        Register a new login attempt.

        Args:
            phone: Phone number to verify
            language: Short language code
            purpose: "login" or "enrollment"

        Returns:
            The new attempt
        """
        attempt = LoginAttempt(
            attempt_id=str(uuid.uuid4()), phone=phone, language=language, purpose=purpose
        )

        with self._lock:
            if len(self._attempts) >= self._max_attempts:
                oldest = min(self._attempts.values(), key=lambda a: a.created_at)
                self._attempts.pop(oldest.attempt_id, None)
                logger.warning(f"Attempt registry full, dropped oldest attempt {oldest.attempt_id}")
            self._attempts[attempt.attempt_id] = attempt

        logger.info(f"Login attempt registered: {attempt.attempt_id}")
        return attempt

    def unregister(self, attempt_id: str) -> bool:
        """
        Unregister an attempt.

        Returns:
            True if the attempt was found and removed
        """
        with self._lock:
            if self._attempts.pop(attempt_id, None) is None:
                return False

        logger.info(f"Login attempt unregistered: {attempt_id}")
        return True

    def get(self, attempt_id: str) -> Optional[LoginAttempt]:
        """Get a live attempt by ID (expired attempts read as missing)."""
        with self._lock:
            attempt = self._attempts.get(attempt_id)
            if attempt is None:
                return None
            if time.time() - attempt.created_at > self._attempt_timeout:
                self._attempts.pop(attempt_id, None)
                return None
            return attempt

    def cleanup_expired(self) -> List[str]:
        """
        Remove expired attempts.

        Returns:
            IDs of the removed attempts
        """
        now = time.time()
        with self._lock:
            expired_ids = [
                attempt_id
                for attempt_id, attempt in self._attempts.items()
                if now - attempt.created_at > self._attempt_timeout
            ]
            for attempt_id in expired_ids:
                del self._attempts[attempt_id]

        if expired_ids:
            logger.info(f"Cleaned up {len(expired_ids)} expired login attempts")
        return expired_ids

    def count(self) -> int:
        with self._lock:
            return len(self._attempts)
