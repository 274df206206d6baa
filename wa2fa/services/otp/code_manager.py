"""One-time code lifecycle with brute-force lockout.

All state lives in the caller's ``SessionNotes`` so each login attempt is
isolated from every other one. Timestamps are stored as epoch seconds.
"""

import hmac
import secrets
import time
from typing import Optional

from loguru import logger

from ...constants import OTP, SessionNoteKeys
from .session_notes import SessionNotes


def _read_int(notes: SessionNotes, key: str) -> Optional[int]:
    value = notes.get(key)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class OtpCodeManager:
    """Generate, store and validate numeric one-time codes."""

    def __init__(self, lockout_duration_seconds: int = OTP.LOCKOUT_DURATION_SECONDS):
        self.lockout_duration_seconds = lockout_duration_seconds

    @staticmethod
    def generate_code(length: int = OTP.DEFAULT_LENGTH) -> str:
        """
        Generate a numeric code.

        Every digit is drawn independently, so codes with leading zeros are as
        likely as any other.

        Args:
            length: Number of digits (4-10; out-of-range values fall back to 6)

        Returns:
            Code string
        """
        if length < OTP.MIN_LENGTH or length > OTP.MAX_LENGTH:
            length = OTP.DEFAULT_LENGTH
        return "".join(secrets.choice("0123456789") for _ in range(length))

    def store_code(self, notes: SessionNotes, code: str) -> None:
        """Store a code together with its issue time."""
        notes.set(SessionNoteKeys.OTP_CODE, code)
        notes.set(SessionNoteKeys.OTP_TIMESTAMP, str(int(time.time())))

    def is_still_valid(self, notes: SessionNotes, expiry_seconds: int) -> bool:
        """
        Check whether a stored code exists and has not expired.

        Used on resend to reuse the current code instead of issuing a new one.
        """
        issued_at = _read_int(notes, SessionNoteKeys.OTP_TIMESTAMP)
        if notes.get(SessionNoteKeys.OTP_CODE) is None or issued_at is None:
            return False
        return time.time() - issued_at <= expiry_seconds

    def validate(
        self,
        notes: SessionNotes,
        user_input: Optional[str],
        expiry_seconds: int,
        max_attempts: int = OTP.DEFAULT_MAX_ATTEMPTS,
    ) -> bool:
        """
        Validate user input against the stored code.

        Reaching ``max_attempts`` failed guesses destroys the code and starts a
        lockout; while locked out every call returns False, even with the
        right code.

        Args:
            notes: Login attempt notes
            user_input: Code entered by the user
            expiry_seconds: Code validity window
            max_attempts: Failed attempts before lockout (0 = unlimited)

        Returns:
            True if the code matched and was consumed
        """
        if self.is_locked_out(notes):
            return False

        stored = notes.get(SessionNoteKeys.OTP_CODE)
        issued_at = _read_int(notes, SessionNoteKeys.OTP_TIMESTAMP)
        if stored is None or issued_at is None:
            return False

        if time.time() - issued_at > expiry_seconds:
            self.clear_code(notes)
            return False

        # hmac.compare_digest does not stop at the first differing byte
        valid = user_input is not None and hmac.compare_digest(
            stored.encode("utf-8"), user_input.encode("utf-8")
        )
        if valid:
            self.clear_code(notes)
            notes.remove(SessionNoteKeys.OTP_ATTEMPTS)
            return True

        attempts = self.get_attempt_count(notes) + 1
        notes.set(SessionNoteKeys.OTP_ATTEMPTS, str(attempts))
        if max_attempts > 0 and attempts >= max_attempts:
            self.clear_code(notes)
            notes.set(SessionNoteKeys.OTP_LOCKOUT, str(int(time.time())))
            logger.warning(f"OTP attempts exhausted ({attempts}), locking out for "
                           f"{self.lockout_duration_seconds}s")
        return False

    def is_locked_out(self, notes: SessionNotes) -> bool:
        """
        Check for an active lockout.

        An elapsed lockout is cleared together with the attempt counter.
        """
        locked_at = _read_int(notes, SessionNoteKeys.OTP_LOCKOUT)
        if locked_at is None:
            return False
        if time.time() - locked_at > self.lockout_duration_seconds:
            notes.remove(SessionNoteKeys.OTP_LOCKOUT)
            notes.remove(SessionNoteKeys.OTP_ATTEMPTS)
            return False
        return True

    def get_attempt_count(self, notes: SessionNotes) -> int:
        return _read_int(notes, SessionNoteKeys.OTP_ATTEMPTS) or 0

    def get_stored_code(self, notes: SessionNotes) -> Optional[str]:
        return notes.get(SessionNoteKeys.OTP_CODE)

    def clear_code(self, notes: SessionNotes) -> None:
        notes.remove(SessionNoteKeys.OTP_CODE)
        notes.remove(SessionNoteKeys.OTP_TIMESTAMP)
