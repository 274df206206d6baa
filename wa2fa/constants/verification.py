"""Verification-related constants."""

from typing import Final


class QRVerification:
    """QR scan-to-verify challenge store configuration."""

    # Hard cap on pending challenges; oldest entry is evicted beyond this
    MAX_PENDING_SIZE: Final[int] = 10_000
    CLEANUP_INTERVAL_SECONDS: Final[int] = 60
    DEFAULT_TTL_SECONDS: Final[int] = 300


class Tokens:
    """Verification token format."""

    # No I/O/0/1 to keep tokens readable when typed by hand
    ALPHABET: Final[str] = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
    RANDOM_LENGTH: Final[int] = 9
    FALLBACK_PREFIX: Final[str] = "VERIFY"
    DEEP_LINK_BASE: Final[str] = "https://wa.me"


class OTP:
    """One-time code lifecycle configuration."""

    MIN_LENGTH: Final[int] = 4
    MAX_LENGTH: Final[int] = 10
    DEFAULT_LENGTH: Final[int] = 6
    DEFAULT_EXPIRY_SECONDS: Final[int] = 300
    DEFAULT_MAX_ATTEMPTS: Final[int] = 5
    LOCKOUT_DURATION_SECONDS: Final[int] = 300


class SessionNoteKeys:
    """Keys used in per-attempt session notes."""

    OTP_CODE: Final[str] = "wa2fa_otp_code"
    OTP_TIMESTAMP: Final[str] = "wa2fa_otp_timestamp"
    OTP_ATTEMPTS: Final[str] = "wa2fa_otp_attempts"
    OTP_LOCKOUT: Final[str] = "wa2fa_otp_lockout"
    QR_TOKEN: Final[str] = "wa2fa_qr_token"
    OTP_SENT: Final[str] = "wa2fa_otp_sent"


class Webhook:
    """Inbound webhook settings."""

    SIGNATURE_HEADER: Final[str] = "X-Hub-Signature-256"
    SIGNATURE_PREFIX: Final[str] = "sha256="
    # Signed deliveries are never throttled; Meta retries anything but 200
    HANDSHAKE_RATE_LIMIT: Final[str] = "30/minute"
    POLL_RATE_LIMIT: Final[str] = "60/minute"


class Dispatcher:
    """Background send pool configuration."""

    POOL_SIZE: Final[int] = 4
    MAX_QUEUE_SIZE: Final[int] = 100
    HTTP_CONNECT_TIMEOUT: Final[int] = 10
    HTTP_TOTAL_TIMEOUT: Final[int] = 30


class Attempts:
    """Login attempt registry configuration."""

    TIMEOUT_SECONDS: Final[int] = 900
    MAX_ATTEMPTS: Final[int] = 10_000
    START_RATE_LIMIT: Final[str] = "20/minute"
    OTP_SEND_RATE_LIMIT: Final[str] = "5/minute"
