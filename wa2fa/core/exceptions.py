"""Custom exception classes for wa2fa.

Core verification operations never raise for expected outcomes (bad signature,
unknown token, duplicate delivery, lockout); those are typed results. These
exceptions cover configuration problems and the login-flow API surface.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class Wa2faError(Exception):
    """Base exception for wa2fa."""

    title: str = "wa2fa Error"
    http_status: int = 500

    def __init__(
        self, message: str, recoverable: bool = True, details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize wa2fa error.

        Args:
            message: Error message
            recoverable: Whether the caller can retry the operation
            details: Additional error details
        """
        self.message = message
        self.recoverable = recoverable
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    @property
    def error_type_uri(self) -> str:
        """RFC 7807 problem type URI derived from the class name."""
        name = self.__class__.__name__
        if name.endswith("Error"):
            name = name[: -len("Error")]
        slug = "".join(f"-{c.lower()}" if c.isupper() else c for c in name).lstrip("-")
        return f"urn:wa2fa:error:{slug}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "recoverable": self.recoverable,
            "details": self.details,
            "timestamp": self.timestamp,
        }


# Configuration Errors
class ConfigurationError(Wa2faError):
    """Configuration error occurred."""

    title = "Configuration Error"

    def __init__(
        self,
        message: str = "Configuration error",
        recoverable: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, recoverable, details)


class ValidationError(Wa2faError):
    """Request input failed validation."""

    title = "Validation Error"
    http_status = 400

    def __init__(self, message: str = "Validation failed", field: Optional[str] = None):
        self.field = field
        details = {"field": field} if field else {}
        super().__init__(message, recoverable=True, details=details)


class AttemptNotFoundError(Wa2faError):
    """Login attempt is unknown or has expired."""

    title = "Attempt Not Found"
    http_status = 404

    def __init__(self, attempt_id: str):
        super().__init__(
            "Login attempt not found or expired",
            recoverable=False,
            details={"attempt_id": attempt_id},
        )


class MethodDisabledError(Wa2faError):
    """Requested verification method is disabled by configuration."""

    title = "Verification Method Disabled"
    http_status = 409

    def __init__(self, method: str):
        super().__init__(
            f"Verification method '{method}' is disabled",
            recoverable=False,
            details={"method": method},
        )


# Messaging Errors
class MessageDeliveryError(Wa2faError):
    """Outbound WhatsApp/SMS delivery failed."""

    title = "Message Delivery Failed"
    http_status = 502

    def __init__(
        self,
        message: str = "Message delivery failed",
        channel: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.channel = channel
        self.status_code = status_code
        details: Dict[str, Any] = {}
        if channel:
            details["channel"] = channel
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, recoverable=True, details=details)
