"""Login attempt orchestration for the QR and OTP methods."""

from .attempt_registry import AttemptRegistry, LoginAttempt
from .service import PURPOSE_ENROLLMENT, PURPOSE_LOGIN, LoginFlowService, validate_phone

__all__ = [
    "AttemptRegistry",
    "LoginAttempt",
    "LoginFlowService",
    "PURPOSE_ENROLLMENT",
    "PURPOSE_LOGIN",
    "validate_phone",
]
