"""Business logic services module."""

import importlib as _importlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .login_flow import LoginFlowService as LoginFlowService
    from .messaging import BackgroundDispatcher as BackgroundDispatcher
    from .messaging import MessageService as MessageService
    from .otp import OtpCodeManager as OtpCodeManager
    from .verification import VerificationStore as VerificationStore
    from .webhook import WebhookService as WebhookService

_LAZY_MODULE_MAP = {
    "BackgroundDispatcher": ("wa2fa.services.messaging", "BackgroundDispatcher"),
    "LoginFlowService": ("wa2fa.services.login_flow", "LoginFlowService"),
    "MessageService": ("wa2fa.services.messaging", "MessageService"),
    "OtpCodeManager": ("wa2fa.services.otp", "OtpCodeManager"),
    "VerificationStore": ("wa2fa.services.verification", "VerificationStore"),
    "WebhookService": ("wa2fa.services.webhook", "WebhookService"),
}

__all__ = list(_LAZY_MODULE_MAP.keys())


def __getattr__(name: str):
    """Lazy import with explicit mapping - importlib based."""
    if name in _LAZY_MODULE_MAP:
        module_path, attr_name = _LAZY_MODULE_MAP[name]
        module = _importlib.import_module(module_path)
        attr = getattr(module, attr_name)
        globals()[name] = attr
        return attr
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
