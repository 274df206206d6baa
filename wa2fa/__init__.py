"""wa2fa - WhatsApp phone-number second factor (OTP and QR scan-to-verify)."""

import importlib as _importlib
from typing import TYPE_CHECKING, Any

__version__ = "1.4.0"
__license__ = "MIT"

if TYPE_CHECKING:
    from .core.config.settings import Wa2faSettings as Wa2faSettings
    from .core.config.settings import get_settings as get_settings
    from .core.logger import setup_structured_logging as setup_structured_logging
    from .services.otp.code_manager import OtpCodeManager as OtpCodeManager
    from .services.verification.store import VerificationStore as VerificationStore
    from .services.verification.store import get_verification_store as get_verification_store

# Explicit lazy-loading map: name -> (module_path, attribute_name)
_LAZY_MODULE_MAP = {
    "Wa2faSettings": ("wa2fa.core.config.settings", "Wa2faSettings"),
    "get_settings": ("wa2fa.core.config.settings", "get_settings"),
    "setup_structured_logging": ("wa2fa.core.logger", "setup_structured_logging"),
    "OtpCodeManager": ("wa2fa.services.otp.code_manager", "OtpCodeManager"),
    "VerificationStore": ("wa2fa.services.verification.store", "VerificationStore"),
    "get_verification_store": ("wa2fa.services.verification.store", "get_verification_store"),
}

__all__ = list(_LAZY_MODULE_MAP.keys())


def __getattr__(name: str) -> Any:
    """Lazy import with explicit mapping - importlib based."""
    if name in _LAZY_MODULE_MAP:
        module_path, attr_name = _LAZY_MODULE_MAP[name]
        module = _importlib.import_module(module_path)
        attr = getattr(module, attr_name)
        globals()[name] = attr
        return attr
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
