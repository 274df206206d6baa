"""Core infrastructure module."""

from .config import Wa2faSettings, get_settings, reset_settings
from .environment import Environment
from .exceptions import (
    AttemptNotFoundError,
    ConfigurationError,
    MessageDeliveryError,
    MethodDisabledError,
    ValidationError,
    Wa2faError,
)
from .logger import correlation_id_ctx, setup_structured_logging

__all__ = [
    "Environment",
    "Wa2faSettings",
    "get_settings",
    "reset_settings",
    "correlation_id_ctx",
    "setup_structured_logging",
    "Wa2faError",
    "ConfigurationError",
    "ValidationError",
    "AttemptNotFoundError",
    "MethodDisabledError",
    "MessageDeliveryError",
]
