"""Configuration management module."""

from .settings import Wa2faSettings, get_settings, reset_settings, sanitize_value

__all__ = [
    "Wa2faSettings",
    "get_settings",
    "reset_settings",
    "sanitize_value",
]
