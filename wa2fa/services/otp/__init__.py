"""Delivered one-time code verification."""

from .code_manager import OtpCodeManager
from .session_notes import InMemorySessionNotes, SessionNotes

__all__ = ["InMemorySessionNotes", "OtpCodeManager", "SessionNotes"]
