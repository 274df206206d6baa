"""Per-login-attempt key/value storage used by the OTP manager."""

import threading
from typing import Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class SessionNotes(Protocol):
    """String key/value notes scoped to one login attempt."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemorySessionNotes:
    """Dict-backed ``SessionNotes`` implementation."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._notes: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._notes.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._notes[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._notes.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        """Copy of all notes (for debugging and tests)."""
        with self._lock:
            return dict(self._notes)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._notes
