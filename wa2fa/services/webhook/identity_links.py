"""Confirmed links between pseudonymous WhatsApp sender ids and phone numbers."""

import threading
from collections import OrderedDict
from typing import Optional

from loguru import logger

from ...constants import QRVerification
from ...utils.masking import mask_phone


class IdentityLinkRegistry:
    """Thread-safe, bounded pseudonym -> phone map (oldest link evicted first)."""

    def __init__(self, max_size: int = QRVerification.MAX_PENDING_SIZE):
        self._links: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.RLock()
        self._max_size = max_size

    def link(self, pseudonym: str, phone: str) -> None:
        """Record that ``pseudonym`` belongs to ``phone``."""
        with self._lock:
            self._links.pop(pseudonym, None)
            self._links[pseudonym] = phone
            while len(self._links) > self._max_size:
                self._links.popitem(last=False)
        logger.info(f"Linked pseudonymous sender to {mask_phone(phone)}")

    def get(self, pseudonym: str) -> Optional[str]:
        with self._lock:
            return self._links.get(pseudonym)

    def unlink(self, pseudonym: str) -> bool:
        with self._lock:
            return self._links.pop(pseudonym, None) is not None

    def size(self) -> int:
        with self._lock:
            return len(self._links)
