"""
Retry counters for messages that had to be re-requested.

Lives outside the Telegram client so that counts survive reconnects;
entries only go away when they expire or are reset explicitly.
"""

import logging
import time
from typing import Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)


class RetryCounterCache:
    """Per-key attempt counters with a time-to-live."""

    def __init__(self, ttl: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[int, float]] = {}

    def get(self, key: Hashable) -> int:
        entry = self._entries.get(key)
        if entry is None:
            return 0
        count, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return 0
        return count

    def increment(self, key: Hashable) -> int:
        """Bump the counter; the TTL restarts from the latest attempt."""
        count = self.get(key) + 1
        self._entries[key] = (count, self._clock() + self.ttl)
        logger.debug(f"Retry counter for {key} is now {count}")
        return count

    def reset(self, key: Hashable) -> Optional[int]:
        entry = self._entries.pop(key, None)
        return entry[0] if entry else None

    def prune(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
