"""
Single indirection cell for the live Telegram client.

Handlers never keep their own client reference; they resolve it through the
cell at call time so a restart cannot leave them talking to a dead client.
"""

import logging
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    STARTING = "starting"
    OPEN = "open"
    CLOSED_RETRY = "closed-retry"
    CLOSED_TERMINAL = "closed-terminal"
    CLOSED_EXHAUSTED = "closed-exhausted"
    STOPPED = "stopped"

    @property
    def is_final(self) -> bool:
        return self in (
            SessionState.CLOSED_TERMINAL,
            SessionState.CLOSED_EXHAUSTED,
            SessionState.STOPPED,
        )


class SessionNotAvailableError(RuntimeError):
    """Raised when a handler needs the client while no session is live."""


class SessionRef:
    """Holds the current client and the generation it belongs to."""

    def __init__(self):
        self._client = None
        self.generation = 0

    @property
    def client(self):
        if self._client is None:
            raise SessionNotAvailableError("No active Telegram session")
        return self._client

    @property
    def current(self):
        """The client or None, for callers that can cope without one."""
        return self._client

    def swap(self, client, generation: int):
        """Install a new client and return the one it replaces."""
        previous = self._client
        self._client = client
        self.generation = generation
        return previous

    def clear(self):
        previous = self._client
        self._client = None
        return previous
