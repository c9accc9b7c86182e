"""
Process-scoped state.

Created once at startup and handed to the bot; none of it is torn down when
a session restarts, only at process exit.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from .config import Settings
from .credentials import CredentialStore
from .message_cache import MessageCache
from .retry_counter import RetryCounterCache


@dataclass
class ProcessState:
    credentials: CredentialStore
    retry_counter: RetryCounterCache = field(default_factory=RetryCounterCache)
    # request id -> chat id of in-flight on-demand requests
    on_demand_map: Dict[str, int] = field(default_factory=dict)
    message_cache: Optional[MessageCache] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProcessState":
        return cls(
            credentials=CredentialStore(settings.auth_dir),
            message_cache=MessageCache(settings.store_file) if settings.use_store else None,
        )
