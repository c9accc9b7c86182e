"""
Credential store backed by the Telethon session file in the auth directory.
Handles load at startup, save at fixed points and flush on shutdown.
"""

import os
import logging
import sqlite3
from pathlib import Path
from typing import Optional

from telethon.sessions import SQLiteSession

logger = logging.getLogger(__name__)


class CredentialStore:
    """Loads and persists the authentication material Telethon needs to reconnect."""

    def __init__(self, auth_dir: str, session_name: str = "session"):
        self.auth_dir = Path(auth_dir)
        self.session_name = session_name
        self.session: Optional[SQLiteSession] = None

    @property
    def session_file(self) -> Path:
        return self.auth_dir / f"{self.session_name}.session"

    def load(self) -> SQLiteSession:
        """Open (or create) the session file. Safe to call more than once."""
        if self.session is not None:
            return self.session

        self.auth_dir.mkdir(parents=True, exist_ok=True)
        self._cleanup_corrupted_session()

        self.session = SQLiteSession(str(self.session_file))
        if self.is_registered:
            logger.info(f"🔑 Loaded credentials from {self.session_file}")
        else:
            logger.info(f"No stored credentials in {self.auth_dir}, login will be required")
        return self.session

    @property
    def is_registered(self) -> bool:
        """Whether an authorization key is already present."""
        if self.session is None or self.session.auth_key is None:
            return False
        # A session row without a key loads as an empty AuthKey
        return bool(self.session.auth_key.key)

    def save(self) -> bool:
        """Flush the in-memory session state to disk. Returns True on success."""
        if self.session is None:
            return False
        try:
            self.session.save()
            logger.debug(f"Credentials saved to {self.session_file}")
            return True
        except Exception:
            logger.exception(f"❌ Failed to save credentials to {self.session_file}")
            return False

    def on_update(self, *_args) -> bool:
        """Save point after a session opens.

        Telethon has no credentials-change event; auth key and DC changes land
        during connect and sign-in, so the supervisor calls this once the new
        session is open.
        """
        return self.save()

    def close(self):
        """Final flush before process exit."""
        if self.session is None:
            return
        self.save()
        try:
            self.session.close()
        except Exception:
            logger.exception("Error closing credential session")

    def _cleanup_corrupted_session(self):
        """Remove a session file that sqlite can no longer open."""
        if not os.path.exists(self.session_file):
            return
        try:
            conn = sqlite3.connect(self.session_file)
            conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
            conn.close()
        except sqlite3.DatabaseError:
            os.remove(self.session_file)
            logger.warning(f"Removed corrupted session file {self.session_file}")
