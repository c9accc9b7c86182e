"""
Demo bot facade.
Wires process state, session supervision and the message handlers together.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from telethon import TelegramClient

from .. import __version__
from ..config import Settings
from ..state import ProcessState
from .authentication_handler import AuthenticationHandler
from .connection_handler import ConnectionHandler
from .dispatcher import EventDispatcher
from .history_sync import HistorySync
from .media_handler import MediaHandler
from .message_handler import MessageHandler
from .session import SessionRef, SessionState
from .typing_simulator import TypingSimulator

logger = logging.getLogger(__name__)

SHUTDOWN_DRAIN_TIMEOUT = 10


class DemoBot:
    """A single Telegram account driven by the demo handlers."""

    def __init__(
        self,
        settings: Settings,
        state: Optional[ProcessState] = None,
        client_factory: Optional[Callable[[], Any]] = None,
        sleep=asyncio.sleep,
        prompt=None,
    ):
        self.settings = settings
        self.state = state or ProcessState.from_settings(settings)
        self.session_ref = SessionRef()

        self.typing_simulator = TypingSimulator(self, sleep=sleep)
        self.history_sync = HistorySync(self, self.state.on_demand_map, self.state.retry_counter)
        self.message_handler = MessageHandler(self, self.history_sync, self.typing_simulator)
        self.media_handler = MediaHandler(self)
        self.dispatcher = EventDispatcher(
            self, self.message_handler, self.media_handler, self.state.message_cache
        )
        self.history_sync.deliver = self.dispatcher.handle_messages
        self.auth_handler = AuthenticationHandler(self, prompt=prompt)
        self.connection_handler = ConnectionHandler(
            self,
            client_factory or self._create_client,
            self.auth_handler,
            self.dispatcher,
            self.state.credentials,
            sleep=sleep,
        )

    def _create_client(self) -> TelegramClient:
        """A fresh client per session start, sharing the stored credentials."""
        return TelegramClient(
            self.state.credentials.load(),
            self.settings.api_id,
            self.settings.api_hash,
            device_model="DemoBot",
            app_version=__version__,
            system_version="Linux",
        )

    @property
    def is_connected(self) -> bool:
        return self.connection_handler.state == SessionState.OPEN

    def get_message(self, chat_id: int, message_id: int) -> Optional[Dict[str, Any]]:
        """Earlier message lookup; only answers when the store is enabled."""
        if self.state.message_cache is None:
            return None
        return self.state.message_cache.load_message(chat_id, message_id)

    def get_poll_message(self, poll_id: int) -> Optional[Dict[str, Any]]:
        if self.state.message_cache is None:
            return None
        return self.state.message_cache.find_poll(poll_id)

    async def send_text(self, chat, text: str):
        """Send with the typing simulation played first."""
        return await self.typing_simulator.send_text(chat, text)

    async def run(self) -> SessionState:
        """Run until logged out, out of retries, or cancelled."""
        self.state.credentials.load()
        cache = self.state.message_cache
        if cache is not None:
            cache.read_from_file()
            cache.start_periodic_flush(self.settings.store_flush_interval)

        try:
            final_state = await self.connection_handler.run()
            logger.info(f"Session supervisor finished in state {final_state.value}")
            return final_state
        finally:
            await self.shutdown()

    async def shutdown(self):
        """Drain requests, stop the session, flush cache and credentials."""
        try:
            await asyncio.wait_for(self.history_sync.drain(), SHUTDOWN_DRAIN_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for on-demand requests during shutdown")

        await self.connection_handler.stop()

        cache = self.state.message_cache
        if cache is not None:
            await cache.stop_periodic_flush()
            try:
                cache.write_to_file()
            except Exception:
                logger.exception("Failed to write message cache during shutdown")

        self.state.credentials.close()
        logger.info("Demo bot shut down")
