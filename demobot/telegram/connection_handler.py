"""
Connection supervisor for the demo bot.
Owns the live session: starts it, watches for disconnects and decides whether to restart.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from telethon import __version__ as telethon_version
from telethon.errors import (
    AuthKeyDuplicatedError,
    AuthKeyUnregisteredError,
    SessionRevokedError,
    UserDeactivatedBanError,
    UserDeactivatedError,
)
from telethon.tl.alltlobjects import LAYER

from ..utils import echo_event
from .base_handler import BaseHandler
from .session import SessionState

logger = logging.getLogger(__name__)

LOGGED_OUT_ERRORS = (
    AuthKeyUnregisteredError,
    SessionRevokedError,
    UserDeactivatedError,
    UserDeactivatedBanError,
    AuthKeyDuplicatedError,
)


def is_logged_out(cause: Optional[BaseException]) -> bool:
    """Whether a disconnect cause means the session was logged out for good."""
    return isinstance(cause, LOGGED_OUT_ERRORS)


class ConnectionHandler(BaseHandler):
    """Starts sessions and restarts them with bounded exponential backoff."""

    def __init__(self, bot, client_factory: Callable[[], Any], auth_handler, dispatcher,
                 credentials, sleep=asyncio.sleep):
        super().__init__(bot)
        self._client_factory = client_factory
        self.auth_handler = auth_handler
        self.dispatcher = dispatcher
        self.credentials = credentials
        self._sleep = sleep

        self.state = SessionState.STARTING
        self.restart_count = 0
        self._generation = 0
        self._closed_generation = 0
        self._attempts = 0
        self._stopping = False
        self._watch_task: Optional[asyncio.Task] = None
        # Client created by start() but not yet swapped into the session cell
        self._connecting = None
        self._finished = asyncio.Event()

    def backoff_delay(self, attempt: int) -> float:
        base = self.settings.reconnect_base_delay
        return min(self.settings.reconnect_max_delay, base * (2 ** (attempt - 1)))

    async def run(self) -> SessionState:
        """Start the first session and wait until the supervisor reaches a final state."""
        await self.start()
        await self._finished.wait()
        return self.state

    async def start(self):
        """Establish a new session from the current credentials."""
        self._generation += 1
        generation = self._generation
        self._set_state(SessionState.STARTING)
        logger.info(f"using Telethon v{telethon_version}, API layer {LAYER}")

        await self._teardown_previous()

        client = self._client_factory()
        self._connecting = client
        try:
            await client.connect()
            await self.auth_handler.ensure_authorized(client)
        except Exception as e:
            self._connecting = None
            logger.error(f"Failed to start session (generation {generation}): {e!r}")
            await self._disconnect_quietly(client)
            await self.handle_close(generation, e)
            return
        self._connecting = None

        self.credentials.on_update()
        self.session_ref.swap(client, generation)
        self.dispatcher.bind(client)
        self._attempts = 0
        self._set_state(SessionState.OPEN)
        self._emit_update({"connection": "open", "generation": generation})
        self._watch_task = asyncio.create_task(self._watch(client, generation))

    async def handle_close(self, generation: int, cause: Optional[BaseException]):
        """React to one close event. Duplicate or stale events are ignored."""
        if self.state.is_final:
            return
        if generation != self._generation or generation <= self._closed_generation:
            logger.debug(f"Ignoring duplicate close event for generation {generation}")
            return
        self._closed_generation = generation

        self._emit_update({
            "connection": "close",
            "generation": generation,
            "lastDisconnect": {"error": repr(cause) if cause else None},
        })

        if self._stopping:
            self._finish(SessionState.STOPPED)
            return

        if is_logged_out(cause):
            print("Connection closed. You are logged out.")
            logger.error(f"Session logged out: {cause!r}")
            self._finish(SessionState.CLOSED_TERMINAL)
            return

        self._attempts += 1
        if self._attempts > self.settings.reconnect_max_attempts:
            logger.error(
                f"❌ Giving up after {self._attempts - 1} consecutive failed reconnect attempts"
            )
            self._finish(SessionState.CLOSED_EXHAUSTED)
            return

        delay = self.backoff_delay(self._attempts)
        self._set_state(SessionState.CLOSED_RETRY)
        logger.warning(
            f"🔄 Connection closed ({cause!r}), restarting in {delay:.1f}s "
            f"(attempt {self._attempts}/{self.settings.reconnect_max_attempts})"
        )
        await self._sleep(delay)
        if self._stopping:
            self._finish(SessionState.STOPPED)
            return

        self.restart_count += 1
        await self.start()

    async def stop(self):
        """Local shutdown: no restart, old client disconnected."""
        self._stopping = True
        if self._watch_task and not self._watch_task.done():
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass

        if self._connecting is not None:
            client, self._connecting = self._connecting, None
            logger.info("Disconnecting session that was still starting")
            try:
                await client.disconnect()
            except Exception as e:
                logger.error(f"Error disconnecting starting client: {e}")

        await self._teardown_previous()
        if self.state.is_final:
            self._finished.set()
        else:
            self._finish(SessionState.STOPPED)
        logger.info("Connection supervisor stopped")

    async def _watch(self, client, generation: int):
        cause = None
        try:
            await client.disconnected
        except asyncio.CancelledError:
            raise
        except Exception as e:
            cause = e
        await self.handle_close(generation, cause)

    async def _teardown_previous(self):
        previous = self.session_ref.clear()
        if previous is None:
            return
        self.dispatcher.unbind(previous)
        await self._disconnect_quietly(previous)

    async def _disconnect_quietly(self, client):
        try:
            if client.is_connected():
                await client.disconnect()
        except Exception as e:
            logger.error(f"Error disconnecting superseded client: {e}")

    def _set_state(self, state: SessionState):
        if state != self.state:
            logger.debug(f"Session state {self.state.value} -> {state.value}")
        self.state = state

    def _finish(self, state: SessionState):
        self._set_state(state)
        self._finished.set()

    def _emit_update(self, update: Dict[str, Any]):
        update["state"] = self.state.value
        echo_event("connection update", update)
