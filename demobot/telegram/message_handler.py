"""
Message handler for the demo bot.
Decides, per inbound message, whether to resync, fetch history, or auto-reply.
"""

import logging
from typing import Optional
from ..utils import extract_text, is_broadcast_post
from .base_handler import BaseHandler
from .history_sync import DEFAULT_HISTORY_COUNT

logger = logging.getLogger(__name__)

PLACEHOLDER_RESYNC_KEYWORD = "requestPlaceholder"
ON_DEMAND_HISTORY_KEYWORD = "onDemandHistSync"
GREETING_TEXT = "Hello there!"


class MessageHandler(BaseHandler):
    """Reply policy applied to every inbound message."""

    def __init__(self, bot, history_sync, typing_simulator=None):
        super().__init__(bot)
        self.history_sync = history_sync
        self.typing_simulator = typing_simulator

    async def handle_message(self, message, request_id: Optional[str] = None):
        """Run the decision table for a single message."""
        text = extract_text(message)

        if text == PLACEHOLDER_RESYNC_KEYWORD and not request_id:
            resync_id = await self.history_sync.request_placeholder_resend(message)
            logger.info(f"requested placeholder resync, id={resync_id}")
        elif request_id:
            logger.info(
                f"Message received from phone, id={request_id} "
                f"(chat {message.chat_id}, message {message.id})"
            )
            return

        if text == ON_DEMAND_HISTORY_KEYWORD:
            sync_id = await self.history_sync.fetch_message_history(
                DEFAULT_HISTORY_COUNT, message
            )
            logger.info(f"requested on-demand sync, id={sync_id}")

        if self._should_auto_reply(message):
            await self._auto_reply(message)

    def _should_auto_reply(self, message) -> bool:
        if getattr(message, "out", False):
            return False
        if not self.settings.do_reply:
            return False
        return not is_broadcast_post(message)

    async def _auto_reply(self, message):
        chat_id = message.chat_id
        logger.info(f"replying to {chat_id}")

        client = self.client
        await client.send_read_acknowledge(chat_id, message)
        if self.settings.simulate_typing and self.typing_simulator:
            await self.typing_simulator.send_text(chat_id, GREETING_TEXT)
        else:
            await client.send_message(chat_id, GREETING_TEXT)
