"""
Scripted presence sequence played before an outbound message.
"""

import asyncio
import logging
from telethon import functions, types
from .base_handler import BaseHandler

logger = logging.getLogger(__name__)

SUBSCRIBE_DELAY = 0.5
COMPOSING_DELAY = 2.0


class TypingSimulator(BaseHandler):
    """Subscribe, compose, pause, then send. Not cancelable."""

    def __init__(self, bot, sleep=asyncio.sleep):
        super().__init__(bot)
        self._sleep = sleep

    async def presence_subscribe(self, chat):
        client = self.client
        await client.get_input_entity(chat)
        await client(functions.account.UpdateStatusRequest(offline=False))

    async def send_presence_update(self, state: str, chat):
        if state == "composing":
            action = types.SendMessageTypingAction()
        elif state == "paused":
            action = types.SendMessageCancelAction()
        else:
            raise ValueError(f"Unsupported presence state: {state}")
        await self.client(functions.messages.SetTypingRequest(peer=chat, action=action))

    async def simulate(self, chat):
        await self.presence_subscribe(chat)
        await self._sleep(SUBSCRIBE_DELAY)
        await self.send_presence_update("composing", chat)
        await self._sleep(COMPOSING_DELAY)
        await self.send_presence_update("paused", chat)

    async def send_text(self, chat, text: str):
        """Play the typing sequence to completion, then send."""
        await self.simulate(chat)
        message = await self.client.send_message(chat, text)
        logger.info(f"💬 Sent message to {chat} after typing simulation")
        return message
