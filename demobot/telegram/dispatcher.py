"""
Event dispatcher.

Subscribes the four inbound event categories on a client (new messages,
message-state updates, receipts, reactions) and fans them out to the
handlers in arrival order. Each message is handled in its own guarded unit
so one failure cannot stop the rest of its batch.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from telethon import events, types

from ..config import TRACE
from ..message_cache import aggregate_poll_votes
from ..utils import echo_event, message_key, to_json
from .base_handler import BaseHandler

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of one message batch."""

    request_id: Optional[str] = None
    processed: int = 0
    failures: List[Tuple[Tuple[int, int], BaseException]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class EventDispatcher(BaseHandler):
    """Routes client events to the reply policy, media handler and cache."""

    def __init__(self, bot, reply_policy, media_handler, message_cache=None):
        super().__init__(bot)
        self.reply_policy = reply_policy
        self.media_handler = media_handler
        self.message_cache = message_cache
        self._bindings: Dict[int, List[Tuple[Any, Any]]] = {}

    def _subscriptions(self):
        return [
            (self._on_new_message, events.NewMessage()),
            (self._on_message_edited, events.MessageEdited()),
            (self._on_message_deleted, events.MessageDeleted()),
            (self._on_poll_update, events.Raw(types=types.UpdateMessagePoll)),
            (self._on_receipt, events.MessageRead()),
            (self._on_reaction, events.Raw(types=types.UpdateMessageReactions)),
        ]

    def bind(self, client) -> bool:
        """Subscribe on `client`. Binding the same client twice is a no-op."""
        if id(client) in self._bindings:
            logger.warning("Event handlers already bound to this client, skipping")
            return False

        subscriptions = self._subscriptions()
        for callback, event in subscriptions:
            client.add_event_handler(callback, event)
        self._bindings[id(client)] = subscriptions
        logger.info(f"Event handlers registered ({len(subscriptions)} subscriptions)")
        return True

    def unbind(self, client) -> int:
        """Remove exactly the subscriptions `bind` added to `client`."""
        subscriptions = self._bindings.pop(id(client), [])
        for callback, event in subscriptions:
            client.remove_event_handler(callback, type(event))
        if subscriptions:
            logger.info(f"Removed {len(subscriptions)} event subscriptions from previous session")
        return len(subscriptions)

    def is_bound(self, client) -> bool:
        return id(client) in self._bindings

    async def handle_messages(self, messages, request_id: Optional[str] = None) -> BatchResult:
        """Process a batch in delivered order, isolating each message."""
        echo_event("recv messages", list(messages))
        result = BatchResult(request_id=request_id)

        for message in messages:
            try:
                await self._process_message(message, request_id)
                result.processed += 1
            except Exception as e:
                key = message_key(message)
                logger.exception(f"❌ Failed to process message {key}")
                result.failures.append((key, e))

        if result.failures:
            logger.error(
                f"Batch finished with {len(result.failures)} failure(s) out of {len(messages)}: "
                f"{[key for key, _ in result.failures]}"
            )
        return result

    async def _process_message(self, message, request_id: Optional[str]):
        if self.message_cache is not None:
            self.message_cache.upsert(message)
        await self.reply_policy.handle_message(message, request_id=request_id)
        # Redelivered and history messages are cached only, never acted on
        if request_id is None:
            await self.media_handler.handle_message(message)

    async def _on_new_message(self, event):
        logger.log(TRACE, f"new message event: {to_json(event.message, indent=None)}")
        await self.handle_messages([event.message])

    async def _on_message_edited(self, event):
        message = event.message
        echo_event("messages.update", {
            "chat_id": message.chat_id,
            "id": message.id,
            "edit_date": getattr(message, "edit_date", None),
            "text": getattr(message, "message", None),
        })
        if self.message_cache is not None:
            self.message_cache.upsert(message)

    async def _on_message_deleted(self, event):
        echo_event("messages.update", {
            "chat_id": event.chat_id,
            "deleted_ids": list(event.deleted_ids),
        })
        if self.message_cache is not None:
            self.message_cache.mark_deleted(event.deleted_ids, event.chat_id)

    async def _on_poll_update(self, update):
        echo_event("messages.update", update)
        poll_message = self.bot.get_poll_message(update.poll_id)
        if poll_message is None:
            logger.debug(f"Poll {update.poll_id} not in cache, skipping aggregation")
            return
        echo_event("got poll update, aggregation:", aggregate_poll_votes(poll_message, update.results))

    async def _on_receipt(self, event):
        echo_event("message-receipt.update", {
            "chat_id": event.chat_id,
            "max_id": event.max_id,
            "inbox": event.inbox,
            "outbox": event.outbox,
        })

    async def _on_reaction(self, update):
        echo_event("messages.reaction", update)
