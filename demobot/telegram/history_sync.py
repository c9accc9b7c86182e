"""
On-demand history sync and placeholder resend requests.

Both requests return an id right away and deliver their result later as a
message batch tagged with that id, the same way live messages arrive.
"""

import asyncio
import logging
import uuid
from typing import Awaitable, Callable, Dict, List, Optional

from .base_handler import BaseHandler

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_COUNT = 50
MAX_PLACEHOLDER_RETRIES = 5

Deliver = Callable[..., Awaitable]


class HistorySync(BaseHandler):
    """Tracks in-flight history requests and feeds their results back in."""

    def __init__(self, bot, pending: Dict[str, int], retry_counter,
                 max_placeholder_retries: int = MAX_PLACEHOLDER_RETRIES):
        super().__init__(bot)
        self.pending = pending
        self.retry_counter = retry_counter
        self.max_placeholder_retries = max_placeholder_retries
        self.deliver: Optional[Deliver] = None
        self._tasks = set()

    async def request_placeholder_resend(self, message) -> Optional[str]:
        """Ask for a message to be delivered again. None when retries are used up."""
        retry_key = f"{message.chat_id}:{message.id}"
        attempts = self.retry_counter.increment(retry_key)
        if attempts > self.max_placeholder_retries:
            logger.warning(
                f"Placeholder resend for {retry_key} skipped after {attempts - 1} attempts"
            )
            return None

        client = self.client
        return self._submit(message.chat_id, client.get_messages(message.chat_id, ids=message.id))

    async def fetch_message_history(self, count: int, message) -> str:
        """Fetch `count` messages of the chat older than `message`."""
        client = self.client
        return self._submit(
            message.chat_id,
            client.get_messages(message.chat_id, limit=count, offset_date=message.date),
        )

    def _submit(self, chat_id: int, fetch: Awaitable) -> str:
        request_id = uuid.uuid4().hex
        self.pending[request_id] = chat_id
        task = asyncio.create_task(self._run(request_id, fetch))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return request_id

    async def _run(self, request_id: str, fetch: Awaitable):
        try:
            result = await fetch
            messages = self._as_batch(result)
            logger.info(f"📥 On-demand request {request_id} returned {len(messages)} messages")
            if self.deliver is not None:
                await self.deliver(messages, request_id=request_id)
        except Exception:
            logger.exception(f"On-demand request {request_id} failed")
        finally:
            self.pending.pop(request_id, None)

    @staticmethod
    def _as_batch(result) -> List:
        if result is None:
            return []
        if isinstance(result, list):
            messages = [m for m in result if m is not None]
        else:
            messages = [result]
        # History comes back newest first; replay it in chat order
        return sorted(messages, key=lambda m: m.id)

    async def drain(self):
        """Wait for every in-flight request to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
