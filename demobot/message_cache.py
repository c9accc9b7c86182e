"""
In-memory snapshot of messages seen by the client.

Answers "what was this earlier message" lookups (poll updates, history) and
can be written out to / read back from a single JSON file.
"""

import asyncio
import base64
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from .utils import get_content_type

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def _plain_text(value) -> Optional[str]:
    # Newer API layers wrap poll strings in TextWithEntities
    if value is None:
        return None
    return getattr(value, "text", value)


def _encode_option(option: bytes) -> str:
    return base64.b64encode(bytes(option)).decode("ascii")


def record_from_message(message) -> Dict[str, Any]:
    """Reduce a Telethon message to the JSON-safe fields the cache keeps."""
    date = getattr(message, "date", None)
    content_type = get_content_type(message)
    record = {
        "id": message.id,
        "chat_id": message.chat_id,
        "sender_id": getattr(message, "sender_id", None),
        "out": bool(getattr(message, "out", False)),
        "date": date.isoformat() if date else None,
        "text": getattr(message, "message", None),
        "content_type": content_type,
        "deleted": False,
    }

    if content_type == "poll":
        poll = message.media.poll
        record["poll"] = {
            "id": poll.id,
            "question": _plain_text(poll.question),
            "answers": [
                {"option": _encode_option(answer.option), "text": _plain_text(answer.text)}
                for answer in poll.answers
            ],
        }
    return record


def aggregate_poll_votes(record: Dict[str, Any], results) -> Dict[str, int]:
    """Map each answer text of a cached poll to its current voter count."""
    answers = {a["option"]: a["text"] for a in record.get("poll", {}).get("answers", [])}
    votes = {text: 0 for text in answers.values()}
    for answer_voters in getattr(results, "results", None) or []:
        text = answers.get(_encode_option(answer_voters.option))
        if text is None:
            continue
        votes[text] = answer_voters.voters
    return votes


class MessageCache:
    """Messages keyed by (chat id, message id); reinserting a key overwrites it."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._messages: Dict[int, Dict[int, Dict[str, Any]]] = {}
        self._polls: Dict[int, tuple] = {}
        self._flush_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return sum(len(chat) for chat in self._messages.values())

    def __contains__(self, key) -> bool:
        chat_id, message_id = key
        return message_id in self._messages.get(chat_id, {})

    def keys(self):
        for chat_id, messages in self._messages.items():
            for message_id in messages:
                yield chat_id, message_id

    def upsert(self, message) -> Dict[str, Any]:
        record = record_from_message(message)
        self.put_record(record)
        return record

    def put_record(self, record: Dict[str, Any]):
        chat_id, message_id = record["chat_id"], record["id"]
        self._messages.setdefault(chat_id, {})[message_id] = record
        poll = record.get("poll")
        if poll:
            self._polls[poll["id"]] = (chat_id, message_id)

    def load_message(self, chat_id: int, message_id: int) -> Optional[Dict[str, Any]]:
        return self._messages.get(chat_id, {}).get(message_id)

    def find_poll(self, poll_id: int) -> Optional[Dict[str, Any]]:
        key = self._polls.get(poll_id)
        if key is None:
            return None
        return self.load_message(*key)

    def mark_deleted(self, message_ids: Iterable[int], chat_id: Optional[int] = None) -> int:
        """Flag records as deleted. Without a chat id every chat is searched."""
        chats = [chat_id] if chat_id is not None else list(self._messages)
        marked = 0
        for cid in chats:
            messages = self._messages.get(cid, {})
            for message_id in message_ids:
                record = messages.get(message_id)
                if record is not None:
                    record["deleted"] = True
                    marked += 1
        return marked

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "messages": {
                str(chat_id): {str(mid): record for mid, record in messages.items()}
                for chat_id, messages in self._messages.items()
            },
        }

    def load_snapshot(self, snapshot: Dict[str, Any]):
        """Replace the whole cache with the snapshot contents."""
        self._messages = {}
        self._polls = {}
        for messages in snapshot.get("messages", {}).values():
            for record in messages.values():
                self.put_record(record)

    def write_to_file(self, path: Optional[str] = None):
        target = Path(path) if path else self.path
        if target is None:
            raise ValueError("No snapshot path configured for the message cache")

        tmp = target.with_name(target.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(self.to_snapshot(), fh)
        os.replace(tmp, target)
        logger.debug(f"Wrote {len(self)} cached messages to {target}")

    def read_from_file(self, path: Optional[str] = None) -> bool:
        """Reload from disk. A missing file leaves the cache untouched."""
        source = Path(path) if path else self.path
        if source is None or not source.exists():
            return False
        with open(source, "r", encoding="utf-8") as fh:
            self.load_snapshot(json.load(fh))
        logger.info(f"📦 Loaded {len(self)} cached messages from {source}")
        return True

    def start_periodic_flush(self, interval: float = 10.0) -> asyncio.Task:
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.create_task(self._flush_loop(interval))
        return self._flush_task

    async def stop_periodic_flush(self):
        if self._flush_task and not self._flush_task.done():
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
        self._flush_task = None

    async def _flush_loop(self, interval: float):
        while True:
            await asyncio.sleep(interval)
            try:
                self.write_to_file()
            except Exception:
                logger.exception("Failed to write message cache snapshot")
