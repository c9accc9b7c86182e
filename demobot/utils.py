"""
Helpers shared by the handlers: stdout JSON echo and message inspection.
"""

import base64
import json
import logging
from datetime import datetime
from typing import Any, Optional, Tuple

logger = logging.getLogger(__name__)


def _json_default(value: Any):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return str(value)


def to_json(value: Any, indent: Optional[int] = 2) -> str:
    """Serialize Telethon objects (and plain data) for display."""
    if hasattr(value, "to_dict"):
        value = value.to_dict()
    return json.dumps(value, indent=indent, default=_json_default)


def echo_event(label: str, payload: Any):
    """Echo an inbound event or connection update to stdout as JSON."""
    print(label, to_json(payload), flush=True)


def message_key(message) -> Tuple[int, int]:
    """Identity of a message: (chat id, message id)."""
    return message.chat_id, message.id


def get_content_type(message) -> str:
    """Classify the message content the way the handlers need it."""
    media = getattr(message, "media", None)
    if not media:
        return "text"

    media_type = type(media).__name__
    if "WebPage" in media_type:
        return "extended_text"
    if "Photo" in media_type:
        return "image"
    if "Document" in media_type:
        return _parse_document_type(media)
    if "Poll" in media_type:
        return "poll"
    if "Contact" in media_type:
        return "contact"
    if "Geo" in media_type or "Venue" in media_type:
        return "location"
    return media_type.replace("MessageMedia", "").lower() or "unknown"


def _parse_document_type(media) -> str:
    document = getattr(media, "document", None)
    mime_type = getattr(document, "mime_type", "") or ""
    attributes = getattr(document, "attributes", None) or []

    if any(type(attr).__name__ == "DocumentAttributeSticker" for attr in attributes):
        return "sticker"
    if mime_type.startswith("image/"):
        return "image"
    if mime_type.startswith("video/"):
        return "video"
    if mime_type.startswith("audio/"):
        return "audio"
    return "document"


def extract_text(message) -> Optional[str]:
    """Plain or extended (link preview) text; captions of other media do not count."""
    if get_content_type(message) not in ("text", "extended_text"):
        return None
    return getattr(message, "message", None) or getattr(message, "raw_text", None) or None


def get_caption(message) -> str:
    return getattr(message, "message", None) or ""


def is_broadcast_post(message) -> bool:
    """True for posts authored by a broadcast channel rather than a person."""
    if getattr(message, "post", False):
        return True
    return bool(getattr(message, "is_channel", False) and not getattr(message, "is_group", False))
