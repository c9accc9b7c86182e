"""
Media handler: turns captioned images into stickers.
"""

import io
import logging
from telethon import types
from ..utils import get_caption, get_content_type
from .base_handler import BaseHandler

logger = logging.getLogger(__name__)

STICKER_TRIGGER = "#sticker"


class MediaHandler(BaseHandler):
    """Re-sends `#sticker` images to the same chat as a sticker."""

    def is_sticker_request(self, message) -> bool:
        if get_content_type(message) != "image":
            return False
        return get_caption(message).lower() == STICKER_TRIGGER

    async def handle_message(self, message):
        if not self.is_sticker_request(message):
            return None

        client = self.client
        payload = await self.download_media_stream(message)
        logger.info(
            f"🖼️ Converting image {message.id} in chat {message.chat_id} to a sticker "
            f"({payload.getbuffer().nbytes} bytes)"
        )
        return await client.send_file(
            message.chat_id,
            payload,
            force_document=False,
            attributes=[
                types.DocumentAttributeSticker(alt="", stickerset=types.InputStickerSetEmpty())
            ],
        )

    async def download_media_stream(self, message) -> io.BytesIO:
        """Stream the full media payload into memory. Errors propagate."""
        buffer = io.BytesIO()
        async for chunk in self.client.iter_download(message.media):
            buffer.write(chunk)
        buffer.seek(0)
        buffer.name = "sticker.webp"
        return buffer
