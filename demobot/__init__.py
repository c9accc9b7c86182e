"""Telegram demo client: auto-reply, #sticker, typing simulation and history sync."""

__version__ = "1.0.0"
