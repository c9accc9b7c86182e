"""
Base handler class for Telegram client operations.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .demo_bot import DemoBot

logger = logging.getLogger(__name__)


class BaseHandler:
    """Base class for all Telegram client handlers."""

    def __init__(self, bot: 'DemoBot'):
        """Initialize with reference to the bot instance."""
        self.bot = bot
        self.settings = bot.settings
        self.session_ref = bot.session_ref

    @property
    def client(self):
        """The live client, resolved on every access."""
        return self.session_ref.client
