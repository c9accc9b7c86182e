"""
Telegram side of the demo client.

The work is split into handlers that share one session cell:

- ConnectionHandler: starts sessions and restarts them after disconnects
- AuthenticationHandler: QR or login-code login, 2FA
- EventDispatcher: subscribes inbound events and fans them out
- MessageHandler: reply policy (resync, history sync, auto-reply)
- MediaHandler: #sticker conversion
- TypingSimulator: scripted presence before a send
- HistorySync: on-demand history and placeholder resend requests

DemoBot wires them together.
"""

from .demo_bot import DemoBot
from .session import SessionRef, SessionState

from .authentication_handler import AuthenticationHandler
from .connection_handler import ConnectionHandler
from .dispatcher import EventDispatcher, BatchResult
from .history_sync import HistorySync
from .media_handler import MediaHandler
from .message_handler import MessageHandler
from .typing_simulator import TypingSimulator

__all__ = [
    "DemoBot",
    "SessionRef",
    "SessionState",
    "AuthenticationHandler",
    "ConnectionHandler",
    "EventDispatcher",
    "BatchResult",
    "HistorySync",
    "MediaHandler",
    "MessageHandler",
    "TypingSimulator",
]
