import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from telethon import types

from demobot.config import Settings
from demobot.credentials import CredentialStore
from demobot.message_cache import MessageCache
from demobot.state import ProcessState
from demobot.telegram import DemoBot


class FakeClock:
    """Stands in for asyncio.sleep; advances a virtual clock instead of waiting."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


class FakeClient:
    """The subset of TelegramClient the bot touches."""

    def __init__(self, authorized: bool = True, connect_error: Exception | None = None) -> None:
        self.authorized = authorized
        self.connect_error = connect_error
        self.connected = False
        self.handlers: list = []
        self.calls: list = []
        self.chunks: list[bytes] = [b"\x89PNG", b"data"]
        self._disconnected = None

        self.send_message = AsyncMock(side_effect=self._record("send_message"))
        self.send_read_acknowledge = AsyncMock(side_effect=self._record("send_read_acknowledge"))
        self.send_file = AsyncMock(side_effect=self._record("send_file"))
        self.get_input_entity = AsyncMock(side_effect=self._record("get_input_entity"))
        self.get_messages = AsyncMock(return_value=[])
        self.get_me = AsyncMock(return_value=SimpleNamespace(id=1, username="demo"))

    @property
    def disconnected(self):
        if self._disconnected is None:
            self._disconnected = asyncio.get_running_loop().create_future()
        return self._disconnected

    def _record(self, name):
        async def side_effect(*args, **kwargs):
            self.calls.append((name, args, kwargs))
        return side_effect

    async def __call__(self, request):
        self.calls.append(("request", (request,), {}))

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    def is_connected(self) -> bool:
        return self.connected

    async def is_user_authorized(self) -> bool:
        return self.authorized

    async def disconnect(self) -> None:
        self.connected = False
        if not self.disconnected.done():
            self.disconnected.set_result(None)

    def drop(self, error: Exception | None = None) -> None:
        """Simulate the server side closing the connection."""
        self.connected = False
        if error is None:
            self.disconnected.set_result(None)
        else:
            self.disconnected.set_exception(error)

    def add_event_handler(self, callback, event) -> None:
        self.handlers.append((callback, event))

    def remove_event_handler(self, callback, event=None) -> None:
        self.handlers = [
            (cb, ev) for cb, ev in self.handlers
            if not (cb == callback and (event is None or isinstance(ev, event)))
        ]

    async def iter_download(self, media):
        for chunk in self.chunks:
            yield chunk


def make_message(
    id: int = 1,
    chat_id: int = 100,
    text: str | None = "hi",
    out: bool = False,
    media=None,
    post: bool = False,
    is_channel: bool = False,
    is_group: bool = False,
    date: datetime | None = None,
):
    message = SimpleNamespace(
        id=id,
        chat_id=chat_id,
        sender_id=chat_id,
        message=text,
        raw_text=text,
        out=out,
        media=media,
        post=post,
        is_channel=is_channel,
        is_group=is_group,
        date=date or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        edit_date=None,
    )
    message.to_dict = lambda: {"id": message.id, "chat_id": message.chat_id, "message": message.message}
    return message


def photo_message(caption: str, **kwargs):
    return make_message(text=caption, media=types.MessageMediaPhoto(photo=types.PhotoEmpty(id=9)), **kwargs)


@pytest.fixture
def settings():
    return Settings(
        api_id=12345,
        api_hash="0123456789abcdef",
        do_reply=True,
        reconnect_base_delay=1.0,
        reconnect_max_delay=8.0,
        reconnect_max_attempts=3,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def message_cache(tmp_path):
    return MessageCache(str(tmp_path / "store.json"))


@pytest.fixture
def process_state(message_cache):
    return ProcessState(credentials=MagicMock(spec=CredentialStore), message_cache=message_cache)


@pytest.fixture
def created_clients():
    return []


@pytest.fixture
def bot(settings, process_state, clock, created_clients):
    def factory():
        client = FakeClient()
        created_clients.append(client)
        return client

    return DemoBot(settings, state=process_state, client_factory=factory, sleep=clock.sleep)


@pytest.fixture
def client(bot):
    """A live client already installed in the bot's session cell."""
    fake = FakeClient()
    fake.connected = True
    bot.session_ref.swap(fake, 1)
    return fake
