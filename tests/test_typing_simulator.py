import pytest
from telethon import functions, types

from demobot.telegram.typing_simulator import COMPOSING_DELAY, SUBSCRIBE_DELAY


def request_types(client):
    return [type(args[0]).__name__ for name, args, _ in client.calls if name == "request"]


@pytest.mark.asyncio
async def test_typing_takes_at_least_two_and_a_half_seconds_before_send(bot, client, clock):
    send_times = []

    async def record_send(*args, **kwargs):
        send_times.append(clock.now)

    client.send_message.side_effect = record_send

    await bot.send_text(77, "hello")

    assert send_times == [SUBSCRIBE_DELAY + COMPOSING_DELAY]
    assert send_times[0] >= 2.5
    assert clock.sleeps == [0.5, 2.0]


@pytest.mark.asyncio
async def test_presence_sequence_order(bot, client):
    await bot.send_text(77, "hello")

    names = [name for name, _, _ in client.calls]
    assert names == ["get_input_entity", "request", "request", "request", "send_message"]

    requests = [args[0] for name, args, _ in client.calls if name == "request"]
    assert isinstance(requests[0], functions.account.UpdateStatusRequest)
    assert requests[0].offline is False
    assert isinstance(requests[1].action, types.SendMessageTypingAction)
    assert isinstance(requests[2].action, types.SendMessageCancelAction)


@pytest.mark.asyncio
async def test_unknown_presence_state_is_rejected(bot, client):
    with pytest.raises(ValueError):
        await bot.typing_simulator.send_presence_update("recording", 77)
