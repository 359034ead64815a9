"""Tests for the MessageQueue pull consumer."""

import asyncio

import pytest

from framelink.consumer import AcceptResult, MessageQueue
from framelink.errors import ChannelClosedError, FramingError


def test_accepts_below_high_water():
    queue = MessageQueue(high_water=3)
    assert queue.accept("a") is AcceptResult.ACCEPTED
    assert queue.accept("b") is AcceptResult.ACCEPTED
    assert queue.accept("c") is AcceptResult.REJECTED
    assert len(queue) == 3


def test_rejected_message_is_still_kept():
    queue = MessageQueue(high_water=1)
    assert queue.accept("only") is AcceptResult.REJECTED
    assert queue.get_nowait() == "only"


def test_invalid_high_water():
    with pytest.raises(ValueError):
        MessageQueue(high_water=0)


def test_get_nowait_empty():
    with pytest.raises(asyncio.QueueEmpty):
        MessageQueue().get_nowait()


def test_on_demand_called_below_high_water():
    demands = []
    queue = MessageQueue(high_water=2)
    queue.bind(lambda: demands.append(1))
    queue.accept("a")
    queue.accept("b")
    queue.get_nowait()
    assert demands == [1]


@pytest.mark.asyncio
async def test_get_waits_for_message():
    queue = MessageQueue()
    getter = asyncio.ensure_future(queue.get())
    await asyncio.sleep(0)
    assert not getter.done()
    queue.accept({"n": 1})
    assert await asyncio.wait_for(getter, 1.0) == {"n": 1}


@pytest.mark.asyncio
async def test_finish_drains_then_raises():
    queue = MessageQueue()
    queue.accept("x")
    queue.finish()
    assert await queue.get() == "x"
    with pytest.raises(ChannelClosedError):
        await queue.get()


@pytest.mark.asyncio
async def test_finish_wakes_waiting_getter():
    queue = MessageQueue()
    getter = asyncio.ensure_future(queue.get())
    await asyncio.sleep(0)
    queue.finish()
    with pytest.raises(ChannelClosedError):
        await asyncio.wait_for(getter, 1.0)


@pytest.mark.asyncio
async def test_iteration_raises_fatal_error():
    queue = MessageQueue()
    queue.accept("x")
    error = FramingError("bad frame")
    queue.finish(error)
    seen = []
    with pytest.raises(FramingError):
        async for message in queue:
            seen.append(message)
    assert seen == ["x"]


@pytest.mark.asyncio
async def test_iteration_stops_cleanly():
    queue = MessageQueue()
    for m in ("a", "b"):
        queue.accept(m)
    queue.finish()
    assert [m async for m in queue] == ["a", "b"]
