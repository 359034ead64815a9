"""Consumer side of the inbound flow: the accept/reject contract and a pull queue."""

import asyncio
from collections import deque
from enum import Enum
from typing import Any, Callable, Protocol

from framelink.errors import ChannelClosedError


class AcceptResult(Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Consumer(Protocol):
    def accept(self, message: Any) -> AcceptResult:
        """Take ownership of *message*.

        REJECTED still hands the message over; it asks the decoder to stop
        offering until ``resume()`` is called.
        """
        ...


class MessageQueue:
    """Bounded pull consumer for asyncio code.

    ``accept`` queues the message and answers REJECTED once ``high_water``
    messages are waiting. ``get`` hands them out in order and calls the bound
    resume hook when the queue drops back below ``high_water``.
    """

    def __init__(self, high_water: int = 16) -> None:
        if high_water < 1:
            raise ValueError(f"high_water must be at least 1, got {high_water}")
        self.high_water = high_water
        self._messages: deque = deque()
        self._waiter: asyncio.Future | None = None
        self._on_demand: Callable[[], None] | None = None
        self._finished = False
        self._error: BaseException | None = None

    def bind(self, on_demand: Callable[[], None]) -> None:
        """Register the callable that restarts an upstream paused by REJECTED."""
        self._on_demand = on_demand

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def finished(self) -> bool:
        return self._finished

    def accept(self, message: Any) -> AcceptResult:
        self._messages.append(message)
        self._wake()
        if len(self._messages) >= self.high_water:
            return AcceptResult.REJECTED
        return AcceptResult.ACCEPTED

    def finish(self, error: BaseException | None = None) -> None:
        """No more messages will arrive. Queued ones can still be read."""
        self._finished = True
        if error is not None and self._error is None:
            self._error = error
        self._wake()

    async def get(self) -> Any:
        """Return the next message, waiting if none is queued.

        Raises:
            ChannelClosedError: The stream ended and the queue is empty.
        """
        while not self._messages:
            if self._finished:
                raise ChannelClosedError("Stream ended") from self._error
            self._waiter = asyncio.get_running_loop().create_future()
            try:
                await self._waiter
            finally:
                self._waiter = None

        message = self._messages.popleft()
        if len(self._messages) < self.high_water and self._on_demand is not None:
            self._on_demand()
        return message

    def get_nowait(self) -> Any:
        if not self._messages:
            raise asyncio.QueueEmpty
        message = self._messages.popleft()
        if len(self._messages) < self.high_water and self._on_demand is not None:
            self._on_demand()
        return message

    def __aiter__(self):
        return self

    async def __anext__(self) -> Any:
        try:
            return await self.get()
        except ChannelClosedError:
            if self._error is not None:
                raise self._error from None
            raise StopAsyncIteration from None

    def _wake(self) -> None:
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_result(None)
