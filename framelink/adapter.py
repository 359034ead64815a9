"""Duplex adapter: structured messages over a length-prefixed byte channel.

Inbound, channel ``data`` drives the FrameDecoder, whose messages go to the
consumer; a rejection pauses the FlowController until ``resume()``. Outbound,
``send()`` runs the FrameEncoder and writes to the channel, reporting the
channel's write backpressure as a SendResult.

State machine::

    UNATTACHED --attach--> ATTACHED --close()/end--> CLOSING --closed--> CLOSED

Events: connected, drain, end, error(exc), closed(abrupt), timeout,
message(msg), send_failed(exc).
"""

import asyncio
import logging
from enum import Enum
from typing import Any

from framelink.codec import Codec, JSONCodec
from framelink.consumer import AcceptResult, Consumer, MessageQueue
from framelink.decoder import FrameDecoder
from framelink.encoder import FrameEncoder
from framelink.errors import ChannelClosedError, FramingError
from framelink.events import Listeners
from framelink.flow import FlowController
from framelink.metrics import AdapterMetrics

logger = logging.getLogger(__name__)


class AdapterState(Enum):
    UNATTACHED = "unattached"
    ATTACHED = "attached"
    CLOSING = "closing"
    CLOSED = "closed"


class SendResult(Enum):
    ACCEPTED = "accepted"  # written, room for more
    BUFFERED = "buffered"  # written, wait for drain before sending more
    CLOSED = "closed"  # not written


class DuplexAdapter(Listeners):
    """One connection's framing engine. Build a new one per connection."""

    def __init__(
        self,
        codec: Codec | None = None,
        consumer: Consumer | None = None,
        *,
        max_frame_size: int | None = None,
        idle_timeout: float | None = None,
        metrics: AdapterMetrics | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        super().__init__()
        self.codec = codec or JSONCodec()
        self.metrics = metrics
        self._encoder = FrameEncoder(self.codec)
        self._flow = FlowController(self._decode, loop=loop)
        self._max_frame_size = max_frame_size
        self._idle_timeout = idle_timeout
        self._channel = None
        self._decoder: FrameDecoder | None = None
        self._state = AdapterState.UNATTACHED
        self._consumer: Consumer | None = None
        self._consumer_finished = False
        self._failed = False
        self._errored = False
        self._fatal_error: BaseException | None = None
        self._connected = False
        self._closed_event = asyncio.Event()
        self._drained = asyncio.Event()
        self._drained.set()
        if consumer is not None:
            self.set_consumer(consumer)

    @property
    def state(self) -> AdapterState:
        return self._state

    @property
    def channel(self):
        return self._channel

    @property
    def paused(self) -> bool:
        return self._flow.paused

    @property
    def consumer(self) -> Consumer | None:
        return self._consumer

    def set_consumer(self, consumer: Consumer) -> None:
        if self._consumer is not None:
            raise RuntimeError("Adapter already has a consumer")
        self._consumer = consumer
        bind = getattr(consumer, "bind", None)
        if bind is not None:
            bind(self.resume)

    def messages(self, high_water: int = 16) -> MessageQueue:
        """Install and return a pull queue as this adapter's consumer."""
        queue = MessageQueue(high_water)
        self.set_consumer(queue)
        return queue

    # -- wiring ---------------------------------------------------------

    def attach(self, channel) -> "DuplexAdapter":
        if self._state is not AdapterState.UNATTACHED:
            raise RuntimeError(f"Cannot attach in state {self._state.value}")

        self._channel = channel
        self._flow.bind(channel)
        self._decoder = FrameDecoder(
            channel, self.codec, self._offer, self._flow, self._max_frame_size
        )

        channel.on("connected", self._on_connected)
        channel.on("data", self._decode)
        channel.on("drain", self._on_drain)
        channel.on("end", self._on_end)
        channel.on("error", self._on_error)
        channel.on("closed", self._on_closed)
        channel.on("timeout", self._on_timeout)

        self._state = AdapterState.ATTACHED
        if self._idle_timeout:
            channel.set_timeout(self._idle_timeout)
        if channel.connected:
            self._connected = True
            if self.metrics is not None:
                self.metrics.record_connection()
            self._decode()
        return self

    # -- inbound --------------------------------------------------------

    def resume(self) -> None:
        """Ask for more messages after the consumer rejected one."""
        self._flow.resume()

    def _decode(self) -> None:
        if self._decoder is None or self._failed:
            return
        try:
            self._decoder.decode()
        except FramingError as e:
            self._fail(e)
            return
        self._maybe_finish_consumer()

    def _offer(self, message: Any) -> AcceptResult:
        if self.metrics is not None:
            self.metrics.record_frame_in(self._decoder.last_frame_size)
        self.emit("message", message)
        if self._consumer is None:
            return AcceptResult.ACCEPTED
        result = self._consumer.accept(message)
        if result is AcceptResult.REJECTED and self.metrics is not None:
            self.metrics.record_pause()
        return result

    def _maybe_finish_consumer(self) -> None:
        if self._consumer_finished or self._state is not AdapterState.CLOSED:
            return
        if self._channel.buffered and not self._decoder.stopped:
            # Complete frames are still waiting behind a paused consumer.
            return
        self._consumer_finished = True
        finish = getattr(self._consumer, "finish", None)
        if finish is not None:
            finish(self._fatal_error)

    def _fail(self, error: FramingError) -> None:
        self._failed = True
        self._errored = True
        self._decoder.stop()
        self._flow.cancel()
        if self.metrics is not None:
            self.metrics.record_framing_error()
        logger.warning("Framing error, aborting connection: %s", error)
        if self._state is AdapterState.ATTACHED:
            self._state = AdapterState.CLOSING
        self._fatal_error = error
        self.emit("error", error)
        self._channel.abort(error)
        if self._channel.closed:
            # Already closed: abort is a no-op and no closed event follows.
            self._channel.discard()
        self._maybe_finish_consumer()

    # -- outbound -------------------------------------------------------

    def send(self, message: Any) -> SendResult:
        """Frame *message* and write it to the channel.

        Never raises for a closed connection: that is reported as
        SendResult.CLOSED plus a ``send_failed`` event.

        Raises:
            TypeError: The codec cannot serialize *message*.
        """
        if self._state is not AdapterState.ATTACHED:
            return self._send_failed(
                ChannelClosedError(f"Cannot send in state {self._state.value}")
            )
        data = self._encoder.encode(message)
        try:
            room = self._channel.write(data)
        except ChannelClosedError as e:
            return self._send_failed(e)

        if self.metrics is not None:
            self.metrics.record_frame_out(len(data))
        if room:
            return SendResult.ACCEPTED
        self._drained.clear()
        return SendResult.BUFFERED

    async def drain(self) -> None:
        """Wait until the channel's write buffer has drained or the channel closed."""
        await self._drained.wait()

    async def send_and_drain(self, message: Any) -> SendResult:
        result = self.send(message)
        if result is SendResult.BUFFERED:
            await self.drain()
        return result

    def _send_failed(self, error: ChannelClosedError) -> SendResult:
        if self.metrics is not None:
            self.metrics.record_send_failure()
        logger.debug("Send failed: %s", error)
        self.emit("send_failed", error)
        return SendResult.CLOSED

    # -- teardown -------------------------------------------------------

    def close(self, farewell: Any = None) -> None:
        """Send *farewell* if given, then close the channel.

        No frame is decoded after this call.
        """
        if self._state is AdapterState.UNATTACHED:
            self._state = AdapterState.CLOSED
            self._closed_event.set()
            return
        if self._decoder.stopped:
            return
        if self._state is AdapterState.CLOSED:
            # Remote end already closed; drop frames still waiting behind a paused consumer.
            self._decoder.stop()
            self._flow.cancel()
            self._channel.discard()
            self._maybe_finish_consumer()
            return

        if farewell is not None and self._state is AdapterState.ATTACHED:
            self.send(farewell)
        self._state = AdapterState.CLOSING
        self._decoder.stop()
        self._flow.cancel()
        logger.info("Closing adapter")
        self._channel.close()

    async def wait_closed(self) -> None:
        await self._closed_event.wait()

    async def __aenter__(self) -> "DuplexAdapter":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
        await self.wait_closed()

    # -- channel event relay --------------------------------------------

    def _on_connected(self) -> None:
        self._connected = True
        if self.metrics is not None:
            self.metrics.record_connection()
        self.emit("connected")

    def _on_drain(self) -> None:
        self._drained.set()
        self.emit("drain")

    def _on_end(self) -> None:
        if self._state is AdapterState.ATTACHED:
            self._state = AdapterState.CLOSING
        self.emit("end")

    def _on_error(self, error: BaseException) -> None:
        if self._errored:
            return
        self._errored = True
        self._fatal_error = error
        self.emit("error", error)

    def _on_timeout(self) -> None:
        self.emit("timeout")

    def _on_closed(self, abrupt: bool) -> None:
        self._state = AdapterState.CLOSED
        # Frames that arrived whole before the close are still delivered.
        self._decode()
        if self._decoder.stopped:
            self._channel.discard()

        if self._connected and self.metrics is not None:
            self.metrics.record_disconnection()
        self._drained.set()
        self._closed_event.set()
        self._maybe_finish_consumer()
        self.emit("closed", abrupt)
