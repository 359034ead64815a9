"""Byte channel: an asyncio Protocol owning one connection's receive buffer.

The channel never interprets bytes. It buffers what the transport delivers,
hands out exact-size slices on request and relays lifecycle callbacks as
named events:

    connected          transport is up
    data               new bytes were appended to the buffer
    drain              write buffer fell back under the low-water mark
    end                peer sent EOF
    error(exc)         connection lost with an OS error (TransportError)
    closed(abrupt)     transport is gone; abrupt on error or abort
    timeout            no traffic for ``set_timeout`` seconds
"""

import asyncio
import logging

from framelink.errors import ChannelClosedError, TransportError
from framelink.events import Listeners

logger = logging.getLogger(__name__)


def _format_peer(peer) -> str:
    if isinstance(peer, tuple) and len(peer) >= 2:
        return f"{peer[0]}:{peer[1]}"
    return str(peer) if peer else "unknown"


class StreamChannel(Listeners, asyncio.Protocol):
    """Connected bidirectional byte stream with discrete lifecycle events."""

    def __init__(self, write_high_water: int | None = None) -> None:
        super().__init__()
        self._transport: asyncio.Transport | None = None
        self._buffer = bytearray()
        self._write_high_water = write_high_water
        self._write_paused = False
        self._reading_paused = False
        self._closing = False
        self._closed = False
        self._aborted = False
        self._timeout = 0.0
        self._timer: asyncio.TimerHandle | None = None
        self.peer = None

    @property
    def connected(self) -> bool:
        return self._transport is not None and not self._closed

    @property
    def closing(self) -> bool:
        return self._closing

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def buffered(self) -> int:
        """Number of received bytes not yet consumed."""
        return len(self._buffer)

    @property
    def write_paused(self) -> bool:
        return self._write_paused

    @property
    def reading_paused(self) -> bool:
        return self._reading_paused

    # -- asyncio.Protocol callbacks -------------------------------------

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport
        self.peer = transport.get_extra_info("peername")
        if self._write_high_water is not None:
            transport.set_write_buffer_limits(high=self._write_high_water)
        if self._reading_paused:
            transport.pause_reading()
        self._touch()
        logger.info("Channel connected: %s", _format_peer(self.peer))
        self.emit("connected")

    def data_received(self, data: bytes) -> None:
        self._buffer.extend(data)
        self._touch()
        self.emit("data")

    def eof_received(self) -> bool:
        logger.debug("End of stream from %s", _format_peer(self.peer))
        self.emit("end")
        # Falsy return: the transport closes itself once writes are flushed.
        return False

    def pause_writing(self) -> None:
        self._write_paused = True

    def resume_writing(self) -> None:
        self._write_paused = False
        self.emit("drain")

    def connection_lost(self, exc: Exception | None) -> None:
        self._closing = True
        self._closed = True
        self._cancel_timer()
        if exc is not None:
            logger.warning("Channel %s lost: %s", _format_peer(self.peer), exc)
            self.emit("error", TransportError(f"Connection lost: {exc}", exc))
        else:
            logger.info("Channel closed: %s", _format_peer(self.peer))
        self.emit("closed", exc is not None or self._aborted)

    # -- reading --------------------------------------------------------

    def read_exact(self, n: int) -> bytes | None:
        """Consume exactly *n* buffered bytes, or return None if fewer are buffered."""
        if len(self._buffer) < n:
            return None
        data = bytes(self._buffer[:n])
        del self._buffer[:n]
        return data

    def unread(self, data: bytes) -> None:
        """Push *data* back so the next read delivers it first."""
        self._buffer[:0] = data

    def discard(self) -> int:
        """Drop everything buffered. Returns the number of bytes dropped."""
        dropped = len(self._buffer)
        self._buffer.clear()
        return dropped

    def pause_reading(self) -> None:
        self._reading_paused = True
        if self._transport is not None and not self._closed:
            self._transport.pause_reading()

    def resume_reading(self) -> None:
        self._reading_paused = False
        if self._transport is not None and not self._closed:
            self._transport.resume_reading()

    # -- writing --------------------------------------------------------

    def write(self, data: bytes) -> bool:
        """Queue *data* on the transport.

        Returns False when the transport's write buffer is above its
        high-water mark; wait for ``drain`` before writing more.
        """
        if self._transport is None or self._closing or self._transport.is_closing():
            raise ChannelClosedError("Channel is not open for writing")
        self._transport.write(data)
        self._touch()
        return not self._write_paused

    # -- teardown -------------------------------------------------------

    def close(self) -> None:
        """Flush pending writes, then close."""
        if self._closing:
            return
        self._closing = True
        self._cancel_timer()
        if self._transport is None:
            self._closed = True
            self.emit("closed", False)
            return
        self._transport.close()

    def abort(self, exc: BaseException | None = None) -> None:
        """Close immediately, dropping buffered bytes in both directions."""
        if self._closed:
            return
        if exc is not None:
            logger.warning("Aborting channel %s: %s", _format_peer(self.peer), exc)
        self._closing = True
        self._aborted = True
        self._buffer.clear()
        self._cancel_timer()
        if self._transport is None:
            self._closed = True
            self.emit("closed", True)
            return
        self._transport.abort()

    # -- idle timeout ---------------------------------------------------

    def set_timeout(self, seconds: float | None) -> None:
        """Emit ``timeout`` after *seconds* without traffic. 0 or None disables."""
        self._timeout = seconds or 0.0
        self._touch()

    def _touch(self) -> None:
        self._cancel_timer()
        if self._timeout > 0 and self._transport is not None and not self._closing:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self._timeout, self._on_timeout)

    def _on_timeout(self) -> None:
        self._timer = None
        logger.debug("Channel %s idle for %.1fs", _format_peer(self.peer), self._timeout)
        self.emit("timeout")

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
