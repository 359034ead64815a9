"""Incremental frame decoder.

Wire format: 4-byte big-endian unsigned length, then exactly that many
payload bytes. No magic, version or checksum; alignment depends entirely on
the length accounting below.
"""

import logging
import struct
from dataclasses import dataclass
from typing import Any, Callable

from framelink.codec import Codec
from framelink.consumer import AcceptResult
from framelink.errors import FrameOverflowError, FramingError

logger = logging.getLogger(__name__)

HEADER_FORMAT = "!I"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
MAX_FRAME_LENGTH = 2**32 - 1


@dataclass(frozen=True)
class Frame:
    length: int
    payload: bytes

    def __post_init__(self):
        if len(self.payload) != self.length:
            raise FrameOverflowError(
                f"Frame declares {self.length} bytes, payload has {len(self.payload)}"
            )


@dataclass(frozen=True)
class PendingRead:
    """Progress on the frame currently being assembled.

    ``expected_length`` is None until the whole length prefix has arrived.
    """

    expected_length: int | None
    accumulated: int

    def __post_init__(self):
        if self.accumulated < 0:
            raise FrameOverflowError(f"Negative accumulated byte count {self.accumulated}")
        if self.expected_length is not None and self.accumulated > self.expected_length:
            raise FrameOverflowError(
                f"{self.accumulated} bytes accounted to a {self.expected_length}-byte frame"
            )

    @property
    def remaining(self) -> int:
        if self.expected_length is None:
            return 0
        return self.expected_length - self.accumulated


class FrameDecoder:
    """Pulls complete frames out of a channel and offers decoded messages.

    ``decode()`` runs until the channel runs short of bytes, the consumer
    rejects a message, or the decoder is stopped. It never waits: the caller
    re-invokes it on new data or after ``FlowController.resume``.
    """

    def __init__(
        self,
        channel,
        codec: Codec,
        offer: Callable[[Any], AcceptResult],
        flow,
        max_frame_size: int | None = None,
    ) -> None:
        self._channel = channel
        self._codec = codec
        self._offer = offer
        self._flow = flow
        self._max_frame_size = max_frame_size
        self._decoding = False
        self._stopped = False
        self.frames_decoded = 0
        self.last_frame_size = 0

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        """No frame is extracted after this call."""
        self._stopped = True

    def decode(self) -> None:
        """Run the decode loop.

        Raises:
            FramingError: A payload failed to deserialize or a length prefix
                exceeds ``max_frame_size``. The connection must be aborted.
        """
        if self._decoding:
            return
        self._decoding = True
        try:
            while not self._flow.paused and not self._stopped:
                frame = self._next_frame()
                if frame is None:
                    self._settle()
                    return

                try:
                    message = self._codec.decode(frame.payload)
                except FramingError:
                    raise
                except (ValueError, TypeError) as e:
                    raise FramingError(f"Payload failed to decode: {e}") from e
                self.frames_decoded += 1
                self.last_frame_size = HEADER_SIZE + frame.length

                if self._offer(message) is AcceptResult.REJECTED:
                    logger.debug("Consumer rejected after %d frames, pausing", self.frames_decoded)
                    self._flow.pause()
        finally:
            self._decoding = False

    def _next_frame(self) -> Frame | None:
        header = self._channel.read_exact(HEADER_SIZE)
        if header is None:
            return None

        (length,) = struct.unpack(HEADER_FORMAT, header)
        if self._max_frame_size is not None and length > self._max_frame_size:
            raise FramingError(
                f"Frame length {length} exceeds limit {self._max_frame_size}"
            )

        payload = self._channel.read_exact(length)
        if payload is None:
            self._channel.unread(header)
            return None
        return Frame(length, payload)

    def _settle(self) -> None:
        """Drop a trailing partial frame once no more bytes can arrive."""
        if self._channel.closed and self._channel.buffered:
            dropped = self._channel.discard()
            logger.debug("Discarded %d bytes of an incomplete frame after close", dropped)

    def pending(self) -> PendingRead:
        """Describe how far the next frame has been assembled."""
        buffered = self._channel.buffered
        if buffered < HEADER_SIZE:
            return PendingRead(expected_length=None, accumulated=buffered)
        header = self._channel.read_exact(HEADER_SIZE)
        self._channel.unread(header)
        (length,) = struct.unpack(HEADER_FORMAT, header)
        return PendingRead(
            expected_length=length,
            accumulated=min(buffered - HEADER_SIZE, length),
        )

    def bytes_waiting(self) -> int:
        """Bytes still missing before the next frame can be extracted."""
        pending = self.pending()
        if pending.expected_length is None:
            return HEADER_SIZE - pending.accumulated
        return pending.remaining
