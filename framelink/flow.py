"""Inbound flow control: the consumer-readiness flag."""

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class FlowController:
    """Owns the ``paused`` flag shared by the decoder and the consumer.

    ``pause()`` is the decoder's reaction to a rejected message; it also stops
    the channel reading from the socket so backpressure reaches the peer.
    ``resume()`` clears the flag and schedules the decode loop on a later
    loop iteration, so pause/resume cycles never grow the stack. Called
    outside a running loop, it continues decoding straight away.
    """

    def __init__(
        self,
        on_resume: Callable[[], None],
        channel=None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._on_resume = on_resume
        self._channel = channel
        self._loop = loop
        self._paused = False
        self._handle: asyncio.Handle | None = None
        self.pause_count = 0

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def scheduled(self) -> bool:
        return self._handle is not None

    def bind(self, channel) -> None:
        self._channel = channel

    def pause(self) -> None:
        if self._paused:
            return
        self._paused = True
        self.pause_count += 1
        if self._channel is not None:
            self._channel.pause_reading()

    def resume(self) -> None:
        """Let decoding continue. A no-op when not paused."""
        if not self._paused:
            return
        self._paused = False
        if self._channel is not None:
            self._channel.resume_reading()
        if self._handle is not None:
            return
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # No loop to defer to; a nested decode is ignored by the decoder.
                self._on_resume()
                return
        self._handle = loop.call_soon(self._run)

    def cancel(self) -> None:
        """Drop a scheduled continuation, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _run(self) -> None:
        self._handle = None
        if self._paused:
            return
        self._on_resume()
