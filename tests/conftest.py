"""Shared fixtures: an in-memory transport driving a real StreamChannel."""

import struct

import pytest

from framelink.channel import StreamChannel


class FakeTransport:
    """Records what the channel does to its asyncio transport."""

    def __init__(self, peer=("127.0.0.1", 50000)):
        self.peer = peer
        self.written = bytearray()
        self.reading_paused = False
        self.high_water = None
        self.closed = False
        self.aborted = False

    def get_extra_info(self, key, default=None):
        if key == "peername":
            return self.peer
        return default

    def set_write_buffer_limits(self, high=None, low=None):
        self.high_water = high

    def pause_reading(self):
        self.reading_paused = True

    def resume_reading(self):
        self.reading_paused = False

    def write(self, data):
        self.written.extend(data)

    def is_closing(self):
        return self.closed or self.aborted

    def close(self):
        self.closed = True

    def abort(self):
        self.aborted = True


def frame(payload: bytes) -> bytes:
    """Length-prefix *payload* the way the wire expects it."""
    return struct.pack("!I", len(payload)) + payload


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def channel(transport):
    """A StreamChannel that is already connected to a FakeTransport."""
    ch = StreamChannel()
    ch.connection_made(transport)
    return ch
