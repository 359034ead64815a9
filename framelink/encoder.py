"""Outbound framing: message -> length-prefixed bytes."""

import struct
from typing import Any

from framelink.codec import Codec
from framelink.decoder import HEADER_FORMAT, MAX_FRAME_LENGTH


class FrameEncoder:
    def __init__(self, codec: Codec) -> None:
        self._codec = codec

    def encode(self, message: Any) -> bytes:
        """Return ``[4-byte big-endian length][payload]`` for *message*.

        Raises:
            TypeError: The codec cannot represent *message*.
            ValueError: The payload does not fit a 32-bit length.
        """
        payload = self._codec.encode(message)
        if len(payload) > MAX_FRAME_LENGTH:
            raise ValueError(f"Payload of {len(payload)} bytes exceeds the 32-bit length prefix")
        return struct.pack(HEADER_FORMAT, len(payload)) + payload
