"""Payload codecs: the serialization inside a frame.

Every codec is a pair of pure functions. ``decode(encode(m)) == m`` holds for
every message the codec accepts. ``decode`` raises FramingError on malformed
payloads; ``encode`` raises TypeError for messages it cannot represent.
"""

import json
from typing import Any, Protocol

from framelink.errors import FramingError


class Codec(Protocol):
    name: str

    def encode(self, message: Any) -> bytes: ...

    def decode(self, payload: bytes) -> Any: ...


def _check_json(value: Any) -> None:
    """Reject values JSON would silently change: tuples and non-str keys."""
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"JSON object keys must be str, got {type(key).__name__}")
            _check_json(item)
    elif isinstance(value, list):
        for item in value:
            _check_json(item)
    elif isinstance(value, tuple):
        raise TypeError("JSONCodec encodes lists, not tuples")


class JSONCodec:
    """Compact UTF-8 JSON. An empty payload is not valid JSON.

    Messages are dicts with str keys, lists, str, int, finite float, bool
    and None; anything else raises TypeError on encode.
    """

    name = "json"

    def encode(self, message: Any) -> bytes:
        try:
            text = json.dumps(message, separators=(",", ":"), allow_nan=False)
        except ValueError as e:
            raise TypeError(f"Message is not valid JSON: {e}") from e
        _check_json(message)
        return text.encode("utf-8")

    def decode(self, payload: bytes) -> Any:
        try:
            return json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise FramingError(f"Malformed JSON payload: {e}") from e


class TextCodec:
    """UTF-8 text; the empty payload is the empty string."""

    name = "text"

    def encode(self, message: str) -> bytes:
        if not isinstance(message, str):
            raise TypeError(f"TextCodec encodes str, got {type(message).__name__}")
        return message.encode("utf-8")

    def decode(self, payload: bytes) -> str:
        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FramingError(f"Malformed UTF-8 payload: {e}") from e


class RawCodec:
    """Bytes pass through untouched."""

    name = "raw"

    def encode(self, message: bytes | bytearray | memoryview) -> bytes:
        if not isinstance(message, (bytes, bytearray, memoryview)):
            raise TypeError(f"RawCodec encodes bytes, got {type(message).__name__}")
        return bytes(message)

    def decode(self, payload: bytes) -> bytes:
        return bytes(payload)


_CODECS = {codec.name: codec for codec in (JSONCodec, TextCodec, RawCodec)}


def get_codec(name: str) -> Codec:
    """Return a new codec instance by config name."""
    try:
        return _CODECS[name]()
    except KeyError:
        raise ValueError(f"Unknown codec {name!r}") from None
