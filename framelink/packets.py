"""MQTT 3.1.1 control packets, built from their arguments.

These produce byte payloads for frames sent with RawCodec; the framing engine
itself knows nothing about topics or QoS.
"""

import struct
from enum import IntEnum

MAX_REMAINING_LENGTH = 268_435_455
MAX_STRING_LENGTH = 65_535


class PacketType(IntEnum):
    PUBLISH = 3
    SUBSCRIBE = 8
    PINGREQ = 12
    DISCONNECT = 14


def encode_remaining_length(length: int) -> bytes:
    """Encode *length* as the variable-length integer of a fixed header."""
    if not 0 <= length <= MAX_REMAINING_LENGTH:
        raise ValueError(f"Remaining length {length} out of range")
    out = bytearray()
    while True:
        byte = length % 128
        length //= 128
        if length:
            byte |= 0x80
        out.append(byte)
        if not length:
            return bytes(out)


def encode_string(value: str) -> bytes:
    data = value.encode("utf-8")
    if len(data) > MAX_STRING_LENGTH:
        raise ValueError(f"String of {len(data)} bytes exceeds {MAX_STRING_LENGTH}")
    return struct.pack("!H", len(data)) + data


def _check_qos(qos: int) -> None:
    if qos not in (0, 1, 2):
        raise ValueError(f"QoS must be 0, 1 or 2, got {qos}")


def _check_packet_id(packet_id: int) -> None:
    if not 1 <= packet_id <= 0xFFFF:
        raise ValueError(f"Packet id must be in 1..65535, got {packet_id}")


def _packet(packet_type: PacketType, flags: int, body: bytes) -> bytes:
    return bytes([(packet_type << 4) | flags]) + encode_remaining_length(len(body)) + body


def build_publish(
    topic: str,
    payload: bytes | str = b"",
    qos: int = 0,
    packet_id: int | None = None,
    retain: bool = False,
    dup: bool = False,
) -> bytes:
    _check_qos(qos)
    if not topic:
        raise ValueError("Publish topic must not be empty")
    if any(c in topic for c in "+#"):
        raise ValueError(f"Publish topic {topic!r} must not contain wildcards")
    if isinstance(payload, str):
        payload = payload.encode("utf-8")

    body = encode_string(topic)
    if qos > 0:
        if packet_id is None:
            raise ValueError("QoS 1 and 2 publishes need a packet id")
        _check_packet_id(packet_id)
        body += struct.pack("!H", packet_id)
    body += payload

    flags = (dup << 3) | (qos << 1) | int(retain)
    return _packet(PacketType.PUBLISH, flags, body)


def build_subscribe(packet_id: int, topic: str, qos: int = 0) -> bytes:
    _check_qos(qos)
    _check_packet_id(packet_id)
    if not topic:
        raise ValueError("Subscribe topic filter must not be empty")
    body = struct.pack("!H", packet_id) + encode_string(topic) + bytes([qos])
    # SUBSCRIBE fixed header flags are reserved as 0b0010
    return _packet(PacketType.SUBSCRIBE, 0b0010, body)


def build_pingreq() -> bytes:
    return _packet(PacketType.PINGREQ, 0, b"")


def build_disconnect() -> bytes:
    return _packet(PacketType.DISCONNECT, 0, b"")
