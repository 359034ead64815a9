"""Tests for MQTT control packet builders."""

import pytest

from framelink.packets import (
    build_disconnect,
    build_pingreq,
    build_publish,
    build_subscribe,
    encode_remaining_length,
    encode_string,
)


class TestRemainingLength:
    @pytest.mark.parametrize(
        "length,encoded",
        [
            (0, b"\x00"),
            (127, b"\x7f"),
            (128, b"\x80\x01"),
            (16_383, b"\xff\x7f"),
            (16_384, b"\x80\x80\x01"),
            (268_435_455, b"\xff\xff\xff\x7f"),
        ],
    )
    def test_boundaries(self, length, encoded):
        assert encode_remaining_length(length) == encoded

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            encode_remaining_length(268_435_456)
        with pytest.raises(ValueError):
            encode_remaining_length(-1)


def test_encode_string():
    assert encode_string("SEFA") == b"\x00\x04SEFA"
    with pytest.raises(ValueError):
        encode_string("x" * 65_536)


class TestSubscribe:
    def test_layout(self):
        assert build_subscribe(1, "SEFA", 0) == bytes(
            [0x82, 0x09, 0x00, 0x01, 0x00, 0x04, 0x53, 0x45, 0x46, 0x41, 0x00]
        )

    def test_uses_arguments(self):
        packet = build_subscribe(258, "a/b", 1)
        assert packet[2:4] == b"\x01\x02"
        assert packet[4:9] == b"\x00\x03a/b"
        assert packet[-1] == 1

    def test_invalid_qos(self):
        with pytest.raises(ValueError):
            build_subscribe(1, "t", 3)

    def test_invalid_packet_id(self):
        with pytest.raises(ValueError):
            build_subscribe(0, "t")

    def test_empty_topic(self):
        with pytest.raises(ValueError):
            build_subscribe(1, "")


class TestPublish:
    def test_qos0(self):
        packet = build_publish("c/d", b"hi")
        assert packet == b"\x30\x07\x00\x03c/dhi"

    def test_str_payload(self):
        assert build_publish("t", "é")[-2:] == "é".encode("utf-8")

    def test_qos1_carries_packet_id(self):
        packet = build_publish("t", b"x", qos=1, packet_id=10)
        assert packet[0] == 0x32
        assert packet[2:5] == b"\x00\x01t"
        assert packet[5:7] == b"\x00\x0a"
        assert packet[7:] == b"x"

    def test_flags(self):
        packet = build_publish("t", qos=2, packet_id=1, retain=True, dup=True)
        assert packet[0] == 0x3D

    def test_qos1_requires_packet_id(self):
        with pytest.raises(ValueError, match="packet id"):
            build_publish("t", b"x", qos=1)

    def test_wildcards_rejected(self):
        with pytest.raises(ValueError):
            build_publish("a/+/b", b"x")

    def test_empty_topic(self):
        with pytest.raises(ValueError):
            build_publish("", b"x")


def test_disconnect():
    assert build_disconnect() == b"\xe0\x00"


def test_pingreq():
    assert build_pingreq() == b"\xc0\x00"
