"""Tests for the command line helpers."""

import pytest

import main
from framelink.config import AdapterConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("FRAMELINK_CONFIG", "FRAMELINK_CODEC", "FRAMELINK_PORT"):
        monkeypatch.delenv(name, raising=False)


def test_parser_send():
    args = main.build_parser().parse_args(["--port", "9000", "send", "a", "b"])
    assert args.command == "send"
    assert args.messages == ["a", "b"]
    assert args.port == 9000
    assert args.timeout == 5.0


def test_parser_publish():
    args = main.build_parser().parse_args(
        ["publish", "a/b", "hello", "--qos", "1", "--packet-id", "7", "--retain"]
    )
    assert (args.topic, args.data, args.qos, args.packet_id, args.retain) == (
        "a/b",
        "hello",
        1,
        7,
        True,
    )


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        main.build_parser().parse_args([])


def test_resolve_config_overrides():
    args = main.build_parser().parse_args(["--codec", "text", "--host", "h", "serve"])
    config = main.resolve_config(args)
    assert config.codec == "text"
    assert config.host == "h"
    assert config.port == AdapterConfig().port


def test_resolve_config_beats_env(monkeypatch):
    monkeypatch.setenv("FRAMELINK_PORT", "7000")
    args = main.build_parser().parse_args(["--port", "7001", "serve"])
    assert main.resolve_config(args).port == 7001


@pytest.mark.parametrize(
    "text,codec,expected",
    [
        ('{"a": 1}', "json", {"a": 1}),
        ("42", "json", 42),
        ("plain words", "json", "plain words"),
        ("42", "text", "42"),
        ("hi", "raw", b"hi"),
    ],
)
def test_parse_message(text, codec, expected):
    assert main.parse_message(text, codec) == expected


def test_format_message():
    assert main.format_message(b"\xe0\x00") == "e0 00"
    assert main.format_message("hello") == "hello"
    assert main.format_message({"a": 1}) == '{"a": 1}'


def test_main_rejects_bad_config(monkeypatch):
    monkeypatch.setenv("FRAMELINK_CODEC", "xml")
    assert main.main(["serve"]) == 2


def test_main_rejects_bad_packet():
    assert main.main(["publish", "a/#", "x"]) == 2
