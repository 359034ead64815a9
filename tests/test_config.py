"""Tests for configuration loading."""

import dataclasses

import pytest

from framelink.config import AdapterConfig, load_config, load_yaml

ENV_VARS = (
    "FRAMELINK_CONFIG",
    "FRAMELINK_HOST",
    "FRAMELINK_PORT",
    "FRAMELINK_MAX_FRAME_SIZE",
    "FRAMELINK_IDLE_TIMEOUT",
    "FRAMELINK_QUEUE_HIGH_WATER",
    "FRAMELINK_WRITE_HIGH_WATER",
    "FRAMELINK_CODEC",
    "FRAMELINK_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = load_config()
    assert config == AdapterConfig()
    assert config.port == 1883
    assert config.codec == "json"
    assert config.idle_timeout == 0.0


def test_frozen():
    config = AdapterConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.port = 1


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("FRAMELINK_HOST", "0.0.0.0")
    monkeypatch.setenv("FRAMELINK_PORT", "9000")
    monkeypatch.setenv("FRAMELINK_IDLE_TIMEOUT", "2.5")
    monkeypatch.setenv("FRAMELINK_CODEC", "RAW")
    monkeypatch.setenv("FRAMELINK_LOG_LEVEL", "debug")
    config = load_config()
    assert config.host == "0.0.0.0"
    assert config.port == 9000
    assert config.idle_timeout == 2.5
    assert config.codec == "raw"
    assert config.log_level == "DEBUG"


def test_yaml_file(tmp_path):
    path = tmp_path / "framelink.yaml"
    path.write_text("port: 7000\ncodec: text\nqueue_high_water: 4\n")
    config = load_config(str(path))
    assert config.port == 7000
    assert config.codec == "text"
    assert config.queue_high_water == 4
    assert config.host == "127.0.0.1"


def test_config_path_from_env(tmp_path, monkeypatch):
    path = tmp_path / "framelink.yaml"
    path.write_text("max_frame_size: 1024\n")
    monkeypatch.setenv("FRAMELINK_CONFIG", str(path))
    assert load_config().max_frame_size == 1024


def test_env_wins_over_yaml(tmp_path, monkeypatch):
    path = tmp_path / "framelink.yaml"
    path.write_text("port: 7000\n")
    monkeypatch.setenv("FRAMELINK_PORT", "7001")
    assert load_config(str(path)).port == 7001


def test_empty_yaml(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_yaml(str(path)) == {}


def test_unknown_yaml_key(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("prot: 7000\n")
    with pytest.raises(ValueError, match="Unknown config keys"):
        load_config(str(path))


def test_yaml_must_be_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ValueError, match="mapping"):
        load_yaml(str(path))


def test_missing_file():
    with pytest.raises(OSError):
        load_config("/nonexistent/framelink.yaml")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"codec": "xml"},
        {"log_level": "LOUD"},
        {"max_frame_size": 0},
        {"queue_high_water": -1},
        {"write_high_water": 0},
        {"idle_timeout": -1.0},
    ],
)
def test_invalid_values(kwargs):
    with pytest.raises(ValueError):
        AdapterConfig(**kwargs)


def test_invalid_env_value(monkeypatch):
    monkeypatch.setenv("FRAMELINK_PORT", "not-a-port")
    with pytest.raises(ValueError):
        load_config()
