"""Configuration module: frozen dataclass loaded from YAML and environment variables."""

import os
from dataclasses import dataclass, fields

import yaml

CODECS = ("json", "text", "raw")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class AdapterConfig:
    host: str = "127.0.0.1"
    port: int = 1883
    max_frame_size: int = 16 * 1024 * 1024
    idle_timeout: float = 0.0  # seconds, 0 disables
    queue_high_water: int = 16
    write_high_water: int = 64 * 1024
    codec: str = "json"
    log_level: str = "INFO"

    def __post_init__(self):
        if self.codec not in CODECS:
            raise ValueError(f"Unknown codec {self.codec!r}, expected one of {CODECS}")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level {self.log_level!r}")
        for name in ("max_frame_size", "queue_high_water", "write_high_water"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.idle_timeout < 0:
            raise ValueError(f"idle_timeout must not be negative, got {self.idle_timeout}")


def load_yaml(path: str) -> dict:
    """Load a YAML mapping from *path*. An empty file yields an empty dict."""
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    known = {f.name for f in fields(AdapterConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown config keys in {path}: {sorted(unknown)}")
    return data


def load_config(path: str | None = None) -> AdapterConfig:
    """Build AdapterConfig from an optional YAML file, then env var overrides.

    The file path falls back to the ``FRAMELINK_CONFIG`` environment variable.
    """
    path = path or os.environ.get("FRAMELINK_CONFIG")
    base = AdapterConfig(**load_yaml(path)) if path else AdapterConfig()

    return AdapterConfig(
        host=os.environ.get("FRAMELINK_HOST", base.host),
        port=int(os.environ.get("FRAMELINK_PORT", str(base.port))),
        max_frame_size=int(
            os.environ.get("FRAMELINK_MAX_FRAME_SIZE", str(base.max_frame_size))
        ),
        idle_timeout=float(
            os.environ.get("FRAMELINK_IDLE_TIMEOUT", str(base.idle_timeout))
        ),
        queue_high_water=int(
            os.environ.get("FRAMELINK_QUEUE_HIGH_WATER", str(base.queue_high_water))
        ),
        write_high_water=int(
            os.environ.get("FRAMELINK_WRITE_HIGH_WATER", str(base.write_high_water))
        ),
        codec=os.environ.get("FRAMELINK_CODEC", base.codec).lower(),
        log_level=os.environ.get("FRAMELINK_LOG_LEVEL", base.log_level).upper(),
    )
