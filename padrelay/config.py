from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass, replace

from .constants import (
    DEFAULT_PLAYER_SLOTS,
    DEFAULT_PORT,
    DEFAULT_SEND_QUEUE_FRAMES,
    DEFAULT_WS_PATH,
)


@dataclass(frozen=True)
class RelayRuntimeConfig:
    config_path: str | None = None
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    ws_path: str = DEFAULT_WS_PATH
    advertised_host: str | None = None
    advertised_port: int | None = None
    player_slots: int = DEFAULT_PLAYER_SLOTS
    ping_interval_s: float = 30.0
    ping_timeout_s: float = 20.0
    max_frame_bytes: int = 64 * 1024
    send_timeout_s: float = 5.0
    send_queue_frames: int = DEFAULT_SEND_QUEUE_FRAMES
    negotiation_timeout_s: float = 0.0
    stats_log_interval_s: float = 0.0
    log_level: str = "INFO"
    log_websockets_level: str = "WARNING"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    log_datefmt: str | None = None


_LOG_TABLE_KEYS = {
    "level": "log_level",
    "websockets_level": "log_websockets_level",
    "console": "log_console",
    "file": "log_file",
    "format": "log_format",
    "datefmt": "log_datefmt",
}

_OPTIONAL_STR_KEYS = ("advertised_host", "log_file", "log_datefmt")


def load_toml(path: str) -> dict:
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


def apply_config_data(base: RelayRuntimeConfig, data: dict) -> RelayRuntimeConfig:
    relay = data.get("relay") if isinstance(data, dict) else None
    if isinstance(relay, dict):
        data = {**data, **relay}

    log_table = data.get("logging") if isinstance(data, dict) else None
    if isinstance(log_table, dict):
        mapped = {
            field: log_table.get(key)
            for key, field in _LOG_TABLE_KEYS.items()
            if key in log_table
        }
        data = {**data, **mapped}

    allowed = set(asdict(base).keys())
    # This identifies where the config came from; do not let the file override it.
    allowed.discard("config_path")
    updates = {k: v for k, v in data.items() if k in allowed}

    for key in _OPTIONAL_STR_KEYS:
        if key in updates and updates[key] == "":
            updates[key] = None
    if updates.get("advertised_port") == 0:
        updates["advertised_port"] = None

    return replace(base, **updates) if updates else base


def validate_config(cfg: RelayRuntimeConfig) -> None:
    if not isinstance(cfg.port, int) or not (0 <= cfg.port <= 65535):
        raise ValueError(f"port must be 0..65535, got {cfg.port!r}")
    if cfg.advertised_port is not None and not (1 <= int(cfg.advertised_port) <= 65535):
        raise ValueError(f"advertised_port must be 1..65535, got {cfg.advertised_port!r}")
    if int(cfg.player_slots) < 1:
        raise ValueError("player_slots must be at least 1")
    if int(cfg.max_frame_bytes) < 1:
        raise ValueError("max_frame_bytes must be positive")
    if int(cfg.send_queue_frames) < 1:
        raise ValueError("send_queue_frames must be at least 1")
    if cfg.ws_path and not str(cfg.ws_path).startswith("/"):
        raise ValueError(f"ws_path must start with '/', got {cfg.ws_path!r}")

    for name in (
        "ping_interval_s",
        "ping_timeout_s",
        "send_timeout_s",
        "negotiation_timeout_s",
        "stats_log_interval_s",
    ):
        if float(getattr(cfg, name)) < 0:
            raise ValueError(f"{name} must not be negative")


def load_config(path: str, base: RelayRuntimeConfig | None = None) -> RelayRuntimeConfig:
    cfg = base or RelayRuntimeConfig()
    cfg = replace(cfg, config_path=path)
    return apply_config_data(cfg, load_toml(path))
