from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace
from pathlib import Path

from .config import RelayRuntimeConfig, load_config, validate_config
from .constants import (
    DEFAULT_PLAYER_SLOTS,
    DEFAULT_PORT,
    DEFAULT_SEND_QUEUE_FRAMES,
    DEFAULT_WS_PATH,
)
from .logging_config import configure_logging
from .paths import default_config_path, ensure_private_dir
from .service import RelayService


def _write_default_config(config_path: str) -> None:
    cfg_dir = os.path.dirname(config_path)
    if cfg_dir:
        ensure_private_dir(Path(cfg_dir))

    content = f"""# padrelay configuration (TOML)
#
# This file was created on first run.
# Edit it, then start padrelay again.

[relay]

# Listen address and port for the WebSocket server.
host = "0.0.0.0"
port = {DEFAULT_PORT}

# Only upgrade requests for this path are accepted (others get 404).
# Set to "" to accept any path.
ws_path = {DEFAULT_WS_PATH!r}

# Address reported to clients in the SERVER_IP message.
# Leave empty to detect the outbound interface address.
advertised_host = ""
# 0 reports the listening port.
advertised_port = 0

# Number of player slots handed out to "controller" clients.
player_slots = {DEFAULT_PLAYER_SLOTS}

# WebSocket keep-alive (0 disables).
ping_interval_s = 30.0
ping_timeout_s = 20.0

# Largest accepted inbound frame, in bytes.
max_frame_bytes = 65536

# Per-peer write deadline (0 disables). A peer that cannot accept a
# frame in time is skipped for that message.
send_timeout_s = 5.0

# Frames that may wait in one peer's outbound queue. When it is full,
# new messages for that peer are dropped.
send_queue_frames = {DEFAULT_SEND_QUEUE_FRAMES}

# How long a new connection may wait before sending its role request
# (0 waits forever). Connections that miss the deadline become viewers.
negotiation_timeout_s = 0.0

# Periodically log relay statistics (0 disables; stats are always logged at exit).
stats_log_interval_s = 0.0

[logging]

# Log level for padrelay itself.
level = "INFO"

# Log level for the websockets library.
websockets_level = "WARNING"

# Log to stderr (systemd/journald friendly).
console = true

# Optional file path for logs (leave empty to disable).
file = ""

# Log format and optional date format.
format = "%(asctime)s %(levelname)s %(name)s: %(message)s"
datefmt = ""
"""

    with open(config_path, "w", encoding="utf-8") as f:
        f.write(content)


def _ensure_first_run_files(config_path: str) -> bool:
    if os.path.exists(config_path):
        return False
    _write_default_config(config_path)
    return True


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="padrelay", description="Run a WebSocket controller/viewer relay"
    )

    p.add_argument(
        "--config",
        default=str(default_config_path()),
        help="Path to a TOML config file (created on first run)",
    )
    p.add_argument(
        "--no-config",
        action="store_true",
        help="Ignore the config file and run with defaults plus flags",
    )

    p.add_argument("--host", default=None, help="Listen address")
    p.add_argument("--port", type=int, default=None, help="Listen port")
    p.add_argument(
        "--ws-path",
        default=None,
        help="Accepted WebSocket path (empty accepts any path)",
    )
    p.add_argument(
        "--advertised-host",
        default=None,
        help="Address reported to clients in SERVER_IP",
    )
    p.add_argument(
        "--advertised-port",
        type=int,
        default=None,
        help="Port reported to clients in SERVER_IP",
    )
    p.add_argument(
        "--player-slots", type=int, default=None, help="Number of player slots"
    )

    p.add_argument(
        "--ping-interval",
        type=float,
        default=None,
        help="WebSocket keep-alive ping interval seconds (0 disables)",
    )
    p.add_argument(
        "--ping-timeout",
        type=float,
        default=None,
        help="Close the connection if a ping is not answered within this many seconds",
    )
    p.add_argument(
        "--send-timeout",
        type=float,
        default=None,
        help="Per-peer broadcast write deadline seconds (0 disables)",
    )
    p.add_argument(
        "--negotiation-timeout",
        type=float,
        default=None,
        help="Seconds to wait for a role request before defaulting to viewer (0 waits forever)",
    )

    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level override (DEBUG, INFO, WARNING, ERROR). Default comes from config.",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Log file path override (empty disables file logging). Default comes from config.",
    )

    return p


def build_config(args: argparse.Namespace) -> RelayRuntimeConfig:
    cfg = RelayRuntimeConfig()
    if not args.no_config and args.config:
        cfg = load_config(str(args.config), cfg)

    if args.host is not None:
        cfg = replace(cfg, host=str(args.host))
    if args.port is not None:
        cfg = replace(cfg, port=int(args.port))
    if args.ws_path is not None:
        cfg = replace(cfg, ws_path=str(args.ws_path))
    if args.advertised_host is not None:
        cfg = replace(cfg, advertised_host=str(args.advertised_host) or None)
    if args.advertised_port is not None:
        cfg = replace(cfg, advertised_port=int(args.advertised_port) or None)
    if args.player_slots is not None:
        cfg = replace(cfg, player_slots=int(args.player_slots))

    if args.ping_interval is not None:
        cfg = replace(cfg, ping_interval_s=float(args.ping_interval))
    if args.ping_timeout is not None:
        cfg = replace(cfg, ping_timeout_s=float(args.ping_timeout))
    if args.send_timeout is not None:
        cfg = replace(cfg, send_timeout_s=float(args.send_timeout))
    if args.negotiation_timeout is not None:
        cfg = replace(cfg, negotiation_timeout_s=float(args.negotiation_timeout))

    if args.log_level is not None:
        cfg = replace(cfg, log_level=str(args.log_level))
    if args.log_file is not None:
        cfg = replace(cfg, log_file=str(args.log_file) if str(args.log_file) else None)

    return cfg


def main(argv: list[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)

    config_path = str(args.config)
    if not args.no_config and _ensure_first_run_files(config_path):
        print(
            "Created default padrelay config. Edit it before starting:\n"
            f"- Config: {config_path}\n"
            "\nThen re-run padrelay.",
            file=sys.stderr,
        )
        raise SystemExit(0)

    cfg = build_config(args)
    try:
        validate_config(cfg)
    except ValueError as e:
        print(f"padrelay: invalid configuration: {e}", file=sys.stderr)
        raise SystemExit(2) from e

    configure_logging(cfg, override_level=args.log_level, override_file=args.log_file)

    svc = RelayService(cfg)
    svc.run_forever()


if __name__ == "__main__":
    main()
