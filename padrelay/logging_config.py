"""Root logger setup for the relay process."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from .config import RelayRuntimeConfig
from .util import expand_path

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def parse_level(value: Any, default: int) -> int:
    """Accept a level name ("warn", "DEBUG"), a number, or a numeric string."""
    if isinstance(value, int):
        return value
    text = str(value or "").strip().upper()
    if not text:
        return default
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text)
    return level if isinstance(level, int) else default


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not str(value).strip():
        return None
    return str(value)


def _file_handler(path: str) -> logging.FileHandler:
    p = Path(expand_path(path))
    p.parent.mkdir(parents=True, exist_ok=True)
    p.touch(mode=0o600, exist_ok=True)
    os.chmod(p, 0o600)
    return logging.FileHandler(p, encoding="utf-8")


def configure_logging(
    cfg: RelayRuntimeConfig,
    *,
    override_level: str | None = None,
    override_file: str | None = None,
) -> None:
    """
    Install console and file handlers on the root logger.

    Each call replaces whatever handlers the root logger had, so calling it
    again never duplicates output. `override_level` and `override_file` come
    from the command line and take precedence over the config. The
    websockets library logs at its own level, `log_websockets_level`.
    """
    handlers: list[logging.Handler] = []
    if cfg.log_console:
        handlers.append(logging.StreamHandler())

    # An empty override turns file logging off.
    source = cfg.log_file if override_file is None else override_file
    log_file = _blank_to_none(source)
    if log_file:
        handlers.append(_file_handler(log_file))

    formatter = logging.Formatter(
        fmt=_blank_to_none(cfg.log_format) or DEFAULT_LOG_FORMAT,
        datefmt=_blank_to_none(cfg.log_datefmt),
    )

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        if isinstance(old, logging.FileHandler):
            old.close()

    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    root.setLevel(parse_level(override_level or cfg.log_level, logging.INFO))
    logging.getLogger("websockets").setLevel(
        parse_level(cfg.log_websockets_level, logging.WARNING)
    )
    logging.captureWarnings(True)
