from __future__ import annotations

import json
from typing import Any


class DecodeError(ValueError):
    """Raised when an inbound frame is not a JSON object."""


def encode(obj: dict[str, Any]) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def decode(frame: str | bytes) -> dict[str, Any]:
    if isinstance(frame, (bytes, bytearray)):
        try:
            frame = bytes(frame).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"frame is not valid UTF-8: {e}") from e

    try:
        obj = json.loads(frame)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"frame is not valid JSON: {e}") from e

    if not isinstance(obj, dict):
        raise DecodeError("frame must be a JSON object")
    return obj


def frame_size(frame: str | bytes) -> int:
    """Size of a frame on the wire; text frames are sent as UTF-8."""
    if isinstance(frame, str):
        return len(frame.encode("utf-8"))
    return len(frame)
