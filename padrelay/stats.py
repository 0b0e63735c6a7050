"""Statistics tracking and reporting for the relay."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .registry import Registry


class StatsManager:
    """
    Manages relay statistics collection and reporting.

    Tracks counters for:
    - Connections opened/closed
    - Frames received and frames dropped as malformed
    - Inputs relayed and broadcasts issued
    - Per-target deliveries and send failures
    - Room-full rejections
    - Bytes in/out
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

        self.started_wall_time: float | None = None
        self.started_monotonic: float | None = None

        self._counters: dict[str, int] = {
            "connections_opened": 0,
            "connections_closed": 0,
            "frames_in": 0,
            "frames_bad": 0,
            "inputs_relayed": 0,
            "broadcasts": 0,
            "deliveries": 0,
            "send_failures": 0,
            "room_full": 0,
            "bytes_in": 0,
            "bytes_out": 0,
        }

    def set_start_time(self) -> None:
        """Set the start time for uptime calculations."""
        self.started_wall_time = time.time()
        self.started_monotonic = time.monotonic()

    def inc(self, key: str, delta: int = 1) -> None:
        """Increment a counter by the given delta."""
        with self._lock:
            self._counters[key] = int(self._counters.get(key, 0)) + int(delta)

    def get(self, key: str) -> int:
        with self._lock:
            return int(self._counters.get(key, 0))

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def uptime_s(self) -> float:
        if self.started_monotonic is None:
            return 0.0
        return time.monotonic() - self.started_monotonic

    def format_stats(self, registry: Registry | None = None) -> str:
        """Format current statistics as a human-readable multi-line string."""
        from . import __version__

        c = self.snapshot()

        lines: list[str] = []
        lines.append(f"padrelay {__version__} stats")
        lines.append(f"uptime_s={self.uptime_s():.1f}")

        if registry is not None:
            r = registry.get_stats()
            lines.append(
                f"clients: connections={r['connections']} players={r['players']} "
                f"viewers={r['viewers']} free_slots={r['free_slots']}/{r['slot_count']}"
            )

        lines.append(
            "io: frames_in={} frames_bad={} bytes_in={} bytes_out={}".format(
                c.get("frames_in", 0),
                c.get("frames_bad", 0),
                c.get("bytes_in", 0),
                c.get("bytes_out", 0),
            )
        )
        lines.append(
            "events: opened={} closed={} room_full={} inputs_relayed={}".format(
                c.get("connections_opened", 0),
                c.get("connections_closed", 0),
                c.get("room_full", 0),
                c.get("inputs_relayed", 0),
            )
        )
        lines.append(
            "relay: broadcasts={} deliveries={} send_failures={}".format(
                c.get("broadcasts", 0),
                c.get("deliveries", 0),
                c.get("send_failures", 0),
            )
        )

        return "\n".join(lines)
