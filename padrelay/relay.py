"""Fan-out delivery of messages to registered connections."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .codec import encode, frame_size
from .connection import Connection
from .envelope import make_players
from .registry import Registry
from .stats import StatsManager


class Relay:
    """
    Delivers server messages to one or all registered connections.

    A message is encoded once and queued on each target's outbox. Every
    connection has its own writer task draining that outbox, so a peer that
    stops reading only delays itself. A closed target, a full outbox, a failed
    write or a write that exceeds `send_timeout_s` only skips that target; the
    caller never sees an error. The dead peer's own session loop is
    responsible for tearing it down.
    """

    def __init__(
        self,
        registry: Registry,
        *,
        stats: StatsManager | None = None,
        send_timeout_s: float = 0.0,
    ) -> None:
        self.registry = registry
        self.stats = stats or StatsManager()
        self.send_timeout_s = float(send_timeout_s)
        self.log = logging.getLogger("padrelay.relay")

    async def broadcast(self, message: dict[str, Any]) -> int:
        """Queue for every open registered connection. Returns the number queued."""
        payload = encode(message)
        targets = self.registry.snapshot()
        self.stats.inc("broadcasts")

        queued = sum(1 for conn in targets if self._enqueue(conn, payload))

        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "Broadcast type=%s targets=%s queued=%s bytes=%s",
                message.get("type"),
                len(targets),
                queued,
                frame_size(payload),
            )
        return queued

    async def send_to(self, conn: Connection, message: dict[str, Any]) -> bool:
        return self._enqueue(conn, encode(message))

    async def broadcast_players(self) -> int:
        return await self.broadcast(make_players(self.registry.peer_count()))

    def attach(self, conn: Connection) -> None:
        """Start the writer task for a connection if it is not running."""
        if conn.writer is None and not conn.outbox_closed:
            conn.writer = asyncio.create_task(
                self._drain(conn), name=f"padrelay-writer-{conn.id[:8]}"
            )

    async def detach(self, conn: Connection) -> None:
        """
        Stop accepting frames for a connection and stop its writer.

        Frames already queued get up to `send_timeout_s` to be written (no
        limit when it is 0); whatever is left after that is dropped.
        """
        conn.outbox_closed = True
        task = conn.writer
        if task is None:
            return
        conn.writer = None

        timeout = self.send_timeout_s if self.send_timeout_s > 0 else None
        flushed = asyncio.ensure_future(conn.outbox.join())
        done, _ = await asyncio.wait(
            {flushed, task}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
        if flushed not in done:
            flushed.cancel()
            self.log.warning(
                "Dropping unsent frames conn_id=%s remote=%s pending=%s",
                conn.id,
                conn.remote,
                conn.outbox.qsize(),
            )

        task.cancel()
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            self.log.error(
                "Writer failed conn_id=%s remote=%s",
                conn.id,
                conn.remote,
                exc_info=task.exception(),
            )

    def _enqueue(self, conn: Connection, payload: str) -> bool:
        if conn.outbox_closed or not conn.is_open():
            return False

        self.attach(conn)
        if conn.enqueue(payload):
            return True

        self.stats.inc("send_failures")
        self.log.warning(
            "Outbox full conn_id=%s remote=%s; dropping frame", conn.id, conn.remote
        )
        return False

    async def _drain(self, conn: Connection) -> None:
        while True:
            payload = await conn.outbox.get()
            try:
                await self._write(conn, payload)
            finally:
                conn.outbox.task_done()

    async def _write(self, conn: Connection, payload: str) -> None:
        if not conn.is_open():
            return

        try:
            if self.send_timeout_s > 0:
                await asyncio.wait_for(conn.send(payload), timeout=self.send_timeout_s)
            else:
                await conn.send(payload)
        except asyncio.TimeoutError:
            self.stats.inc("send_failures")
            self.log.warning(
                "Send timed out conn_id=%s remote=%s after %.1fs",
                conn.id,
                conn.remote,
                self.send_timeout_s,
            )
            return
        except Exception as e:
            self.stats.inc("send_failures")
            self.log.debug(
                "Send failed conn_id=%s remote=%s bytes=%s err=%r",
                conn.id,
                conn.remote,
                frame_size(payload),
                e,
            )
            return

        self.stats.inc("deliveries")
        self.stats.inc("bytes_out", frame_size(payload))
