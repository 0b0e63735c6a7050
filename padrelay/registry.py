from __future__ import annotations

import logging
import threading
from typing import Any

from .connection import Connection
from .constants import DEFAULT_PLAYER_SLOTS


class Registry:
    """
    Process-wide bookkeeping of live connections and player slot ownership.

    This class is responsible for:
    - Tracking connections by id
    - Allocating player slots 1..K with a fixed ascending scan
    - Releasing slots when their holder deregisters
    - Point-in-time snapshots of open connections for the relay

    Every public method is a single critical section under one lock. None of
    them await or touch the network, so they can be called from any session
    task without holding the lock across I/O.
    """

    def __init__(self, slot_count: int = DEFAULT_PLAYER_SLOTS) -> None:
        if int(slot_count) < 1:
            raise ValueError("slot_count must be at least 1")
        self.log = logging.getLogger("padrelay.registry")
        self.slot_count = int(slot_count)
        self._lock = threading.Lock()
        self._connections: dict[str, Connection] = {}
        self._slots: dict[int, str | None] = {
            n: None for n in range(1, self.slot_count + 1)
        }
        self._slot_by_id: dict[str, int] = {}

    def register(self, conn: Connection) -> None:
        with self._lock:
            if conn.id in self._connections:
                # Callers register each accepted connection exactly once.
                self.log.error("Connection registered twice conn_id=%s", conn.id)
            self._connections[conn.id] = conn
            total = len(self._connections)

        self.log.debug("Registered conn_id=%s total=%s", conn.id, total)

    def deregister(self, conn_id: str) -> Connection | None:
        """
        Remove a connection and free any slot it held.

        Safe to call more than once; later calls are no-ops returning None.
        """
        with self._lock:
            conn = self._connections.pop(conn_id, None)
            slot = self._release_locked(conn_id)

        if conn is not None:
            self.log.debug("Deregistered conn_id=%s freed_slot=%s", conn_id, slot)
        return conn

    def try_claim_slot(self, conn_id: str) -> int | None:
        """
        Claim the lowest free slot for a registered connection.

        Returns the slot number, or None when every slot is held. A connection
        that already holds a slot gets that slot back rather than a second one.
        """
        with self._lock:
            if conn_id not in self._connections:
                return None

            held = self._slot_by_id.get(conn_id)
            if held is not None:
                return held

            for slot in range(1, self.slot_count + 1):
                if self._slots[slot] is None:
                    self._slots[slot] = conn_id
                    self._slot_by_id[conn_id] = slot
                    return slot

        return None

    def release_slot(self, conn_id: str) -> int | None:
        with self._lock:
            return self._release_locked(conn_id)

    def _release_locked(self, conn_id: str) -> int | None:
        """Must be called with the registry lock held."""
        slot = self._slot_by_id.pop(conn_id, None)
        if slot is not None and self._slots.get(slot) == conn_id:
            self._slots[slot] = None
        return slot

    def peer_count(self) -> int:
        """Number of connections currently holding a slot."""
        with self._lock:
            return len(self._slot_by_id)

    def snapshot(self) -> list[Connection]:
        """Connections registered and open right now."""
        with self._lock:
            conns = list(self._connections.values())
        return [c for c in conns if c.is_open()]

    def get(self, conn_id: str) -> Connection | None:
        with self._lock:
            return self._connections.get(conn_id)

    def slots(self) -> dict[int, str | None]:
        with self._lock:
            return dict(self._slots)

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, conn_id: object) -> bool:
        with self._lock:
            return conn_id in self._connections

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            total = len(self._connections)
            players = len(self._slot_by_id)
            free = sum(1 for holder in self._slots.values() if holder is None)

        return {
            "connections": total,
            "players": players,
            "viewers": total - players,
            "free_slots": free,
            "slot_count": self.slot_count,
        }
