"""Connection state for a single accepted WebSocket peer.

A Connection wraps one bidirectional channel together with its identity and
role. The session loop is the only reader of the channel. Writes are queued
on the connection and drained by one writer task per connection, which is
the only caller of send(). send() and close() share a per-connection lock.
"""

from __future__ import annotations

import asyncio
import enum
import uuid
from typing import Any, Protocol

from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK
from websockets.protocol import State

from .constants import DEFAULT_SEND_QUEUE_FRAMES


class ChannelClosed(Exception):
    """Raised by Channel.receive() once the peer has gone away.

    `clean` is True when the peer completed a close handshake and False when
    the transport failed or disappeared.
    """

    def __init__(self, message: str = "channel closed", *, clean: bool = True) -> None:
        super().__init__(message)
        self.clean = clean


class RoleAlreadyAssigned(RuntimeError):
    """A connection's role is set once during negotiation and never changed."""


class Channel(Protocol):
    remote: str

    async def receive(self) -> str | bytes: ...

    async def send(self, frame: str | bytes) -> None: ...

    async def close(self, code: int, reason: str) -> None: ...

    def is_open(self) -> bool: ...


class WebSocketChannel:
    """Channel adapter over a websockets server connection."""

    def __init__(self, ws: ServerConnection) -> None:
        self.ws = ws
        self.remote = _fmt_remote(getattr(ws, "remote_address", None))

    async def receive(self) -> str | bytes:
        try:
            return await self.ws.recv()
        except ConnectionClosedOK as e:
            raise ChannelClosed(str(e), clean=True) from e
        except ConnectionClosed as e:
            raise ChannelClosed(str(e), clean=False) from e

    async def send(self, frame: str | bytes) -> None:
        await self.ws.send(frame)

    async def close(self, code: int, reason: str) -> None:
        await self.ws.close(code=code, reason=reason)

    def is_open(self) -> bool:
        return self.ws.state is State.OPEN


def _fmt_remote(addr: Any) -> str:
    if isinstance(addr, (tuple, list)) and len(addr) >= 2:
        return f"{addr[0]}:{addr[1]}"
    if addr:
        return str(addr)
    return "-"


def new_connection_id() -> str:
    return uuid.uuid4().hex


class Role(enum.Enum):
    UNASSIGNED = "unassigned"
    CONTROLLER = "controller"
    VIEWER = "viewer"


class Connection:
    """
    One accepted peer: identity, negotiated role and outbound frame queue.

    Outbound frames go into `outbox` and are written by a single writer task
    that the relay attaches, so a peer that reads slowly only backs up its own
    queue. Once `outbox_closed` is set no further frames are accepted.
    """

    def __init__(
        self,
        channel: Channel,
        conn_id: str | None = None,
        *,
        outbox_size: int = DEFAULT_SEND_QUEUE_FRAMES,
    ) -> None:
        self.id = conn_id or new_connection_id()
        self.channel = channel
        self.role = Role.UNASSIGNED
        self.slot: int | None = None
        self.outbox: asyncio.Queue[str | bytes] = asyncio.Queue(maxsize=max(1, int(outbox_size)))
        self.outbox_closed = False
        self.writer: asyncio.Task | None = None
        self._send_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<Connection id={self.id[:12]} role={self.role.value} slot={self.slot}>"

    @property
    def remote(self) -> str:
        return getattr(self.channel, "remote", "-")

    def assign_controller(self, slot: int) -> None:
        if self.role is not Role.UNASSIGNED:
            raise RoleAlreadyAssigned(f"connection {self.id} is already {self.role.value}")
        self.role = Role.CONTROLLER
        self.slot = int(slot)

    def assign_viewer(self) -> None:
        if self.role is not Role.UNASSIGNED:
            raise RoleAlreadyAssigned(f"connection {self.id} is already {self.role.value}")
        self.role = Role.VIEWER

    def is_open(self) -> bool:
        return bool(self.channel.is_open())

    def enqueue(self, frame: str | bytes) -> bool:
        """Queue a frame for the writer. False if the outbox is closed or full."""
        if self.outbox_closed:
            return False
        try:
            self.outbox.put_nowait(frame)
        except asyncio.QueueFull:
            return False
        return True

    async def send(self, frame: str | bytes) -> None:
        # The writer task and close() share the transport.
        async with self._send_lock:
            await self.channel.send(frame)

    async def close(self, code: int, reason: str) -> None:
        async with self._send_lock:
            await self.channel.close(code, reason)
