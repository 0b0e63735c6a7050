from __future__ import annotations

import asyncio
import enum
import logging

from .codec import DecodeError, decode, frame_size
from .connection import ChannelClosed, Connection
from .constants import (
    CLOSE_NORMAL,
    CLOSE_POLICY_VIOLATION,
    CLOSE_REASON_NORMAL,
    CLOSE_REASON_ROOM_FULL,
    ROLE_CONTROLLER,
)
from .envelope import make_assign_player, make_room_full, make_server_ip, requested_role
from .registry import Registry
from .relay import Relay
from .router import MessageRouter
from .stats import StatsManager


class SessionState(enum.Enum):
    HANDSHAKING = "handshaking"
    ROLE_NEGOTIATION = "role_negotiation"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class SessionLoop:
    """
    Drives one connection from accept to teardown.

    This class is responsible for:
    - Registering the connection and sending SERVER_IP
    - One-shot role negotiation from the first inbound frame
    - Rejecting controllers with ROOM_FULL when every slot is held
    - The receive/dispatch loop while active
    - Deregistration and the final PLAYERS broadcast, exactly once

    The session task is the only reader of its channel.
    """

    def __init__(
        self,
        conn: Connection,
        *,
        registry: Registry,
        relay: Relay,
        router: MessageRouter,
        server_ip: str,
        server_port: int,
        stats: StatsManager | None = None,
        negotiation_timeout_s: float = 0.0,
    ) -> None:
        self.conn = conn
        self.registry = registry
        self.relay = relay
        self.router = router
        self.server_ip = server_ip
        self.server_port = int(server_port)
        self.stats = stats or relay.stats
        self.negotiation_timeout_s = float(negotiation_timeout_s)
        self.state = SessionState.HANDSHAKING
        self.log = logging.getLogger("padrelay.session")
        self._finished = False

    async def run(self) -> None:
        conn = self.conn
        self.registry.register(conn)
        self.stats.inc("connections_opened")
        self.log.info("Connection opened conn_id=%s remote=%s", conn.id, conn.remote)

        try:
            await self.relay.send_to(conn, make_server_ip(self.server_ip, self.server_port))
            role = await self._read_role_request()

            self.state = SessionState.ROLE_NEGOTIATION
            if not await self._negotiate(role):
                return

            self.state = SessionState.ACTIVE
            await self._receive_loop()
        except Exception:
            self.log.exception("Session failed conn_id=%s remote=%s", conn.id, conn.remote)
        finally:
            await self._finish()

    async def _read_role_request(self) -> str | None:
        """
        Read the first frame and return the requested role, if any.

        An empty frame, a peer that went away, a malformed frame or an expired
        negotiation deadline all yield None, which means viewer.
        """
        conn = self.conn
        try:
            if self.negotiation_timeout_s > 0:
                frame = await asyncio.wait_for(
                    conn.channel.receive(), timeout=self.negotiation_timeout_s
                )
            else:
                frame = await conn.channel.receive()
        except asyncio.TimeoutError:
            self.log.info(
                "No role request within %.1fs conn_id=%s; defaulting to viewer",
                self.negotiation_timeout_s,
                conn.id,
            )
            return None
        except ChannelClosed as e:
            self.log.debug(
                "Closed before role request conn_id=%s clean=%s", conn.id, e.clean
            )
            return None

        if not frame:
            return None

        self._count_frame(frame)
        try:
            msg = decode(frame)
        except DecodeError as e:
            self.stats.inc("frames_bad")
            self.log.debug("Bad role request conn_id=%s err=%s", conn.id, e)
            return None

        return requested_role(msg)

    async def _negotiate(self, role: str | None) -> bool:
        conn = self.conn

        if role == ROLE_CONTROLLER:
            slot = self.registry.try_claim_slot(conn.id)
            if slot is None:
                await self._reject_room_full()
                return False

            conn.assign_controller(slot)
            self.log.info("Assigned player=%s conn_id=%s remote=%s", slot, conn.id, conn.remote)
            await self.relay.send_to(conn, make_assign_player(slot))
        else:
            conn.assign_viewer()
            self.log.info("Viewer joined conn_id=%s remote=%s", conn.id, conn.remote)

        await self.relay.broadcast_players()
        return True

    async def _reject_room_full(self) -> None:
        conn = self.conn
        self.stats.inc("room_full")
        self.log.info("Room full; rejecting controller conn_id=%s remote=%s", conn.id, conn.remote)

        await self.relay.send_to(conn, make_room_full())
        await self.relay.detach(conn)
        try:
            await conn.close(CLOSE_POLICY_VIOLATION, CLOSE_REASON_ROOM_FULL)
        except Exception as e:
            self.log.debug("Close failed conn_id=%s err=%r", conn.id, e)

        # Nothing about the player set changed, so no PLAYERS broadcast.
        await self._finish(announce=False)

    async def _receive_loop(self) -> None:
        conn = self.conn
        while True:
            try:
                frame = await conn.channel.receive()
            except ChannelClosed as e:
                self.log.debug("Peer closed conn_id=%s clean=%s", conn.id, e.clean)
                return

            self._count_frame(frame)
            try:
                msg = decode(frame)
            except DecodeError as e:
                self.stats.inc("frames_bad")
                self.log.debug("Dropping bad frame conn_id=%s err=%s", conn.id, e)
                continue

            out = self.router.route(conn, msg)
            if out is None:
                continue

            self.stats.inc("inputs_relayed")
            await self.relay.broadcast(out)

    async def _finish(self, *, announce: bool = True) -> None:
        """Deregister, announce, flush queued frames and close. Runs once per session."""
        if self._finished:
            return
        self._finished = True

        conn = self.conn
        self.state = SessionState.CLOSING
        self.registry.deregister(conn.id)
        self.stats.inc("connections_closed")

        if announce:
            await self.relay.broadcast_players()

        await self.relay.detach(conn)
        if conn.is_open():
            try:
                await conn.close(CLOSE_NORMAL, CLOSE_REASON_NORMAL)
            except Exception as e:
                self.log.debug("Close failed conn_id=%s err=%r", conn.id, e)

        self.state = SessionState.CLOSED
        self.log.info(
            "Connection closed conn_id=%s remote=%s role=%s player=%s",
            conn.id,
            conn.remote,
            conn.role.value,
            conn.slot,
        )

    def _count_frame(self, frame: str | bytes) -> None:
        self.stats.inc("frames_in")
        self.stats.inc("bytes_in", frame_size(frame))
