from __future__ import annotations

import logging
from typing import Any

from .connection import Connection
from .constants import F_PLAYER, T_INPUT
from .envelope import message_type


class MessageRouter:
    """
    Decides what happens to a decoded message from an active connection.

    This class is responsible for:
    - Mapping a message's type tag to an action
    - Stamping relayed INPUT messages with the sender's player slot

    It performs no I/O. `route()` returns the message to broadcast, or None
    when the message is to be ignored. New client message types are added
    here.
    """

    def __init__(self) -> None:
        self.log = logging.getLogger("padrelay.router")

    def route(self, conn: Connection, msg: dict[str, Any]) -> dict[str, Any] | None:
        t = message_type(msg)

        if t == T_INPUT:
            return self._handle_input(conn, msg)

        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug("Ignoring message conn_id=%s type=%r", conn.id, msg.get("type"))
        return None

    def _handle_input(self, conn: Connection, msg: dict[str, Any]) -> dict[str, Any]:
        """Copy an INPUT message and overwrite its player field with the sender's slot."""
        out = dict(msg)
        # Viewers hold no slot; None also stops them spoofing a player number.
        out[F_PLAYER] = conn.slot
        return out
