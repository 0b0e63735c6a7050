from __future__ import annotations

from typing import Any

from .constants import (
    F_COUNT,
    F_IP,
    F_PLAYER,
    F_PORT,
    F_ROLE,
    F_TYPE,
    T_ASSIGN_PLAYER,
    T_PLAYERS,
    T_ROOM_FULL,
    T_SERVER_IP,
)


def make_message(msg_type: str, **fields: Any) -> dict[str, Any]:
    msg: dict[str, Any] = {F_TYPE: str(msg_type)}
    msg.update(fields)
    return msg


def make_server_ip(ip: str, port: int) -> dict[str, Any]:
    return make_message(T_SERVER_IP, **{F_IP: str(ip), F_PORT: int(port)})


def make_assign_player(slot: int) -> dict[str, Any]:
    return make_message(T_ASSIGN_PLAYER, **{F_PLAYER: int(slot)})


def make_room_full() -> dict[str, Any]:
    return make_message(T_ROOM_FULL)


def make_players(count: int) -> dict[str, Any]:
    return make_message(T_PLAYERS, **{F_COUNT: int(count)})


def message_type(msg: dict[str, Any]) -> str | None:
    t = msg.get(F_TYPE)
    return t if isinstance(t, str) else None


def requested_role(msg: dict[str, Any]) -> str | None:
    role = msg.get(F_ROLE)
    return role if isinstance(role, str) else None
