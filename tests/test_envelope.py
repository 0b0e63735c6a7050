from padrelay.constants import DEFAULT_PORT
from padrelay.envelope import (
    make_assign_player,
    make_message,
    make_players,
    make_room_full,
    make_server_ip,
    message_type,
    requested_role,
)


def test_server_messages_match_wire_format() -> None:
    assert make_server_ip("192.168.1.20", DEFAULT_PORT) == {
        "type": "SERVER_IP",
        "ip": "192.168.1.20",
        "port": 4200,
    }
    assert make_assign_player(2) == {"type": "ASSIGN_PLAYER", "player": 2}
    assert make_room_full() == {"type": "ROOM_FULL"}
    assert make_players(0) == {"type": "PLAYERS", "count": 0}


def test_make_message_keeps_extra_fields() -> None:
    assert make_message("INPUT", dx=1, dy=0) == {"type": "INPUT", "dx": 1, "dy": 0}


def test_message_type_requires_string_tag() -> None:
    assert message_type({"type": "INPUT"}) == "INPUT"
    assert message_type({"type": 5}) is None
    assert message_type({}) is None


def test_requested_role() -> None:
    assert requested_role({"role": "controller"}) == "controller"
    assert requested_role({"role": ["controller"]}) is None
    assert requested_role({"type": "INPUT"}) is None
