from conftest import FakeChannel

from padrelay.connection import Connection
from padrelay.router import MessageRouter


def _controller(slot: int) -> Connection:
    conn = Connection(FakeChannel())
    conn.assign_controller(slot)
    return conn


def test_input_is_stamped_with_sender_slot() -> None:
    router = MessageRouter()
    msg = {"type": "INPUT", "dx": 1}

    out = router.route(_controller(1), msg)

    assert out == {"type": "INPUT", "dx": 1, "player": 1}
    assert msg == {"type": "INPUT", "dx": 1}


def test_input_player_field_is_overwritten() -> None:
    out = MessageRouter().route(_controller(2), {"type": "INPUT", "player": 1})
    assert out == {"type": "INPUT", "player": 2}


def test_viewer_input_has_no_player() -> None:
    conn = Connection(FakeChannel())
    conn.assign_viewer()
    out = MessageRouter().route(conn, {"type": "INPUT", "jump": True})
    assert out == {"type": "INPUT", "jump": True, "player": None}


def test_non_input_messages_are_ignored() -> None:
    router = MessageRouter()
    conn = _controller(1)
    for msg in (
        {"type": "PLAYERS", "count": 3},
        {"type": "ROOM_FULL"},
        {"type": "input"},
        {"type": None},
        {"dx": 1},
        {"role": "controller"},
    ):
        assert router.route(conn, msg) is None
