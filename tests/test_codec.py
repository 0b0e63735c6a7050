import pytest

from padrelay.codec import DecodeError, decode, encode, frame_size
from padrelay.envelope import make_players


def test_codec_round_trip() -> None:
    msg = make_players(2)
    data = encode(msg)
    assert data == '{"type":"PLAYERS","count":2}'
    assert decode(data) == msg


def test_decode_accepts_binary_frames() -> None:
    assert decode(b'{"type":"INPUT","dx":1}') == {"type": "INPUT", "dx": 1}


def test_decode_rejects_invalid_json() -> None:
    with pytest.raises(DecodeError):
        decode("{not json")


def test_decode_rejects_invalid_utf8() -> None:
    with pytest.raises(DecodeError):
        decode(b"\xff\xfe\xfd")


def test_decode_rejects_non_object() -> None:
    for frame in ("[1, 2]", '"INPUT"', "42", "null"):
        with pytest.raises(DecodeError):
            decode(frame)


def test_decode_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        decode("")


def test_frame_size_counts_utf8_bytes() -> None:
    text = encode({"type": "INPUT", "name": "Zoë"})
    assert len(text) == 29
    assert frame_size(text) == 30
    assert frame_size(text.encode("utf-8")) == 30
    assert frame_size(b"") == 0
