import pytest

from kvcache.protocol import (
    MAX_ARGS,
    MAX_MSG,
    ProtocolError,
    Status,
    encode_request,
    encode_response,
    frame,
    parse_request,
    str_hash,
)


def test_hash_of_empty_is_offset_basis():
    assert str_hash(b"") == 0x811C9DC5


def test_hash_is_deterministic_and_32_bit():
    for data in (b"a", b"hello", b"z" * 1000):
        value = str_hash(data)
        assert value == str_hash(data)
        assert 0 <= value < 2**32


def test_hash_accepts_str_and_bytes_alike():
    assert str_hash("key") == str_hash(b"key")


def test_hash_distinguishes_keys():
    assert len({str_hash(k) for k in (b"a", b"b", b"ab", b"ba")}) == 4


def test_encode_request_wire_bytes():
    assert encode_request([b"get", b"k"]) == (
        b"\x02\x00\x00\x00\x03\x00\x00\x00get\x01\x00\x00\x00k"
    )


@pytest.mark.parametrize(
    "args",
    [[], [b""], [b"get", b"key"], [b"set", b"key", b"value"], [b"\x00\xff", b"x" * 300]],
)
def test_request_round_trip(args):
    assert parse_request(encode_request(args)) == args


def test_parse_rejects_short_header():
    with pytest.raises(ProtocolError):
        parse_request(b"\x01\x00")


def test_parse_rejects_truncated_argument():
    data = encode_request([b"hello"])
    with pytest.raises(ProtocolError):
        parse_request(data[:-1])


def test_parse_rejects_missing_argument():
    data = encode_request([b"a", b"b"])
    with pytest.raises(ProtocolError):
        parse_request(data[: -len(b"b") - 4])


def test_parse_rejects_trailing_data():
    with pytest.raises(ProtocolError):
        parse_request(encode_request([b"get", b"k"]) + b"!")


def test_parse_rejects_too_many_arguments():
    data = (MAX_ARGS + 1).to_bytes(4, "little")
    with pytest.raises(ProtocolError):
        parse_request(data)


def test_encode_response_wire_bytes():
    assert encode_response(Status.NX) == b"\x04\x00\x00\x00\x02\x00\x00\x00"


def test_encode_response_layout():
    message = encode_response(Status.OK, b"value")
    assert int.from_bytes(message[:4], "little") == len(message) - 4
    assert int.from_bytes(message[4:8], "little") == Status.OK
    assert message[8:] == b"value"


def test_frame_wire_bytes():
    assert frame(b"abc") == b"\x03\x00\x00\x00abc"


def test_frame_prefix_matches_payload():
    payload = b"x" * 70000
    framed = frame(payload)
    assert int.from_bytes(framed[:4], "little") == len(payload)
    assert framed[4:] == payload


def test_frame_rejects_oversized_payload():
    with pytest.raises(ProtocolError):
        frame(b"z" * (MAX_MSG + 1))


def test_protocol_error_is_value_error():
    with pytest.raises(ValueError):
        parse_request(b"")