import socket
import struct
import threading

import pytest

from kvcache.client import main, read_response, send_request
from kvcache.protocol import MAX_MSG, ProtocolError, frame


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    a.settimeout(5)
    b.settimeout(5)
    yield a, b
    a.close()
    b.close()


def test_send_request_wire_bytes(pair):
    a, b = pair
    send_request(a, b"hello1")
    wire = b.recv(64)
    assert wire == b"\x06\x00\x00\x00hello1"
    assert frame(b"hello1") == wire


def test_send_request_then_read_response(pair):
    a, b = pair
    send_request(a, b"hello2")
    assert read_response(b) == b"hello2"


def test_read_response_round_trip(pair):
    a, b = pair
    send_request(b, b"first")
    send_request(b, b"")
    send_request(b, b"third")
    assert read_response(a) == b"first"
    assert read_response(a) == b""
    assert read_response(a) == b"third"


def test_read_response_on_eof(pair):
    a, b = pair
    b.close()
    with pytest.raises(EOFError):
        read_response(a)


def test_read_response_truncated_body(pair):
    a, b = pair
    b.sendall(struct.pack("<I", 10) + b"abc")
    b.close()
    with pytest.raises(EOFError):
        read_response(a)


def test_read_response_too_long(pair):
    a, b = pair
    b.sendall(struct.pack("<I", MAX_MSG + 1))
    with pytest.raises(ProtocolError):
        read_response(a)


def test_send_request_too_long(pair):
    a, _ = pair
    with pytest.raises(ProtocolError):
        send_request(a, b"z" * (MAX_MSG + 1))


def test_main_prints_each_reply(capsys):
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    port = listener.getsockname()[1]
    received = []

    def fake_server():
        conn, _ = listener.accept()
        with conn:
            conn.settimeout(30)
            for _ in range(5):
                body = read_response(conn)
                received.append(len(body))
                conn.sendall(frame(body[:10]))

    thread = threading.Thread(target=fake_server, daemon=True)
    thread.start()
    try:
        assert main(["--host", "127.0.0.1", "--port", str(port)]) == 0
    finally:
        thread.join(timeout=30)
        listener.close()

    assert received[3] == MAX_MSG
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 5
    assert lines[0] == "Length : 6 data hello1"
    assert lines[3] == "Length : 10 data " + "z" * 10
    assert lines[4] == "Length : 6 data hello5"


def test_main_connection_refused():
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    assert main(["--host", "127.0.0.1", "--port", str(port)]) == 1