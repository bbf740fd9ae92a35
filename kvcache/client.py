"""Command-line client that sends a batch of messages to the cache server."""

from __future__ import annotations

import argparse
import socket
import struct
import sys
from typing import Optional, Union

from kvcache.protocol import HEADER_SIZE, MAX_MSG, ProtocolError, frame

DEFAULT_HOST = "::1"
DEFAULT_PORT = 1234

_U32 = struct.Struct("<I")


def _recv_exactly(sock: socket.socket, n: int) -> bytes:
    chunks = bytearray()
    while len(chunks) < n:
        chunk = sock.recv(n - len(chunks))
        if not chunk:
            raise EOFError(f"connection closed after {len(chunks)} of {n} bytes")
        chunks += chunk
    return bytes(chunks)


def send_request(sock: socket.socket, payload: Union[bytes, bytearray, str]) -> None:
    """Send ``payload`` as one length-prefixed message."""
    sock.sendall(frame(payload))


def read_response(sock: socket.socket) -> bytes:
    """Read one length-prefixed message and return its body."""
    (length,) = _U32.unpack(_recv_exactly(sock, HEADER_SIZE))
    if length > MAX_MSG:
        raise ProtocolError("too long")
    return _recv_exactly(sock, length)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="kvcache-client", description="Send test messages to the cache server."
    )
    parser.add_argument("--host", default=DEFAULT_HOST, help="server address")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="server port")
    args = parser.parse_args(argv)

    try:
        sock = socket.create_connection((args.host, args.port))
    except OSError as exc:
        print(f"[{exc.errno}] connect", file=sys.stderr)
        return 1

    queries = [b"hello1", b"hello2", b"hello3", b"z" * MAX_MSG, b"hello5"]
    with sock:
        try:
            for query in queries:
                send_request(sock, query)
        except (ProtocolError, OSError) as exc:
            print(f"send error: {exc}", file=sys.stderr)
            return 0

        try:
            for _ in queries:
                body = read_response(sock)
                print(f"Length : {len(body)} data {body.decode(errors='replace')}")
        except EOFError:
            print("EOF", file=sys.stderr)
        except ProtocolError as exc:
            print(exc, file=sys.stderr)
        except OSError:
            print("read() error", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())