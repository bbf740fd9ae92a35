"""Non-blocking TCP server that answers get/set/del requests from a key-value store."""

from __future__ import annotations

import argparse
import logging
import selectors
import socket
import struct
import sys
from typing import Optional

from kvcache.protocol import (
    HEADER_SIZE,
    MAX_MSG,
    ProtocolError,
    encode_response,
    frame,
    parse_request,
)
from kvcache.store import KeyValueStore

DEFAULT_PORT = 1234
READ_CHUNK = 64 * 1024
ECHO_LIMIT = 100
POLL_INTERVAL = 0.1

_U32 = struct.Struct("<I")

logger = logging.getLogger(__name__)


class Connection:
    """State of one client connection: buffers and what it is waiting for."""

    def __init__(self, sock: socket.socket, store: KeyValueStore) -> None:
        self.sock = sock
        self.sock.setblocking(False)
        self.store = store
        self.want_read = True
        self.want_write = False
        self.want_close = False
        self.incoming = bytearray()
        self.outgoing = bytearray()

    def fileno(self) -> int:
        return self.sock.fileno()

    def try_one_request(self) -> bool:
        """Handle one complete request from the input buffer, if there is one.

        The first bytes of the request are echoed back as a frame of their
        own, followed by the framed response. Returns whether a request was
        handled, so that pipelined requests can be processed in a loop.
        """
        if len(self.incoming) < HEADER_SIZE:
            return False
        (length,) = _U32.unpack_from(self.incoming, 0)
        if length > MAX_MSG:
            logger.warning("too long")
            self.want_close = True
            return False
        if HEADER_SIZE + length > len(self.incoming):
            return False

        request = bytes(self.incoming[HEADER_SIZE:HEADER_SIZE + length])
        del self.incoming[:HEADER_SIZE + length]

        preview = request[:ECHO_LIMIT]
        logger.debug("client says %d %r", length, preview)
        self.outgoing += frame(preview)

        try:
            cmd = parse_request(request)
        except ProtocolError as exc:
            logger.warning("bad request: %s", exc)
            self.want_close = True
            return False

        response = self.store.execute(cmd)
        self.outgoing += encode_response(response.status, response.data)
        return True

    def feed(self, data: bytes) -> None:
        """Append received bytes and process every complete request in them."""
        self.incoming += data
        while self.try_one_request():
            pass
        if self.outgoing:
            self.want_read = False
            self.want_write = True

    def handle_read(self) -> None:
        """Read what the socket has, process it, and start sending replies."""
        try:
            data = self.sock.recv(READ_CHUNK)
        except BlockingIOError:
            return
        except OSError as exc:
            logger.warning("%s read() error", exc.errno)
            self.want_close = True
            return
        if not data:
            logger.info("unexpected EOF" if self.incoming else "client closed")
            self.want_close = True
            return
        self.feed(data)
        if self.want_write:
            self.handle_write()

    def handle_write(self) -> None:
        """Send as much of the output buffer as the socket accepts."""
        if self.outgoing:
            try:
                sent = self.sock.send(self.outgoing)
            except BlockingIOError:
                return
            except OSError as exc:
                logger.warning("%s write() error", exc.errno)
                self.want_close = True
                return
            del self.outgoing[:sent]
        if not self.outgoing:
            self.want_read = True
            self.want_write = False

    def close(self) -> None:
        self.sock.close()


class Server:
    """Listens for clients and serves them from one shared store."""

    def __init__(
        self,
        host: str = "::",
        port: int = DEFAULT_PORT,
        store: Optional[KeyValueStore] = None,
    ) -> None:
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        self._listener = socket.socket(family, socket.SOCK_STREAM)
        try:
            self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._listener.bind((host, port))
            self._listener.setblocking(False)
            self._listener.listen(socket.SOMAXCONN)
        except OSError:
            self._listener.close()
            raise
        self.store = KeyValueStore() if store is None else store
        self._selector = selectors.DefaultSelector()
        self._selector.register(self._listener, selectors.EVENT_READ, None)
        self._connections: dict[int, Connection] = {}
        self._closing = False
        self._serving = False
        self._released = False

    @property
    def address(self) -> tuple[str, int]:
        """The host and port the server is listening on."""
        host, port = self._listener.getsockname()[:2]
        return host, port

    def __enter__(self) -> "Server":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _accept(self) -> None:
        try:
            sock, addr = self._listener.accept()
        except BlockingIOError:
            return
        except OSError as exc:
            logger.warning("%s accept() error", exc.errno)
            return
        logger.info("new client from %s:%s", addr[0], addr[1])
        conn = Connection(sock, self.store)
        self._connections[conn.fileno()] = conn
        self._selector.register(sock, selectors.EVENT_READ, conn)

    def _update_interest(self) -> None:
        for conn in self._connections.values():
            events = 0
            if conn.want_read:
                events |= selectors.EVENT_READ
            if conn.want_write:
                events |= selectors.EVENT_WRITE
            if events:
                self._selector.modify(conn.sock, events, conn)

    def _drop(self, conn: Connection) -> None:
        fd = conn.fileno()
        self._selector.unregister(conn.sock)
        conn.close()
        self._connections.pop(fd, None)

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        for conn in list(self._connections.values()):
            self._drop(conn)
        self._selector.close()
        self._listener.close()

    def serve_forever(self) -> None:
        """Serve clients until :meth:`close` is called."""
        self._serving = True
        try:
            while not self._closing:
                self._update_interest()
                for key, mask in self._selector.select(timeout=POLL_INTERVAL):
                    if key.data is None:
                        self._accept()
                        continue
                    conn: Connection = key.data
                    if mask & selectors.EVENT_READ and conn.want_read:
                        conn.handle_read()
                    if mask & selectors.EVENT_WRITE and conn.want_write:
                        conn.handle_write()
                    if conn.want_close:
                        self._drop(conn)
        finally:
            self._serving = False
            self._release()

    def close(self) -> None:
        """Stop serving and close every socket."""
        self._closing = True
        if not self._serving:
            self._release()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="kvcache-server", description="Run the key-value cache server."
    )
    parser.add_argument("--host", default="::", help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        server = Server(args.host, args.port)
    except OSError as exc:
        print(f"{exc.errno} bind()", file=sys.stderr)
        return 1

    print(":: CACHING SERVER STARTED ::", file=sys.stderr)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())