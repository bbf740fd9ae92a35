"""Wire format shared by the cache server and its clients.

Every message on the wire is a little-endian ``u32`` length followed by
that many bytes. A request body is a ``u32`` argument count followed by
each argument as a ``u32`` length and its bytes. A response body is a
``u32`` status code followed by the response data.
"""

from __future__ import annotations

import struct
from enum import IntEnum
from typing import Iterable, Union

MAX_MSG = 32 << 20
MAX_ARGS = 200 * 1000
HEADER_SIZE = 4

_U32 = struct.Struct("<I")

BytesLike = Union[bytes, bytearray, memoryview, str]


class Status(IntEnum):
    """Response status codes."""

    OK = 0
    ERR = 1
    NX = 2


class ProtocolError(ValueError):
    """Raised when a message does not follow the wire format."""


def _to_bytes(value: BytesLike) -> bytes:
    if isinstance(value, str):
        return value.encode()
    return bytes(value)


def str_hash(data: BytesLike) -> int:
    """Return the 32-bit FNV-style hash of ``data`` used for keys."""
    h = 0x811C9DC5
    for byte in _to_bytes(data):
        h = ((h + byte) * 0x01000193) & 0xFFFFFFFF
    return h


def parse_request(data: BytesLike) -> list[bytes]:
    """Decode a request body into its list of arguments."""
    view = memoryview(_to_bytes(data))
    end = len(view)
    pos = 0

    def read_u32() -> int:
        nonlocal pos
        if pos + HEADER_SIZE > end:
            raise ProtocolError("truncated length field")
        (value,) = _U32.unpack_from(view, pos)
        pos += HEADER_SIZE
        return value

    nstr = read_u32()
    if nstr > MAX_ARGS:
        raise ProtocolError(f"too many arguments: {nstr}")

    args: list[bytes] = []
    while len(args) < nstr:
        length = read_u32()
        if pos + length > end:
            raise ProtocolError("truncated argument")
        args.append(bytes(view[pos:pos + length]))
        pos += length

    if pos != end:
        raise ProtocolError("trailing data after arguments")
    return args


def encode_request(args: Iterable[BytesLike]) -> bytes:
    """Encode a list of arguments as a request body."""
    items = [_to_bytes(arg) for arg in args]
    if len(items) > MAX_ARGS:
        raise ProtocolError(f"too many arguments: {len(items)}")
    parts = [_U32.pack(len(items))]
    for item in items:
        parts.append(_U32.pack(len(item)))
        parts.append(item)
    return b"".join(parts)


def encode_response(status: Union[Status, int], data: BytesLike = b"") -> bytes:
    """Encode a framed response: length, status, then data."""
    payload = _to_bytes(data)
    return frame(_U32.pack(int(status)) + payload)


def frame(payload: BytesLike) -> bytes:
    """Prefix ``payload`` with its little-endian 32-bit length."""
    body = _to_bytes(payload)
    if len(body) > MAX_MSG:
        raise ProtocolError(f"message too long: {len(body)} bytes")
    return _U32.pack(len(body)) + body