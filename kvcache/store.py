"""The in-memory key-value store behind the cache server."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

from kvcache.hashtable import HMap, HNode
from kvcache.protocol import Status, str_hash

Key = Union[bytes, bytearray, memoryview, str]


@dataclass
class Response:
    """Outcome of one command: a status and the data to send back."""

    status: Status = Status.OK
    data: bytes = b""


@dataclass(eq=False)
class Entry(HNode):
    """A stored key and its value, linked into the hash map."""

    key: bytes = b""
    value: bytes = field(default=b"", repr=False)


def _entry_eq(lhs: HNode, rhs: HNode) -> bool:
    assert isinstance(lhs, Entry) and isinstance(rhs, Entry)
    return lhs.key == rhs.key


def _as_bytes(value: Key) -> bytes:
    if isinstance(value, str):
        return value.encode()
    return bytes(value)


def _probe(key: Key) -> Entry:
    raw = _as_bytes(key)
    return Entry(hcode=str_hash(raw), key=raw)


class KeyValueStore:
    """Maps byte-string keys to byte-string values."""

    def __init__(self) -> None:
        self._db = HMap()

    def _find(self, key: Key) -> Optional[Entry]:
        node = self._db.lookup(_probe(key), _entry_eq)
        assert node is None or isinstance(node, Entry)
        return node

    def get(self, key: Key) -> Optional[bytes]:
        """Return the value stored under ``key``, or ``None``."""
        entry = self._find(key)
        return None if entry is None else entry.value

    def set(self, key: Key, value: Key) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        probe = _probe(key)
        existing = self._db.lookup(probe, _entry_eq)
        if existing is not None:
            assert isinstance(existing, Entry)
            existing.value = _as_bytes(value)
            return
        probe.value = _as_bytes(value)
        self._db.insert(probe)

    def delete(self, key: Key) -> bool:
        """Remove ``key``; return whether it was present."""
        return self._db.delete(_probe(key), _entry_eq) is not None

    def execute(self, cmd: Sequence[Key]) -> Response:
        """Run one parsed command (``get``, ``set`` or ``del``)."""
        args = [_as_bytes(arg) for arg in cmd]
        name = args[0] if args else b""
        if len(args) == 2 and name == b"get":
            value = self.get(args[1])
            if value is None:
                return Response(Status.NX)
            return Response(Status.OK, value)
        if len(args) == 3 and name == b"set":
            self.set(args[1], args[2])
            return Response(Status.OK)
        if len(args) == 2 and name == b"del":
            self.delete(args[1])
            return Response(Status.OK)
        return Response(Status.ERR)

    def __len__(self) -> int:
        return len(self._db)