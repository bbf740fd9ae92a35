"""Chained hash map with intrusive nodes and progressive rehashing.

Nodes carry their own chain link and hash code, so any object deriving
from :class:`HNode` can be stored. When the load gets too high the table
is doubled, and entries are moved from the old table to the new one a
bounded amount at a time, spread over later inserts and deletes, so that
no single operation pays for a full rehash.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

MAX_LOAD_FACTOR = 8
REHASHING_WORK = 128
INITIAL_CAPACITY = 4

EqFunc = Callable[["HNode", "HNode"], bool]


@dataclass(eq=False)
class HNode:
    """A hash map node: a hash code plus the link to the next node in its chain."""

    hcode: int = 0
    next: Optional["HNode"] = field(default=None, repr=False)


class _HTab:
    """A fixed-size table of chains; its capacity is a power of two."""

    __slots__ = ("slots", "mask", "size")

    def __init__(self, capacity: int = 0) -> None:
        if capacity and capacity & (capacity - 1):
            raise ValueError(f"capacity must be a power of two, got {capacity}")
        if capacity < 0:
            raise ValueError(f"capacity must not be negative, got {capacity}")
        self.slots: list[Optional[HNode]] = [None] * capacity
        self.mask = capacity - 1 if capacity else 0
        self.size = 0

    @property
    def allocated(self) -> bool:
        return bool(self.slots)

    def insert(self, node: HNode) -> None:
        pos = node.hcode & self.mask
        node.next = self.slots[pos]
        self.slots[pos] = node
        self.size += 1

    def find(self, key: HNode, eq: EqFunc) -> Optional[tuple[int, Optional[HNode]]]:
        """Locate a node equal to ``key``; return its slot and predecessor."""
        if not self.slots:
            return None
        pos = key.hcode & self.mask
        prev: Optional[HNode] = None
        cur = self.slots[pos]
        while cur is not None:
            if cur.hcode == key.hcode and eq(cur, key):
                return pos, prev
            prev, cur = cur, cur.next
        return None

    def node_at(self, pos: int, prev: Optional[HNode]) -> HNode:
        node = self.slots[pos] if prev is None else prev.next
        assert node is not None
        return node

    def detach(self, pos: int, prev: Optional[HNode]) -> HNode:
        node = self.node_at(pos, prev)
        if prev is None:
            self.slots[pos] = node.next
        else:
            prev.next = node.next
        node.next = None
        self.size -= 1
        return node

    def __iter__(self) -> Iterator[HNode]:
        for head in self.slots:
            node = head
            while node is not None:
                following = node.next
                yield node
                node = following


class HMap:
    """Hash map of :class:`HNode` objects with incremental resizing."""

    def __init__(self) -> None:
        self._newer = _HTab()
        self._older = _HTab()
        self._migrate_pos = 0

    def _help_rehashing(self) -> None:
        moved = 0
        older = self._older
        while moved < REHASHING_WORK and older.size > 0:
            head = older.slots[self._migrate_pos]
            if head is None:
                self._migrate_pos += 1
                continue
            self._newer.insert(older.detach(self._migrate_pos, None))
            moved += 1
        if older.size == 0 and older.allocated:
            self._older = _HTab()

    def _trigger_rehashing(self) -> None:
        self._older = self._newer
        self._newer = _HTab((self._newer.mask + 1) * 2)
        self._migrate_pos = 0

    def lookup(self, key: HNode, eq: EqFunc) -> Optional[HNode]:
        """Return the stored node equal to ``key``, or ``None``."""
        for table in (self._newer, self._older):
            found = table.find(key, eq)
            if found is not None:
                return table.node_at(*found)
        return None

    def insert(self, node: HNode) -> None:
        """Add ``node``; duplicates are not checked for."""
        if not self._newer.allocated:
            self._newer = _HTab(INITIAL_CAPACITY)
        self._newer.insert(node)
        if not self._older.allocated:
            threshold = (self._newer.mask + 1) * MAX_LOAD_FACTOR
            if self._newer.size >= threshold:
                self._trigger_rehashing()
        self._help_rehashing()

    def delete(self, key: HNode, eq: EqFunc) -> Optional[HNode]:
        """Remove and return the node equal to ``key``, or ``None`` if absent."""
        self._help_rehashing()
        for table in (self._newer, self._older):
            found = table.find(key, eq)
            if found is not None:
                return table.detach(*found)
        return None

    def clear(self) -> None:
        """Drop every node."""
        self._newer = _HTab()
        self._older = _HTab()
        self._migrate_pos = 0

    def __len__(self) -> int:
        return self._newer.size + self._older.size

    def __iter__(self) -> Iterator[HNode]:
        yield from self._newer
        yield from self._older