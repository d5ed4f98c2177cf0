"""Consistent hashing of keys onto storage node addresses."""

from __future__ import annotations

import bisect
import hashlib
import threading


def hash_key(text: str) -> int:
    """Map ``text`` to a point on the ring: the first 8 bytes of its SHA-256."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


class HashRing:
    """A thread-safe ring assigning each key to the next node clockwise."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._nodes: dict[int, str] = {}
        self._hashes: list[int] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def add_node(self, addr: str) -> None:
        """Place ``addr`` on the ring; adding it again changes nothing."""
        point = hash_key(addr)
        with self._lock:
            if point not in self._nodes:
                bisect.insort(self._hashes, point)
            self._nodes[point] = addr

    def remove_node(self, addr: str) -> None:
        """Take ``addr`` off the ring; an absent node is ignored."""
        point = hash_key(addr)
        with self._lock:
            self._nodes.pop(point, None)
            index = bisect.bisect_left(self._hashes, point)
            if index < len(self._hashes) and self._hashes[index] == point:
                del self._hashes[index]

    def get_node(self, key: str) -> str:
        """Return the node responsible for ``key``."""
        with self._lock:
            if not self._nodes:
                raise LookupError("no nodes in the hash ring")
            index = bisect.bisect_left(self._hashes, hash_key(key))
            return self._nodes[self._hashes[index % len(self._hashes)]]