"""Bounded least-recently-used cache."""

from collections import OrderedDict
from typing import Generic, Hashable, Iterator, Optional, TypeVar

V = TypeVar("V")


class LRUCache(Generic[V]):
    """Fixed-capacity map that evicts the least recently touched entry.

    Recency is tracked explicitly with ``touch``; both ``get`` hits and
    ``set`` count as a touch.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: OrderedDict[str, V] = OrderedDict()

    def touch(self, key: str) -> bool:
        if key not in self._entries:
            return False
        self._entries.move_to_end(key)
        return True

    def get(self, key: str) -> Optional[V]:
        if not self.touch(key):
            return None
        return self._entries[key]

    def set(self, key: str, value: V) -> None:
        self._entries[key] = value
        self.touch(key)
        if len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> int:
        stale = [key for key in self._entries if key.startswith(prefix)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        return list(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))
