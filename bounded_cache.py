"""Fixed-capacity lookup cache with insertion-order eviction."""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Generic, Hashable, List, Optional, TypeVar

V = TypeVar("V")


class BoundedCache(Generic[V]):
    """
    Process-local cache shared by worker threads.

    - No TTL.
    - Once ``capacity`` is reached the oldest inserted key is evicted.
    - Reads do not refresh an entry's position.
    """

    def __init__(self, capacity: int = 200) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._lock = threading.Lock()
        self._entries: "OrderedDict[Hashable, V]" = OrderedDict()

    def get(self, key: Hashable) -> Optional[V]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: Hashable, value: V) -> None:
        with self._lock:
            if key in self._entries:
                self._entries[key] = value
                return
            self._entries[key] = value
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self) -> List[Hashable]:
        """Return a copy of the cached keys, oldest first."""
        with self._lock:
            return list(self._entries.keys())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
