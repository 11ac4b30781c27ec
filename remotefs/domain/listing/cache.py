"""
Bounded directory listing cache
"""
import threading
from collections import OrderedDict
from typing import List, Optional, Sequence

from ...core.constants import DEFAULT_CACHE_CAPACITY
from .models import CacheKey, FileEntry


class ListingCache:
    """
    Insertion-ordered cache of remote listings.

    Eviction removes the oldest-inserted key, not the least recently read.
    Re-inserting a key moves it to the newest position. Entries are stored
    whole and never patched. All access is serialized by one lock.

    Every invalidation bumps ``generation``. A listing fetched before an
    invalidation is refused by ``put`` so it cannot overwrite fresher state.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY):
        if capacity < 1:
            raise ValueError(f"Cache capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: "OrderedDict[CacheKey, tuple[FileEntry, ...]]" = OrderedDict()
        self._lock = threading.Lock()
        self._generation = 0

    def get(self, key: CacheKey) -> Optional[List[FileEntry]]:
        """Return a copy of the cached listing, or None on miss"""
        with self._lock:
            entries = self._entries.get(key)
        return list(entries) if entries is not None else None

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def put(
        self,
        key: CacheKey,
        entries: Sequence[FileEntry],
        generation: Optional[int] = None,
    ) -> bool:
        """
        Insert a listing as the newest entry, evicting the oldest past capacity.

        Args:
            key: Listing key
            entries: Listing to store
            generation: ``generation`` read before the listing was fetched;
                the insert is refused if an invalidation happened since

        Returns:
            False if the listing was refused as stale
        """
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._entries.pop(key, None)
            self._entries[key] = tuple(entries)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)
        return True

    def discard(self, key: CacheKey) -> None:
        with self._lock:
            self._generation += 1
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._entries.clear()

    def keys(self) -> List[CacheKey]:
        """Keys from oldest to newest"""
        with self._lock:
            return list(self._entries.keys())

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
