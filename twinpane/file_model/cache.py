"""Raw directory-listing cache keyed by absolute path."""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .types import FileEntry
from .watch import directory_mtime_ns

DEFAULT_DIRECTORY_CACHE_CAPACITY = 20


@dataclass(frozen=True)
class _CachedListing:
    entries: tuple[FileEntry, ...]
    directory_mtime_ns: int


class DirectoryCache:
    """LRU cache of unsorted, unmasked directory listings.

    An entry is only served while the directory still carries the
    modification timestamp it had when the listing was stored; a stale
    entry is dropped on lookup.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_DIRECTORY_CACHE_CAPACITY,
        *,
        mtime_for_path: Callable[[str], int | None] = directory_mtime_ns,
    ) -> None:
        self.capacity = max(1, capacity)
        self._mtime_for_path = mtime_for_path
        self._lock = threading.Lock()
        self._listings: OrderedDict[str, _CachedListing] = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._listings)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._listings

    def try_get(self, path: str) -> list[FileEntry] | None:
        """Return a copy of the cached listing, or ``None`` on miss/stale."""
        if not path or not path.strip():
            return None
        with self._lock:
            cached = self._listings.get(path)
        if cached is None:
            return None

        current_mtime = self._mtime_for_path(path)
        with self._lock:
            if current_mtime is None or current_mtime != cached.directory_mtime_ns:
                if self._listings.get(path) is cached:
                    del self._listings[path]
                return None
            if path in self._listings:
                self._listings.move_to_end(path)
        return list(cached.entries)

    def add(self, path: str, entries: Iterable[FileEntry]) -> None:
        """Store or replace the raw listing for an existing directory."""
        if not path or not path.strip():
            return
        mtime = self._mtime_for_path(path)
        if mtime is None:
            return
        listing = _CachedListing(entries=tuple(entries), directory_mtime_ns=mtime)
        with self._lock:
            self._listings[path] = listing
            self._listings.move_to_end(path)
            while len(self._listings) > self.capacity:
                self._listings.popitem(last=False)

    def invalidate(self, path: str) -> None:
        with self._lock:
            self._listings.pop(path, None)

    def clear(self) -> None:
        with self._lock:
            self._listings.clear()


__all__ = ["DEFAULT_DIRECTORY_CACHE_CAPACITY", "DirectoryCache"]
