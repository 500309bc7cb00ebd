"""Visited-directory history for each side of a tab.

This module intentionally has no UI concerns.
Paths are kept most-recent-first with a recall pointer for back/forward.
"""

from __future__ import annotations

from collections.abc import Iterable

DEFAULT_MAX_HISTORY_ITEMS = 50


class DirectoryHistory:
    """Bounded most-recently-used path list with a recall pointer.

    Revisiting a path moves it to the front instead of duplicating it.
    ``go_back`` walks toward older paths, ``go_forward`` toward newer ones.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_HISTORY_ITEMS) -> None:
        self.max_entries = max(1, max_entries)
        self._paths: list[str] = []
        self._index = 0

    @property
    def entries(self) -> list[str]:
        return list(self._paths)

    @property
    def index(self) -> int:
        return self._index

    def __len__(self) -> int:
        return len(self._paths)

    def add(self, path: str) -> None:
        """Record ``path`` as the newest visit and reset the recall pointer."""
        if not path or not path.strip():
            return
        if self._index < len(self._paths) and self._paths[self._index].casefold() == path.casefold():
            return
        self._paths = [existing for existing in self._paths if existing.casefold() != path.casefold()]
        self._paths.insert(0, path)
        self._index = 0
        self._trim()

    def set_entries(self, paths: Iterable[str] | None) -> None:
        """Replace the history, dropping blank or non-string items."""
        self._paths = [path for path in (paths or ()) if isinstance(path, str) and path.strip()]
        self._index = 0
        self._trim()

    def go_back(self) -> str | None:
        """Step to the next older path, or ``None`` at the oldest entry."""
        if self._index + 1 < len(self._paths):
            self._index += 1
            return self._paths[self._index]
        return None

    def go_forward(self) -> str | None:
        """Step to the next newer path, or ``None`` at the newest entry."""
        if self._index > 0 and self._paths:
            self._index -= 1
            return self._paths[self._index]
        return None

    def clear(self) -> None:
        self._paths.clear()
        self._index = 0

    def _trim(self) -> None:
        overflow = len(self._paths) - self.max_entries
        if overflow > 0:
            del self._paths[self.max_entries:]
        self._index = min(self._index, max(0, len(self._paths) - 1))


class TabHistory:
    """Left and right ``DirectoryHistory`` for one tab."""

    def __init__(self, max_entries: int = DEFAULT_MAX_HISTORY_ITEMS) -> None:
        self.left = DirectoryHistory(max_entries)
        self.right = DirectoryHistory(max_entries)

    def side(self, is_left: bool) -> DirectoryHistory:
        return self.left if is_left else self.right

    def add(self, is_left: bool, path: str) -> None:
        self.side(is_left).add(path)

    def set_history(self, is_left: bool, paths: Iterable[str] | None) -> None:
        self.side(is_left).set_entries(paths)


__all__ = ["DEFAULT_MAX_HISTORY_ITEMS", "DirectoryHistory", "TabHistory"]
