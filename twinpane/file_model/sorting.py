"""Display ordering for pane entries."""

from __future__ import annotations

from enum import Enum

from .types import FileEntry


class SortMode(str, Enum):
    UNSORTED = "unsorted"
    NAME_ASC = "name_asc"
    NAME_DESC = "name_desc"
    EXTENSION_ASC = "ext_asc"
    EXTENSION_DESC = "ext_desc"
    SIZE_ASC = "size_asc"
    SIZE_DESC = "size_desc"
    DATE_ASC = "date_asc"
    DATE_DESC = "date_desc"

    @classmethod
    def parse(cls, value: object, default: SortMode | None = None) -> SortMode:
        """Return the mode named by ``value`` or ``default`` (``NAME_ASC``)."""
        fallback = cls.NAME_ASC if default is None else default
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return fallback
        try:
            return cls(value)
        except ValueError:
            return fallback


def _sorted_within_kind(entries: list[FileEntry], key, reverse: bool) -> list[FileEntry]:
    # Ordinal name is the stable tie-breaker in both directions.
    by_name = sorted(entries, key=lambda entry: entry.name)
    return sorted(by_name, key=key, reverse=reverse)


def sort_entries(entries: list[FileEntry], mode: SortMode) -> list[FileEntry]:
    """Return a new list ordered for display; directories always come first."""
    if not entries:
        return []
    if mode == SortMode.UNSORTED:
        return list(entries)

    directories = [entry for entry in entries if entry.is_directory]
    files = [entry for entry in entries if not entry.is_directory]

    if mode in (SortMode.NAME_ASC, SortMode.NAME_DESC):
        key = lambda entry: entry.name.casefold()
        reverse = mode == SortMode.NAME_DESC
    elif mode in (SortMode.EXTENSION_ASC, SortMode.EXTENSION_DESC):
        key = lambda entry: entry.extension.casefold()
        reverse = mode == SortMode.EXTENSION_DESC
    elif mode in (SortMode.SIZE_ASC, SortMode.SIZE_DESC):
        key = lambda entry: entry.size
        reverse = mode == SortMode.SIZE_DESC
    else:
        key = lambda entry: entry.mtime_ns
        reverse = mode == SortMode.DATE_DESC

    return _sorted_within_kind(directories, key, reverse) + _sorted_within_kind(files, key, reverse)


__all__ = ["SortMode", "sort_entries"]
