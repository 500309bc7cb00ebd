"""Filesystem enumeration and file-mask filtering for pane listings."""

from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Iterable, Iterator

from ..errors import DirectoryAccessError
from ..runtime.cancellation import CancelScope
from .types import FileEntry

LOGGER = logging.getLogger(__name__)

MATCH_ALL_MASKS = frozenset({"", "*", "*.*"})


def is_mask_active(mask: str | None) -> bool:
    """Return whether ``mask`` filters anything at all."""
    if mask is None:
        return False
    return mask.strip() not in MATCH_ALL_MASKS


def _split_mask(mask: str) -> tuple[list[str], list[str]]:
    include: list[str] = []
    exclude: list[str] = []
    for pattern in mask.split():
        if pattern.startswith(":"):
            if len(pattern) > 1:
                exclude.append(pattern[1:].casefold())
        else:
            include.append(pattern.casefold())
    return include, exclude


def apply_file_mask(entries: Iterable[FileEntry], mask: str | None) -> list[FileEntry]:
    """Filter files by a space-separated mask; directories are always kept.

    Patterns are case-insensitive globs. A ``:`` prefix turns a pattern into
    an exclusion, so ``"*.py :test_*"`` keeps Python files except tests.
    """
    entries = list(entries)
    if not is_mask_active(mask):
        return entries

    include, exclude = _split_mask(mask)
    kept: list[FileEntry] = []
    for entry in entries:
        if entry.is_directory:
            kept.append(entry)
            continue
        name = entry.name.casefold()
        if include and not any(fnmatch.fnmatchcase(name, pattern) for pattern in include):
            continue
        if any(fnmatch.fnmatchcase(name, pattern) for pattern in exclude):
            continue
        kept.append(entry)
    return kept


class FileSystemProvider:
    """Lazy, cancellable enumeration of real directories."""

    def __init__(self, show_hidden: bool = True) -> None:
        self.show_hidden = show_hidden

    def enumerate_directory(self, path: str, cancel: CancelScope | None = None) -> Iterator[FileEntry]:
        """Yield one ``FileEntry`` per child of ``path``.

        Raises ``DirectoryAccessError`` once, before any item, when the
        directory cannot be opened. Children whose stat fails are still
        listed with zero size and timestamp. Iteration stops quietly as soon
        as ``cancel`` is cancelled.
        """
        try:
            scanner = os.scandir(path)
        except FileNotFoundError as exc:
            raise DirectoryAccessError(path, "directory not found") from exc
        except NotADirectoryError as exc:
            raise DirectoryAccessError(path, "not a directory") from exc
        except PermissionError as exc:
            raise DirectoryAccessError(path, "permission denied") from exc
        except OSError as exc:
            raise DirectoryAccessError(path, exc.strerror or str(exc)) from exc

        with scanner as children:
            for child in children:
                if cancel is not None and cancel.cancelled:
                    return
                name = child.name
                if not self.show_hidden and name.startswith("."):
                    continue
                yield self._entry_for(child)

    @staticmethod
    def _entry_for(child: os.DirEntry) -> FileEntry:
        try:
            is_dir = child.is_dir()
        except OSError:
            is_dir = False

        size = 0
        mtime_ns = 0
        try:
            stat = child.stat()
            mtime_ns = int(stat.st_mtime_ns)
            if not is_dir:
                size = int(stat.st_size)
        except OSError:
            LOGGER.debug("stat failed for %s", child.path)

        return FileEntry(
            name=child.name,
            full_path=child.path,
            is_directory=is_dir,
            size=size,
            mtime_ns=mtime_ns,
        )

    def list_directory(self, path: str, cancel: CancelScope | None = None) -> list[FileEntry]:
        """Materialize ``enumerate_directory`` into a list."""
        return list(self.enumerate_directory(path, cancel))


__all__ = [
    "MATCH_ALL_MASKS",
    "FileSystemProvider",
    "apply_file_mask",
    "is_mask_active",
]
