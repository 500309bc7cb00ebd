"""Per-pane navigable state: location, listing, cursor and marks."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum

from ..file_model.sorting import SortMode
from ..file_model.types import FileEntry

DEFAULT_FILE_MASK = "*"


class DisplayMode(str, Enum):
    NAME_ONLY = "name_only"
    DETAILS = "details"
    ONE_COLUMN = "one_column"
    TWO_COLUMNS = "two_columns"
    THREE_COLUMNS = "three_columns"
    FOUR_COLUMNS = "four_columns"
    FIVE_COLUMNS = "five_columns"
    SIX_COLUMNS = "six_columns"
    SEVEN_COLUMNS = "seven_columns"
    EIGHT_COLUMNS = "eight_columns"

    @classmethod
    def parse(cls, value: object, default: DisplayMode | None = None) -> DisplayMode:
        fallback = cls.DETAILS if default is None else default
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return fallback
        try:
            return cls(value)
        except ValueError:
            return fallback


@dataclass(frozen=True)
class RealLocation:
    """A directory on the real filesystem."""

    path: str


@dataclass(frozen=True)
class VirtualLocation:
    """A directory inside an archive, shown as if it were a real folder.

    ``internal_path`` is ``/``-separated regardless of host OS and empty at
    the archive root. ``parent_path`` is the real directory to return to.
    """

    archive_path: str
    internal_path: str
    parent_path: str

    @property
    def archive_name(self) -> str:
        return os.path.basename(self.archive_path)

    @property
    def display_path(self) -> str:
        if not self.internal_path:
            return f"[{self.archive_name}]"
        return f"[{self.archive_name}]/{self.internal_path}"


Location = RealLocation | VirtualLocation


@dataclass(frozen=True)
class PaneStats:
    directory_count: int = 0
    file_count: int = 0
    total_file_bytes: int = 0
    marked_count: int = 0
    marked_bytes: int = 0


@dataclass(eq=False)
class PaneState:
    """State of one visual pane.

    Instances are compared and hashed by identity so controllers can key
    per-pane bookkeeping on them. Only the pane controllers write
    ``entries``, the cursor fields, and ``location``.
    """

    location: Location = field(default_factory=lambda: RealLocation(os.getcwd()))
    entries: list[FileEntry] = field(default_factory=list)
    cursor_position: int = 0
    scroll_offset: int = 0
    file_mask: str = DEFAULT_FILE_MASK
    sort_mode: SortMode = SortMode.NAME_ASC
    display_mode: DisplayMode = DisplayMode.DETAILS
    stats: PaneStats = field(default_factory=PaneStats)

    @classmethod
    def at(cls, path: str, **kwargs) -> PaneState:
        return cls(location=RealLocation(path), **kwargs)

    # location
    @property
    def current_path(self) -> str:
        """Real directory path, or a synthetic ``[archive]/inner`` display path."""
        if isinstance(self.location, VirtualLocation):
            return self.location.display_path
        return self.location.path

    @property
    def is_in_virtual_folder(self) -> bool:
        return isinstance(self.location, VirtualLocation)

    @property
    def virtual_folder_archive_path(self) -> str | None:
        return self.location.archive_path if isinstance(self.location, VirtualLocation) else None

    @property
    def virtual_folder_internal_path(self) -> str | None:
        return self.location.internal_path if isinstance(self.location, VirtualLocation) else None

    @property
    def virtual_folder_parent_path(self) -> str | None:
        return self.location.parent_path if isinstance(self.location, VirtualLocation) else None

    # listing
    def current_entry(self) -> FileEntry | None:
        if 0 <= self.cursor_position < len(self.entries):
            return self.entries[self.cursor_position]
        return None

    def marked_entries(self) -> list[FileEntry]:
        return [entry for entry in self.entries if entry.marked]

    def selected_or_current(self) -> list[FileEntry]:
        """Marked entries, or the entry under the cursor when nothing is marked."""
        marked = self.marked_entries()
        if marked:
            return marked
        current = self.current_entry()
        return [current] if current is not None else []

    def set_entries(self, entries: list[FileEntry], preserve_marks: set[str] | None = None) -> None:
        """Replace the listing with unmarked entries, re-marking ``preserve_marks`` by name."""
        keep = preserve_marks or set()
        self.entries = [
            replace(entry, marked=entry.name in keep) if entry.marked != (entry.name in keep) else entry
            for entry in entries
        ]
        self.clamp_cursor()
        self.recount()

    def toggle_mark(self, index: int | None = None) -> bool:
        """Flip the mark on ``index`` (default: cursor); return the new mark state."""
        idx = self.cursor_position if index is None else index
        if not 0 <= idx < len(self.entries):
            return False
        entry = self.entries[idx]
        self.entries[idx] = replace(entry, marked=not entry.marked)
        self.recount()
        return not entry.marked

    def mark_all(self, include_directories: bool = False) -> None:
        self.entries = [
            replace(entry, marked=include_directories or not entry.is_directory) for entry in self.entries
        ]
        self.recount()

    def clear_marks(self) -> None:
        self.entries = [replace(entry, marked=False) if entry.marked else entry for entry in self.entries]
        self.recount()

    # cursor
    def clamp_cursor(self) -> None:
        """Keep cursor and scroll inside ``[0, len(entries) - 1]``, or 0 when empty."""
        last = max(0, len(self.entries) - 1)
        self.cursor_position = max(0, min(self.cursor_position, last))
        self.scroll_offset = max(0, min(self.scroll_offset, last))

    def move_cursor(self, delta: int, visible_rows: int | None = None) -> None:
        self.cursor_position += delta
        self.clamp_cursor()
        if visible_rows is None or visible_rows <= 0:
            return
        if self.cursor_position < self.scroll_offset:
            self.scroll_offset = self.cursor_position
        elif self.cursor_position >= self.scroll_offset + visible_rows:
            self.scroll_offset = self.cursor_position - visible_rows + 1
        self.clamp_cursor()

    def recount(self) -> PaneStats:
        directories = 0
        files = 0
        total = 0
        marked = 0
        marked_bytes = 0
        for entry in self.entries:
            if entry.is_directory:
                directories += 1
            else:
                files += 1
                total += entry.size
            if entry.marked:
                marked += 1
                if not entry.is_directory:
                    marked_bytes += entry.size
        self.stats = PaneStats(
            directory_count=directories,
            file_count=files,
            total_file_bytes=total,
            marked_count=marked,
            marked_bytes=marked_bytes,
        )
        return self.stats


__all__ = [
    "DEFAULT_FILE_MASK",
    "DisplayMode",
    "Location",
    "PaneState",
    "PaneStats",
    "RealLocation",
    "VirtualLocation",
]
