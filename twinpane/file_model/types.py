"""Domain datatypes for file entries shown in a pane."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class FileEntry:
    """One listed file or directory, real or inside an archive.

    ``full_path`` is an OS path for real entries. For archive members it is
    the archive path joined with the member's archive-relative key.
    """

    name: str
    full_path: str
    is_directory: bool
    size: int = 0
    mtime_ns: int = 0
    marked: bool = False
    is_virtual: bool = False

    @property
    def extension(self) -> str:
        if self.is_directory:
            return ""
        return os.path.splitext(self.name)[1]


__all__ = ["FileEntry"]
