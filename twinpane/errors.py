"""Domain error types shared by the pane engine and its collaborators."""

from __future__ import annotations


class TwinpaneError(Exception):
    """Base class for all expected, user-reportable failures."""


class DirectoryAccessError(TwinpaneError):
    """A directory could not be opened for enumeration."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class ArchiveError(TwinpaneError):
    """An archive is missing, unsupported, or unreadable."""


class PathBusyError(TwinpaneError):
    """A job was refused because running jobs already own some of its paths."""

    def __init__(self, paths: set[str]) -> None:
        preview = ", ".join(sorted(paths)[:3])
        super().__init__(f"Busy: {preview}")
        self.paths = paths
