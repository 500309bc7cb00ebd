"""Value types shared by the archive providers and the archive manager."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum


class ArchiveFormat(str, Enum):
    ZIP = "zip"
    TAR = "tar"
    TGZ = "tgz"
    TBZ2 = "tbz2"
    TXZ = "txz"
    SEVEN_ZIP = "7z"

    @property
    def default_extension(self) -> str:
        return _DEFAULT_EXTENSIONS[self]

    @property
    def extensions(self) -> tuple[str, ...]:
        return _EXTENSIONS[self]


_EXTENSIONS: dict[ArchiveFormat, tuple[str, ...]] = {
    ArchiveFormat.ZIP: (".zip",),
    ArchiveFormat.TAR: (".tar",),
    ArchiveFormat.TGZ: (".tar.gz", ".tgz"),
    ArchiveFormat.TBZ2: (".tar.bz2", ".tbz2", ".tbz"),
    ArchiveFormat.TXZ: (".tar.xz", ".txz"),
    ArchiveFormat.SEVEN_ZIP: (".7z",),
}
_DEFAULT_EXTENSIONS = {fmt: exts[0] for fmt, exts in _EXTENSIONS.items()}


def format_for_path(path: str) -> ArchiveFormat | None:
    """Detect the archive format from the file name, longest suffix first."""
    lowered = path.lower()
    best: tuple[int, ArchiveFormat] | None = None
    for fmt, extensions in _EXTENSIONS.items():
        for extension in extensions:
            if lowered.endswith(extension) and (best is None or len(extension) > best[0]):
                best = (len(extension), fmt)
    return best[1] if best else None


@dataclass(frozen=True)
class ArchiveProgress:
    """One progress report from an archive operation."""

    current_file: str = ""
    current_full_path: str = ""
    processed_files: int = 0
    total_files: int = 0
    processed_bytes: int = 0
    total_bytes: int = 0

    @property
    def percent(self) -> float:
        if self.total_files <= 0:
            return 0.0
        return self.processed_files * 100.0 / self.total_files


ProgressCallback = Callable[[ArchiveProgress], None]


@dataclass
class OperationResult:
    success: bool
    message: str = ""
    files_processed: int = 0
    cancelled: bool = False
    errors: list[str] = field(default_factory=list)

    @classmethod
    def failed(cls, message: str, *errors: str) -> OperationResult:
        return cls(success=False, message=message, errors=list(errors))

    @classmethod
    def was_cancelled(cls, files_processed: int = 0) -> OperationResult:
        return cls(success=False, message="Cancelled", files_processed=files_processed, cancelled=True)


@dataclass(frozen=True)
class ArchiveMember:
    """A flat member of an archive.

    ``key`` is the ``/``-separated path inside the archive, without a
    trailing slash even for directory members.
    """

    key: str
    is_directory: bool
    size: int = 0
    mtime_ns: int = 0


__all__ = [
    "ArchiveFormat",
    "ArchiveMember",
    "ArchiveProgress",
    "OperationResult",
    "ProgressCallback",
    "format_for_path",
]
