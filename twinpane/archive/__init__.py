"""Archives as navigable pseudo-directories.

This package contains:
- archive value types (formats, progress, results)
- zip/tar/7z providers
- ``ArchiveManager``, the key-addressed facade used by the controllers
"""

from __future__ import annotations

from .types import ArchiveFormat, ArchiveMember, ArchiveProgress, OperationResult, format_for_path
from .providers import SevenZipArchiveProvider, TarArchiveProvider, ZipArchiveProvider
from .manager import ArchiveManager

__all__ = [
    "ArchiveFormat",
    "ArchiveManager",
    "ArchiveMember",
    "ArchiveProgress",
    "OperationResult",
    "SevenZipArchiveProvider",
    "TarArchiveProvider",
    "ZipArchiveProvider",
    "format_for_path",
]
