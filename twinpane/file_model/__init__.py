"""Domain model for pane listings plus the real-filesystem collaborators.

This package contains non-UI primitives:
- the ``FileEntry`` datatype and display sort orders
- cancellable directory enumeration and file-mask filtering
- the raw-listing ``DirectoryCache``
- stat signatures used for change polling
"""

from __future__ import annotations

from .types import FileEntry
from .sorting import SortMode, sort_entries
from .fs import FileSystemProvider, apply_file_mask, is_mask_active
from .cache import DirectoryCache
from .watch import directory_mtime_ns, path_stat_signature

__all__ = [
    "FileEntry",
    "SortMode",
    "sort_entries",
    "FileSystemProvider",
    "apply_file_mask",
    "is_mask_active",
    "DirectoryCache",
    "directory_mtime_ns",
    "path_stat_signature",
]
