"""Pane engine: per-pane state, tabs, sessions and the two controllers.

This package contains:
- ``PaneState`` with its ``RealLocation``/``VirtualLocation`` union
- ``TabSession`` and per-side directory history
- serializable session snapshots
- ``PaneController`` (loading, tabs, sessions, change polling)
- ``ArchiveController`` (virtual folders and archive jobs)
"""

from __future__ import annotations

from .state import DEFAULT_FILE_MASK, DisplayMode, PaneState, PaneStats, RealLocation, VirtualLocation
from .history import DirectoryHistory, TabHistory
from .tab import TabSession
from .session import SessionState, TabSessionState
from .controller import PaneController
from .archive_controller import ArchiveController

__all__ = [
    "DEFAULT_FILE_MASK",
    "ArchiveController",
    "DirectoryHistory",
    "DisplayMode",
    "PaneController",
    "PaneState",
    "PaneStats",
    "RealLocation",
    "SessionState",
    "TabHistory",
    "TabSession",
    "TabSessionState",
    "VirtualLocation",
]
