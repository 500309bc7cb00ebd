"""Directory change signatures for poll-based refreshes.

Runtime code compares these cheap stat values to detect when a real
directory listing has gone stale.
"""

from __future__ import annotations

import os


def path_stat_signature(path: str) -> tuple[str, int, int, int]:
    """Return a stable stat tuple describing ``path`` existence and metadata."""
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return ("missing", 0, 0, 0)
    except OSError:
        return ("error", 0, 0, 0)
    return ("ok", st.st_mtime_ns, st.st_size, st.st_mode)


def directory_mtime_ns(path: str) -> int | None:
    """Return ``st_mtime_ns`` for an existing directory, otherwise ``None``."""
    if not path or not os.path.isdir(path):
        return None
    state, mtime_ns, _size, _mode = path_stat_signature(path)
    if state != "ok":
        return None
    return mtime_ns


__all__ = ["path_stat_signature", "directory_mtime_ns"]
