"""Public package surface for twinpane.

Exports ``main`` for programmatic CLI invocation.
The pane engine lives in ``twinpane.pane``; collaborators live in
``twinpane.file_model``, ``twinpane.archive`` and ``twinpane.runtime``.
"""

from __future__ import annotations


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)

__all__ = ["main"]
