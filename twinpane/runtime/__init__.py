"""Runtime plumbing shared by the pane controllers.

This package groups UI-thread marshalling (``UiDispatcher``), cooperative
cancellation (``CancelScope``), the background ``JobManager``, the ``UiPort``
callback contract and persisted configuration helpers.
"""

from __future__ import annotations

from .cancellation import CancelScope
from .dispatch import UiDispatcher
from .ports import CompressionRequest, UiPort

__all__ = [
    "CancelScope",
    "CompressionRequest",
    "UiDispatcher",
    "UiPort",
]
