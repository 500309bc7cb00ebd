"""UI collaborator contract for the pane controllers."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..archive.types import ArchiveFormat
    from ..file_model.types import FileEntry
    from ..pane.state import PaneState


@dataclass(frozen=True)
class CompressionRequest:
    """Options chosen by the user for a compression job."""

    archive_format: ArchiveFormat
    archive_name: str
    level: int = 5


def _noop(*_args, **_kwargs) -> None:
    return None


def _decline(*_args, **_kwargs) -> bool:
    return False


@dataclass(frozen=True)
class UiPort:
    """Operations the concrete UI provides to the core.

    Every callback is invoked on the UI thread only: either directly from a
    UI-thread entry point or from a closure run by ``UiDispatcher.drain``.
    """

    refresh: Callable[[], None] = _noop
    update_status_bar: Callable[[], None] = _noop
    update_pane_stats: Callable[[PaneState], None] = _noop
    set_status: Callable[[str], None] = _noop
    report_error: Callable[[str, BaseException | None], None] = _noop
    confirm: Callable[[str, str], bool] = _decline
    choose_compression: Callable[
        [Sequence[FileEntry], Sequence[ArchiveFormat]], CompressionRequest | None
    ] = _noop


__all__ = ["CompressionRequest", "UiPort"]
