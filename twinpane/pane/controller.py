"""Pane loading orchestration and tab lifecycle.

``PaneController`` turns "show path P in pane X" into a sorted,
cursor-stable listing. Enumeration runs on a worker pool; every mutation of
a ``PaneState`` happens in a closure posted to the ``UiDispatcher`` and is
skipped once the load's ``CancelScope`` has been cancelled.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass

from ..archive.manager import ArchiveManager
from ..file_model.cache import DirectoryCache
from ..file_model.fs import FileSystemProvider, apply_file_mask, is_mask_active
from ..file_model.sorting import SortMode, sort_entries
from ..file_model.types import FileEntry
from ..file_model.watch import directory_mtime_ns
from ..runtime.cancellation import CancelScope
from ..runtime.config import Settings
from ..runtime.dispatch import UiDispatcher
from ..runtime.ports import UiPort
from .history import TabHistory
from .session import SessionState, TabSessionState
from .state import DEFAULT_FILE_MASK, PaneState, RealLocation, VirtualLocation
from .tab import TabSession

LOGGER = logging.getLogger(__name__)

LOADER_THREADS = 4


@dataclass
class _PaneBookkeeping:
    last_loaded_path: str | None = None
    load_scope: CancelScope | None = None
    directory_mtime_ns: int | None = None


def tab_name(index: int) -> str:
    return f"Tab {index + 1}"


def _same_path(left: str, right: str) -> bool:
    return os.path.normcase(os.path.normpath(left)) == os.path.normcase(os.path.normpath(right))


class PaneController:
    """Owns the tab list and is the only writer of pane listings and cursors.

    Bookkeeping shared with worker threads (last loaded path, active load
    scope and recorded directory timestamp per pane, plus the remembered
    cursor per path) lives behind one lock that is never held across I/O
    or UI callbacks.
    """

    def __init__(
        self,
        settings: Settings,
        file_system: FileSystemProvider,
        archive_manager: ArchiveManager,
        directory_cache: DirectoryCache,
        dispatcher: UiDispatcher,
        ui: UiPort | None = None,
        *,
        executor: Executor | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self.file_system = file_system
        self.archive_manager = archive_manager
        self.directory_cache = directory_cache
        self.dispatcher = dispatcher
        self.ui = ui or UiPort()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=LOADER_THREADS,
            thread_name_prefix="twinpane-load",
        )
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._panes: dict[PaneState, _PaneBookkeeping] = {}
        self._positions: dict[str, tuple[int, int]] = {}

        self._tabs: list[TabSession] = []
        self._active_tab_index = 0
        self._tabs.append(self._make_tab(settings.start_directory, settings.start_directory))
        self._renumber_tabs()

    # tabs
    @property
    def tabs(self) -> tuple[TabSession, ...]:
        return tuple(self._tabs)

    @property
    def active_tab_index(self) -> int:
        return self._active_tab_index

    @property
    def active_tab(self) -> TabSession:
        return self._tabs[self._active_tab_index]

    @property
    def active_pane(self) -> PaneState:
        return self.active_tab.active_pane

    @property
    def inactive_pane(self) -> PaneState:
        return self.active_tab.inactive_pane

    @property
    def left_pane(self) -> PaneState:
        return self.active_tab.left

    @property
    def right_pane(self) -> PaneState:
        return self.active_tab.right

    @property
    def history(self) -> TabHistory:
        return self.active_tab.history

    def tab_for(self, pane: PaneState) -> TabSession | None:
        for tab in self._tabs:
            if tab.owns(pane):
                return tab
        return None

    def tab_index(self, tab: TabSession) -> int:
        for index, candidate in enumerate(self._tabs):
            if candidate is tab:
                return index
        return -1

    def _make_tab(self, left_path: str, right_path: str) -> TabSession:
        return TabSession.create(left_path, right_path, self.settings.max_history_items)

    def _renumber_tabs(self) -> None:
        for index, tab in enumerate(self._tabs):
            tab.name = tab_name(index)

    def new_tab(self, left_path: str | None = None, right_path: str | None = None) -> TabSession:
        tab = self._make_tab(
            left_path or self.settings.start_directory,
            right_path or self.settings.start_directory,
        )
        self._tabs.append(tab)
        self._renumber_tabs()
        self._active_tab_index = len(self._tabs) - 1
        self.load_directory(tab.left)
        self.load_directory(tab.right)
        self.ui.refresh()
        return tab

    def close_tab(self, index: int) -> bool:
        """Close tab ``index`` and cancel its loads; the last tab never closes."""
        if len(self._tabs) <= 1 or not 0 <= index < len(self._tabs):
            return False
        tab = self._tabs[index]
        with self._lock:
            for pane in tab.panes:
                book = self._panes.pop(pane, None)
                if book is not None and book.load_scope is not None:
                    book.load_scope.close()
        del self._tabs[index]
        self._renumber_tabs()
        if index < self._active_tab_index:
            self._active_tab_index -= 1
        self._active_tab_index = min(self._active_tab_index, len(self._tabs) - 1)
        self._ensure_tab_loaded(self._active_tab_index)
        self.ui.refresh()
        return True

    def switch_tab(self, index: int) -> bool:
        if not 0 <= index < len(self._tabs):
            return False
        self._active_tab_index = index
        self._ensure_tab_loaded(index)
        self.ui.refresh()
        return True

    def next_tab(self) -> None:
        if len(self._tabs) <= 1:
            return
        self.switch_tab((self._active_tab_index + 1) % len(self._tabs))

    def previous_tab(self) -> None:
        if len(self._tabs) <= 1:
            return
        self.switch_tab((self._active_tab_index - 1) % len(self._tabs))

    def load_active_tab(self) -> list[Future]:
        """Start the initial loads of the active tab's panes if they have none yet."""
        return self._ensure_tab_loaded(self._active_tab_index)

    def _ensure_tab_loaded(self, index: int) -> list[Future]:
        if not 0 <= index < len(self._tabs):
            return []
        tab = self._tabs[index]
        futures: list[Future] = []
        for pane in tab.panes:
            with self._lock:
                book = self._panes.get(pane)
                needs_load = book is None or (book.last_loaded_path is None and book.load_scope is None)
            if needs_load:
                future = self.load_directory(pane, tab.take_focus_target(pane))
                if future is not None:
                    futures.append(future)
        return futures

    # panes
    def switch_pane(self) -> None:
        self.active_tab.is_left_active = not self.active_tab.is_left_active
        self.ui.refresh()

    def set_active_pane(self, is_left: bool) -> None:
        self.active_tab.is_left_active = is_left
        self.ui.refresh()

    def set_sort_mode(self, pane: PaneState, mode: SortMode) -> None:
        """Re-sort the current listing in place, keeping the selected entry."""
        current = pane.current_entry()
        pane.sort_mode = mode
        pane.entries = sort_entries(pane.entries, mode)
        if current is not None:
            self._focus(pane, current.name)
        pane.clamp_cursor()
        self.ui.refresh()

    def set_file_mask(self, pane: PaneState, mask: str | None) -> Future | None:
        pane.file_mask = mask.strip() if mask and mask.strip() else DEFAULT_FILE_MASK
        current = pane.current_entry()
        return self.load_directory(pane, current.name if current else None, skip_history=True)

    def change_directory(self, pane: PaneState, path: str, focus_target: str | None = None) -> Future | None:
        """Point ``pane`` at real directory ``path`` and load it."""
        target = os.path.abspath(os.path.expanduser(path))
        if not os.path.isdir(target):
            self.ui.set_status(f"Not a directory: {path}")
            return None
        pane.location = RealLocation(target)
        return self.load_directory(pane, focus_target)

    def navigate_to_parent(self, pane: PaneState) -> Future | None:
        """Load the parent directory with the cursor on the directory just left."""
        if pane.is_in_virtual_folder:
            return None
        path = pane.location.path
        parent = os.path.dirname(os.path.normpath(path))
        if not parent or _same_path(parent, path):
            return None
        return self.change_directory(pane, parent, os.path.basename(os.path.normpath(path)))

    def go_back(self, pane: PaneState) -> Future | None:
        tab = self.tab_for(pane)
        if tab is None:
            return None
        return self._recall(pane, tab.history.side(tab.is_left(pane)).go_back())

    def go_forward(self, pane: PaneState) -> Future | None:
        tab = self.tab_for(pane)
        if tab is None:
            return None
        return self._recall(pane, tab.history.side(tab.is_left(pane)).go_forward())

    def _recall(self, pane: PaneState, path: str | None) -> Future | None:
        if path is None:
            return None
        if not os.path.isdir(path):
            self.ui.set_status(f"Directory no longer exists: {path}")
            return None
        pane.location = RealLocation(path)
        return self.load_directory(pane, skip_history=True)

    def refresh_path(
        self,
        path: str,
        focus_target: str | None = None,
        preserve_marks: bool = False,
    ) -> list[Future]:
        """Invalidate ``path`` and reload every loaded real pane showing it."""
        self.directory_cache.invalidate(path)
        futures: list[Future] = []
        for tab in self._tabs:
            for pane in tab.panes:
                if pane.is_in_virtual_folder or not _same_path(pane.location.path, path):
                    continue
                with self._lock:
                    book = self._panes.get(pane)
                    loaded = book is not None and (book.last_loaded_path is not None or book.load_scope is not None)
                if not loaded:
                    continue
                current = pane.current_entry()
                marks = {entry.name for entry in pane.marked_entries()} if preserve_marks else None
                future = self.load_directory(
                    pane,
                    focus_target or (current.name if current else None),
                    preserve_marks=marks,
                    skip_history=True,
                )
                if future is not None:
                    futures.append(future)
        return futures

    # loading
    def submit(self, fn: Callable[..., object], *args: object) -> Future:
        """Run ``fn`` on the loader pool."""
        return self._executor.submit(fn, *args)

    def remember_position(self, pane: PaneState) -> None:
        """Store the cursor/scroll for the path the pane last finished loading.

        Nothing is stored while a load is in flight: the cursor then points
        into a partial listing of a different path.
        """
        with self._lock:
            book = self._panes.get(pane)
            if book is not None and book.last_loaded_path is not None and book.load_scope is None:
                self._positions[book.last_loaded_path] = (pane.cursor_position, pane.scroll_offset)

    def remembered_position(self, path: str) -> tuple[int, int] | None:
        with self._lock:
            return self._positions.get(path)

    def begin_load(self, pane: PaneState) -> CancelScope:
        """Cancel and close the pane's in-flight load, then register a new scope."""
        scope = CancelScope(pane.current_path)
        with self._lock:
            book = self._panes.setdefault(pane, _PaneBookkeeping())
            previous = book.load_scope
            book.load_scope = scope
        if previous is not None:
            LOGGER.debug("Superseded load %r", previous)
            previous.close()
        self.dispatcher.post(self.ui.update_status_bar)
        return scope

    def finish_load(self, pane: PaneState, scope: CancelScope) -> None:
        """Unregister ``scope`` if it is still the pane's current load."""
        with self._lock:
            book = self._panes.get(pane)
            if book is not None and book.load_scope is scope:
                book.load_scope = None
                scope.close()
        self.dispatcher.post(self.ui.update_status_bar)

    def is_loading(self, pane: PaneState) -> bool:
        with self._lock:
            book = self._panes.get(pane)
            return book is not None and book.load_scope is not None

    @property
    def is_any_pane_loading(self) -> bool:
        with self._lock:
            return any(book.load_scope is not None for book in self._panes.values())

    def _cancel_load(self, pane: PaneState) -> None:
        with self._lock:
            book = self._panes.get(pane)
            scope = book.load_scope if book is not None else None
            if book is not None:
                book.load_scope = None
        if scope is not None:
            scope.close()

    def mark_loaded(self, pane: PaneState, path: str) -> None:
        with self._lock:
            self._panes.setdefault(pane, _PaneBookkeeping()).last_loaded_path = path

    def _record_directory_mtime(self, pane: PaneState, path: str) -> None:
        mtime = directory_mtime_ns(path)
        with self._lock:
            self._panes.setdefault(pane, _PaneBookkeeping()).directory_mtime_ns = mtime

    def load_directory(
        self,
        pane: PaneState,
        focus_target: str | None = None,
        preserve_marks: Iterable[str] | None = None,
        scroll_offset: int | None = None,
        skip_history: bool = False,
    ) -> Future | None:
        """Load the pane's current location.

        Returns the worker ``Future`` for a background load, or ``None`` when
        the listing was served synchronously from ``DirectoryCache``. Must be
        called on the UI thread.
        """
        marks = set(preserve_marks) if preserve_marks is not None else None
        self.remember_position(pane)

        location = pane.location
        if isinstance(location, VirtualLocation):
            pane.set_entries([])
            self.ui.refresh()
            scope = self.begin_load(pane)
            return self._executor.submit(
                self._list_virtual, pane, location, scope, focus_target, marks, scroll_offset
            )

        path = location.path
        if not skip_history:
            tab = self.tab_for(pane)
            if tab is not None:
                tab.history.add(tab.is_left(pane), path)

        use_cache = not is_mask_active(pane.file_mask)
        if use_cache:
            cached = self.directory_cache.try_get(path)
            if cached is not None:
                self._cancel_load(pane)
                self.mark_loaded(pane, path)
                self._record_directory_mtime(pane, path)
                pane.set_entries(sort_entries(cached, pane.sort_mode), marks)
                self._restore_cursor(pane, focus_target, scroll_offset)
                self.ui.update_pane_stats(pane)
                self.ui.refresh()
                self.ui.update_status_bar()
                LOGGER.debug("Served %s from cache (%d entries)", path, len(cached))
                return None

        scope = self.begin_load(pane)
        self._record_directory_mtime(pane, path)
        return self._executor.submit(
            self._stream_directory,
            pane,
            path,
            pane.file_mask,
            use_cache,
            scope,
            focus_target,
            marks,
            scroll_offset,
        )

    def _stream_directory(
        self,
        pane: PaneState,
        path: str,
        mask: str,
        use_cache: bool,
        scope: CancelScope,
        focus_target: str | None,
        marks: set[str] | None,
        scroll_offset: int | None,
    ) -> None:
        """Worker: enumerate ``path`` and post batched updates to the UI thread."""
        shown: list[FileEntry] = []
        raw: list[FileEntry] = []
        batch: list[FileEntry] = []
        last_flush = self._monotonic()
        batch_size = self.settings.load_batch_size
        batch_seconds = self.settings.load_batch_seconds

        def apply_batch(items: list[FileEntry]) -> None:
            if scope.cancelled:
                return
            shown.extend(items)
            pane.set_entries(sort_entries(shown, pane.sort_mode), marks)
            self._restore_cursor(pane, focus_target, scroll_offset)
            self.ui.update_pane_stats(pane)
            self.ui.refresh()

        def apply_final(entries: list[FileEntry]) -> None:
            if scope.cancelled:
                return
            pane.set_entries(sort_entries(entries, pane.sort_mode), marks)
            if use_cache:
                self.directory_cache.add(path, raw)
            self.mark_loaded(pane, path)
            self._restore_cursor(pane, focus_target, scroll_offset)
            self.ui.update_pane_stats(pane)
            self.ui.refresh()

        try:
            for entry in self.file_system.enumerate_directory(path, scope):
                if scope.cancelled:
                    break
                raw.append(entry)
                batch.append(entry)
                now = self._monotonic()
                if len(batch) >= batch_size or now - last_flush >= batch_seconds:
                    flushed = apply_file_mask(batch, mask) if not use_cache else batch
                    batch = []
                    last_flush = now
                    if flushed:
                        self.dispatcher.post(lambda items=flushed: apply_batch(items))
            if scope.cancelled:
                LOGGER.debug("Load of %s cancelled", path)
                return
            final = raw if use_cache else apply_file_mask(raw, mask)
            self.dispatcher.post(lambda: apply_final(list(final)))
        except Exception as exc:
            if scope.cancelled:
                return
            LOGGER.warning("Failed to load %s: %s", path, exc)
            self.dispatcher.post(lambda error=exc: self._report_load_error(scope, "Error loading directory", error))
        finally:
            self.dispatcher.post(lambda: self.finish_load(pane, scope))

    def _list_virtual(
        self,
        pane: PaneState,
        location: VirtualLocation,
        scope: CancelScope,
        focus_target: str | None,
        marks: set[str] | None,
        scroll_offset: int | None,
    ) -> None:
        """Worker: list one archive directory level into ``pane``."""

        def apply(entries: list[FileEntry]) -> None:
            if scope.cancelled:
                return
            pane.set_entries(sort_entries(entries, pane.sort_mode), marks)
            self.mark_loaded(pane, pane.current_path)
            self._restore_cursor(pane, focus_target, scroll_offset)
            self.ui.update_pane_stats(pane)
            self.ui.refresh()

        try:
            entries = self.archive_manager.list_archive_contents(
                location.archive_path, location.internal_path, scope
            )
            if not scope.cancelled:
                self.dispatcher.post(lambda: apply(entries))
        except Exception as exc:
            if not scope.cancelled:
                LOGGER.warning("Failed to list %s: %s", location.display_path, exc)
                self.dispatcher.post(lambda error=exc: self._report_load_error(scope, "Error reading archive", error))
        finally:
            self.dispatcher.post(lambda: self.finish_load(pane, scope))

    def _report_load_error(self, scope: CancelScope, message: str, exc: BaseException) -> None:
        if scope.cancelled:
            return
        self.ui.report_error(message, exc)
        self.ui.set_status(f"{message}: {exc}")

    # cursor
    @staticmethod
    def _focus(pane: PaneState, name: str) -> bool:
        folded = name.casefold()
        for index, entry in enumerate(pane.entries):
            if entry.name.casefold() == folded:
                pane.cursor_position = index
                return True
        return False

    def _restore_cursor(
        self,
        pane: PaneState,
        focus_target: str | None,
        scroll_offset: int | None,
    ) -> None:
        """Focus target, then explicit scroll, then remembered position, then top."""
        if focus_target and self._focus(pane, focus_target):
            if scroll_offset is not None:
                pane.scroll_offset = max(0, scroll_offset)
            elif pane.scroll_offset > pane.cursor_position:
                pane.scroll_offset = pane.cursor_position
            pane.clamp_cursor()
            return

        if scroll_offset is not None:
            pane.scroll_offset = max(0, scroll_offset)
            if pane.cursor_position < pane.scroll_offset:
                pane.cursor_position = pane.scroll_offset
            pane.clamp_cursor()
            return

        remembered = self.remembered_position(pane.current_path)
        if remembered is not None:
            pane.cursor_position, pane.scroll_offset = remembered
            pane.clamp_cursor()
            return

        pane.cursor_position = 0
        pane.scroll_offset = 0

    # session
    @staticmethod
    def _session_location(pane: PaneState) -> tuple[str, str | None]:
        location = pane.location
        if isinstance(location, VirtualLocation):
            return location.parent_path, location.archive_name
        current = pane.current_entry()
        return location.path, current.name if current else None

    def get_session_state(self) -> SessionState:
        """Snapshot every tab; virtual panes are saved as their real parent."""
        tabs: list[TabSessionState] = []
        for tab in self._tabs:
            left_path, left_target = self._session_location(tab.left)
            right_path, right_target = self._session_location(tab.right)
            tabs.append(
                TabSessionState(
                    left_path=left_path,
                    right_path=right_path,
                    left_focus_target=left_target,
                    right_focus_target=right_target,
                    left_mask=tab.left.file_mask,
                    right_mask=tab.right.file_mask,
                    left_sort=tab.left.sort_mode,
                    right_sort=tab.right.sort_mode,
                    left_display_mode=tab.left.display_mode,
                    right_display_mode=tab.right.display_mode,
                    left_pane_active=tab.is_left_active,
                    left_history=tab.history.left.entries,
                    right_history=tab.history.right.entries,
                )
            )
        return SessionState(tabs=tabs, active_tab_index=self._active_tab_index)

    def _tab_from_state(self, state: TabSessionState) -> TabSession:
        tab = self._make_tab(
            state.left_path or self.settings.start_directory,
            state.right_path or self.settings.start_directory,
        )
        for pane, mask, sort_mode, display_mode in (
            (tab.left, state.left_mask, state.left_sort, state.left_display_mode),
            (tab.right, state.right_mask, state.right_sort, state.right_display_mode),
        ):
            pane.file_mask = mask or DEFAULT_FILE_MASK
            pane.sort_mode = sort_mode
            pane.display_mode = display_mode
        tab.left_focus_target = state.left_focus_target
        tab.right_focus_target = state.right_focus_target
        tab.is_left_active = state.left_pane_active
        tab.history.set_history(True, state.left_history)
        tab.history.set_history(False, state.right_history)
        return tab

    def restore_session(self, state: SessionState | None) -> list[Future]:
        """Replace all tabs with ``state`` and load the active tab's panes.

        Other tabs keep their focus targets until they are first shown.
        """
        if state is None or not state.tabs:
            return []
        with self._lock:
            scopes = [book.load_scope for book in self._panes.values() if book.load_scope is not None]
            self._panes.clear()
        for scope in scopes:
            scope.close()

        self._tabs = [self._tab_from_state(tab_state) for tab_state in state.tabs]
        self._renumber_tabs()
        index = state.active_tab_index
        self._active_tab_index = index if 0 <= index < len(self._tabs) else 0
        futures = self._ensure_tab_loaded(self._active_tab_index)
        self.ui.refresh()
        return futures

    # change polling
    def check_for_updates(self) -> int:
        """Silently reload real panes whose directory timestamp moved; return how many."""
        stale: list[PaneState] = []
        for tab in self._tabs:
            for pane in tab.panes:
                if pane.is_in_virtual_folder:
                    continue
                current = directory_mtime_ns(pane.location.path)
                if current is None:
                    continue
                with self._lock:
                    book = self._panes.get(pane)
                    if book is None:
                        continue
                    if book.directory_mtime_ns is None:
                        book.directory_mtime_ns = current
                    elif current != book.directory_mtime_ns:
                        stale.append(pane)
        for pane in stale:
            LOGGER.debug("Directory changed, reloading %s", pane.current_path)
            self.directory_cache.invalidate(pane.location.path)
            self.load_directory(pane, skip_history=True)
        return len(stale)

    def shutdown(self) -> None:
        with self._lock:
            scopes = [book.load_scope for book in self._panes.values() if book.load_scope is not None]
            for book in self._panes.values():
                book.load_scope = None
        for scope in scopes:
            scope.close()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)


__all__ = ["PaneController", "tab_name"]
