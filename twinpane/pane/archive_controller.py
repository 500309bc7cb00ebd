"""Archives as virtual folders, and archive jobs.

Browsing reuses ``PaneController``'s load discipline. Extraction,
compression, copy-out and delete run as ``JobManager`` jobs; their effects
reach panes only through ``PaneController.refresh_path`` posted to the UI
thread.
"""

from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import replace

from ..archive.manager import ArchiveManager
from ..archive.types import ArchiveProgress
from ..errors import ArchiveError, PathBusyError
from ..file_model.sorting import sort_entries
from ..file_model.types import FileEntry
from ..runtime.cancellation import CancelScope
from ..runtime.jobs import BackgroundJob, JobAction, JobManager, JobProgress
from .controller import PaneController
from .state import PaneState, RealLocation, VirtualLocation

LOGGER = logging.getLogger(__name__)


def _remove_if_exists(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        LOGGER.warning("Could not remove temporary file %s: %s", path, exc)


class ArchiveController:
    def __init__(
        self,
        panes: PaneController,
        archive_manager: ArchiveManager,
        jobs: JobManager,
    ) -> None:
        self.panes = panes
        self.archive_manager = archive_manager
        self.jobs = jobs

    @property
    def ui(self):
        return self.panes.ui

    @property
    def dispatcher(self):
        return self.panes.dispatcher

    # browsing
    def open_archive_as_virtual_folder(self, pane: PaneState, archive_path: str) -> Future | None:
        """List the archive root and switch ``pane`` into it once listed.

        The pane keeps its real location until the listing succeeds, so a
        failure leaves it unchanged apart from a reported error.
        """
        if pane.is_in_virtual_folder:
            return None
        parent_path = pane.location.path
        self.panes.remember_position(pane)
        scope = self.panes.begin_load(pane)
        return self.panes.submit(self._open_worker, pane, archive_path, parent_path, scope)

    def _open_worker(self, pane: PaneState, archive_path: str, parent_path: str, scope: CancelScope) -> None:
        def apply(entries: list[FileEntry]) -> None:
            if scope.cancelled:
                return
            pane.location = VirtualLocation(archive_path=archive_path, internal_path="", parent_path=parent_path)
            pane.set_entries(sort_entries(entries, pane.sort_mode))
            pane.cursor_position = 0
            pane.scroll_offset = 0
            self.panes.mark_loaded(pane, pane.current_path)
            self.ui.update_pane_stats(pane)
            self.ui.refresh()
            LOGGER.debug("Viewing archive %s (%d entries)", archive_path, len(entries))

        def fail(error: BaseException) -> None:
            if scope.cancelled:
                return
            self.ui.report_error("Error opening archive", error)
            self.ui.set_status(f"Error opening archive: {error}")
            self.ui.refresh()

        try:
            entries = self.archive_manager.list_archive_contents(archive_path, "", scope)
            if not scope.cancelled:
                self.dispatcher.post(lambda: apply(entries))
        except Exception as exc:
            LOGGER.warning("Failed to open archive %s: %s", archive_path, exc)
            self.dispatcher.post(lambda error=exc: fail(error))
        finally:
            self.dispatcher.post(lambda: self.panes.finish_load(pane, scope))

    def navigate_into_virtual_directory(self, pane: PaneState, dir_name: str) -> Future | None:
        location = pane.location
        if not isinstance(location, VirtualLocation) or not dir_name:
            return None
        inner = location.internal_path.rstrip("/")
        pane.location = replace(location, internal_path=f"{inner}/{dir_name}" if inner else dir_name)
        return self.panes.load_directory(pane)

    def navigate_up_in_virtual_folder(self, pane: PaneState) -> Future | None:
        """Pop one level inside the archive; no-op at the archive root."""
        location = pane.location
        if not isinstance(location, VirtualLocation) or not location.internal_path:
            return None
        parent, _, popped = location.internal_path.rstrip("/").rpartition("/")
        pane.location = replace(location, internal_path=parent)
        return self.panes.load_directory(pane, popped)

    def exit_virtual_folder(self, pane: PaneState) -> Future | None:
        """Return to the real directory holding the archive, cursor on the archive."""
        location = pane.location
        if not isinstance(location, VirtualLocation) or not location.parent_path:
            return None
        LOGGER.debug("Exiting archive, returning to %s", location.parent_path)
        pane.location = RealLocation(location.parent_path)
        return self.panes.load_directory(pane, location.archive_name)

    def navigate_up(self, pane: PaneState) -> Future | None:
        """Go up one level: inside the archive, out of it, or to the real parent."""
        location = pane.location
        if isinstance(location, VirtualLocation):
            if location.internal_path:
                return self.navigate_up_in_virtual_folder(pane)
            return self.exit_virtual_folder(pane)
        return self.panes.navigate_to_parent(pane)

    def enter_current(self, pane: PaneState) -> Future | None:
        """Open the entry under the cursor if it is a directory or an archive."""
        entry = pane.current_entry()
        if entry is None:
            return None
        if pane.is_in_virtual_folder:
            if entry.is_directory:
                return self.navigate_into_virtual_directory(pane, entry.name)
            return None
        if entry.is_directory:
            return self.panes.change_directory(pane, entry.full_path)
        if self.archive_manager.is_archive(entry.full_path):
            return self.open_archive_as_virtual_folder(pane, entry.full_path)
        return None

    # jobs
    def _start_job(
        self,
        pane: PaneState,
        name: str,
        description: str,
        action: JobAction,
        *related_paths: str,
        guard_paths: tuple[str, ...] = (),
    ) -> BackgroundJob | None:
        tab = self.panes.tab_for(pane)
        tab_id = tab.tab_id if tab is not None else -1
        tab_label = tab.name if tab is not None else ""
        try:
            return self.jobs.start_job(
                name, description, tab_id, tab_label, action, *related_paths, guard_paths=guard_paths
            )
        except PathBusyError as exc:
            self.ui.set_status(f"{name} refused: {exc}")
            return None

    def _progress_handler(
        self,
        job: BackgroundJob,
        report: Callable[[JobProgress], None],
        verb: str,
        destination: str | None = None,
        on_first: Callable[[], None] | None = None,
    ) -> Callable[[ArchiveProgress], None]:
        first = [True]

        def handle(progress: ArchiveProgress) -> None:
            if progress.current_full_path:
                job.add_related_path(progress.current_full_path)
                if destination is not None:
                    relative = os.path.relpath(progress.current_full_path, destination)
                    if not relative.startswith(".."):
                        ancestor = destination
                        for part in relative.split(os.sep)[:-1]:
                            ancestor = os.path.join(ancestor, part)
                            job.add_related_path(ancestor)
            detail = f"{progress.processed_files}/{progress.total_files}" if progress.total_files else ""
            report(
                JobProgress(
                    percent=progress.percent,
                    message=f"{verb} {progress.current_file}",
                    detail=detail,
                    current_item_path=progress.current_full_path,
                )
            )
            if first[0] and on_first is not None:
                first[0] = False
                on_first()

        return handle

    def _post_refresh(self, path: str, focus_target: str | None = None) -> None:
        self.dispatcher.post(lambda: self.panes.refresh_path(path, focus_target, preserve_marks=True))

    def _post_status(self, message: str) -> None:
        self.dispatcher.post(lambda: self.ui.set_status(message))

    def _real_destination(self, target_pane: PaneState) -> str | None:
        if target_pane.is_in_virtual_folder:
            self.ui.set_status("Destination is inside an archive")
            return None
        return target_pane.location.path

    def handle_extraction(self, pane: PaneState, target_pane: PaneState) -> Future | None:
        """Extract the archive under the cursor into ``target_pane``'s directory.

        The archive is peeked for top-level name clashes on the loader pool.
        The returned ``Future`` resolves on the UI thread, after the
        confirmations, to the started job or ``None``.
        """
        entry = pane.current_entry()
        if entry is None or pane.is_in_virtual_folder:
            return None
        if not self.archive_manager.is_archive(entry.full_path):
            self.ui.set_status("Not an archive file")
            return None
        destination = self._real_destination(target_pane)
        if destination is None:
            return None

        outcome: Future = Future()
        self.panes.submit(self._peek_extraction, pane, entry, destination, outcome)
        return outcome

    def _peek_extraction(self, pane: PaneState, entry: FileEntry, destination: str, outcome: Future) -> None:
        conflict = None
        try:
            if os.path.isdir(destination):
                conflict = next(
                    (
                        os.path.join(destination, item.name)
                        for item in self.archive_manager.list_archive_contents(entry.full_path, "")
                        if os.path.lexists(os.path.join(destination, item.name))
                    ),
                    None,
                )
        except Exception as exc:
            LOGGER.warning("Failed to peek into archive %s: %s", entry.full_path, exc)

        def resume() -> None:
            try:
                outcome.set_result(self._confirm_extraction(pane, entry, destination, conflict))
            except Exception as exc:
                outcome.set_exception(exc)
                raise

        self.dispatcher.post(resume)

    def _confirm_extraction(
        self, pane: PaneState, entry: FileEntry, destination: str, conflict: str | None
    ) -> BackgroundJob | None:
        if conflict is not None and not self.ui.confirm(
            "Overwrite Warning",
            f"The item '{conflict}' already exists in the destination. Overwrite existing files?",
        ):
            self.ui.set_status("Extraction cancelled")
            return None

        if not self.ui.confirm("Extract Archive", f"Extract '{entry.name}' to '{destination}'?"):
            self.ui.set_status("Extraction cancelled")
            return None

        archive_path = entry.full_path

        def action(job: BackgroundJob, cancel: CancelScope, report: Callable[[JobProgress], None]) -> None:
            progress = self._progress_handler(
                job, report, "Extracting", destination, on_first=lambda: self._post_refresh(destination)
            )
            result = self.archive_manager.extract(archive_path, destination, progress, cancel)
            self._post_refresh(destination)
            if cancel.cancelled or result.cancelled:
                self._post_status("Extraction cancelled")
                return
            if not result.success:
                self._post_status(f"Extraction failed: {result.message}")
                raise ArchiveError(result.message)
            self._post_status(f"Extracted {result.files_processed} item(s) from {entry.name}")

        return self._start_job(
            pane, "Extract", entry.name, action, archive_path, destination, guard_paths=(archive_path,)
        )

    def handle_compression(self, pane: PaneState, target_pane: PaneState) -> BackgroundJob | None:
        """Compress marked (or current) entries into ``target_pane``'s directory.

        The archive is written under a unique ``.tmp`` name beside the final
        path and renamed over it only after success.
        """
        if pane.is_in_virtual_folder:
            self.ui.set_status("Cannot compress entries inside an archive")
            return None
        sources = pane.selected_or_current()
        if not sources:
            self.ui.set_status("No files to compress")
            return None
        destination = self._real_destination(target_pane)
        if destination is None:
            return None

        request = self.ui.choose_compression(sources, self.archive_manager.supported_formats())
        if request is None or not request.archive_name:
            self.ui.set_status("Compression cancelled")
            return None

        archive_name = os.path.basename(request.archive_name)
        archive_path = os.path.join(destination, archive_name)
        if os.path.exists(archive_path) and not self.ui.confirm(
            "Overwrite Warning", f"Archive '{archive_name}' already exists. Overwrite?"
        ):
            self.ui.set_status("Compression cancelled")
            return None

        temp_path = f"{archive_path}.{uuid.uuid4().hex}.tmp"
        original_size = sum(entry.size for entry in sources if not entry.is_directory)

        def action(job: BackgroundJob, cancel: CancelScope, report: Callable[[JobProgress], None]) -> None:
            progress = self._progress_handler(
                job, report, "Compressing", on_first=lambda: self._post_refresh(destination)
            )
            try:
                result = self.archive_manager.compress(
                    sources, temp_path, request.archive_format, request.level, progress, cancel
                )
                if cancel.cancelled or result.cancelled:
                    _remove_if_exists(temp_path)
                    self._post_status("Compression cancelled")
                    return
                if not result.success:
                    _remove_if_exists(temp_path)
                    self._post_status(f"Compression failed: {result.message}")
                    raise ArchiveError(result.message)
                os.replace(temp_path, archive_path)
            except BaseException:
                _remove_if_exists(temp_path)
                raise
            finally:
                self._post_refresh(destination, archive_name)

            message = f"Compressed {result.files_processed} file(s) into {archive_name}"
            try:
                compressed_size = os.path.getsize(archive_path)
            except OSError:
                compressed_size = 0
            if original_size > 0 and compressed_size > 0:
                message += f" ({compressed_size * 100 // original_size}% of original)"
            self._post_status(message)

        return self._start_job(
            pane,
            "Compress",
            archive_name,
            action,
            temp_path,
            destination,
            guard_paths=(archive_path, *(entry.full_path for entry in sources)),
        )

    def _virtual_selection(self, pane: PaneState) -> tuple[VirtualLocation, list[FileEntry], list[str]] | None:
        location = pane.location
        if not isinstance(location, VirtualLocation):
            return None
        entries = pane.selected_or_current()
        if not entries:
            self.ui.set_status("Nothing selected")
            return None
        keys = [self.archive_manager.entry_key(location.archive_path, entry.full_path) for entry in entries]
        return location, entries, keys

    def handle_archive_copy_out(self, pane: PaneState, target_pane: PaneState) -> BackgroundJob | None:
        """Extract the selected virtual entries into ``target_pane``'s directory."""
        selection = self._virtual_selection(pane)
        if selection is None:
            return None
        location, entries, keys = selection
        destination = self._real_destination(target_pane)
        if destination is None:
            return None

        conflict = next(
            (os.path.join(destination, e.name) for e in entries if os.path.lexists(os.path.join(destination, e.name))),
            None,
        )
        if conflict is not None and not self.ui.confirm(
            "Overwrite Warning", f"The item '{conflict}' already exists in the destination. Overwrite?"
        ):
            self.ui.set_status("Copy cancelled")
            return None

        archive_path = location.archive_path

        def action(job: BackgroundJob, cancel: CancelScope, report: Callable[[JobProgress], None]) -> None:
            progress = self._progress_handler(job, report, "Extracting", destination)
            result = self.archive_manager.extract_entries(archive_path, keys, destination, progress, cancel)
            self._post_refresh(destination)
            if cancel.cancelled or result.cancelled:
                self._post_status("Copy cancelled")
                return
            if not result.success:
                self._post_status(f"Copy failed: {result.message}")
                raise ArchiveError(result.message)
            self._post_status(f"Copied {result.files_processed} item(s) out of {location.archive_name}")

        description = entries[0].name if len(entries) == 1 else f"{len(entries)} items"
        return self._start_job(pane, "Copy", description, action, archive_path, destination)

    def handle_archive_delete(self, pane: PaneState) -> BackgroundJob | None:
        """Remove the selected virtual entries from the archive, then reload the pane."""
        selection = self._virtual_selection(pane)
        if selection is None:
            return None
        location, entries, keys = selection
        if not self.ui.confirm("Delete", f"Delete {len(entries)} item(s) from {location.archive_name}?"):
            self.ui.set_status("Delete cancelled")
            return None

        archive_path = location.archive_path

        def reload_virtual() -> None:
            if pane.location == location:
                self.panes.load_directory(pane, skip_history=True)

        def action(job: BackgroundJob, cancel: CancelScope, report: Callable[[JobProgress], None]) -> None:
            report(JobProgress(message=f"Deleting from {location.archive_name}", current_item_path=archive_path))
            result = self.archive_manager.delete_entries(archive_path, keys, cancel)
            if cancel.cancelled or result.cancelled:
                self._post_status("Delete cancelled")
                return
            if not result.success:
                self._post_status(f"Delete failed: {result.message}")
                raise ArchiveError(result.message)
            self.dispatcher.post(reload_virtual)
            self._post_refresh(location.parent_path, location.archive_name)
            self._post_status(f"Deleted {result.files_processed} item(s) from {location.archive_name}")

        description = entries[0].name if len(entries) == 1 else f"{len(entries)} items"
        return self._start_job(pane, "Delete", description, action, archive_path, guard_paths=(archive_path,))


__all__ = ["ArchiveController"]
