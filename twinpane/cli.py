"""Command-line front door for twinpane.

Builds the pane engine headlessly, loads a directory (or an archive as a
virtual folder) into the left pane, pumps the UI dispatcher until loading
settles and prints the listing.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass

from .archive.manager import ArchiveManager
from .file_model.cache import DirectoryCache
from .file_model.fs import FileSystemProvider
from .file_model.sorting import SortMode
from .pane.archive_controller import ArchiveController
from .pane.controller import PaneController
from .pane.state import PaneState
from .runtime.config import LOG_DIR, Settings, load_session_state, load_settings, save_session_state
from .runtime.dispatch import UiDispatcher
from .runtime.jobs import JobManager
from .runtime.ports import UiPort

LOGGER = logging.getLogger(__name__)

LOG_FILENAME = "twinpane.log"
LOAD_TIMEOUT_SECONDS = 30.0


@dataclass
class Engine:
    """Fully wired controller stack sharing one dispatcher."""

    dispatcher: UiDispatcher
    panes: PaneController
    archives: ArchiveController
    jobs: JobManager

    def wait_for_loads(self, timeout_seconds: float = LOAD_TIMEOUT_SECONDS) -> bool:
        return self.dispatcher.pump_until(lambda: not self.panes.is_any_pane_loading, timeout_seconds)

    def shutdown(self) -> None:
        self.jobs.shutdown()
        self.panes.shutdown()


def build_engine(settings: Settings, ui: UiPort | None = None) -> Engine:
    dispatcher = UiDispatcher()
    archive_manager = ArchiveManager()
    jobs = JobManager(settings.max_simultaneous_jobs)
    panes = PaneController(
        settings,
        FileSystemProvider(show_hidden=settings.show_hidden),
        archive_manager,
        DirectoryCache(settings.directory_cache_capacity),
        dispatcher,
        ui,
    )
    return Engine(
        dispatcher=dispatcher,
        panes=panes,
        archives=ArchiveController(panes, archive_manager, jobs),
        jobs=jobs,
    )


def format_listing(pane: PaneState) -> str:
    """Render a pane as ``<DIR>``/size and name columns with a summary line."""
    lines = [pane.current_path]
    for index, entry in enumerate(pane.entries):
        marker = ">" if index == pane.cursor_position else " "
        size = "<DIR>" if entry.is_directory else str(entry.size)
        lines.append(f"{marker} {size:>12}  {entry.name}")
    stats = pane.stats
    lines.append(
        f"{stats.directory_count} dir(s), {stats.file_count} file(s), {stats.total_file_bytes} bytes"
    )
    return "\n".join(lines) + "\n"


def _configure_logging(level_name: str, to_stderr: bool) -> None:
    level = getattr(logging, level_name.upper(), logging.WARNING)
    log_format = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    if to_stderr:
        logging.basicConfig(level=level, format=log_format, stream=sys.stderr)
        return
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        logging.basicConfig(level=level, format=log_format, filename=str(LOG_DIR / LOG_FILENAME))
    except OSError:
        logging.basicConfig(level=level, format=log_format, stream=sys.stderr)


def _stderr_ui() -> UiPort:
    def report_error(message: str, exc: BaseException | None) -> None:
        sys.stderr.write(f"{message}: {exc}\n" if exc is not None else f"{message}\n")

    def set_status(message: str) -> None:
        sys.stderr.write(f"{message}\n")

    return UiPort(report_error=report_error, set_status=set_status)


def _open_path(engine: Engine, target: str, inside: str | None) -> None:
    pane = engine.panes.left_pane
    manager = engine.archives.archive_manager
    if os.path.isfile(target) and manager.is_archive(target):
        engine.panes.change_directory(pane, os.path.dirname(target), os.path.basename(target))
        engine.wait_for_loads()
        engine.archives.open_archive_as_virtual_folder(pane, target)
        engine.wait_for_loads()
        for segment in (inside or "").replace("\\", "/").split("/"):
            if segment and pane.is_in_virtual_folder:
                engine.archives.navigate_into_virtual_directory(pane, segment)
                engine.wait_for_loads()
        return
    if inside:
        raise SystemExit("--inside requires PATH to be an archive")
    engine.panes.change_directory(pane, target)
    engine.wait_for_loads()


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments, load the requested location and print it."""
    parser = argparse.ArgumentParser(description="List a directory or archive through the twinpane engine.")
    parser.add_argument("path", nargs="?", default=None, help="Directory or archive. Defaults to the start directory.")
    parser.add_argument("--mask", default=None, help="Space-separated file mask, e.g. '*.py :test_*'.")
    parser.add_argument(
        "--sort",
        default=None,
        help=f"Sort mode ({', '.join(mode.value for mode in SortMode)}).",
    )
    parser.add_argument("--inside", default=None, metavar="INTERNAL/PATH", help="Directory to open inside an archive.")
    parser.add_argument("--restore-session", action="store_true", help="Resume the last saved session.")
    parser.add_argument("--save-session", action="store_true", help="Save the session before exiting.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING).")
    parser.add_argument("--log-stderr", action="store_true", help="Log to stderr instead of the log file.")
    args = parser.parse_args(argv)

    _configure_logging(args.log_level, args.log_stderr)
    settings = load_settings()
    engine = build_engine(settings, _stderr_ui())
    try:
        pane = engine.panes.left_pane
        if args.mask:
            pane.file_mask = args.mask
        if args.sort:
            pane.sort_mode = SortMode.parse(args.sort, pane.sort_mode)

        if args.restore_session and args.path is None:
            state = load_session_state()
            if state is not None:
                engine.panes.restore_session(state)
            else:
                engine.panes.load_active_tab()
            engine.wait_for_loads()
        else:
            target = os.path.abspath(os.path.expanduser(args.path or settings.start_directory))
            if not os.path.exists(target):
                raise SystemExit(f"Path not found: {target}")
            _open_path(engine, target, args.inside)

        if not engine.wait_for_loads():
            LOGGER.warning("Timed out waiting for pane loads")
        sys.stdout.write(format_listing(engine.panes.active_pane))

        if args.save_session:
            save_session_state(engine.panes.get_session_state())
    finally:
        engine.shutdown()
