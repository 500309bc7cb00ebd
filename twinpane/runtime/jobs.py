"""Background job manager for long-running file and archive operations.

Jobs run on a bounded thread pool, report throttled progress, carry their
own cancellation scope and advertise the filesystem paths they touch.
"""

from __future__ import annotations

import itertools
import logging
import os
import threading
import time
import uuid
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from enum import Enum

from ..errors import PathBusyError
from .cancellation import CancelScope

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_SIMULTANEOUS_JOBS = 4
DEFAULT_UPDATE_INTERVAL_SECONDS = 0.3

_AUDIT_VERBS = ("Deleted", "Renamed", "Copied", "Moved", "Skipped", "Failed", "Created", "Extracted", "Compressed")


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class JobProgress:
    """One progress report from a running job."""

    percent: float = 0.0
    message: str = ""
    detail: str = ""
    current_item_path: str = ""


_short_ids = itertools.count(1)


@dataclass(eq=False)
class BackgroundJob:
    name: str
    description: str
    tab_id: int = -1
    tab_name: str = ""
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    short_id: int = field(default_factory=lambda: next(_short_ids))
    status: JobStatus = JobStatus.PENDING
    progress_percent: float = 0.0
    progress_message: str = ""
    progress_detail: str = ""
    current_item_path: str = ""
    related_paths: set[str] = field(default_factory=set)
    started_at: float = field(default_factory=time.time)
    ended_at: float | None = None
    cancel_scope: CancelScope = field(default_factory=CancelScope)
    _related_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def is_active(self) -> bool:
        return self.status in (JobStatus.PENDING, JobStatus.RUNNING)

    def add_related_path(self, path: str) -> None:
        """Mark ``path`` as touched by this job. Safe from the job's worker."""
        if not path:
            return
        with self._related_lock:
            self.related_paths.add(os.path.normpath(path))

    def related_paths_snapshot(self) -> set[str]:
        with self._related_lock:
            return set(self.related_paths)


JobAction = Callable[[BackgroundJob, CancelScope, Callable[[JobProgress], None]], None]


class JobManager:
    """Run named, cancellable, progress-reporting background tasks."""

    def __init__(
        self,
        max_simultaneous_jobs: int = DEFAULT_MAX_SIMULTANEOUS_JOBS,
        update_interval_seconds: float = DEFAULT_UPDATE_INTERVAL_SECONDS,
        *,
        on_job_event: Callable[[BackgroundJob], None] | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.update_interval_seconds = update_interval_seconds
        self.on_job_event = on_job_event
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._jobs: dict[str, BackgroundJob] = {}
        self._futures: dict[str, Future] = {}
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_simultaneous_jobs),
            thread_name_prefix="twinpane-job",
        )

    def start_job(
        self,
        name: str,
        description: str,
        tab_id: int,
        tab_name: str,
        action: JobAction,
        *related_paths: str,
        guard_paths: Iterable[str] = (),
    ) -> BackgroundJob:
        """Register ``action`` as a job and schedule it on the pool.

        ``guard_paths`` are compared with the busy set and the job is
        registered under the same lock, so two jobs can never claim the
        same path. On collision ``PathBusyError`` is raised and nothing runs.
        """
        job = BackgroundJob(name=name, description=description, tab_id=tab_id, tab_name=tab_name)
        for path in related_paths:
            job.add_related_path(path)

        guarded = {os.path.normpath(path) for path in guard_paths if path}
        with self._lock:
            if guarded:
                collisions = self._busy_paths_locked() & guarded
                if collisions:
                    raise PathBusyError(collisions)
            for path in guarded:
                job.add_related_path(path)
            self._jobs[job.job_id] = job
            self._futures[job.job_id] = self._executor.submit(self._run, job, action)
        self._notify(job)
        return job

    def _run(self, job: BackgroundJob, action: JobAction) -> None:
        scope = job.cancel_scope
        if scope.cancelled:
            self._finish(job, JobStatus.CANCELLED, "Cancelled")
            return
        job.status = JobStatus.RUNNING
        self._notify(job)

        last_update = 0.0

        def report(progress: JobProgress) -> None:
            nonlocal last_update
            job.progress_percent = progress.percent
            job.progress_message = progress.message
            job.progress_detail = progress.detail
            if progress.current_item_path:
                job.current_item_path = progress.current_item_path
                job.add_related_path(progress.current_item_path)
            if progress.message.startswith(_AUDIT_VERBS):
                LOGGER.info("Executing: %s %s", progress.message.split(" ", 1)[0], progress.current_item_path)
            now = self._monotonic()
            if now - last_update >= self.update_interval_seconds:
                last_update = now
                self._notify(job)

        try:
            action(job, scope, report)
        except Exception as exc:
            LOGGER.error("Job %r failed. Stopped at: %s", job.name, job.current_item_path, exc_info=exc)
            self._finish(job, JobStatus.FAILED, f"Failed: {exc}")
            return

        if scope.cancelled:
            LOGGER.warning("Job %r cancelled. Stopped at: %s", job.name, job.current_item_path)
            self._finish(job, JobStatus.CANCELLED, "Cancelled")
            return
        job.progress_percent = 100.0
        LOGGER.info("Job %r completed successfully", job.name)
        self._finish(job, JobStatus.COMPLETED, "Completed")

    def _finish(self, job: BackgroundJob, status: JobStatus, message: str) -> None:
        job.status = status
        job.progress_message = message
        job.ended_at = time.time()
        self._notify(job)

    def _notify(self, job: BackgroundJob) -> None:
        if self.on_job_event is None:
            return
        try:
            self.on_job_event(job)
        except Exception:
            LOGGER.exception("Job listener failed for %r", job.name)

    def cancel_job(self, job_id: str) -> bool:
        """Request cancellation; the job reaches ``CANCELLED`` when its action returns."""
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None or not job.is_active:
            return False
        job.cancel_scope.cancel()
        return True

    def get_job(self, job_id: str) -> BackgroundJob | None:
        with self._lock:
            return self._jobs.get(job_id)

    def get_all_jobs(self) -> list[BackgroundJob]:
        with self._lock:
            jobs = list(self._jobs.values())
        return sorted(jobs, key=lambda job: (job.started_at, job.short_id))

    def get_active_jobs(self) -> list[BackgroundJob]:
        return [job for job in self.get_all_jobs() if job.is_active]

    def is_tab_busy(self, tab_id: int) -> bool:
        return self.active_job_count(tab_id) > 0

    def active_job_count(self, tab_id: int) -> int:
        return sum(1 for job in self.get_active_jobs() if job.tab_id == tab_id)

    def _busy_paths_locked(self) -> set[str]:
        busy: set[str] = set()
        for job in self._jobs.values():
            if not job.is_active:
                continue
            if job.current_item_path:
                busy.add(os.path.normpath(job.current_item_path))
            busy.update(job.related_paths_snapshot())
        return busy

    def get_busy_paths(self) -> set[str]:
        """Return every path referenced by a pending or running job."""
        with self._lock:
            return self._busy_paths_locked()

    def wait(self, job: BackgroundJob, timeout: float | None = None) -> bool:
        """Block until ``job`` has finished; return whether it did in time."""
        with self._lock:
            future = self._futures.get(job.job_id)
        if future is None:
            return not job.is_active
        try:
            future.result(timeout=timeout)
        except FutureTimeoutError:
            return False
        return True

    def shutdown(self, cancel_running: bool = True) -> None:
        if cancel_running:
            for job in self.get_active_jobs():
                job.cancel_scope.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)


__all__ = [
    "BackgroundJob",
    "JobAction",
    "JobManager",
    "JobProgress",
    "JobStatus",
]
