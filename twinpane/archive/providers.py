"""Format-specific archive readers and writers.

Each provider lists an archive as flat ``ArchiveMember`` records, extracts
selected members, compresses real files and rewrites an archive without
some members. Member keys are always ``/``-separated.
"""

from __future__ import annotations

import logging
import lzma
import os
import shutil
import tarfile
import tempfile
import time
import uuid
import zipfile
import zlib
from collections.abc import Collection, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import IO, Any

import py7zr
import py7zr.exceptions

from ..runtime.cancellation import CancelScope
from .types import (
    ArchiveFormat,
    ArchiveMember,
    ArchiveProgress,
    OperationResult,
    ProgressCallback,
    format_for_path,
)

LOGGER = logging.getLogger(__name__)

ARCHIVE_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    EOFError,
    ValueError,
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    tarfile.TarError,
    lzma.LZMAError,
    zlib.error,
    py7zr.exceptions.ArchiveError,
    py7zr.exceptions.PasswordRequired,
)

_COPY_CHUNK = 1024 * 1024


def normalize_key(name: str) -> str:
    """Convert a raw member name to a clean ``/``-separated key."""
    key = name.replace("\\", "/")
    while key.startswith("./"):
        key = key[2:]
    return key.strip("/")


def key_matches(key: str, requested: str) -> bool:
    """Return whether ``key`` is ``requested`` itself or lies under it."""
    return key.casefold() == requested.casefold() or key.casefold().startswith(requested.casefold() + "/")


def safe_target(destination: str, relative_key: str) -> str | None:
    """Join ``relative_key`` under ``destination``; ``None`` if it would escape."""
    root = os.path.realpath(destination)
    parts = [part for part in relative_key.split("/") if part not in ("", ".")]
    if not parts or ".." in parts:
        return None
    target = os.path.realpath(os.path.join(root, *parts))
    if os.path.commonpath([root, target]) != root or target == root:
        return None
    return target


def plan_extraction(
    members: Iterable[ArchiveMember],
    keys: Collection[str] | None,
) -> list[tuple[ArchiveMember, str]]:
    """Pair each selected member with its output path relative to the destination.

    Without ``keys`` every member is extracted at its own key. With keys, a
    member selected through ``docs/sub`` lands relative to ``docs``, so the
    chosen item appears directly in the destination.
    """
    members = list(members)
    if keys is None:
        return [(member, member.key) for member in members]

    plan: list[tuple[ArchiveMember, str]] = []
    seen: set[str] = set()
    for raw in keys:
        requested = normalize_key(raw)
        if not requested:
            continue
        parent = requested.rsplit("/", 1)[0] if "/" in requested else ""
        for member in members:
            if member.key in seen or not key_matches(member.key, requested):
                continue
            seen.add(member.key)
            plan.append((member, member.key[len(parent) + 1:] if parent else member.key))
    return plan


@dataclass(frozen=True)
class SourceItem:
    """A real file or directory queued for compression."""

    path: str
    arcname: str
    is_directory: bool
    size: int = 0


def collect_sources(sources: Iterable[str]) -> list[SourceItem]:
    """Expand sources into items named relative to each source's parent."""
    items: list[SourceItem] = []
    for source in sources:
        source = os.path.abspath(source)
        base = os.path.dirname(source)
        if not os.path.isdir(source):
            try:
                size = os.path.getsize(source)
            except OSError:
                size = 0
            items.append(SourceItem(source, os.path.basename(source), False, size))
            continue
        for dirpath, dirnames, filenames in os.walk(source, followlinks=False):
            dirnames.sort()
            items.append(SourceItem(dirpath, os.path.relpath(dirpath, base).replace(os.sep, "/"), True))
            for filename in sorted(filenames):
                path = os.path.join(dirpath, filename)
                if os.path.islink(path):
                    continue
                try:
                    size = os.path.getsize(path)
                except OSError:
                    size = 0
                items.append(SourceItem(path, os.path.relpath(path, base).replace(os.sep, "/"), False, size))
    return items


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        LOGGER.warning("Could not remove %s: %s", path, exc)


def _is_cancelled(cancel: CancelScope | None) -> bool:
    return cancel is not None and cancel.cancelled


def _emit(progress: ProgressCallback | None, report: ArchiveProgress) -> None:
    if progress is not None:
        progress(report)


def _datetime_ns(value: Any) -> int:
    if value is None:
        return 0
    try:
        return int(value.timestamp() * 1_000_000_000)
    except (AttributeError, OverflowError, OSError, ValueError):
        return 0


class ArchiveProvider:
    """Template for one family of archive formats."""

    formats: tuple[ArchiveFormat, ...] = ()
    supports_delete = True

    def list_members(self, archive_path: str) -> list[ArchiveMember]:
        raise NotImplementedError

    # extraction
    def extract(
        self,
        archive_path: str,
        destination: str,
        keys: Collection[str] | None = None,
        progress: ProgressCallback | None = None,
        cancel: CancelScope | None = None,
    ) -> OperationResult:
        plan = plan_extraction(self.list_members(archive_path), keys)
        os.makedirs(destination, exist_ok=True)
        return self._extract_planned(archive_path, destination, plan, progress, cancel)

    @contextmanager
    def _open_reader(self, archive_path: str) -> Iterator[Any]:
        raise NotImplementedError
        yield

    def _open_member(self, reader: Any, member: ArchiveMember) -> IO[bytes] | None:
        raise NotImplementedError

    def _extract_planned(
        self,
        archive_path: str,
        destination: str,
        plan: list[tuple[ArchiveMember, str]],
        progress: ProgressCallback | None,
        cancel: CancelScope | None,
    ) -> OperationResult:
        total_files = len(plan)
        total_bytes = sum(member.size for member, _ in plan if not member.is_directory)
        processed = 0
        processed_bytes = 0
        errors: list[str] = []
        with self._open_reader(archive_path) as reader:
            for member, relative in plan:
                if _is_cancelled(cancel):
                    return OperationResult.was_cancelled(processed)
                target = safe_target(destination, relative)
                if target is None:
                    LOGGER.warning("Skipped unsafe archive member %r in %s", member.key, archive_path)
                    errors.append(f"Skipped unsafe path: {member.key}")
                    continue
                if member.is_directory:
                    os.makedirs(target, exist_ok=True)
                else:
                    source = self._open_member(reader, member)
                    if source is None:
                        errors.append(f"Skipped unsupported member: {member.key}")
                        continue
                    os.makedirs(os.path.dirname(target), exist_ok=True)
                    with source, open(target, "wb") as handle:
                        shutil.copyfileobj(source, handle, _COPY_CHUNK)
                    if member.mtime_ns:
                        os.utime(target, ns=(member.mtime_ns, member.mtime_ns))
                    processed_bytes += member.size
                processed += 1
                _emit(
                    progress,
                    ArchiveProgress(
                        current_file=relative.rsplit("/", 1)[-1],
                        current_full_path=target,
                        processed_files=processed,
                        total_files=total_files,
                        processed_bytes=processed_bytes,
                        total_bytes=total_bytes,
                    ),
                )
        message = f"Extracted {processed} item(s)"
        if errors:
            message += f", skipped {len(errors)}"
        return OperationResult(success=True, message=message, files_processed=processed, errors=errors)

    # compression
    def compress(
        self,
        sources: Iterable[str],
        output_path: str,
        archive_format: ArchiveFormat,
        level: int = 5,
        progress: ProgressCallback | None = None,
        cancel: CancelScope | None = None,
    ) -> OperationResult:
        """Write ``sources`` into a new archive at ``output_path``.

        A cancelled or failed run leaves no file at ``output_path``.
        """
        items = collect_sources(sources)
        level = max(0, min(9, int(level)))
        file_items = [item for item in items if not item.is_directory]
        total_bytes = sum(item.size for item in file_items)
        processed = 0
        processed_bytes = 0
        cancelled = False
        try:
            with self._open_writer(output_path, archive_format, level) as writer:
                for item in items:
                    if _is_cancelled(cancel):
                        cancelled = True
                        break
                    self._add(writer, item)
                    if item.is_directory:
                        continue
                    processed += 1
                    processed_bytes += item.size
                    _emit(
                        progress,
                        ArchiveProgress(
                            current_file=os.path.basename(item.path),
                            current_full_path=item.path,
                            processed_files=processed,
                            total_files=len(file_items),
                            processed_bytes=processed_bytes,
                            total_bytes=total_bytes,
                        ),
                    )
        except BaseException:
            _remove_quietly(output_path)
            raise
        if cancelled:
            _remove_quietly(output_path)
            return OperationResult.was_cancelled(processed)
        return OperationResult(success=True, message=f"Compressed {processed} file(s)", files_processed=processed)

    @contextmanager
    def _open_writer(self, output_path: str, archive_format: ArchiveFormat, level: int) -> Iterator[Any]:
        raise NotImplementedError
        yield

    def _add(self, writer: Any, item: SourceItem) -> None:
        raise NotImplementedError

    # deletion
    def delete(
        self,
        archive_path: str,
        keys: Collection[str],
        cancel: CancelScope | None = None,
    ) -> OperationResult:
        """Rewrite the archive without every member under ``keys``."""
        if not self.supports_delete:
            return OperationResult.failed("Deleting from this archive format is not supported")
        requested = [normalize_key(key) for key in keys if normalize_key(key)]
        doomed = {
            member.key
            for member in self.list_members(archive_path)
            if any(key_matches(member.key, key) for key in requested)
        }
        if not doomed:
            return OperationResult(success=True, message="Nothing to delete")

        temp_path = f"{archive_path}.{uuid.uuid4().hex}.tmp"
        try:
            completed = self._rewrite_without(archive_path, temp_path, doomed, cancel)
        except BaseException:
            _remove_quietly(temp_path)
            raise
        if not completed or _is_cancelled(cancel):
            _remove_quietly(temp_path)
            return OperationResult.was_cancelled()
        os.replace(temp_path, archive_path)
        return OperationResult(success=True, message=f"Deleted {len(doomed)} item(s)", files_processed=len(doomed))

    def _rewrite_without(
        self, archive_path: str, temp_path: str, doomed: set[str], cancel: CancelScope | None
    ) -> bool:
        raise NotImplementedError


class ZipArchiveProvider(ArchiveProvider):
    formats = (ArchiveFormat.ZIP,)

    def list_members(self, archive_path: str) -> list[ArchiveMember]:
        with zipfile.ZipFile(archive_path) as archive:
            return [self._member(info) for info in archive.infolist() if normalize_key(info.filename)]

    @staticmethod
    def _member(info: zipfile.ZipInfo) -> ArchiveMember:
        try:
            mtime_ns = int(time.mktime(info.date_time + (0, 0, -1)) * 1_000_000_000)
        except (OverflowError, ValueError):
            mtime_ns = 0
        is_dir = info.is_dir()
        return ArchiveMember(
            key=normalize_key(info.filename),
            is_directory=is_dir,
            size=0 if is_dir else info.file_size,
            mtime_ns=mtime_ns,
        )

    @contextmanager
    def _open_reader(self, archive_path: str) -> Iterator[Any]:
        with zipfile.ZipFile(archive_path) as archive:
            infos = {normalize_key(info.filename): info for info in archive.infolist()}
            yield archive, infos

    def _open_member(self, reader: Any, member: ArchiveMember) -> IO[bytes] | None:
        archive, infos = reader
        info = infos.get(member.key)
        return archive.open(info) if info is not None else None

    @contextmanager
    def _open_writer(self, output_path: str, archive_format: ArchiveFormat, level: int) -> Iterator[Any]:
        if level == 0:
            archive = zipfile.ZipFile(output_path, "w", compression=zipfile.ZIP_STORED, allowZip64=True)
        else:
            archive = zipfile.ZipFile(
                output_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=level, allowZip64=True
            )
        with archive:
            yield archive

    def _add(self, writer: Any, item: SourceItem) -> None:
        writer.write(item.path, item.arcname)

    def _rewrite_without(
        self, archive_path: str, temp_path: str, doomed: set[str], cancel: CancelScope | None
    ) -> bool:
        with zipfile.ZipFile(archive_path) as source, zipfile.ZipFile(temp_path, "w", allowZip64=True) as target:
            for info in source.infolist():
                if _is_cancelled(cancel):
                    return False
                if normalize_key(info.filename) in doomed:
                    continue
                target.writestr(info, source.read(info))
        return True


class TarArchiveProvider(ArchiveProvider):
    formats = (ArchiveFormat.TAR, ArchiveFormat.TGZ, ArchiveFormat.TBZ2, ArchiveFormat.TXZ)

    _WRITE_MODES = {
        ArchiveFormat.TAR: "w",
        ArchiveFormat.TGZ: "w:gz",
        ArchiveFormat.TBZ2: "w:bz2",
        ArchiveFormat.TXZ: "w:xz",
    }

    def list_members(self, archive_path: str) -> list[ArchiveMember]:
        with tarfile.open(archive_path, "r:*") as archive:
            return [
                ArchiveMember(
                    key=normalize_key(info.name),
                    is_directory=info.isdir(),
                    size=info.size if info.isfile() else 0,
                    mtime_ns=int(info.mtime) * 1_000_000_000,
                )
                for info in archive.getmembers()
                if (info.isdir() or info.isfile()) and normalize_key(info.name)
            ]

    @contextmanager
    def _open_reader(self, archive_path: str) -> Iterator[Any]:
        with tarfile.open(archive_path, "r:*") as archive:
            infos = {normalize_key(info.name): info for info in archive.getmembers()}
            yield archive, infos

    def _open_member(self, reader: Any, member: ArchiveMember) -> IO[bytes] | None:
        archive, infos = reader
        info = infos.get(member.key)
        if info is None or not info.isfile():
            return None
        return archive.extractfile(info)

    @classmethod
    def _open_for_write(cls, path: str, archive_format: ArchiveFormat, level: int) -> tarfile.TarFile:
        mode = cls._WRITE_MODES[archive_format]
        if archive_format is ArchiveFormat.TGZ:
            return tarfile.open(path, mode, compresslevel=level)
        if archive_format is ArchiveFormat.TBZ2:
            return tarfile.open(path, mode, compresslevel=max(1, level))
        if archive_format is ArchiveFormat.TXZ:
            return tarfile.open(path, mode, preset=level)
        return tarfile.open(path, mode)

    @contextmanager
    def _open_writer(self, output_path: str, archive_format: ArchiveFormat, level: int) -> Iterator[Any]:
        with self._open_for_write(output_path, archive_format, level) as archive:
            yield archive

    def _add(self, writer: Any, item: SourceItem) -> None:
        writer.add(item.path, arcname=item.arcname, recursive=False)

    def _rewrite_without(
        self, archive_path: str, temp_path: str, doomed: set[str], cancel: CancelScope | None
    ) -> bool:
        archive_format = format_for_path(archive_path) or ArchiveFormat.TAR
        with tarfile.open(archive_path, "r:*") as source, self._open_for_write(
            temp_path, archive_format, 6
        ) as target:
            for info in source.getmembers():
                if _is_cancelled(cancel):
                    return False
                if normalize_key(info.name) in doomed:
                    continue
                if info.isfile():
                    target.addfile(info, source.extractfile(info))
                else:
                    target.addfile(info)
        return True


class SevenZipArchiveProvider(ArchiveProvider):
    """7z support through ``py7zr``. Members cannot be deleted in place."""

    formats = (ArchiveFormat.SEVEN_ZIP,)
    supports_delete = False

    def list_members(self, archive_path: str) -> list[ArchiveMember]:
        with py7zr.SevenZipFile(archive_path, "r") as archive:
            return [
                ArchiveMember(
                    key=normalize_key(info.filename),
                    is_directory=bool(info.is_directory),
                    size=0 if info.is_directory else int(info.uncompressed or 0),
                    mtime_ns=_datetime_ns(info.creationtime),
                )
                for info in archive.list()
                if normalize_key(info.filename)
            ]

    def _extract_planned(
        self,
        archive_path: str,
        destination: str,
        plan: list[tuple[ArchiveMember, str]],
        progress: ProgressCallback | None,
        cancel: CancelScope | None,
    ) -> OperationResult:
        """Unpack into a staging directory, then move items to their planned paths."""
        if _is_cancelled(cancel):
            return OperationResult.was_cancelled()
        errors: list[str] = []
        safe_plan: list[tuple[ArchiveMember, str, str]] = []
        for member, relative in plan:
            target = safe_target(destination, relative)
            if target is None:
                LOGGER.warning("Skipped unsafe archive member %r in %s", member.key, archive_path)
                errors.append(f"Skipped unsafe path: {member.key}")
                continue
            safe_plan.append((member, relative, target))

        total_bytes = sum(member.size for member, _, _ in safe_plan if not member.is_directory)
        processed = 0
        processed_bytes = 0
        staging = tempfile.mkdtemp(prefix=".twinpane-", dir=destination)
        try:
            with py7zr.SevenZipFile(archive_path, "r") as archive:
                archive.extract(path=staging, targets=[member.key for member, _, _ in safe_plan])
            for member, relative, target in safe_plan:
                if _is_cancelled(cancel):
                    return OperationResult.was_cancelled(processed)
                if member.is_directory:
                    os.makedirs(target, exist_ok=True)
                else:
                    staged = os.path.join(staging, *member.key.split("/"))
                    if not os.path.exists(staged):
                        errors.append(f"Missing after extraction: {member.key}")
                        continue
                    os.makedirs(os.path.dirname(target), exist_ok=True)
                    os.replace(staged, target)
                    processed_bytes += member.size
                processed += 1
                _emit(
                    progress,
                    ArchiveProgress(
                        current_file=relative.rsplit("/", 1)[-1],
                        current_full_path=target,
                        processed_files=processed,
                        total_files=len(safe_plan),
                        processed_bytes=processed_bytes,
                        total_bytes=total_bytes,
                    ),
                )
        finally:
            shutil.rmtree(staging, ignore_errors=True)
        message = f"Extracted {processed} item(s)"
        if errors:
            message += f", skipped {len(errors)}"
        return OperationResult(success=True, message=message, files_processed=processed, errors=errors)

    @contextmanager
    def _open_writer(self, output_path: str, archive_format: ArchiveFormat, level: int) -> Iterator[Any]:
        if level == 0:
            filters = [{"id": py7zr.FILTER_COPY}]
        else:
            filters = [{"id": py7zr.FILTER_LZMA2, "preset": level}]
        with py7zr.SevenZipFile(output_path, "w", filters=filters) as archive:
            yield archive

    def _add(self, writer: Any, item: SourceItem) -> None:
        writer.write(item.path, arcname=item.arcname)


__all__ = [
    "ARCHIVE_ERRORS",
    "ArchiveProvider",
    "SevenZipArchiveProvider",
    "SourceItem",
    "TarArchiveProvider",
    "ZipArchiveProvider",
    "collect_sources",
    "key_matches",
    "normalize_key",
    "plan_extraction",
    "safe_target",
]
