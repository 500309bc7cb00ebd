"""Archive access addressed by archive-relative entry keys.

``ArchiveManager`` picks a provider from the archive's file name and turns
flat member lists into one directory level at a time for virtual folders.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Collection, Iterable

from ..errors import ArchiveError
from ..file_model.types import FileEntry
from ..runtime.cancellation import CancelScope
from .providers import (
    ARCHIVE_ERRORS,
    ArchiveProvider,
    SevenZipArchiveProvider,
    TarArchiveProvider,
    ZipArchiveProvider,
    normalize_key,
)
from .types import ArchiveFormat, ArchiveMember, OperationResult, ProgressCallback, format_for_path

LOGGER = logging.getLogger(__name__)


def _default_providers() -> list[ArchiveProvider]:
    return [ZipArchiveProvider(), TarArchiveProvider(), SevenZipArchiveProvider()]


class ArchiveManager:
    def __init__(self, providers: Iterable[ArchiveProvider] | None = None) -> None:
        self._providers: dict[ArchiveFormat, ArchiveProvider] = {}
        for provider in _default_providers() if providers is None else providers:
            self.register_provider(provider)

    def register_provider(self, provider: ArchiveProvider) -> None:
        for archive_format in provider.formats:
            self._providers[archive_format] = provider

    def provider_for(self, path: str) -> ArchiveProvider | None:
        archive_format = format_for_path(path)
        if archive_format is None:
            return None
        return self._providers.get(archive_format)

    def is_archive(self, path: str) -> bool:
        """Return whether ``path`` has the extension of a supported format."""
        return bool(path) and self.provider_for(path) is not None

    def supported_formats(self) -> list[ArchiveFormat]:
        return [archive_format for archive_format in ArchiveFormat if archive_format in self._providers]

    def entry_key(self, archive_path: str, full_path: str) -> str:
        """Archive-relative key of a virtual entry's ``full_path``."""
        if full_path.casefold().startswith(archive_path.casefold()):
            return normalize_key(full_path[len(archive_path):])
        return normalize_key(full_path)

    def _require_provider(self, archive_path: str) -> ArchiveProvider:
        if not os.path.isfile(archive_path):
            raise ArchiveError(f"Archive file not found: {archive_path}")
        provider = self.provider_for(archive_path)
        if provider is None:
            raise ArchiveError(f"Archive format not supported: {os.path.basename(archive_path)}")
        return provider

    def list_members(self, archive_path: str) -> list[ArchiveMember]:
        """Flat member list. Raises ``ArchiveError`` when unreadable."""
        provider = self._require_provider(archive_path)
        try:
            return provider.list_members(archive_path)
        except ARCHIVE_ERRORS as exc:
            raise ArchiveError(f"Cannot read archive {os.path.basename(archive_path)}: {exc}") from exc

    def list_archive_contents(
        self,
        archive_path: str,
        internal_path: str = "",
        cancel: CancelScope | None = None,
    ) -> list[FileEntry]:
        """List one directory level of an archive as virtual ``FileEntry`` items.

        Directories implied only by deeper members are synthesised once.
        Entries carry ``full_path = <archive_path>/<key>``. A cancelled
        ``cancel`` yields an empty list.
        """
        if cancel is not None and cancel.cancelled:
            return []
        members = self.list_members(archive_path)
        if cancel is not None and cancel.cancelled:
            return []

        prefix = normalize_key(internal_path)
        prefix = f"{prefix}/" if prefix else ""
        folded_prefix = prefix.casefold()
        result: list[FileEntry] = []
        directories: set[str] = set()
        for member in members:
            if prefix and not member.key.casefold().startswith(folded_prefix):
                continue
            remaining = member.key[len(prefix):]
            if not remaining:
                continue
            name, slash, _ = remaining.partition("/")
            if slash or member.is_directory:
                if name.casefold() in directories:
                    continue
                directories.add(name.casefold())
                explicit = member.is_directory and not slash
                result.append(
                    FileEntry(
                        name=name,
                        full_path=os.path.join(archive_path, prefix + name),
                        is_directory=True,
                        mtime_ns=member.mtime_ns if explicit else 0,
                        is_virtual=True,
                    )
                )
                continue
            result.append(
                FileEntry(
                    name=name,
                    full_path=os.path.join(archive_path, member.key),
                    is_directory=False,
                    size=member.size,
                    mtime_ns=member.mtime_ns,
                    is_virtual=True,
                )
            )
        return result

    def extract(
        self,
        archive_path: str,
        destination: str,
        progress: ProgressCallback | None = None,
        cancel: CancelScope | None = None,
    ) -> OperationResult:
        return self._run_extraction(archive_path, None, destination, progress, cancel)

    def extract_entries(
        self,
        archive_path: str,
        entry_keys: Collection[str],
        destination: str,
        progress: ProgressCallback | None = None,
        cancel: CancelScope | None = None,
    ) -> OperationResult:
        """Extract the named members; each lands relative to its own parent."""
        return self._run_extraction(archive_path, list(entry_keys), destination, progress, cancel)

    def _run_extraction(
        self,
        archive_path: str,
        keys: list[str] | None,
        destination: str,
        progress: ProgressCallback | None,
        cancel: CancelScope | None,
    ) -> OperationResult:
        try:
            provider = self._require_provider(archive_path)
            return provider.extract(archive_path, destination, keys, progress, cancel)
        except ArchiveError as exc:
            return OperationResult.failed(str(exc))
        except ARCHIVE_ERRORS as exc:
            LOGGER.warning("Extraction from %s failed: %s", archive_path, exc)
            return OperationResult.failed(f"Extraction failed: {exc}", str(exc))

    def compress(
        self,
        sources: Iterable[FileEntry | str],
        output_path: str,
        archive_format: ArchiveFormat,
        level: int = 5,
        progress: ProgressCallback | None = None,
        cancel: CancelScope | None = None,
    ) -> OperationResult:
        """Compress real files into ``output_path`` using ``archive_format``.

        The output name does not have to carry the format's extension, so
        callers may write to a temporary name and rename afterwards.
        """
        provider = self._providers.get(archive_format)
        if provider is None:
            return OperationResult.failed(f"Archive format not supported: {archive_format.value}")
        paths = [source.full_path if isinstance(source, FileEntry) else source for source in sources]
        try:
            return provider.compress(paths, output_path, archive_format, level, progress, cancel)
        except ARCHIVE_ERRORS as exc:
            LOGGER.warning("Compression into %s failed: %s", output_path, exc)
            return OperationResult.failed(f"Compression failed: {exc}", str(exc))

    def delete_entries(
        self,
        archive_path: str,
        entry_keys: Collection[str],
        cancel: CancelScope | None = None,
    ) -> OperationResult:
        try:
            provider = self._require_provider(archive_path)
            return provider.delete(archive_path, entry_keys, cancel)
        except ArchiveError as exc:
            return OperationResult.failed(str(exc))
        except ARCHIVE_ERRORS as exc:
            LOGGER.warning("Deleting from %s failed: %s", archive_path, exc)
            return OperationResult.failed(f"Delete failed: {exc}", str(exc))


__all__ = ["ArchiveManager"]
