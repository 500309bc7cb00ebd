"""Tests for archive listing, extraction, compression and deletion."""

from __future__ import annotations

import lzma
import os
import tarfile
import tempfile
import unittest
import zipfile
from pathlib import Path

from twinpane.archive.manager import ArchiveManager
from twinpane.archive.providers import SevenZipArchiveProvider, plan_extraction, safe_target
from twinpane.archive.types import ArchiveFormat, ArchiveMember, format_for_path
from twinpane.errors import ArchiveError
from twinpane.runtime.cancellation import CancelScope


def _make_zip(path: Path) -> None:
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("docs/", b"")
        archive.writestr("docs/guide.txt", b"guide")
        archive.writestr("docs/sub/deep.txt", b"deep")
        archive.writestr("readme.txt", b"hello")
        archive.writestr("src/main.py", b"print()")


class ArchiveListingTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.archive = self.root / "a.zip"
        _make_zip(self.archive)
        self.manager = ArchiveManager()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_root_level_groups_members_and_synthesises_directories(self) -> None:
        entries = {e.name: e for e in self.manager.list_archive_contents(str(self.archive))}

        self.assertEqual(set(entries), {"docs", "readme.txt", "src"})
        self.assertTrue(entries["docs"].is_directory)
        self.assertTrue(entries["src"].is_directory)
        self.assertFalse(entries["readme.txt"].is_directory)
        self.assertEqual(entries["readme.txt"].size, 5)
        self.assertTrue(all(e.is_virtual for e in entries.values()))
        self.assertEqual(entries["src"].full_path, os.path.join(str(self.archive), "src"))

    def test_internal_path_lists_one_level(self) -> None:
        names = sorted(e.name for e in self.manager.list_archive_contents(str(self.archive), "docs"))
        self.assertEqual(names, ["guide.txt", "sub"])
        deep = self.manager.list_archive_contents(str(self.archive), "/docs/sub/")
        self.assertEqual([e.name for e in deep], ["deep.txt"])

    def test_entry_key_is_relative_to_archive(self) -> None:
        entry = next(
            e for e in self.manager.list_archive_contents(str(self.archive), "docs") if e.name == "guide.txt"
        )
        self.assertEqual(self.manager.entry_key(str(self.archive), entry.full_path), "docs/guide.txt")

    def test_cancelled_listing_is_empty(self) -> None:
        scope = CancelScope()
        scope.cancel()
        self.assertEqual(self.manager.list_archive_contents(str(self.archive), "", scope), [])

    def test_corrupt_or_missing_archive_raises(self) -> None:
        broken = self.root / "broken.zip"
        broken.write_bytes(b"not a zip")
        with self.assertRaises(ArchiveError):
            self.manager.list_archive_contents(str(broken))
        with self.assertRaises(ArchiveError):
            self.manager.list_archive_contents(str(self.root / "missing.zip"))

    def test_format_detection(self) -> None:
        self.assertIs(format_for_path("x.tar.gz"), ArchiveFormat.TGZ)
        self.assertIs(format_for_path("X.TGZ"), ArchiveFormat.TGZ)
        self.assertIs(format_for_path("x.tar"), ArchiveFormat.TAR)
        self.assertIs(format_for_path("x.7z"), ArchiveFormat.SEVEN_ZIP)
        self.assertIsNone(format_for_path("x.txt"))
        self.assertTrue(self.manager.is_archive("a.ZIP"))
        self.assertFalse(self.manager.is_archive("a.txt"))
        self.assertIn(ArchiveFormat.SEVEN_ZIP, self.manager.supported_formats())


class ArchiveExtractionTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.archive = self.root / "a.zip"
        _make_zip(self.archive)
        self.manager = ArchiveManager()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_extract_everything_reports_progress(self) -> None:
        dest = self.root / "out"
        reports = []
        result = self.manager.extract(str(self.archive), str(dest), reports.append)

        self.assertTrue(result.success)
        self.assertEqual((dest / "docs" / "sub" / "deep.txt").read_bytes(), b"deep")
        self.assertEqual((dest / "readme.txt").read_bytes(), b"hello")
        self.assertEqual(reports[-1].processed_files, reports[-1].total_files)
        self.assertEqual(reports[-1].percent, 100.0)

    def test_extract_entries_lands_relative_to_each_parent(self) -> None:
        dest = self.root / "out"
        result = self.manager.extract_entries(str(self.archive), ["docs/sub", "readme.txt"], str(dest))

        self.assertTrue(result.success)
        self.assertEqual((dest / "sub" / "deep.txt").read_bytes(), b"deep")
        self.assertTrue((dest / "readme.txt").is_file())
        self.assertFalse((dest / "docs").exists())

    def test_cancelled_extraction_reports_cancelled(self) -> None:
        scope = CancelScope()
        scope.cancel()
        result = self.manager.extract(str(self.archive), str(self.root / "out"), cancel=scope)
        self.assertTrue(result.cancelled)
        self.assertFalse(result.success)

    def test_unsafe_members_are_skipped(self) -> None:
        evil = self.root / "evil.zip"
        with zipfile.ZipFile(evil, "w") as archive:
            archive.writestr("../escape.txt", b"x")
            archive.writestr("ok.txt", b"y")
        dest = self.root / "out"

        with self.assertLogs("twinpane.archive.providers", level="WARNING"):
            result = self.manager.extract(str(evil), str(dest))

        self.assertTrue(result.success)
        self.assertEqual(len(result.errors), 1)
        self.assertTrue((dest / "ok.txt").exists())
        self.assertFalse((self.root / "escape.txt").exists())

    def test_safe_target_and_plan_helpers(self) -> None:
        dest = str(self.root)
        self.assertIsNone(safe_target(dest, "../x"))
        self.assertIsNone(safe_target(dest, ""))
        self.assertEqual(safe_target(dest, "a/b"), os.path.join(os.path.realpath(dest), "a", "b"))

        members = [ArchiveMember("docs", True), ArchiveMember("docs/a.txt", False), ArchiveMember("b.txt", False)]
        plan = plan_extraction(members, ["docs"])
        self.assertEqual([(m.key, rel) for m, rel in plan], [("docs", "docs"), ("docs/a.txt", "docs/a.txt")])


class ArchiveWriteTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.source = self.root / "project"
        (self.source / "pkg").mkdir(parents=True)
        (self.source / "pkg" / "mod.py").write_text("x = 1\n", encoding="utf-8")
        (self.source / "README").write_text("readme\n", encoding="utf-8")
        self.manager = ArchiveManager()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _compress_and_list(self, archive_format: ArchiveFormat, output_name: str, level: int = 5) -> set[str]:
        output = self.root / output_name
        result = self.manager.compress([str(self.source)], str(output), archive_format, level)
        self.assertTrue(result.success, result.message)
        self.assertEqual(result.files_processed, 2)
        members = self.manager.list_members(str(output))
        return {member.key for member in members if not member.is_directory}

    def test_zip_compression_keeps_source_folder_name(self) -> None:
        keys = self._compress_and_list(ArchiveFormat.ZIP, "p.zip")
        self.assertEqual(keys, {"project/pkg/mod.py", "project/README"})

    def test_stored_zip_at_level_zero(self) -> None:
        output = self.root / "stored.zip"
        self.manager.compress([str(self.source / "README")], str(output), ArchiveFormat.ZIP, 0)
        with zipfile.ZipFile(output) as archive:
            self.assertEqual(archive.getinfo("README").compress_type, zipfile.ZIP_STORED)

    def test_tar_variants(self) -> None:
        for archive_format, name in (
            (ArchiveFormat.TAR, "p.tar"),
            (ArchiveFormat.TGZ, "p.tar.gz"),
            (ArchiveFormat.TBZ2, "p.tar.bz2"),
            (ArchiveFormat.TXZ, "p.tar.xz"),
        ):
            with self.subTest(archive_format=archive_format):
                keys = self._compress_and_list(archive_format, name, level=0)
                self.assertEqual(keys, {"project/pkg/mod.py", "project/README"})

    def test_seven_zip_round_trip_and_delete_unsupported(self) -> None:
        keys = self._compress_and_list(ArchiveFormat.SEVEN_ZIP, "p.7z")
        self.assertEqual(keys, {"project/pkg/mod.py", "project/README"})

        dest = self.root / "out"
        result = self.manager.extract_entries(str(self.root / "p.7z"), ["project/pkg"], str(dest))
        self.assertTrue(result.success, result.message)
        self.assertEqual((dest / "pkg" / "mod.py").read_text(encoding="utf-8"), "x = 1\n")

        deleted = self.manager.delete_entries(str(self.root / "p.7z"), ["project/README"])
        self.assertFalse(deleted.success)

    def test_corrupt_seven_zip_listing_raises_archive_error(self) -> None:
        self._compress_and_list(ArchiveFormat.SEVEN_ZIP, "p.7z")
        archive = self.root / "p.7z"
        data = archive.read_bytes()
        archive.write_bytes(data[:32] + b"\x55" * (len(data) - 32))

        with self.assertRaises(ArchiveError):
            self.manager.list_archive_contents(str(archive))

    def test_decompression_errors_become_archive_errors(self) -> None:
        class CorruptStreamProvider(SevenZipArchiveProvider):
            def list_members(self, archive_path):
                raise lzma.LZMAError("Corrupt input data")

        archive = self.root / "bad.7z"
        archive.write_bytes(b"7z")
        manager = ArchiveManager([CorruptStreamProvider()])

        with self.assertRaises(ArchiveError) as caught:
            manager.list_archive_contents(str(archive))
        self.assertIsInstance(caught.exception.__cause__, lzma.LZMAError)

    def test_cancelled_compression_leaves_no_output(self) -> None:
        scope = CancelScope()
        scope.cancel()
        output = self.root / "p.zip"
        result = self.manager.compress([str(self.source)], str(output), ArchiveFormat.ZIP, cancel=scope)

        self.assertTrue(result.cancelled)
        self.assertFalse(output.exists())

    def test_delete_entries_rewrites_zip_and_tar(self) -> None:
        for archive_format, name in ((ArchiveFormat.ZIP, "d.zip"), (ArchiveFormat.TGZ, "d.tar.gz")):
            with self.subTest(archive_format=archive_format):
                output = self.root / name
                self.manager.compress([str(self.source)], str(output), archive_format)

                result = self.manager.delete_entries(str(output), ["project/pkg"])

                self.assertTrue(result.success, result.message)
                remaining = {m.key for m in self.manager.list_members(str(output))}
                self.assertEqual(remaining, {"project", "project/README"})
                leftovers = [p for p in os.listdir(self.root) if p.endswith(".tmp")]
                self.assertEqual(leftovers, [])

    def test_tar_listing_ignores_links(self) -> None:
        output = self.root / "links.tar"
        with tarfile.open(output, "w") as archive:
            archive.add(str(self.source / "README"), arcname="README")
            link = tarfile.TarInfo("link")
            link.type = tarfile.SYMTYPE
            link.linkname = "README"
            archive.addfile(link)

        self.assertEqual([m.key for m in self.manager.list_members(str(output))], ["README"])


if __name__ == "__main__":
    unittest.main()
