"""Tests for real-directory enumeration."""

from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path

from twinpane.errors import DirectoryAccessError
from twinpane.file_model.fs import FileSystemProvider
from twinpane.file_model.watch import directory_mtime_ns
from twinpane.runtime.cancellation import CancelScope


class FileSystemProviderTests(unittest.TestCase):
    def test_lists_files_and_directories_with_sizes(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "a.txt").write_text("hello", encoding="utf-8")
            (root / "sub").mkdir()

            entries = {e.name: e for e in FileSystemProvider().list_directory(tmp)}

            self.assertEqual(set(entries), {"a.txt", "sub"})
            self.assertEqual(entries["a.txt"].size, 5)
            self.assertFalse(entries["a.txt"].is_directory)
            self.assertTrue(entries["sub"].is_directory)
            self.assertEqual(entries["sub"].size, 0)
            self.assertEqual(entries["a.txt"].full_path, os.path.join(tmp, "a.txt"))
            self.assertGreater(entries["a.txt"].mtime_ns, 0)

    def test_missing_directory_raises_single_access_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            missing = os.path.join(tmp, "nope")
            iterator = FileSystemProvider().enumerate_directory(missing)
            with self.assertRaises(DirectoryAccessError) as ctx:
                next(iterator)
            self.assertEqual(ctx.exception.path, missing)

    def test_file_path_is_not_a_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "f.txt"
            target.write_text("x", encoding="utf-8")
            with self.assertRaises(DirectoryAccessError):
                FileSystemProvider().list_directory(str(target))

    def test_cancelled_scope_stops_enumeration(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            for index in range(5):
                (Path(tmp) / f"f{index}").write_text("x", encoding="utf-8")
            scope = CancelScope("test")
            scope.cancel()
            self.assertEqual(FileSystemProvider().list_directory(tmp, scope), [])

    def test_hidden_entries_are_skipped_when_disabled(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / ".hidden").write_text("x", encoding="utf-8")
            (Path(tmp) / "shown").write_text("x", encoding="utf-8")

            visible = [e.name for e in FileSystemProvider(show_hidden=False).list_directory(tmp)]
            everything = sorted(e.name for e in FileSystemProvider().list_directory(tmp))

            self.assertEqual(visible, ["shown"])
            self.assertEqual(everything, [".hidden", "shown"])

    def test_directory_mtime_is_none_for_missing_paths(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            self.assertIsInstance(directory_mtime_ns(tmp), int)
            self.assertIsNone(directory_mtime_ns(os.path.join(tmp, "missing")))


if __name__ == "__main__":
    unittest.main()
