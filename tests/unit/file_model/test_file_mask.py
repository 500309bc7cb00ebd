from __future__ import annotations

import unittest

from twinpane.file_model.fs import apply_file_mask, is_mask_active
from twinpane.file_model.types import FileEntry


def _file(name: str) -> FileEntry:
    return FileEntry(name=name, full_path=f"/d/{name}", is_directory=False)


def _dir(name: str) -> FileEntry:
    return FileEntry(name=name, full_path=f"/d/{name}", is_directory=True)


class FileMaskTests(unittest.TestCase):
    def test_match_all_masks_are_inactive(self) -> None:
        for mask in (None, "", "*", "*.*", "  *  "):
            self.assertFalse(is_mask_active(mask), mask)
        self.assertTrue(is_mask_active("*.txt"))

    def test_inactive_mask_keeps_everything(self) -> None:
        entries = [_file("a.txt"), _dir("sub")]
        self.assertEqual(apply_file_mask(entries, "*"), entries)

    def test_patterns_are_case_insensitive_and_keep_directories(self) -> None:
        entries = [_file("A.TXT"), _file("b.py"), _dir("docs")]
        kept = apply_file_mask(entries, "*.txt")
        self.assertEqual([e.name for e in kept], ["A.TXT", "docs"])

    def test_multiple_patterns_and_exclusions(self) -> None:
        entries = [_file("main.py"), _file("test_main.py"), _file("notes.md"), _file("x.c")]
        kept = apply_file_mask(entries, "*.py *.md :test_*")
        self.assertEqual([e.name for e in kept], ["main.py", "notes.md"])

    def test_exclusion_only_mask(self) -> None:
        entries = [_file("a.log"), _file("b.txt")]
        self.assertEqual([e.name for e in apply_file_mask(entries, ":*.log")], ["b.txt"])


if __name__ == "__main__":
    unittest.main()
