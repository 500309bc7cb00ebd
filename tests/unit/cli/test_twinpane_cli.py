"""CLI listing behavior tests.

Verifies how ``twinpane.cli.main`` resolves directories, archives and
sessions before printing the left pane.
"""

from __future__ import annotations

import io
import os
import tempfile
import unittest
import zipfile
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

from twinpane import cli
from twinpane.runtime.config import Settings


class CliListingTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(os.path.realpath(self._tmp.name))
        (self.root / "sub").mkdir()
        (self.root / "main.py").write_text("print()\n", encoding="utf-8")
        (self.root / "notes.txt").write_text("abc", encoding="utf-8")
        with zipfile.ZipFile(self.root / "bundle.zip", "w") as archive:
            archive.writestr("docs/guide.txt", b"guide")
            archive.writestr("top.txt", b"top")

        patches = [
            mock.patch("twinpane.cli.load_settings", return_value=Settings(start_directory=str(self.root))),
            mock.patch("twinpane.cli._configure_logging"),
            mock.patch("twinpane.runtime.config.SESSION_PATH", self.root / "state" / "session.json"),
        ]
        for patcher in patches:
            patcher.start()
            self.addCleanup(patcher.stop)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _run(self, *argv: str) -> list[str]:
        out = io.StringIO()
        with redirect_stdout(out):
            cli.main(list(argv))
        return out.getvalue().splitlines()

    def test_lists_start_directory_by_default(self) -> None:
        lines = self._run()

        self.assertEqual(lines[0], str(self.root))
        self.assertTrue(lines[1].startswith(">"))
        self.assertIn("<DIR>", lines[1])
        self.assertTrue(lines[1].endswith("sub"))
        total = sum(os.path.getsize(self.root / name) for name in ("main.py", "notes.txt", "bundle.zip"))
        self.assertEqual(lines[-1], f"1 dir(s), 3 file(s), {total} bytes")

    def test_mask_and_sort_apply_to_listing(self) -> None:
        lines = self._run(str(self.root), "--mask", "*.py *.txt", "--sort", "name_desc")
        names = [line.split()[-1] for line in lines[1:-1]]
        self.assertEqual(names, ["sub", "notes.txt", "main.py"])

    def test_archive_path_opens_virtual_folder(self) -> None:
        lines = self._run(str(self.root / "bundle.zip"), "--inside", "docs")
        self.assertEqual(lines[0], "[bundle.zip]/docs")
        self.assertTrue(lines[1].endswith("guide.txt"))

    def test_inside_requires_an_archive(self) -> None:
        with self.assertRaises(SystemExit):
            self._run(str(self.root), "--inside", "docs")

    def test_missing_path_exits(self) -> None:
        with self.assertRaises(SystemExit):
            self._run(str(self.root / "nope"))

    def test_saved_session_is_restored(self) -> None:
        self._run(str(self.root / "sub"), "--save-session")
        self.assertTrue((self.root / "state" / "session.json").is_file())

        lines = self._run("--restore-session")
        self.assertEqual(lines[0], str(self.root / "sub"))


if __name__ == "__main__":
    unittest.main()
