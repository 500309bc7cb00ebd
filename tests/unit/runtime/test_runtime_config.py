from __future__ import annotations

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from twinpane.pane.session import SessionState, TabSessionState
from twinpane.runtime import config


class ConfigBehaviorTests(unittest.TestCase):
    def test_load_settings_falls_back_for_invalid_values(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            config_path.write_text(
                json.dumps(
                    {
                        "start_directory": tmp,
                        "max_history_items": 0,
                        "directory_cache_capacity": True,
                        "load_batch_size": 25,
                        "load_batch_seconds": "fast",
                        "show_hidden": False,
                    }
                ),
                encoding="utf-8",
            )
            with mock.patch("twinpane.runtime.config.CONFIG_PATH", config_path):
                settings = config.load_settings()

        self.assertEqual(settings.start_directory, os.path.abspath(tmp))
        self.assertEqual(settings.max_history_items, 50)
        self.assertEqual(settings.directory_cache_capacity, 20)
        self.assertEqual(settings.load_batch_size, 25)
        self.assertEqual(settings.load_batch_seconds, 0.1)
        self.assertFalse(settings.show_hidden)

    def test_malformed_config_reads_as_empty(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            config_path.write_text("{not json", encoding="utf-8")
            with mock.patch("twinpane.runtime.config.CONFIG_PATH", config_path):
                with self.assertLogs("twinpane.runtime.config", level="WARNING"):
                    self.assertEqual(config.load_config(), {})
                self.assertEqual(config.load_settings().start_directory, os.getcwd())

    def test_save_start_directory_round_trips(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "nested" / "config.json"
            with mock.patch("twinpane.runtime.config.CONFIG_PATH", config_path):
                config.save_start_directory(tmp)
                self.assertEqual(config.load_config().get("start_directory"), tmp)

    def test_session_state_persists_next_to_config(self) -> None:
        state = SessionState(
            tabs=[TabSessionState(left_path="/a", right_path="/b", left_history=["/a", "/c"])],
            active_tab_index=0,
        )
        with tempfile.TemporaryDirectory() as tmp:
            session_path = Path(tmp) / "session.json"
            with mock.patch("twinpane.runtime.config.SESSION_PATH", session_path):
                self.assertIsNone(config.load_session_state())
                config.save_session_state(state)
                loaded = config.load_session_state()

        self.assertEqual(loaded, state)


if __name__ == "__main__":
    unittest.main()
