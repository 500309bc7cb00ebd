"""Pytest bootstrap for local source imports and isolated config files.

The ``pytest`` console script can run with a sys.path that excludes the
repository root. Ensure ``import twinpane`` resolves to the local package,
and point the config/session files at a per-test directory.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parent.parent
PROJECT_ROOT_STR = str(PROJECT_ROOT)

if PROJECT_ROOT_STR not in sys.path:
    sys.path.insert(0, PROJECT_ROOT_STR)


@pytest.fixture(autouse=True)
def isolated_config_files(tmp_path, monkeypatch):
    from twinpane.runtime import config

    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "config" / config.CONFIG_FILENAME)
    monkeypatch.setattr(config, "SESSION_PATH", tmp_path / "config" / config.SESSION_FILENAME)
    yield
