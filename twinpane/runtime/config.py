"""Persistent JSON config and session helpers.

Stores navigation defaults, loader tuning and the last session snapshot.
Malformed or missing files fall back to defaults.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from platformdirs import user_config_dir, user_log_dir

if TYPE_CHECKING:
    from ..pane.session import SessionState

LOGGER = logging.getLogger(__name__)

APP_NAME = "twinpane"
CONFIG_FILENAME = "config.json"
SESSION_FILENAME = "session.json"
CONFIG_DIR = Path(user_config_dir(APP_NAME, appauthor=False))
CONFIG_PATH = CONFIG_DIR / CONFIG_FILENAME
SESSION_PATH = CONFIG_DIR / SESSION_FILENAME
LOG_DIR = Path(user_log_dir(APP_NAME, appauthor=False))


@dataclass(frozen=True)
class Settings:
    """Typed view over the persisted config object."""

    start_directory: str
    max_history_items: int = 50
    directory_cache_capacity: int = 20
    max_simultaneous_jobs: int = 4
    load_batch_size: int = 100
    load_batch_seconds: float = 0.1
    update_check_seconds: float = 1.0
    show_hidden: bool = True


def _read_json_object(path: Path) -> dict[str, object]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except Exception as exc:
        LOGGER.warning("Ignoring unreadable %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def _write_json_object(path: Path, data: dict[str, object]) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except Exception as exc:
        LOGGER.warning("Could not write %s: %s", path, exc)


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    return _read_json_object(CONFIG_PATH)


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON.

    Filesystem/serialization errors are logged and otherwise ignored so that
    an unwritable config never breaks the running session.
    """
    _write_json_object(CONFIG_PATH, data)


def _coerce_positive_int(value: object, default: int) -> int:
    """Booleans, non-integers and values below 1 fall back to ``default``."""
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    return value if value >= 1 else default


def _coerce_positive_float(value: object, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value) if value > 0 else default


def _coerce_start_directory(value: object) -> str:
    if isinstance(value, str) and value.strip():
        candidate = os.path.abspath(os.path.expanduser(value.strip()))
        if os.path.isdir(candidate):
            return candidate
    return os.getcwd()


def load_settings() -> Settings:
    """Build ``Settings`` from config, substituting defaults for bad values."""
    data = load_config()
    defaults = Settings(start_directory="")
    show_hidden = data.get("show_hidden")
    return Settings(
        start_directory=_coerce_start_directory(data.get("start_directory")),
        max_history_items=_coerce_positive_int(data.get("max_history_items"), defaults.max_history_items),
        directory_cache_capacity=_coerce_positive_int(
            data.get("directory_cache_capacity"), defaults.directory_cache_capacity
        ),
        max_simultaneous_jobs=_coerce_positive_int(
            data.get("max_simultaneous_jobs"), defaults.max_simultaneous_jobs
        ),
        load_batch_size=_coerce_positive_int(data.get("load_batch_size"), defaults.load_batch_size),
        load_batch_seconds=_coerce_positive_float(data.get("load_batch_seconds"), defaults.load_batch_seconds),
        update_check_seconds=_coerce_positive_float(
            data.get("update_check_seconds"), defaults.update_check_seconds
        ),
        show_hidden=show_hidden if isinstance(show_hidden, bool) else defaults.show_hidden,
    )


def save_start_directory(path: str) -> None:
    """Persist the default directory new tabs open in."""
    config = load_config()
    config["start_directory"] = str(path)
    save_config(config)


def load_session_state() -> SessionState | None:
    """Return the last saved session, or ``None`` when there is none to resume."""
    from ..pane.session import SessionState

    data = _read_json_object(SESSION_PATH)
    if not data:
        return None
    state = SessionState.from_dict(data)
    return state if state.tabs else None


def save_session_state(state: SessionState) -> None:
    _write_json_object(SESSION_PATH, state.to_dict())


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "LOG_DIR",
    "SESSION_PATH",
    "Settings",
    "load_config",
    "load_session_state",
    "load_settings",
    "save_config",
    "save_session_state",
    "save_start_directory",
]
