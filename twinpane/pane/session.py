"""Serializable session snapshots.

The dict form uses the persisted camelCase schema. ``from_dict`` coerces
malformed values to defaults rather than failing.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..file_model.sorting import SortMode
from .state import DEFAULT_FILE_MASK, DisplayMode


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


def _mask(value: object) -> str:
    return value if isinstance(value, str) and value.strip() else DEFAULT_FILE_MASK


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item.strip()]


@dataclass
class TabSessionState:
    """Everything needed to reopen one tab on the same real directories."""

    left_path: str = ""
    right_path: str = ""
    left_focus_target: str | None = None
    right_focus_target: str | None = None
    left_mask: str = DEFAULT_FILE_MASK
    right_mask: str = DEFAULT_FILE_MASK
    left_sort: SortMode = SortMode.NAME_ASC
    right_sort: SortMode = SortMode.NAME_ASC
    left_display_mode: DisplayMode = DisplayMode.DETAILS
    right_display_mode: DisplayMode = DisplayMode.DETAILS
    left_pane_active: bool = True
    left_history: list[str] = field(default_factory=list)
    right_history: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "leftPath": self.left_path,
            "rightPath": self.right_path,
            "leftFocusTarget": self.left_focus_target,
            "rightFocusTarget": self.right_focus_target,
            "leftMask": self.left_mask,
            "rightMask": self.right_mask,
            "leftSort": self.left_sort.value,
            "rightSort": self.right_sort.value,
            "leftDisplayMode": self.left_display_mode.value,
            "rightDisplayMode": self.right_display_mode.value,
            "leftPaneActive": self.left_pane_active,
            "leftHistory": list(self.left_history),
            "rightHistory": list(self.right_history),
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> TabSessionState:
        left_active = data.get("leftPaneActive", True)
        return cls(
            left_path=_optional_str(data.get("leftPath")) or "",
            right_path=_optional_str(data.get("rightPath")) or "",
            left_focus_target=_optional_str(data.get("leftFocusTarget")),
            right_focus_target=_optional_str(data.get("rightFocusTarget")),
            left_mask=_mask(data.get("leftMask")),
            right_mask=_mask(data.get("rightMask")),
            left_sort=SortMode.parse(data.get("leftSort")),
            right_sort=SortMode.parse(data.get("rightSort")),
            left_display_mode=DisplayMode.parse(data.get("leftDisplayMode")),
            right_display_mode=DisplayMode.parse(data.get("rightDisplayMode")),
            left_pane_active=left_active if isinstance(left_active, bool) else True,
            left_history=_string_list(data.get("leftHistory")),
            right_history=_string_list(data.get("rightHistory")),
        )


@dataclass
class SessionState:
    """Snapshot of every tab plus which one is active."""

    tabs: list[TabSessionState] = field(default_factory=list)
    active_tab_index: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "activeTabIndex": self.active_tab_index,
            "tabs": [tab.to_dict() for tab in self.tabs],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> SessionState:
        raw_tabs = data.get("tabs")
        tabs = [
            TabSessionState.from_dict(raw)
            for raw in (raw_tabs if isinstance(raw_tabs, list) else [])
            if isinstance(raw, dict)
        ]
        index = data.get("activeTabIndex", 0)
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < max(1, len(tabs)):
            index = 0
        return cls(tabs=tabs, active_tab_index=index)


__all__ = ["SessionState", "TabSessionState"]
