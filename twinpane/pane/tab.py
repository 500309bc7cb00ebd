"""Tab sessions: a left/right pane pair plus per-tab history."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field

from .history import DEFAULT_MAX_HISTORY_ITEMS, TabHistory
from .state import PaneState

_tab_ids = itertools.count(1)


@dataclass(eq=False)
class TabSession:
    """One tab. ``tab_id`` stays stable while tabs are opened and closed.

    ``left_focus_target``/``right_focus_target`` name an entry to re-select
    on the pane's next load and are cleared once consumed. ``name`` is the
    display label (``"Tab N"``) kept in step with the tab's position.
    """

    left: PaneState
    right: PaneState
    is_left_active: bool = True
    history: TabHistory = field(default_factory=TabHistory)
    left_focus_target: str | None = None
    right_focus_target: str | None = None
    tab_id: int = field(default_factory=lambda: next(_tab_ids))
    name: str = ""

    @classmethod
    def create(
        cls,
        left_path: str,
        right_path: str,
        max_history_items: int = DEFAULT_MAX_HISTORY_ITEMS,
    ) -> TabSession:
        return cls(
            left=PaneState.at(left_path),
            right=PaneState.at(right_path),
            history=TabHistory(max_history_items),
        )

    @property
    def active_pane(self) -> PaneState:
        return self.left if self.is_left_active else self.right

    @property
    def inactive_pane(self) -> PaneState:
        return self.right if self.is_left_active else self.left

    @property
    def panes(self) -> tuple[PaneState, PaneState]:
        return (self.left, self.right)

    def owns(self, pane: PaneState) -> bool:
        return pane is self.left or pane is self.right

    def is_left(self, pane: PaneState) -> bool:
        return pane is self.left

    def take_focus_target(self, pane: PaneState) -> str | None:
        """Return and clear the one-shot focus target for ``pane``."""
        if pane is self.left:
            target, self.left_focus_target = self.left_focus_target, None
        elif pane is self.right:
            target, self.right_focus_target = self.right_focus_target, None
        else:
            target = None
        return target


__all__ = ["TabSession"]
