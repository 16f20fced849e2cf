"""Keyboard navigation over the visible message list."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .store import (
    ClearSelection,
    SelectAll,
    SetActive,
    SetDetailOpen,
    SetShortcutsOpen,
    StateAccessor,
    ToggleAssistant,
    ToggleSelect,
    ToggleSidebar,
)

LOGGER = logging.getLogger(__name__)

TEXT_ENTRY_TARGETS = frozenset({"INPUT", "TEXTAREA"})


class NavInput(Enum):
    NEXT = "next"
    PREV = "prev"
    OPEN = "open"
    CLOSE = "close"
    TOGGLE_SELECTION = "toggle_selection"
    SELECT_ALL = "select_all"
    REFRESH = "refresh"
    TOGGLE_SIDEBAR = "toggle_sidebar"
    TOGGLE_ASSISTANT = "toggle_assistant"
    HELP = "help"


_PLAIN_KEYS: dict[str, NavInput] = {
    "j": NavInput.NEXT,
    "ArrowDown": NavInput.NEXT,
    "k": NavInput.PREV,
    "ArrowUp": NavInput.PREV,
    "Enter": NavInput.OPEN,
    "o": NavInput.OPEN,
    "Escape": NavInput.CLOSE,
    "x": NavInput.TOGGLE_SELECTION,
    "[": NavInput.TOGGLE_SIDEBAR,
    "?": NavInput.HELP,
}
_MODIFIER_KEYS: dict[str, NavInput] = {
    "a": NavInput.SELECT_ALL,
    "i": NavInput.TOGGLE_ASSISTANT,
}

SHORTCUT_GROUPS: tuple[tuple[str, tuple[tuple[str, str], ...]], ...] = (
    (
        "Navigation",
        (
            ("j / ArrowDown", "Move to next email"),
            ("k / ArrowUp", "Move to previous email"),
            ("Enter / o", "Open selected email"),
            ("Escape", "Close email / Clear selection"),
        ),
    ),
    (
        "Actions",
        (
            ("r", "Refresh emails"),
            ("x", "Select / Deselect email"),
            ("Ctrl+a", "Select all emails"),
        ),
    ),
    (
        "General",
        (
            ("?", "Show keyboard shortcuts"),
            ("[", "Toggle sidebar"),
            ("Ctrl+i", "Toggle AI assistant"),
        ),
    ),
)


@dataclass(frozen=True, slots=True)
class KeyEvent:
    """A key press; ``target`` is the tag name of the focused element."""

    key: str
    ctrl: bool = False
    meta: bool = False
    target: str | None = None

    @property
    def has_modifier(self) -> bool:
        return self.ctrl or self.meta


@dataclass(frozen=True, slots=True)
class NavResult:
    """Side effects the caller owns after a navigation input."""

    input: NavInput
    open_message_id: str | None = None
    close_detail: bool = False
    refresh: bool = False


def resolve_input(event: KeyEvent) -> NavInput | None:
    """Map a key press to a navigation input, ignoring text-entry focus."""
    if event.target and event.target.upper() in TEXT_ENTRY_TARGETS:
        return None
    if event.has_modifier:
        return _MODIFIER_KEYS.get(event.key.lower())
    if event.key == "r":
        return NavInput.REFRESH
    return _PLAIN_KEYS.get(event.key)


class NavigationController:
    """Apply navigation inputs against the state visible at event time."""

    def handle_key(self, event: KeyEvent, accessor: StateAccessor) -> NavResult | None:
        nav_input = resolve_input(event)
        if nav_input is None:
            return None
        return self.apply(nav_input, accessor)

    # pylint: disable=too-many-return-statements
    def apply(self, nav_input: NavInput, accessor: StateAccessor) -> NavResult:
        """Mutate state through ``accessor`` and report caller-owned effects."""
        state = accessor.snapshot()
        active_id = state.selection.active_id
        result = NavResult(nav_input)
        LOGGER.debug("Navigation input %s (active=%s)", nav_input.value, active_id)

        match nav_input:
            case NavInput.NEXT | NavInput.PREV:
                target = self._step(
                    [message.id for message in state.visible],
                    active_id,
                    forward=nav_input is NavInput.NEXT,
                )
                if target is not None:
                    accessor.dispatch(SetActive(target))
            case NavInput.OPEN:
                if active_id is not None:
                    return NavResult(nav_input, open_message_id=active_id)
            case NavInput.CLOSE:
                if state.ui.shortcuts_open:
                    accessor.dispatch(SetShortcutsOpen(False))
                elif state.ui.detail_open:
                    accessor.dispatch(SetDetailOpen(False))
                    return NavResult(nav_input, close_detail=True)
                elif state.selection.selected_ids:
                    accessor.dispatch(ClearSelection())
                elif active_id is not None:
                    accessor.dispatch(SetActive(None))
            case NavInput.TOGGLE_SELECTION:
                if active_id is not None:
                    accessor.dispatch(ToggleSelect(active_id))
            case NavInput.SELECT_ALL:
                accessor.dispatch(SelectAll())
            case NavInput.REFRESH:
                return NavResult(nav_input, refresh=True)
            case NavInput.TOGGLE_SIDEBAR:
                accessor.dispatch(ToggleSidebar())
            case NavInput.TOGGLE_ASSISTANT:
                accessor.dispatch(ToggleAssistant())
            case NavInput.HELP:
                accessor.dispatch(SetShortcutsOpen(True))
        return result

    @staticmethod
    def _step(visible_ids: list[str], active_id: str | None, *, forward: bool) -> str | None:
        # An active id that is no longer visible behaves as unset.
        index = visible_ids.index(active_id) if active_id in visible_ids else -1
        if index == -1:
            if forward and visible_ids:
                return visible_ids[0]
            return None
        neighbour = index + 1 if forward else index - 1
        if 0 <= neighbour < len(visible_ids):
            return visible_ids[neighbour]
        return None


__all__ = [
    "KeyEvent",
    "NavInput",
    "NavResult",
    "NavigationController",
    "SHORTCUT_GROUPS",
    "TEXT_ENTRY_TARGETS",
    "resolve_input",
]
