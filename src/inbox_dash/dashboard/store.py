"""Email store: immutable dashboard state, actions and the reducer."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Literal, Protocol, Union

from inbox_dash.core.models import (
    Classification,
    FilterState,
    MessageMeta,
    Priority,
    SelectionState,
    UserTag,
)

from .filters import requires_refetch, visible_messages

LOGGER = logging.getLogger(__name__)

Widget = Literal["email", "calendar", "tasks", "notes"]


@dataclass(frozen=True, slots=True)
class UiState:
    """Panel visibility; ``sidebar_expanded`` and ``active_widget`` persist."""

    detail_open: bool = False
    sidebar_expanded: bool = True
    active_widget: Widget = "email"
    assistant_open: bool = False
    shortcuts_open: bool = False


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True, slots=True)
class DashboardState:
    """Snapshot of everything the dashboard renders.

    Mapping fields are never mutated in place; the reducer builds new ones.
    """

    messages: tuple[MessageMeta, ...] = ()
    classifications: Mapping[str, Classification] = field(default_factory=dict)
    user_tags: tuple[UserTag, ...] = ()
    message_tags: Mapping[str, frozenset[str]] = field(default_factory=dict)
    selection: SelectionState = field(default_factory=SelectionState)
    filters: FilterState = field(default_factory=FilterState)
    cursor: str | None = None
    has_more: bool = False
    is_loading: bool = False
    is_loading_more: bool = False
    error: str | None = None
    is_classifying: bool = False
    auth_required: bool = False
    ui: UiState = field(default_factory=UiState)

    @property
    def message_ids(self) -> tuple[str, ...]:
        return tuple(message.id for message in self.messages)

    @property
    def visible(self) -> tuple[MessageMeta, ...]:
        """Loaded messages passing every active filter, in provider order."""
        return visible_messages(
            self.messages, self.classifications, self.message_tags, self.filters
        )

    def get_message(self, message_id: str | None) -> MessageMeta | None:
        if message_id is None:
            return None
        for message in self.messages:
            if message.id == message_id:
                return message
        return None


# Actions ----------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ReplaceMessages:
    messages: tuple[MessageMeta, ...]
    cursor: str | None = None


@dataclass(frozen=True, slots=True)
class AppendMessages:
    messages: tuple[MessageMeta, ...]
    cursor: str | None = None


@dataclass(frozen=True, slots=True)
class MergeClassifications:
    batch: tuple[Classification, ...]


@dataclass(frozen=True, slots=True)
class SetManualClassification:
    message_id: str
    category: str | None = None
    priority: Priority | None = None


@dataclass(frozen=True, slots=True)
class ToggleSelect:
    message_id: str


@dataclass(frozen=True, slots=True)
class SelectAll:
    pass


@dataclass(frozen=True, slots=True)
class ClearSelection:
    pass


@dataclass(frozen=True, slots=True)
class SetActive:
    message_id: str | None


@dataclass(frozen=True, slots=True)
class MarkReadState:
    message_ids: frozenset[str]
    unread: bool


@dataclass(frozen=True, slots=True)
class SetFilters:
    filters: FilterState


@dataclass(frozen=True, slots=True)
class ResetFilters:
    pass


@dataclass(frozen=True, slots=True)
class SetLoading:
    value: bool


@dataclass(frozen=True, slots=True)
class SetLoadingMore:
    value: bool


@dataclass(frozen=True, slots=True)
class SetError:
    message: str | None


@dataclass(frozen=True, slots=True)
class SetClassifying:
    value: bool


@dataclass(frozen=True, slots=True)
class SetUserTags:
    tags: tuple[UserTag, ...]


@dataclass(frozen=True, slots=True)
class SetMessageTags:
    message_id: str
    tag_ids: frozenset[str]


@dataclass(frozen=True, slots=True)
class SetDetailOpen:
    value: bool


@dataclass(frozen=True, slots=True)
class ToggleSidebar:
    pass


@dataclass(frozen=True, slots=True)
class SetSidebarExpanded:
    value: bool


@dataclass(frozen=True, slots=True)
class SetActiveWidget:
    widget: Widget


@dataclass(frozen=True, slots=True)
class ToggleAssistant:
    pass


@dataclass(frozen=True, slots=True)
class SetAssistantOpen:
    value: bool


@dataclass(frozen=True, slots=True)
class SetShortcutsOpen:
    value: bool


@dataclass(frozen=True, slots=True)
class RequireReauth:
    message: str


Action = Union[
    ReplaceMessages,
    AppendMessages,
    MergeClassifications,
    SetManualClassification,
    ToggleSelect,
    SelectAll,
    ClearSelection,
    SetActive,
    MarkReadState,
    SetFilters,
    ResetFilters,
    SetLoading,
    SetLoadingMore,
    SetError,
    SetClassifying,
    SetUserTags,
    SetMessageTags,
    SetDetailOpen,
    ToggleSidebar,
    SetSidebarExpanded,
    SetActiveWidget,
    ToggleAssistant,
    SetAssistantOpen,
    SetShortcutsOpen,
    RequireReauth,
]


# Reducer ----------------------------------------------------------------------
def _unique(messages: Iterable[MessageMeta], seen: set[str]) -> list[MessageMeta]:
    result = []
    for message in messages:
        if message.id in seen:
            continue
        seen.add(message.id)
        result.append(message)
    return result


def _merge(
    current: Mapping[str, Classification], batch: Iterable[Classification]
) -> dict[str, Classification]:
    merged = dict(current)
    for incoming in batch:
        existing = merged.get(incoming.message_id)
        if existing is not None and existing.manual:
            continue
        merged[incoming.message_id] = incoming
    return merged


def _manual(
    current: Mapping[str, Classification], action: SetManualClassification
) -> dict[str, Classification]:
    existing = current.get(action.message_id)
    if existing is None:
        record = Classification(
            message_id=action.message_id,
            category=action.category or "other",
            priority=action.priority or "medium",
            manual=True,
        )
    else:
        record = replace(
            existing,
            category=action.category or existing.category,
            priority=action.priority or existing.priority,
            manual=True,
        )
    return {**current, action.message_id: record}


def _apply_filters(state: DashboardState, filters: FilterState) -> DashboardState:
    if requires_refetch(state.filters, filters):
        return replace(state, filters=filters, cursor=None, has_more=False)
    return replace(state, filters=filters)


def _toggle(ids: frozenset[str], message_id: str) -> frozenset[str]:
    return ids - {message_id} if message_id in ids else ids | {message_id}


# pylint: disable=too-many-return-statements,too-many-branches
def reduce(state: DashboardState, action: Action) -> DashboardState:
    """Return the state produced by applying ``action`` to ``state``."""
    match action:
        case ReplaceMessages(messages=messages, cursor=cursor):
            return replace(
                state,
                messages=tuple(_unique(messages, set())),
                selection=SelectionState(),
                cursor=cursor,
                has_more=cursor is not None,
                is_loading=False,
                error=None,
                auth_required=False,
            )
        case AppendMessages(messages=messages, cursor=cursor):
            appended = _unique(messages, set(state.message_ids))
            return replace(
                state,
                messages=state.messages + tuple(appended),
                cursor=cursor,
                has_more=cursor is not None,
                is_loading_more=False,
            )
        case MergeClassifications(batch=batch):
            return replace(state, classifications=_merge(state.classifications, batch))
        case SetManualClassification():
            return replace(state, classifications=_manual(state.classifications, action))
        case ToggleSelect(message_id=message_id):
            selected = _toggle(state.selection.selected_ids, message_id)
            return replace(state, selection=replace(state.selection, selected_ids=selected))
        case SelectAll():
            selected = frozenset(state.message_ids)
            return replace(state, selection=replace(state.selection, selected_ids=selected))
        case ClearSelection():
            return replace(
                state, selection=replace(state.selection, selected_ids=frozenset())
            )
        case SetActive(message_id=message_id):
            return replace(state, selection=replace(state.selection, active_id=message_id))
        case MarkReadState(message_ids=message_ids, unread=unread):
            messages = tuple(
                replace(message, is_unread=unread)
                if message.id in message_ids and message.is_unread != unread
                else message
                for message in state.messages
            )
            return replace(state, messages=messages)
        case SetFilters(filters=filters):
            return _apply_filters(state, filters)
        case ResetFilters():
            return _apply_filters(state, FilterState())
        case SetLoading(value=value):
            return replace(state, is_loading=value)
        case SetLoadingMore(value=value):
            return replace(state, is_loading_more=value)
        case SetError(message=message):
            return replace(state, error=message)
        case SetClassifying(value=value):
            return replace(state, is_classifying=value)
        case SetUserTags(tags=tags):
            return replace(state, user_tags=tuple(tags))
        case SetMessageTags(message_id=message_id, tag_ids=tag_ids):
            return replace(
                state,
                message_tags={**state.message_tags, message_id: frozenset(tag_ids)},
            )
        case SetDetailOpen(value=value):
            return replace(state, ui=replace(state.ui, detail_open=value))
        case ToggleSidebar():
            expanded = not state.ui.sidebar_expanded
            return replace(state, ui=replace(state.ui, sidebar_expanded=expanded))
        case SetSidebarExpanded(value=value):
            return replace(state, ui=replace(state.ui, sidebar_expanded=value))
        case SetActiveWidget(widget=widget):
            return replace(state, ui=replace(state.ui, active_widget=widget))
        case ToggleAssistant():
            opened = not state.ui.assistant_open
            return replace(state, ui=replace(state.ui, assistant_open=opened))
        case SetAssistantOpen(value=value):
            return replace(state, ui=replace(state.ui, assistant_open=value))
        case SetShortcutsOpen(value=value):
            return replace(state, ui=replace(state.ui, shortcuts_open=value))
        case RequireReauth(message=message):
            # Loaded data is dropped; only UI preferences survive.
            ui = UiState(
                sidebar_expanded=state.ui.sidebar_expanded,
                active_widget=state.ui.active_widget,
            )
            return DashboardState(error=message, auth_required=True, ui=ui)
    raise TypeError(f"Unknown action: {action!r}")


# Store ------------------------------------------------------------------------
Listener = Callable[[DashboardState, Action], None]


class StateAccessor(Protocol):
    """Read the current snapshot and submit actions at event time."""

    def snapshot(self) -> DashboardState:
        raise NotImplementedError

    def dispatch(self, action: Action) -> DashboardState:
        raise NotImplementedError


class EmailStore(StateAccessor):
    """Owns the current :class:`DashboardState` and notifies subscribers."""

    def __init__(self, initial: DashboardState | None = None) -> None:
        self._state = initial or DashboardState()
        self._listeners: list[Listener] = []

    def snapshot(self) -> DashboardState:
        return self._state

    def dispatch(self, action: Action) -> DashboardState:
        """Apply ``action`` then notify every subscriber of the new state."""
        self._state = reduce(self._state, action)
        LOGGER.debug("Applied %s", type(action).__name__)
        for listener in tuple(self._listeners):
            try:
                listener(self._state, action)
            except Exception:  # pylint: disable=broad-exception-caught
                LOGGER.exception(
                    "Store listener failed after %s", type(action).__name__
                )
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; the returned callable unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


__all__ = [
    "Action",
    "AppendMessages",
    "ClearSelection",
    "DashboardState",
    "EmailStore",
    "Listener",
    "MarkReadState",
    "MergeClassifications",
    "ReplaceMessages",
    "RequireReauth",
    "ResetFilters",
    "SelectAll",
    "SetActive",
    "SetActiveWidget",
    "SetAssistantOpen",
    "SetClassifying",
    "SetDetailOpen",
    "SetError",
    "SetFilters",
    "SetLoading",
    "SetLoadingMore",
    "SetManualClassification",
    "SetMessageTags",
    "SetShortcutsOpen",
    "SetSidebarExpanded",
    "SetUserTags",
    "StateAccessor",
    "ToggleAssistant",
    "ToggleSelect",
    "ToggleSidebar",
    "UiState",
    "Widget",
    "reduce",
]
