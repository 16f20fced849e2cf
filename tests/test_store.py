"""Tests for the email store reducer and subscriptions."""

from __future__ import annotations

import logging

import pytest

from inbox_dash.core.models import Classification, FilterState, MessageMeta
from inbox_dash.dashboard.store import (
    AppendMessages,
    ClearSelection,
    DashboardState,
    EmailStore,
    MarkReadState,
    MergeClassifications,
    ReplaceMessages,
    RequireReauth,
    SelectAll,
    SetActive,
    SetFilters,
    SetLoading,
    SetManualClassification,
    SetMessageTags,
    SetSidebarExpanded,
    ToggleSelect,
    reduce,
)


def _meta(message_id: str, *, unread: bool = False) -> MessageMeta:
    return MessageMeta(
        id=message_id,
        thread_id=f"t-{message_id}",
        sender="sender@example.com",
        subject=f"Subject {message_id}",
        date="",
        snippet="",
        is_unread=unread,
    )


def _classified(message_id: str, category: str = "work", priority: str = "medium"):
    return Classification(message_id=message_id, category=category, priority=priority)


def _loaded(*ids: str, cursor: str | None = None) -> DashboardState:
    return reduce(DashboardState(), ReplaceMessages(tuple(_meta(i) for i in ids), cursor))


def test_replace_then_append_skips_duplicates() -> None:
    state = _loaded("1", "2", cursor="c1")
    assert state.has_more is True

    state = reduce(state, AppendMessages((_meta("2"), _meta("3")), None))
    assert state.message_ids == ("1", "2", "3")
    assert state.cursor is None
    assert state.has_more is False


def test_replace_clears_selection_and_loading() -> None:
    state = _loaded("1", "2")
    state = reduce(state, ToggleSelect("1"))
    state = reduce(state, SetActive("2"))
    state = reduce(state, SetLoading(True))

    state = reduce(state, ReplaceMessages((_meta("5"),), None))
    assert state.selection.selected_ids == frozenset()
    assert state.selection.active_id is None
    assert state.is_loading is False


def test_merge_is_idempotent() -> None:
    state = _loaded("1", "2")
    batch = (_classified("1", "finance"), _classified("2", "work"))
    once = reduce(state, MergeClassifications(batch))
    twice = reduce(once, MergeClassifications(batch))
    assert dict(once.classifications) == dict(twice.classifications)


def test_manual_classification_survives_automatic_merge() -> None:
    state = _loaded("1")
    state = reduce(state, MergeClassifications((_classified("1", "work"),)))
    state = reduce(state, SetManualClassification("1", category="finance"))
    state = reduce(state, MergeClassifications((_classified("1", "promotions", "low"),)))

    record = state.classifications["1"]
    assert record.category == "finance"
    assert record.priority == "medium"
    assert record.manual is True


def test_manual_classification_defaults_for_unclassified() -> None:
    state = reduce(_loaded("1"), SetManualClassification("1", priority="high"))
    record = state.classifications["1"]
    assert (record.category, record.priority, record.manual) == ("other", "high", True)


def test_selection_is_independent_of_active() -> None:
    state = _loaded("1", "2", "3")
    state = reduce(state, SetActive("2"))
    state = reduce(state, ToggleSelect("1"))
    state = reduce(state, ToggleSelect("3"))
    state = reduce(state, ToggleSelect("1"))
    assert state.selection.selected_ids == frozenset({"3"})
    assert state.selection.active_id == "2"

    state = reduce(state, SelectAll())
    assert state.selection.selected_ids == frozenset({"1", "2", "3"})
    state = reduce(state, ClearSelection())
    assert state.selection.selected_ids == frozenset()
    assert state.selection.active_id == "2"


def test_select_all_includes_filtered_out_messages() -> None:
    state = _loaded("1", "2")
    state = reduce(state, SetFilters(FilterState(categories=frozenset({"finance"}))))
    state = reduce(state, SelectAll())
    assert state.visible == ()
    assert state.selection.selected_ids == frozenset({"1", "2"})


def test_mark_read_state_updates_flags() -> None:
    state = reduce(
        DashboardState(), ReplaceMessages((_meta("1", unread=True), _meta("2", unread=True)))
    )
    state = reduce(state, MarkReadState(frozenset({"1"}), unread=False))
    assert [m.is_unread for m in state.messages] == [False, True]


def test_set_filters_keeps_cursor_for_client_side_changes() -> None:
    state = _loaded("1", cursor="next")
    local = reduce(state, SetFilters(FilterState(priorities=frozenset({"high"}))))
    assert local.cursor == "next"
    assert local.has_more is True

    remote = reduce(state, SetFilters(FilterState(unread_only=True)))
    assert remote.cursor is None
    assert remote.has_more is False


def test_visible_respects_tags_and_classifications() -> None:
    state = _loaded("1", "2", "3")
    state = reduce(
        state,
        MergeClassifications(
            (_classified("1", "finance"), _classified("2", "work"), _classified("3", "finance"))
        ),
    )
    state = reduce(state, SetMessageTags("3", frozenset({"t"})))
    state = reduce(
        state,
        SetFilters(FilterState(categories=frozenset({"finance"}), tags=frozenset({"t"}))),
    )
    assert [m.id for m in state.visible] == ["3"]


def test_require_reauth_keeps_only_ui_preferences() -> None:
    state = _loaded("1", cursor="next")
    state = reduce(state, SetSidebarExpanded(False))
    state = reduce(state, RequireReauth("expired"))
    assert state.messages == ()
    assert state.auth_required is True
    assert state.error == "expired"
    assert state.ui.sidebar_expanded is False


def test_unknown_action_is_rejected() -> None:
    with pytest.raises(TypeError):
        reduce(DashboardState(), object())  # type: ignore[arg-type]


def test_store_notifies_and_unsubscribes() -> None:
    store = EmailStore()
    seen: list[str] = []
    unsubscribe = store.subscribe(lambda state, action: seen.append(type(action).__name__))

    store.dispatch(SetLoading(True))
    unsubscribe()
    store.dispatch(SetLoading(False))
    assert seen == ["SetLoading"]


def test_failing_listener_does_not_block_others(caplog: pytest.LogCaptureFixture) -> None:
    store = EmailStore()
    calls: list[bool] = []

    def broken(_state, _action) -> None:
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(lambda state, _action: calls.append(state.is_loading))
    with caplog.at_level(logging.ERROR):
        state = store.dispatch(SetLoading(True))
    assert state.is_loading is True
    assert calls == [True]
    assert "Store listener failed" in caplog.text
