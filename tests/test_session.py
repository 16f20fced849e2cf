"""Tests for the dashboard session wiring."""

from __future__ import annotations

import asyncio
import json
import threading
from pathlib import Path

import pytest

from inbox_dash.core.config import AppSettings
from inbox_dash.core.models import (
    Classification,
    FilterState,
    FullMessage,
    MessageMeta,
    MessagePage,
)
from inbox_dash.dashboard import DashboardSession, KeyEvent
from inbox_dash.dashboard.preferences import UiPreferences, load_preferences
from inbox_dash.dashboard.store import SetActiveWidget, ToggleSidebar


def _meta(message_id: str) -> MessageMeta:
    return MessageMeta(
        id=message_id,
        thread_id="",
        sender="carol@example.com",
        subject=f"Subject {message_id}",
        date="",
        snippet="",
        is_unread=True,
    )


class StubProvider:
    def __init__(self) -> None:
        self.list_calls = 0

    def list_messages(self, query, page_size, cursor) -> MessagePage:
        self.list_calls += 1
        return MessagePage(messages=(_meta("A"), _meta("B")), next_cursor=None)

    def get_full_message(self, message_id: str) -> FullMessage:
        return FullMessage(
            id=message_id,
            thread_id="",
            sender="carol@example.com",
            to="",
            subject="",
            date="",
            body="hello",
            is_html=False,
        )


class StubClassifier:
    def classify_batch(self, messages, known_ids):
        return [
            Classification(message_id=m.id, category="finance", priority="high")
            for m in messages
        ]


def _session(tmp_path: Path, provider: StubProvider | None = None) -> DashboardSession:
    settings = AppSettings.model_validate(
        {"ui": {"preferences_path": str(tmp_path / "ui.json")}}
    )
    return DashboardSession(
        mail_provider=provider or StubProvider(),
        classifier=StubClassifier(),
        assistant=object(),  # type: ignore[arg-type]
        settings=settings,
    )


def test_preferences_are_persisted_and_restored(tmp_path: Path) -> None:
    session = _session(tmp_path)
    session.dispatch(ToggleSidebar())
    session.dispatch(SetActiveWidget("tasks"))

    stored = json.loads((tmp_path / "ui.json").read_text(encoding="utf-8"))
    assert stored == {"sidebarExpanded": False, "activeWidget": "tasks"}

    restored = _session(tmp_path).snapshot().ui
    assert restored.sidebar_expanded is False
    assert restored.active_widget == "tasks"


def test_unreadable_preferences_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "ui.json"
    path.write_text("{broken", encoding="utf-8")
    assert load_preferences(path) == UiPreferences()
    assert load_preferences(None) == UiPreferences()


def test_keys_drive_refresh_and_open(tmp_path: Path) -> None:
    provider = StubProvider()
    session = _session(tmp_path, provider)

    async def scenario() -> None:
        result = await session.handle_key(KeyEvent("r"))
        assert result is not None and result.refresh
        await session.handle_key(KeyEvent("j"))
        await session.handle_key(KeyEvent("Enter"))

    asyncio.run(scenario())
    state = session.snapshot()
    assert provider.list_calls == 1
    assert state.selection.active_id == "A"
    assert state.ui.detail_open is True
    assert state.messages[0].is_unread is False
    assert session.detail.state.message is not None


class BlockingBodyProvider(StubProvider):
    def __init__(self) -> None:
        super().__init__()
        self.release = threading.Event()
        self.started = threading.Event()

    def get_full_message(self, message_id: str) -> FullMessage:
        self.started.set()
        self.release.wait(timeout=5)
        return super().get_full_message(message_id)


def test_body_arriving_after_escape_is_dropped(tmp_path: Path) -> None:
    provider = BlockingBodyProvider()
    session = _session(tmp_path, provider)

    async def scenario() -> None:
        await session.loader.load_first_page()
        await session.handle_key(KeyEvent("j"))
        opening = asyncio.create_task(session.handle_key(KeyEvent("Enter")))
        while not provider.started.is_set():
            await asyncio.sleep(0.01)

        result = await session.handle_key(KeyEvent("Escape"))
        assert result is not None and result.close_detail
        provider.release.set()
        await opening

    asyncio.run(scenario())
    state = session.snapshot()
    assert state.ui.detail_open is False
    assert session.detail.state.message_id is None
    assert session.detail.state.message is None
    assert state.get_message("A").is_unread is True


def test_unmapped_key_is_ignored(tmp_path: Path) -> None:
    session = _session(tmp_path)
    assert asyncio.run(session.handle_key(KeyEvent("z"))) is None


def test_finance_filter_after_classification(tmp_path: Path) -> None:
    session = _session(tmp_path)
    session.start()

    async def scenario() -> None:
        await session.loader.load_first_page()
        await session.pipeline.flush()
        refetched = await session.loader.apply_filters(
            FilterState(categories=frozenset({"finance"}))
        )
        assert refetched is False

    asyncio.run(scenario())
    session.stop()
    assert [m.id for m in session.snapshot().visible] == ["A", "B"]

    session.set_manual_classification("B", category="work")
    state = session.snapshot()
    assert state.classifications["B"].manual is True
    assert state.classifications["B"].priority == "high"
    assert [m.id for m in state.visible] == ["A"]


def test_manual_classification_is_validated(tmp_path: Path) -> None:
    session = _session(tmp_path)
    with pytest.raises(ValueError):
        session.set_manual_classification("A", category="spaceships")
    with pytest.raises(ValueError):
        session.set_manual_classification("A", priority="urgent")  # type: ignore[arg-type]
