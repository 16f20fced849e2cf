"""Tests for the message detail surface."""

from __future__ import annotations

import asyncio
import threading

from inbox_dash.core.interfaces import AuthError, FetchError
from inbox_dash.core.models import FullMessage, MessageMeta, MessageSummary
from inbox_dash.dashboard.detail import DetailSurface
from inbox_dash.dashboard.store import EmailStore, ReplaceMessages
from inbox_dash.intelligence.llm import LLMError
from inbox_dash.intelligence.results import EmailSummaryResult, SummaryBundle


def _meta(message_id: str) -> MessageMeta:
    return MessageMeta(
        id=message_id,
        thread_id="",
        sender="alice@example.com",
        subject=f"Subject {message_id}",
        date="",
        snippet=f"snippet {message_id}",
        is_unread=True,
    )


def _full(message_id: str) -> FullMessage:
    return FullMessage(
        id=message_id,
        thread_id="",
        sender="alice@example.com",
        to="me@example.com",
        subject=f"Subject {message_id}",
        date="",
        body=f"body {message_id}",
        is_html=False,
    )


class StubProvider:
    def __init__(self) -> None:
        self.error: Exception | None = None
        self.gates: dict[str, threading.Event] = {}

    def list_messages(self, query, page_size, cursor):
        raise NotImplementedError

    def get_full_message(self, message_id: str) -> FullMessage:
        gate = self.gates.get(message_id)
        if gate is not None:
            gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return _full(message_id)


class StubAssistant:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.contexts: list[list[MessageSummary]] = []

    def summarize(self, context):
        self.contexts.append(list(context))
        if self.error is not None:
            raise self.error
        return SummaryBundle(
            summaries=[EmailSummaryResult(id="ignored", summary="Short version")]
        )


def _surface(provider=None, assistant=None, saved=None):
    store = EmailStore()
    store.dispatch(ReplaceMessages((_meta("1"), _meta("2")), None))
    surface = DetailSurface(
        store,
        provider or StubProvider(),
        assistant or StubAssistant(),
        saved_summaries=saved,
    )
    return store, surface


def test_open_loads_body_and_marks_read() -> None:
    store, surface = _surface()

    detail = asyncio.run(surface.open("1"))

    assert detail.message is not None and detail.message.body == "body 1"
    assert detail.is_loading is False
    state = store.snapshot()
    assert state.selection.active_id == "1"
    assert state.ui.detail_open is True
    assert [m.is_unread for m in state.messages] == [False, True]


def test_fetch_failure_keeps_message_unread() -> None:
    provider = StubProvider()
    provider.error = FetchError("Gmail API error: 500 - boom")
    store, surface = _surface(provider)

    detail = asyncio.run(surface.open("1"))

    assert detail.error == "Gmail API error: 500 - boom"
    assert detail.message is None
    assert store.snapshot().messages[0].is_unread is True


def test_auth_failure_requires_reauth() -> None:
    provider = StubProvider()
    provider.error = AuthError(expired=True)
    store, surface = _surface(provider)

    asyncio.run(surface.open("1"))

    assert store.snapshot().auth_required is True


def test_stale_body_is_dropped() -> None:
    provider = StubProvider()
    provider.gates["1"] = threading.Event()
    store, surface = _surface(provider)

    async def scenario() -> None:
        slow = asyncio.create_task(surface.open("1"))
        await asyncio.sleep(0.05)
        await surface.open("2")
        provider.gates["1"].set()
        await slow

    asyncio.run(scenario())
    assert surface.state.message_id == "2"
    assert surface.state.message is not None and surface.state.message.id == "2"
    assert [m.is_unread for m in store.snapshot().messages] == [True, False]


def test_summary_is_saved_and_restored() -> None:
    saved: dict[str, EmailSummaryResult] = {}
    assistant = StubAssistant()
    _, surface = _surface(assistant=assistant, saved=saved)

    async def scenario() -> None:
        await surface.open("1")
        await surface.summarize()
        surface.close()
        await surface.open("1")

    asyncio.run(scenario())
    projection = assistant.contexts[0][0]
    assert projection.body == "body 1"
    assert projection.snippet == "snippet 1"
    assert saved["1"].summary == "Short version"
    assert saved["1"].id == "1"
    assert surface.state.summary is not None


def test_summary_failure_is_described() -> None:
    assistant = StubAssistant(error=LLMError("busy", status_code=503))
    _, surface = _surface(assistant=assistant)

    async def scenario():
        await surface.open("1")
        return await surface.summarize()

    detail = asyncio.run(scenario())
    assert detail.summary_loading is False
    assert "temporarily busy" in (detail.summary_error or "")


def test_close_resets_surface() -> None:
    store, surface = _surface()
    asyncio.run(surface.open("1"))
    surface.close()
    assert surface.state.message_id is None
    assert store.snapshot().ui.detail_open is False


def test_body_after_close_is_dropped() -> None:
    provider = StubProvider()
    provider.gates["1"] = threading.Event()
    store, surface = _surface(provider)

    async def scenario() -> None:
        pending = asyncio.create_task(surface.open("1"))
        await asyncio.sleep(0.05)
        surface.close()
        provider.gates["1"].set()
        await pending

    asyncio.run(scenario())
    assert surface.state.message is None
    assert store.snapshot().ui.detail_open is False
    assert store.snapshot().messages[0].is_unread is True
