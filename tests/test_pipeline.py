"""Tests for the background classification pipeline."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Sequence

import pytest

from inbox_dash.core.interfaces import ClassificationBatchError
from inbox_dash.core.models import Classification, MessageMeta, MessageSummary
from inbox_dash.dashboard.pipeline import (
    ClassificationPipeline,
    pending_classification_ids,
)
from inbox_dash.dashboard.store import (
    AppendMessages,
    EmailStore,
    ReplaceMessages,
    SetLoading,
)


def _meta(message_id: str) -> MessageMeta:
    return MessageMeta(
        id=message_id,
        thread_id=f"t-{message_id}",
        sender="sender@example.com",
        subject=f"Subject {message_id}",
        date="",
        snippet="",
    )


class StubClassifier:
    """Records submitted ids and classifies everything as work."""

    def __init__(
        self,
        *,
        fail: bool = False,
        fail_first: bool = False,
        block_first: bool = False,
        answer_limit: int | None = None,
    ) -> None:
        self.fail = fail
        self.fail_first = fail_first
        self.block_first = block_first
        self.answer_limit = answer_limit
        self.release = threading.Event()
        self.calls: list[list[str]] = []
        self.known: list[list[str]] = []

    def classify_batch(
        self, messages: Sequence[MessageSummary], known_ids: Sequence[str]
    ) -> list[Classification]:
        self.calls.append([message.id for message in messages])
        self.known.append(list(known_ids))
        if self.block_first and len(self.calls) == 1:
            self.release.wait(timeout=5)
        if self.fail or (self.fail_first and len(self.calls) == 1):
            raise ClassificationBatchError("stub failure")
        answered = messages[: self.answer_limit]
        return [
            Classification(message_id=message.id, category="work", priority="medium")
            for message in answered
        ]


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


def _store(*ids: str) -> EmailStore:
    store = EmailStore()
    store.dispatch(ReplaceMessages(tuple(_meta(i) for i in ids), None))
    return store


def test_run_once_merges_results_and_tracks_in_flight() -> None:
    store = _store("1", "2")
    service = StubClassifier()
    pipeline = ClassificationPipeline(store, service)

    merged = asyncio.run(pipeline.run_once())

    assert merged == 2
    assert service.calls == [["1", "2"]]
    assert service.known == [["1", "2"]]
    assert set(store.snapshot().classifications) == {"1", "2"}
    assert pipeline.in_flight == frozenset({"1", "2"})
    assert store.snapshot().is_classifying is False


def test_in_flight_ids_are_not_resubmitted() -> None:
    store = _store("1", "2")
    service = StubClassifier(block_first=True)
    pipeline = ClassificationPipeline(store, service)

    async def scenario() -> None:
        first = asyncio.create_task(pipeline.run_once())
        await _wait_for(lambda: bool(service.calls))
        store.dispatch(AppendMessages((_meta("3"),), None))
        assert pending_classification_ids(store.snapshot(), pipeline.in_flight) == ["3"]

        await pipeline.run_once()
        service.release.set()
        await first

    asyncio.run(scenario())
    assert service.calls == [["1", "2"], ["3"]]
    assert set(store.snapshot().classifications) == {"1", "2", "3"}


def test_failed_batch_rolls_back_in_flight() -> None:
    store = _store("1", "2")
    pipeline = ClassificationPipeline(store, StubClassifier(fail=True))

    with pytest.raises(ClassificationBatchError):
        asyncio.run(pipeline.run_once())

    assert pipeline.in_flight == frozenset()
    assert store.snapshot().is_classifying is False
    assert pending_classification_ids(store.snapshot(), pipeline.in_flight) == ["1", "2"]


def test_flush_drains_pending_in_batches() -> None:
    store = _store("1", "2", "3")
    service = StubClassifier()
    pipeline = ClassificationPipeline(store, service, batch_size=2)

    total = asyncio.run(pipeline.flush())

    assert total == 3
    assert service.calls == [["1", "2"], ["3"]]


def test_flush_stops_after_failure() -> None:
    store = _store("1", "2", "3")
    service = StubClassifier(fail=True)
    pipeline = ClassificationPipeline(store, service, batch_size=2)

    assert asyncio.run(pipeline.flush()) == 0
    assert service.calls == [["1", "2"]]


def test_store_changes_schedule_debounced_batch() -> None:
    store = EmailStore()
    service = StubClassifier()
    pipeline = ClassificationPipeline(store, service, debounce_seconds=0.01)
    pipeline.start()

    async def scenario() -> None:
        store.dispatch(ReplaceMessages((_meta("1"), _meta("2")), None))
        store.dispatch(AppendMessages((_meta("3"),), None))
        await _wait_for(lambda: len(store.snapshot().classifications) == 3)

    asyncio.run(scenario())
    pipeline.stop()
    assert service.calls == [["1", "2", "3"]]


def test_classification_waits_for_first_page() -> None:
    store = EmailStore()
    service = StubClassifier()
    pipeline = ClassificationPipeline(store, service, debounce_seconds=0.01)
    pipeline.start()

    async def scenario() -> None:
        store.dispatch(ReplaceMessages((_meta("1"),), None))
        store.dispatch(SetLoading(True))
        await asyncio.sleep(0.1)
        assert service.calls == []

        store.dispatch(SetLoading(False))
        await _wait_for(lambda: "1" in store.snapshot().classifications)

    asyncio.run(scenario())
    pipeline.stop()


def test_schedule_without_event_loop_is_deferred() -> None:
    store = EmailStore()
    service = StubClassifier()
    pipeline = ClassificationPipeline(store, service)
    pipeline.start()

    store.dispatch(ReplaceMessages((_meta("1"),), None))

    assert service.calls == []
    assert pipeline.is_running is False
    pipeline.stop()


def test_ids_appended_during_failed_batch_are_still_submitted() -> None:
    store = EmailStore()
    service = StubClassifier(fail_first=True, block_first=True)
    pipeline = ClassificationPipeline(store, service, debounce_seconds=0.01)
    pipeline.start()

    async def scenario() -> None:
        store.dispatch(ReplaceMessages((_meta("1"),), None))
        await _wait_for(lambda: bool(service.calls))
        store.dispatch(AppendMessages((_meta("2"),), None))
        await asyncio.sleep(0.05)
        service.release.set()
        await _wait_for(lambda: "2" in store.snapshot().classifications)

    asyncio.run(scenario())
    pipeline.stop()
    assert service.calls == [["1"], ["2"]]
    assert set(store.snapshot().classifications) == {"2"}
    assert pending_classification_ids(store.snapshot(), pipeline.in_flight) == ["1"]


def test_failed_ids_wait_for_next_list_change() -> None:
    store = EmailStore()
    service = StubClassifier(fail_first=True)
    pipeline = ClassificationPipeline(store, service, debounce_seconds=0.01)
    pipeline.start()

    async def scenario() -> None:
        store.dispatch(ReplaceMessages((_meta("1"),), None))
        await _wait_for(lambda: bool(service.calls))
        await asyncio.sleep(0.1)
        assert service.calls == [["1"]]

        store.dispatch(AppendMessages((_meta("2"),), None))
        await _wait_for(lambda: len(store.snapshot().classifications) == 2)

    asyncio.run(scenario())
    pipeline.stop()
    assert service.calls == [["1"], ["1", "2"]]


def test_unanswered_ids_are_resubmitted_after_refresh() -> None:
    store = _store("1", "2")
    service = StubClassifier(answer_limit=1)
    pipeline = ClassificationPipeline(store, service)
    pipeline.start()

    assert asyncio.run(pipeline.run_once()) == 1
    assert pending_classification_ids(store.snapshot(), pipeline.in_flight) == []

    store.dispatch(ReplaceMessages((_meta("1"), _meta("2")), None))
    assert pending_classification_ids(store.snapshot(), pipeline.in_flight) == ["2"]

    asyncio.run(pipeline.run_once())
    pipeline.stop()
    assert service.calls == [["1", "2"], ["2"]]
    assert set(store.snapshot().classifications) == {"1", "2"}


class CrashingClassifier:
    def __init__(self) -> None:
        self.calls = 0

    def classify_batch(
        self, messages: Sequence[MessageSummary], known_ids: Sequence[str]
    ) -> list[Classification]:
        self.calls += 1
        raise RuntimeError("unexpected")


def test_unexpected_error_rolls_back_in_flight() -> None:
    store = _store("1")
    pipeline = ClassificationPipeline(store, CrashingClassifier())

    with pytest.raises(RuntimeError):
        asyncio.run(pipeline.run_once())

    assert pipeline.in_flight == frozenset()
    assert store.snapshot().is_classifying is False


def test_background_crash_is_logged_and_released(
    caplog: pytest.LogCaptureFixture,
) -> None:
    store = EmailStore()
    service = CrashingClassifier()
    pipeline = ClassificationPipeline(store, service, debounce_seconds=0.01)
    pipeline.start()

    async def scenario() -> None:
        store.dispatch(ReplaceMessages((_meta("1"),), None))
        await _wait_for(lambda: service.calls == 1)
        await _wait_for(lambda: not pipeline.is_running)

    with caplog.at_level("ERROR", logger="inbox_dash.dashboard.pipeline"):
        asyncio.run(scenario())
    pipeline.stop()

    assert pipeline.in_flight == frozenset()
    assert "crashed" in caplog.text
