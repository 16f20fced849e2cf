"""Background classification of newly loaded messages."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Collection

from inbox_dash.core.interfaces import ClassificationService, FetchError
from inbox_dash.core.models import MessageSummary

from .store import (
    Action,
    AppendMessages,
    DashboardState,
    EmailStore,
    MergeClassifications,
    ReplaceMessages,
    SetClassifying,
    SetLoading,
)

LOGGER = logging.getLogger(__name__)


def pending_classification_ids(
    state: DashboardState, in_flight: Collection[str]
) -> list[str]:
    """Loaded ids that are neither classified nor already submitted."""
    return [
        message_id
        for message_id in state.message_ids
        if message_id not in state.classifications and message_id not in in_flight
    ]


class ClassificationPipeline:
    """Debounced batch classification driven by store changes.

    Every submitted id stays in the in-flight set unless its batch fails, so
    an id is never sent twice while a response can still arrive. Ids the
    service answered without a result are released on the next page-one
    replace, so a refresh submits them again.
    """

    def __init__(
        self,
        store: EmailStore,
        service: ClassificationService,
        *,
        debounce_seconds: float = 1.0,
        batch_size: int = 50,
    ) -> None:
        self._store = store
        self._service = service
        self._debounce_seconds = debounce_seconds
        self._batch_size = max(1, batch_size)
        self._in_flight: set[str] = set()
        self._unanswered: set[str] = set()
        self._failed: set[str] = set()
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Subscribe to the store so message list changes schedule a batch."""
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self._on_action)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def schedule(self) -> None:
        """(Re)start the debounce window on the running event loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.debug("No running event loop; classification deferred")
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self._debounce_seconds, self._fire)

    async def run_once(self) -> int:
        """Classify one batch of pending ids; return how many were merged."""
        state = self._store.snapshot()
        batch_ids = self._next_batch(state)
        if not batch_ids:
            return 0
        return await self._submit(state, batch_ids)

    async def flush(self) -> int:
        """Classify every pending id now, stopping at the first failed batch."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        total = 0
        while pending_classification_ids(self._store.snapshot(), self._in_flight):
            try:
                total += await self.run_once()
            except FetchError:
                break
        return total

    # Internals ----------------------------------------------------------------
    def _next_batch(
        self, state: DashboardState, exclude: Collection[str] = ()
    ) -> list[str]:
        pending = pending_classification_ids(state, self._in_flight)
        return [message_id for message_id in pending if message_id not in exclude][
            : self._batch_size
        ]

    async def _submit(self, state: DashboardState, batch_ids: list[str]) -> int:
        self._in_flight.update(batch_ids)
        wanted = set(batch_ids)
        summaries = [
            MessageSummary.from_meta(message)
            for message in state.messages
            if message.id in wanted
        ]
        known_ids = list(state.message_ids)

        self._store.dispatch(SetClassifying(True))
        results = None
        try:
            results = await asyncio.to_thread(
                self._service.classify_batch, summaries, known_ids
            )
        except FetchError as exc:
            LOGGER.warning(
                "Classification batch of %d messages failed: %s", len(batch_ids), exc
            )
            raise
        finally:
            if results is None:
                self._in_flight.difference_update(batch_ids)
            self._store.dispatch(SetClassifying(False))

        accepted = tuple(result for result in results if result.message_id in wanted)
        if accepted:
            self._store.dispatch(MergeClassifications(accepted))
        answered = {result.message_id for result in accepted}
        self._unanswered.update(wanted - answered)
        LOGGER.info("Merged %d classifications", len(accepted))
        return len(accepted)

    def _on_action(self, state: DashboardState, action: Action) -> None:
        if isinstance(action, ReplaceMessages):
            self._release_unanswered(state)
            self._failed.clear()
            self.schedule()
        elif isinstance(action, AppendMessages):
            self._failed.clear()
            self.schedule()
        elif isinstance(action, SetLoading) and not action.value:
            if pending_classification_ids(state, self._in_flight):
                self.schedule()

    def _release_unanswered(self, state: DashboardState) -> None:
        released = {
            message_id
            for message_id in self._unanswered
            if message_id not in state.classifications
        }
        self._in_flight.difference_update(released)
        self._unanswered.clear()
        if released:
            LOGGER.debug("Released %d unanswered ids for resubmission", len(released))

    def _fire(self) -> None:
        self._timer = None
        if self.is_running:
            # The running cycle reschedules itself for anything left pending.
            return
        if self._store.snapshot().is_loading:
            LOGGER.debug("First page still loading; classification postponed")
            return
        self._task = asyncio.get_running_loop().create_task(self._cycle())

    async def _cycle(self) -> None:
        state = self._store.snapshot()
        batch_ids = self._next_batch(state, self._failed)
        try:
            if batch_ids:
                await self._submit(state, batch_ids)
        except FetchError:
            # The failed batch waits for the next list change; others go on.
            self._failed.update(batch_ids)
            others = self._next_batch(self._store.snapshot(), self._failed)
            if others:
                self.schedule()
            return
        except Exception:  # pylint: disable=broad-exception-caught
            LOGGER.exception(
                "Classification batch of %d messages crashed", len(batch_ids)
            )
            return
        finally:
            self._task = None
        pending = self._next_batch(self._store.snapshot(), self._failed)
        if pending:
            self.schedule()


__all__ = ["ClassificationPipeline", "pending_classification_ids"]
