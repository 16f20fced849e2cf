"""Detail surface: full body, read-state side effect and per-message summary."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import MutableMapping
from dataclasses import dataclass, replace

from inbox_dash.core.interfaces import (
    AssistantService,
    AuthError,
    FetchError,
    MailProvider,
)
from inbox_dash.core.models import FullMessage, MessageSummary
from inbox_dash.intelligence.llm import describe_llm_error
from inbox_dash.intelligence.results import EmailSummaryResult

from .store import (
    EmailStore,
    MarkReadState,
    RequireReauth,
    SetActive,
    SetDetailOpen,
)

LOGGER = logging.getLogger(__name__)


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True, slots=True)
class DetailState:
    message_id: str | None = None
    message: FullMessage | None = None
    is_loading: bool = False
    error: str | None = None
    summary: EmailSummaryResult | None = None
    summary_loading: bool = False
    summary_error: str | None = None


class DetailSurface:
    """Loads the open message on demand; holds no authoritative list state."""

    def __init__(
        self,
        store: EmailStore,
        provider: MailProvider,
        assistant: AssistantService,
        *,
        saved_summaries: MutableMapping[str, EmailSummaryResult] | None = None,
    ) -> None:
        self._store = store
        self._provider = provider
        self._assistant = assistant
        self._summaries = saved_summaries if saved_summaries is not None else {}
        self._state = DetailState()

    @property
    def state(self) -> DetailState:
        return self._state

    async def open(self, message_id: str) -> DetailState:
        """Open ``message_id``, fetch its body and mark it read locally."""
        if self._store.snapshot().selection.active_id != message_id:
            self._store.dispatch(SetActive(message_id))
        self._store.dispatch(SetDetailOpen(True))
        self._state = DetailState(
            message_id=message_id,
            is_loading=True,
            summary=self._summaries.get(message_id),
        )

        try:
            message = await asyncio.to_thread(
                self._provider.get_full_message, message_id
            )
        except AuthError as exc:
            if self._is_open(message_id):
                self._state = replace(self._state, is_loading=False, error=str(exc))
                self._store.dispatch(RequireReauth(str(exc)))
            return self._state
        except FetchError as exc:
            if self._is_open(message_id):
                LOGGER.warning("Failed to load message %s: %s", message_id, exc)
                self._state = replace(self._state, is_loading=False, error=str(exc))
            return self._state

        if not self._is_open(message_id):
            LOGGER.debug("Dropping stale body for %s", message_id)
            return self._state

        self._state = replace(self._state, message=message, is_loading=False)
        self._store.dispatch(MarkReadState(frozenset({message_id}), unread=False))
        return self._state

    async def summarize(self) -> DetailState:
        """Summarise the open message and remember the result for the session."""
        message = self._state.message
        if message is None:
            return self._state
        message_id = message.id
        self._state = replace(self._state, summary_loading=True, summary_error=None)

        meta = self._store.snapshot().get_message(message_id)
        projection = MessageSummary(
            id=message_id,
            sender=message.sender,
            subject=message.subject,
            snippet=meta.snippet if meta else "",
            date=message.date,
            body=message.body,
        )
        try:
            bundle = await asyncio.to_thread(self._assistant.summarize, [projection])
        except FetchError as exc:
            LOGGER.warning("Summary failed for %s: %s", message_id, exc)
            if self._is_open(message_id):
                self._state = replace(
                    self._state,
                    summary_loading=False,
                    summary_error=describe_llm_error(exc),
                )
            return self._state

        summary = bundle.summaries[0] if bundle.summaries else None
        if summary is not None:
            summary.id = message_id
            self._summaries[message_id] = summary
        if self._is_open(message_id):
            self._state = replace(self._state, summary=summary, summary_loading=False)
        return self._state

    def close(self) -> None:
        self._store.dispatch(SetDetailOpen(False))
        self._state = DetailState()

    def _is_open(self, message_id: str) -> bool:
        return (
            self._state.message_id == message_id
            and self._store.snapshot().ui.detail_open
        )


__all__ = ["DetailState", "DetailSurface"]
