"""Assistant panel: chat and quick actions scoped to the viewing context."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Literal

from inbox_dash.core.interfaces import AssistantService, FetchError
from inbox_dash.core.models import ChatTurn
from inbox_dash.intelligence.llm import describe_llm_error
from inbox_dash.intelligence.results import (
    ANALYSIS_KINDS,
    AnalysisKind,
    CategoryAssignment,
    CategoryBundle,
    EmailSummaryResult,
    ExtractedTask,
    FilterBundle,
    SuggestedFilter,
    SummaryBundle,
    TaskBundle,
)

from .context import ViewingContext, derive_viewing_context
from .loader import MessageLoader
from .store import EmailStore, SetAssistantOpen

LOGGER = logging.getLogger(__name__)

PanelTab = Literal["chat", "actions"]


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True, slots=True)
class AssistantPanelState:
    active_tab: PanelTab = "chat"
    messages: tuple[ChatTurn, ...] = ()
    is_typing: bool = False
    summaries: tuple[EmailSummaryResult, ...] = ()
    categories: tuple[CategoryAssignment, ...] = ()
    tasks: tuple[ExtractedTask, ...] = ()
    suggested_filters: tuple[SuggestedFilter, ...] = ()
    insights: tuple[str, ...] = ()
    is_analyzing: bool = False
    analyze_error: str | None = None


class AssistantPanel:
    """Chat history and analysis results for the current session."""

    def __init__(
        self,
        store: EmailStore,
        service: AssistantService,
        loader: MessageLoader,
        *,
        recent_limit: int = 10,
        context_limit: int = 50,
    ) -> None:
        self._store = store
        self._service = service
        self._loader = loader
        self._recent_limit = recent_limit
        self._context_limit = context_limit
        self._state = AssistantPanelState()

    @property
    def state(self) -> AssistantPanelState:
        return self._state

    def viewing_context(self) -> ViewingContext:
        """Derive the context from the store as it is right now."""
        return derive_viewing_context(
            self._store.snapshot(),
            recent_limit=self._recent_limit,
            context_limit=self._context_limit,
        )

    def set_active_tab(self, tab: PanelTab) -> None:
        self._state = replace(self._state, active_tab=tab)

    async def send(self, message: str) -> AssistantPanelState:
        """Ask the assistant ``message``; failures become the reply text."""
        text = message.strip()
        if not text:
            return self._state

        history = self._state.messages
        self._state = replace(
            self._state,
            messages=history + (ChatTurn("user", text),),
            is_typing=True,
        )
        context = self.viewing_context()
        try:
            reply = await asyncio.to_thread(
                self._service.chat, text, context.summaries, history
            )
        except FetchError as exc:
            LOGGER.warning("Assistant chat failed: %s", exc)
            reply = describe_llm_error(exc)

        self._state = replace(
            self._state,
            messages=self._state.messages + (ChatTurn("assistant", reply),),
            is_typing=False,
        )
        return self._state

    async def run_action(self, kind: AnalysisKind) -> AssistantPanelState:
        """Run a quick action over the viewing context and keep its result."""
        if kind not in ANALYSIS_KINDS:
            raise ValueError(f"Unknown analysis kind: {kind}")
        context = self.viewing_context()
        if not context.messages:
            self._state = replace(self._state, analyze_error="No emails provided")
            return self._state

        self._state = replace(self._state, is_analyzing=True, analyze_error=None)
        try:
            result = await asyncio.to_thread(
                self._service.analyze, kind, context.summaries
            )
        except FetchError as exc:
            LOGGER.warning("Assistant %s action failed: %s", kind, exc)
            self._state = replace(
                self._state, is_analyzing=False, analyze_error=describe_llm_error(exc)
            )
            return self._state

        match result:
            case SummaryBundle(summaries=summaries):
                self._state = replace(self._state, summaries=tuple(summaries))
            case CategoryBundle(categories=categories):
                self._state = replace(self._state, categories=tuple(categories))
            case TaskBundle(tasks=tasks):
                self._state = replace(self._state, tasks=tuple(tasks))
            case FilterBundle(suggested_filters=filters, insights=insights):
                self._state = replace(
                    self._state,
                    suggested_filters=tuple(filters),
                    insights=tuple(insights),
                )
        self._state = replace(self._state, is_analyzing=False)
        return self._state

    async def apply_filter(self, query: str) -> bool:
        """Use a suggested search as the filter text and close the panel."""
        self._store.dispatch(SetAssistantOpen(False))
        filters = replace(self._store.snapshot().filters, search=query)
        return await self._loader.apply_filters(filters)

    def clear_chat(self) -> None:
        self._state = replace(self._state, messages=())

    def clear_results(self) -> None:
        self._state = replace(
            self._state,
            summaries=(),
            categories=(),
            tasks=(),
            suggested_filters=(),
            insights=(),
        )


__all__ = ["AssistantPanel", "AssistantPanelState", "PanelTab"]
