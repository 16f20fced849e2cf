"""Conversational and analysis calls over a window of messages."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TypeVar

from pydantic import BaseModel

from inbox_dash.core.interfaces import AssistantService, ParseError
from inbox_dash.core.models import ChatTurn, MessageSummary

from .fallback import (
    build_deterministic_summary,
    classify_by_keywords,
    extract_action_tasks,
)
from .llm import LLMClient, LLMError
from .prompts import (
    CHAT_READY_REPLY,
    build_categorize_prompt,
    build_chat_preamble,
    build_filters_prompt,
    build_reply_prompt,
    build_summary_prompt,
    build_tasks_prompt,
)
from .results import (
    AnalysisKind,
    AnalysisResult,
    CategoryAssignment,
    CategoryBundle,
    FilterBundle,
    SummaryBundle,
    TaskBundle,
    parse_payload,
)

LOGGER = logging.getLogger(__name__)

BundleT = TypeVar("BundleT", bound=BaseModel)

REPLY_TONES = ("professional", "casual", "friendly")


class LLMAssistantService(AssistantService):
    """Assistant backed by an LLM; heuristics stand in when none is configured."""

    def __init__(
        self, llm_client: LLMClient | None, *, fallback_enabled: bool = True
    ) -> None:
        self._llm_client = llm_client
        self._fallback_enabled = fallback_enabled

    def chat(
        self,
        message: str,
        context: Sequence[MessageSummary],
        history: Sequence[ChatTurn],
    ) -> str:
        """Answer ``message`` with the full conversation replayed."""
        client = self._require_client()
        messages = [
            {"role": "user", "content": build_chat_preamble(context)},
            {"role": "assistant", "content": CHAT_READY_REPLY},
        ]
        messages.extend({"role": turn.role, "content": turn.content} for turn in history)
        messages.append({"role": "user", "content": message})
        return client.chat(messages).strip()

    def summarize(self, context: Sequence[MessageSummary]) -> SummaryBundle:
        if self._llm_client is None:
            return SummaryBundle(
                summaries=[build_deterministic_summary(m) for m in self._fallback(context)]
            )
        bundle = self._generate(build_summary_prompt(context), SummaryBundle)
        # Summaries are matched to the context by position.
        for summary, message in zip(bundle.summaries, context):
            summary.id = message.id
        return bundle

    def categorize(self, context: Sequence[MessageSummary]) -> CategoryBundle:
        if self._llm_client is None:
            assignments = []
            for message in self._fallback(context):
                guess = classify_by_keywords(message)
                assignments.append(
                    CategoryAssignment(
                        id=message.id,
                        category=guess.category,
                        priority=guess.priority,
                        reason=guess.reason or "",
                    )
                )
            return CategoryBundle(categories=assignments)
        return self._generate(build_categorize_prompt(context), CategoryBundle)

    def extract_tasks(self, context: Sequence[MessageSummary]) -> TaskBundle:
        if self._llm_client is None:
            return TaskBundle(tasks=extract_action_tasks(self._fallback(context)))
        return self._generate(build_tasks_prompt(context), TaskBundle)

    def suggest_filters(self, context: Sequence[MessageSummary]) -> FilterBundle:
        if self._llm_client is None:
            self._fallback(context)
            return FilterBundle()
        return self._generate(build_filters_prompt(context), FilterBundle)

    def suggest_reply(self, message: MessageSummary, tone: str = "professional") -> str:
        """Draft a reply body in one of :data:`REPLY_TONES`."""
        if tone not in REPLY_TONES:
            raise ValueError(f"Unsupported reply tone: {tone}")
        client = self._require_client()
        return client.generate(build_reply_prompt(message, tone)).strip()

    def analyze(
        self, kind: AnalysisKind, context: Sequence[MessageSummary]
    ) -> AnalysisResult:
        """Run the analysis named by ``kind``."""
        handlers: dict[str, Callable[[Sequence[MessageSummary]], AnalysisResult]] = {
            "summarize": self.summarize,
            "categorize": self.categorize,
            "tasks": self.extract_tasks,
            "filters": self.suggest_filters,
        }
        try:
            handler = handlers[kind]
        except KeyError as exc:
            raise ValueError(f"Unknown analysis kind: {kind}") from exc
        return handler(context)

    def _generate(self, prompt: str, bundle: type[BundleT]) -> BundleT:
        client = self._require_client()
        raw_output = client.generate(prompt, json_mode=True)
        try:
            return parse_payload(raw_output, bundle)
        except ParseError as exc:
            LOGGER.warning("Malformed %s response: %s", bundle.__name__, exc)
            return bundle()

    def _require_client(self) -> LLMClient:
        if self._llm_client is None:
            raise LLMError("AI assistant is not configured")
        return self._llm_client

    def _fallback(self, context: Sequence[MessageSummary]) -> Sequence[MessageSummary]:
        if not self._fallback_enabled:
            raise LLMError("AI assistant is not configured")
        return context


__all__ = ["LLMAssistantService", "REPLY_TONES"]
