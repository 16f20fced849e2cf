"""Viewing context: which messages a bulk AI action operates on."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from inbox_dash.core.models import MessageMeta, MessageSummary

from .filters import describe_filters, has_active_filters
from .store import DashboardState

ContextType = Literal["selection", "filter", "default"]

SUGGESTED_PROMPTS: dict[ContextType, tuple[str, ...]] = {
    "selection": (
        "Summarize these emails",
        "Compare these messages",
        "What action items are here?",
        "Draft a reply to these",
    ),
    "filter": (
        "Summarize filtered results",
        "What patterns do you see?",
        "Prioritize these emails",
        "Any urgent items here?",
    ),
    "default": (
        "What needs my attention?",
        "Summarize unread emails",
        "Find emails about meetings",
        "Which emails are urgent?",
    ),
}


@dataclass(frozen=True, slots=True)
class ViewingContext:
    """Derived scope; recomputed from state on every use, never stored."""

    type: ContextType
    description: str
    messages: tuple[MessageMeta, ...]

    @property
    def message_ids(self) -> tuple[str, ...]:
        return tuple(message.id for message in self.messages)

    @property
    def summaries(self) -> tuple[MessageSummary, ...]:
        return tuple(MessageSummary.from_meta(message) for message in self.messages)

    @property
    def suggested_prompts(self) -> tuple[str, ...]:
        return SUGGESTED_PROMPTS[self.type]


def derive_viewing_context(
    state: DashboardState, *, recent_limit: int = 10, context_limit: int = 50
) -> ViewingContext:
    """Selection wins over active filters, which win over recent mail."""
    selected_ids = state.selection.selected_ids
    if selected_ids:
        selected = tuple(m for m in state.messages if m.id in selected_ids)
        count = len(selected)
        plural = "" if count == 1 else "s"
        return ViewingContext("selection", f"{count} selected email{plural}", selected)

    if has_active_filters(state.filters):
        return ViewingContext(
            "filter",
            describe_filters(state.filters),
            state.visible[:context_limit],
        )

    return ViewingContext("default", "Recent inbox", state.messages[:recent_limit])


__all__ = [
    "ContextType",
    "SUGGESTED_PROMPTS",
    "ViewingContext",
    "derive_viewing_context",
]
