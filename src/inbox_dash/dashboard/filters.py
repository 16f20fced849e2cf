"""Filter model: provider query strings plus the client-side predicate."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime

from inbox_dash.core.datetime_utils import date_range_threshold
from inbox_dash.core.models import Classification, FilterState, MessageMeta

UNREAD_TOKEN = "is:unread"
ATTACHMENT_TOKEN = "has:attachment"

_RANGE_LABELS = {"today": "today", "week": "past week", "month": "past month"}

RemoteKey = tuple[str, bool, bool, str]


def to_remote_query(filters: FilterState, *, now: datetime | None = None) -> str:
    """Translate the provider-expressible filters into a search query."""
    tokens: list[str] = []
    search = filters.search.strip()
    if search:
        tokens.append(search)
    if filters.unread_only:
        tokens.append(UNREAD_TOKEN)
    if filters.has_attachment:
        tokens.append(ATTACHMENT_TOKEN)
    threshold = date_range_threshold(filters.date_range, now=now)
    if threshold is not None:
        tokens.append(f"after:{threshold.isoformat()}")
    return " ".join(tokens)


def remote_key(filters: FilterState) -> RemoteKey:
    """Return the subset of ``filters`` that the provider query depends on."""
    return (
        filters.search.strip(),
        filters.unread_only,
        filters.has_attachment,
        filters.date_range,
    )


def requires_refetch(old: FilterState, new: FilterState) -> bool:
    """Return ``True`` when switching filters must reload the first page."""
    return remote_key(old) != remote_key(new)


def has_classification_filters(filters: FilterState) -> bool:
    """Return ``True`` when a predicate needs a classification to pass."""
    return bool(filters.categories or filters.priorities or filters.exclude_redundant)


def has_active_filters(filters: FilterState) -> bool:
    return (
        bool(filters.search.strip())
        or filters.unread_only
        or filters.has_attachment
        or filters.date_range != "all"
        or bool(filters.tags)
        or has_classification_filters(filters)
    )


def is_visible(
    message: MessageMeta,
    classification: Classification | None,
    tag_ids: Iterable[str],
    filters: FilterState,
) -> bool:
    """Evaluate the client-side filters for a single message.

    Messages without a classification fail any classification-derived
    filter rather than being shown optimistically.
    """
    if filters.tags and filters.tags.isdisjoint(tag_ids):
        return False
    if not has_classification_filters(filters):
        return True
    if classification is None:
        return False
    if filters.categories and classification.category not in filters.categories:
        return False
    if filters.priorities and classification.priority not in filters.priorities:
        return False
    if filters.exclude_redundant and classification.is_redundant:
        return False
    return True


def visible_messages(
    messages: Iterable[MessageMeta],
    classifications: Mapping[str, Classification],
    message_tags: Mapping[str, frozenset[str]],
    filters: FilterState,
) -> tuple[MessageMeta, ...]:
    """Return the visible set in provider order."""
    return tuple(
        message
        for message in messages
        if is_visible(
            message,
            classifications.get(message.id),
            message_tags.get(message.id, frozenset()),
            filters,
        )
    )


def describe_filters(filters: FilterState) -> str:
    """Return a short human readable description of the active filters."""
    parts: list[str] = []
    if filters.search.strip():
        parts.append(f'"{filters.search.strip()}"')
    if filters.unread_only:
        parts.append("unread")
    if filters.has_attachment:
        parts.append("with attachments")
    if filters.date_range != "all":
        parts.append(_RANGE_LABELS[filters.date_range])
    if filters.categories:
        parts.append(", ".join(sorted(filters.categories)))
    if filters.priorities:
        parts.append("/".join(sorted(filters.priorities)) + " priority")
    if filters.tags:
        parts.append("tagged")
    if filters.exclude_redundant:
        parts.append("non-redundant")
    return ", ".join(parts) + " emails" if parts else "Filtered emails"


__all__ = [
    "ATTACHMENT_TOKEN",
    "UNREAD_TOKEN",
    "describe_filters",
    "has_active_filters",
    "has_classification_filters",
    "is_visible",
    "remote_key",
    "requires_refetch",
    "to_remote_query",
    "visible_messages",
]
