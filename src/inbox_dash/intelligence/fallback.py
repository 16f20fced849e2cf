"""Deterministic heuristics used when the LLM is unavailable."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from inbox_dash.core.models import Classification, MessageSummary, Priority

from .results import EmailSummaryResult, ExtractedTask

_ACTION_PATTERNS = (
    re.compile(r"\burgent\b", re.IGNORECASE),
    re.compile(r"\basap\b", re.IGNORECASE),
    re.compile(r"\baction required\b", re.IGNORECASE),
    re.compile(r"\bplease\b", re.IGNORECASE),
)
_PRIORITY_WEIGHTS = {
    "urgent": 4,
    "asap": 3,
    "action required": 3,
    "important": 2,
    "overdue": 2,
    "deadline": 2,
    "follow up": 1,
}
_SENDER_HINTS = {
    "ceo": 4,
    "founder": 3,
    "manager": 2,
}
_LOW_PRIORITY_CATEGORIES = frozenset({"promotions", "newsletter", "social"})


@dataclass(frozen=True)
class _CategoryRule:
    category: str
    keywords: tuple[str, ...]


_RULES: tuple[_CategoryRule, ...] = (
    _CategoryRule("urgent", ("urgent", "asap", "immediately", "action required")),
    _CategoryRule(
        "finance",
        ("invoice", "payment", "receipt", "bank", "billing", "refund", "statement"),
    ),
    _CategoryRule(
        "travel",
        ("flight", "hotel", "booking", "reservation", "itinerary", "boarding"),
    ),
    _CategoryRule(
        "alerts",
        ("security alert", "sign-in", "password", "verification code", "alert"),
    ),
    _CategoryRule(
        "promotions",
        ("sale", "discount", "% off", "offer", "deal", "coupon", "promo"),
    ),
    _CategoryRule(
        "newsletter", ("newsletter", "digest", "weekly", "unsubscribe", "edition")
    ),
    _CategoryRule(
        "social",
        ("linkedin", "facebook", "twitter", "instagram", "friend request", "mentioned you"),
    ),
    _CategoryRule(
        "updates",
        ("shipped", "order", "delivery", "your account", "update", "confirmation"),
    ),
    _CategoryRule(
        "work",
        ("meeting", "project", "deadline", "review", "standup", "proposal", "client"),
    ),
)


def _haystack(message: MessageSummary) -> str:
    return " ".join(
        part for part in (message.subject, message.snippet, message.body) if part
    ).lower()


def guess_category(message: MessageSummary) -> str:
    """Return the first category whose keywords appear in the message."""
    text = _haystack(message)
    sender = message.sender.lower()
    for rule in _RULES:
        if any(keyword in text for keyword in rule.keywords):
            return rule.category
    if "noreply" in sender or "no-reply" in sender:
        return "updates"
    return "other"


def score_priority(message: MessageSummary, category: str) -> Priority:
    """Map keyword and sender hints onto a coarse priority."""
    text = _haystack(message)
    score = sum(weight for keyword, weight in _PRIORITY_WEIGHTS.items() if keyword in text)
    sender = message.sender.lower()
    for hint, weight in _SENDER_HINTS.items():
        if hint in sender:
            score += weight
            break
    if category == "urgent" or score >= 4:
        return "high"
    if category in _LOW_PRIORITY_CATEGORIES and score == 0:
        return "low"
    return "medium"


def classify_by_keywords(message: MessageSummary) -> Classification:
    """Produce a low-confidence classification from keyword rules."""
    category = guess_category(message)
    return Classification(
        message_id=message.id,
        category=category,
        priority=score_priority(message, category),
        confidence=0.3,
        reason="Keyword heuristics",
    )


def build_deterministic_summary(message: MessageSummary) -> EmailSummaryResult:
    """Summarise a message from its subject and first lines."""
    text = message.body or message.snippet
    segments = [message.subject.strip()] if message.subject.strip() else []
    for line in text.splitlines():
        cleaned = _normalise_line(line)
        if cleaned:
            segments.append(cleaned)
        if len(segments) >= 3:
            break
    summary = " ".join(segments)[:500] or "No summary available."
    category = guess_category(message)
    return EmailSummaryResult(
        id=message.id,
        summary=summary,
        key_points=[],
        action_items=list(_collect_action_items(text))[:5],
        sentiment="urgent" if category == "urgent" else "neutral",
    )


def extract_action_tasks(messages: Iterable[MessageSummary]) -> list[ExtractedTask]:
    """Turn imperative lines into tasks attributed to their message."""
    tasks: list[ExtractedTask] = []
    for message in messages:
        category = guess_category(message)
        for item in _collect_action_items(message.body or message.snippet):
            tasks.append(
                ExtractedTask(
                    task=item,
                    source=message.subject or message.sender,
                    priority=score_priority(message, category),
                )
            )
    return tasks


def _collect_action_items(text: str) -> Iterable[str]:
    for line in text.splitlines():
        cleaned = _normalise_line(line)
        if not cleaned:
            continue
        if cleaned.lower().startswith(("please", "todo", "action", "kindly")):
            yield cleaned
            continue
        if any(pattern.search(cleaned) for pattern in _ACTION_PATTERNS):
            yield cleaned


def _normalise_line(line: str) -> str:
    return re.sub(r"\s+", " ", line.strip())


__all__ = [
    "build_deterministic_summary",
    "classify_by_keywords",
    "extract_action_tasks",
    "guess_category",
    "score_priority",
]
