"""Prompt templates for the classification and assistant calls."""

from __future__ import annotations

from collections.abc import Sequence
from textwrap import dedent

from inbox_dash.core.models import MessageSummary

CHAT_READY_REPLY = (
    "I'm ready to help you manage your emails! I can summarize emails, help you "
    "prioritize, find specific messages, suggest responses, or organize your "
    "inbox. What would you like to do?"
)

_CLASSIFY_TEMPLATE = dedent(
    """
    Classify these emails into categories and assign priorities. Also detect
    redundant/duplicate emails.

    Categories:
    - work: Work-related emails, colleagues, clients, projects
    - personal: Personal correspondence, friends, family
    - promotions: Marketing emails, sales, discounts
    - alerts: System alerts, notifications, security
    - urgent: Time-sensitive, requires immediate attention
    - newsletter: Newsletters, subscriptions, digests
    - social: Social media notifications
    - updates: Account updates, shipping, order confirmations
    - finance: Banking, payments, invoices
    - travel: Flight, hotel, travel bookings
    - other: Doesn't fit other categories

    Priority:
    - high: Needs immediate attention, time-sensitive, important sender
    - medium: Should address within a day or two
    - low: Informational, can wait or be batched

    For redundancy, if an email is a reply or follow-up that doesn't add new
    information, mark it redundant and reference the original.

    Emails to classify:
    {emails}
    {known_ids}
    Respond strictly with JSON using this schema and no other prose:
    {{
      "classifications": [
        {{
          "id": "email_id_here",
          "category": "work",
          "priority": "high",
          "isRedundant": false,
          "redundantOf": null,
          "reason": "Brief explanation for classification",
          "confidence": 0.95
        }}
      ]
    }}
    """
).strip()

_SUMMARY_TEMPLATE = dedent(
    """
    Analyze and summarize these emails. For each email, provide:
    1. A brief summary (1-2 sentences)
    2. Key points (bullet points)
    3. Action items if any
    4. Sentiment (positive, neutral, negative, or urgent)

    Emails to analyze:
    {emails}

    Respond in JSON format:
    {{
      "summaries": [
        {{
          "id": "email_id",
          "summary": "brief summary",
          "keyPoints": ["point1", "point2"],
          "actionItems": ["action1"],
          "sentiment": "neutral"
        }}
      ]
    }}
    """
).strip()

_CATEGORIZE_TEMPLATE = dedent(
    """
    Categorize these emails and assign priority levels. Categories: work,
    personal, promotions, social, updates, finance, travel, other.
    Priority: high (needs immediate attention), medium (should address soon),
    low (can wait).

    Emails:
    {emails}

    Respond in JSON format:
    {{
      "categories": [
        {{
          "id": "email_id",
          "category": "work",
          "priority": "high",
          "reason": "Brief explanation"
        }}
      ]
    }}
    """
).strip()

_FILTERS_TEMPLATE = dedent(
    """
    Analyze these emails and suggest useful filters/searches the user might
    want. Also provide insights about their inbox. Queries must use the Gmail
    search syntax.

    Emails:
    {emails}

    Respond in JSON:
    {{
      "suggestedFilters": [
        {{ "label": "Urgent from Boss", "query": "from:boss@company.com is:important", "count": 3 }}
      ],
      "insights": [
        "You have 5 unread emails from newsletters - consider unsubscribing"
      ]
    }}
    """
).strip()

_TASKS_TEMPLATE = dedent(
    """
    Extract actionable tasks from these emails:

    {emails}

    Respond in JSON:
    {{
      "tasks": [
        {{
          "task": "Description of task",
          "source": "Email subject or sender",
          "deadline": "Date if mentioned",
          "priority": "high/medium/low"
        }}
      ]
    }}
    """
).strip()

_REPLY_TEMPLATE = dedent(
    """
    Write a {tone} reply to this email:

    From: {sender}
    Subject: {subject}
    Content: {content}

    Write only the reply body, no subject line or greeting repetition. Keep it
    concise and appropriate.
    """
).strip()


def _content(message: MessageSummary) -> str:
    return message.body or message.snippet


def _numbered_block(
    messages: Sequence[MessageSummary], *, with_id: bool, snippet_only: bool
) -> str:
    blocks = []
    for index, message in enumerate(messages, start=1):
        label = f"Email {index} (ID: {message.id})" if with_id else f"Email {index}"
        header = f"--- {label} ---"
        content = message.snippet if snippet_only else _content(message)
        blocks.append(
            "\n".join(
                (
                    header,
                    f"From: {message.sender}",
                    f"Subject: {message.subject}",
                    f"Date: {message.date}",
                    f"Content: {content}",
                )
            )
        )
    return "\n\n".join(blocks)


def build_classification_prompt(
    messages: Sequence[MessageSummary], known_ids: Sequence[str]
) -> str:
    """Compose the batch classification prompt."""
    known = ""
    if known_ids:
        known = (
            "\nExisting email IDs in inbox for redundancy reference: "
            + ", ".join(known_ids)
            + "\n"
        )
    return _CLASSIFY_TEMPLATE.format(
        emails=_numbered_block(messages, with_id=True, snippet_only=True),
        known_ids=known,
    )


def build_summary_prompt(messages: Sequence[MessageSummary]) -> str:
    return _SUMMARY_TEMPLATE.format(
        emails=_numbered_block(messages, with_id=False, snippet_only=False)
    )


def build_categorize_prompt(messages: Sequence[MessageSummary]) -> str:
    blocks = [
        "\n".join(
            (
                f"--- Email {index} (ID: {message.id}) ---",
                f"From: {message.sender}",
                f"Subject: {message.subject}",
                f"Snippet: {message.snippet}",
            )
        )
        for index, message in enumerate(messages, start=1)
    ]
    return _CATEGORIZE_TEMPLATE.format(emails="\n\n".join(blocks))


def build_filters_prompt(messages: Sequence[MessageSummary]) -> str:
    lines = [f"From: {m.sender} | Subject: {m.subject}" for m in messages]
    return _FILTERS_TEMPLATE.format(emails="\n".join(lines))


def build_tasks_prompt(messages: Sequence[MessageSummary]) -> str:
    blocks = [
        f"From: {m.sender}\nSubject: {m.subject}\nContent: {_content(m)}"
        for m in messages
    ]
    return _TASKS_TEMPLATE.format(emails="\n---\n".join(blocks))


def build_reply_prompt(message: MessageSummary, tone: str) -> str:
    """Compose a reply-drafting prompt in the requested tone."""
    return _REPLY_TEMPLATE.format(
        tone=tone,
        sender=message.sender,
        subject=message.subject,
        content=_content(message),
    )


def build_chat_preamble(context: Sequence[MessageSummary]) -> str:
    """Describe the context window for the opening chat turn."""
    entries = "\n".join(
        f"- From: {m.sender}\n  Subject: {m.subject}\n  Preview: {m.snippet}\n"
        f"  Date: {m.date}\n"
        for m in context
    )
    return (
        "You are an AI email assistant. Help the user manage their inbox. "
        f"Here are their recent emails:\n\n{entries}\n\n"
        "Be helpful, concise, and actionable."
    )


__all__ = [
    "CHAT_READY_REPLY",
    "build_categorize_prompt",
    "build_chat_preamble",
    "build_classification_prompt",
    "build_filters_prompt",
    "build_reply_prompt",
    "build_summary_prompt",
    "build_tasks_prompt",
]
