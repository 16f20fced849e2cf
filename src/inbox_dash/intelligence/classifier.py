"""Batch classification backed by an LLM with a keyword fallback."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from inbox_dash.core.interfaces import (
    ClassificationBatchError,
    ClassificationService,
    ParseError,
)
from inbox_dash.core.models import Classification, MessageSummary

from .fallback import classify_by_keywords
from .llm import LLMClient, LLMError
from .prompts import build_classification_prompt
from .results import ClassificationPayload, ClassificationResult, parse_payload

LOGGER = logging.getLogger(__name__)


class LLMClassificationService(ClassificationService):
    """Classify message batches with an LLM, chunked to the prompt limit."""

    def __init__(
        self,
        llm_client: LLMClient | None,
        *,
        batch_limit: int = 30,
        known_ids_limit: int = 50,
        fallback_enabled: bool = True,
    ) -> None:
        self._llm_client = llm_client
        self._batch_limit = max(1, batch_limit)
        self._known_ids_limit = known_ids_limit
        self._fallback_enabled = fallback_enabled

    def classify_batch(
        self, messages: Sequence[MessageSummary], known_ids: Sequence[str]
    ) -> list[Classification]:
        """Return classifications for ``messages`` in input order."""
        if not messages:
            return []

        if self._llm_client is None:
            if not self._fallback_enabled:
                raise ClassificationBatchError("No classification provider configured")
            return [classify_by_keywords(message) for message in messages]

        reference_ids = list(known_ids)[: self._known_ids_limit]
        results: list[Classification] = []
        for start in range(0, len(messages), self._batch_limit):
            chunk = messages[start : start + self._batch_limit]
            results.extend(self._classify_chunk(self._llm_client, chunk, reference_ids))
        LOGGER.info(
            "Classified %d of %d messages via %s",
            len(results),
            len(messages),
            self._llm_client.provider_id,
        )
        return results

    def _classify_chunk(
        self,
        client: LLMClient,
        chunk: Sequence[MessageSummary],
        known_ids: Sequence[str],
    ) -> list[Classification]:
        prompt = build_classification_prompt(chunk, known_ids)
        try:
            raw_output = client.generate(prompt, json_mode=True)
        except LLMError as exc:
            raise ClassificationBatchError(
                f"Classification request failed: {exc}"
            ) from exc

        try:
            payload = parse_payload(raw_output, ClassificationPayload)
        except ParseError as exc:
            LOGGER.warning("Discarding malformed classification response: %s", exc)
            return []

        # Results are matched to the input by position, not by echoed id.
        return [
            _to_classification(message.id, result)
            for message, result in zip(chunk, payload.classifications)
        ]


def _to_classification(message_id: str, result: ClassificationResult) -> Classification:
    redundant_of = result.redundant_of if result.is_redundant else None
    return Classification(
        message_id=message_id,
        category=result.category,
        priority=result.priority,
        is_redundant=result.is_redundant,
        redundant_of=redundant_of or None,
        confidence=result.confidence,
        reason=result.reason,
    )


__all__ = ["LLMClassificationService"]
