"""Validated payloads exchanged with the AI services."""

from __future__ import annotations

import json
import re
from typing import Annotated, Any, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from inbox_dash.core.interfaces import ParseError
from inbox_dash.core.models import CATEGORIES, Priority

AnalysisKind = Literal["summarize", "categorize", "tasks", "filters"]
Sentiment = Literal["positive", "neutral", "negative", "urgent"]

ANALYSIS_KINDS: tuple[AnalysisKind, ...] = ("summarize", "categorize", "tasks", "filters")

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

ModelT = TypeVar("ModelT", bound=BaseModel)


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _normalise_category(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    lowered = value.strip().lower()
    return lowered if lowered in CATEGORIES else "other"


def _normalise_priority(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


class ClassificationResult(_Payload):
    """One message judgment returned by the classification prompt."""

    id: str = ""
    category: str
    priority: Priority
    is_redundant: bool = Field(default=False, alias="isRedundant")
    redundant_of: str | None = Field(default=None, alias="redundantOf")
    reason: str | None = None
    confidence: float | None = None

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, value: Any) -> Any:
        return _normalise_category(value)

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, value: Any) -> Any:
        return _normalise_priority(value)


class ClassificationPayload(_Payload):
    classifications: list[ClassificationResult]


class EmailSummaryResult(_Payload):
    """Summary of a single message."""

    id: str = ""
    summary: str
    key_points: list[str] = Field(default_factory=list, alias="keyPoints")
    action_items: list[str] = Field(default_factory=list, alias="actionItems")
    sentiment: Sentiment = "neutral"

    @field_validator("sentiment", mode="before")
    @classmethod
    def coerce_sentiment(cls, value: Any) -> Any:
        return _normalise_priority(value)


class CategoryAssignment(_Payload):
    id: str = ""
    category: str
    priority: Priority = "medium"
    reason: str = ""

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, value: Any) -> Any:
        return _normalise_category(value)

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, value: Any) -> Any:
        return _normalise_priority(value)


class ExtractedTask(_Payload):
    task: str
    source: str = ""
    deadline: str | None = None
    priority: Priority = "medium"

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, value: Any) -> Any:
        return _normalise_priority(value)

    @field_validator("deadline", mode="before")
    @classmethod
    def blank_deadline(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class SuggestedFilter(_Payload):
    label: str
    query: str
    count: int = 0


class SummaryBundle(_Payload):
    kind: Literal["summary"] = "summary"
    summaries: list[EmailSummaryResult] = Field(default_factory=list)


class CategoryBundle(_Payload):
    kind: Literal["categories"] = "categories"
    categories: list[CategoryAssignment] = Field(default_factory=list)


class TaskBundle(_Payload):
    kind: Literal["tasks"] = "tasks"
    tasks: list[ExtractedTask] = Field(default_factory=list)


class FilterBundle(_Payload):
    kind: Literal["filters"] = "filters"
    suggested_filters: list[SuggestedFilter] = Field(
        default_factory=list, alias="suggestedFilters"
    )
    insights: list[str] = Field(default_factory=list)


AnalysisResult = Annotated[
    Union[SummaryBundle, CategoryBundle, TaskBundle, FilterBundle],
    Field(discriminator="kind"),
]

_BUNDLES: dict[str, type[BaseModel]] = {
    "summarize": SummaryBundle,
    "categorize": CategoryBundle,
    "tasks": TaskBundle,
    "filters": FilterBundle,
}


def empty_result(kind: AnalysisKind) -> AnalysisResult:
    """Return the empty bundle for an analysis kind."""
    try:
        bundle = _BUNDLES[kind]
    except KeyError as exc:
        raise ValueError(f"Unknown analysis kind: {kind}") from exc
    return bundle()  # type: ignore[return-value]


def extract_json_object(raw: str) -> dict[str, Any]:
    """Return the outermost JSON object embedded in ``raw``."""
    match = _JSON_OBJECT.search(raw or "")
    if match is None:
        raise ParseError("AI response did not contain a JSON object")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ParseError("AI response was not valid JSON") from exc
    if not isinstance(payload, dict):
        raise ParseError("AI response JSON was not an object")
    return payload


def parse_payload(raw: str, model: type[ModelT]) -> ModelT:
    """Extract and validate ``raw`` against ``model``."""
    payload = extract_json_object(raw)
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ParseError(
            f"AI response failed validation ({exc.error_count()} errors)"
        ) from exc


def serialize_result(result: BaseModel) -> dict[str, Any]:
    """Return the camelCase JSON form of a result model."""
    return result.model_dump(mode="json", by_alias=True)


__all__ = [
    "ANALYSIS_KINDS",
    "AnalysisKind",
    "AnalysisResult",
    "CategoryAssignment",
    "CategoryBundle",
    "ClassificationPayload",
    "ClassificationResult",
    "EmailSummaryResult",
    "ExtractedTask",
    "FilterBundle",
    "Sentiment",
    "SuggestedFilter",
    "SummaryBundle",
    "TaskBundle",
    "empty_result",
    "extract_json_object",
    "parse_payload",
    "serialize_result",
]
