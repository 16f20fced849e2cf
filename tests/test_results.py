"""Tests for AI payload parsing."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter

from inbox_dash.core.interfaces import ParseError
from inbox_dash.intelligence.results import (
    AnalysisResult,
    ClassificationPayload,
    FilterBundle,
    TaskBundle,
    empty_result,
    extract_json_object,
    parse_payload,
    serialize_result,
)


def test_json_is_extracted_from_surrounding_prose() -> None:
    raw = 'Sure! Here you go:\n```json\n{"classifications": []}\n```'
    assert extract_json_object(raw) == {"classifications": []}


def test_missing_json_raises_parse_error() -> None:
    with pytest.raises(ParseError):
        extract_json_object("no braces here")
    with pytest.raises(ParseError):
        extract_json_object("{not: valid}")


def test_classification_values_are_normalised() -> None:
    raw = (
        '{"classifications": [{"id": "1", "category": "Finance", "priority": "HIGH",'
        ' "isRedundant": true, "redundantOf": "0"},'
        ' {"id": "2", "category": "spaceships", "priority": "low"}]}'
    )
    payload = parse_payload(raw, ClassificationPayload)
    first, second = payload.classifications
    assert (first.category, first.priority, first.is_redundant, first.redundant_of) == (
        "finance",
        "high",
        True,
        "0",
    )
    assert second.category == "other"


def test_invalid_priority_is_a_parse_error() -> None:
    raw = '{"classifications": [{"id": "1", "category": "work", "priority": "someday"}]}'
    with pytest.raises(ParseError):
        parse_payload(raw, ClassificationPayload)


def test_bundles_serialise_with_camel_case_and_kind() -> None:
    bundle = parse_payload(
        '{"suggestedFilters": [{"label": "Bills", "query": "subject:invoice", "count": 3}],'
        ' "insights": ["Lots of bills"]}',
        FilterBundle,
    )
    assert serialize_result(bundle) == {
        "kind": "filters",
        "suggestedFilters": [{"label": "Bills", "query": "subject:invoice", "count": 3}],
        "insights": ["Lots of bills"],
    }


def test_blank_deadline_becomes_none() -> None:
    bundle = parse_payload('{"tasks": [{"task": "Pay", "deadline": ""}]}', TaskBundle)
    assert bundle.tasks[0].deadline is None
    assert bundle.tasks[0].priority == "medium"


def test_analysis_result_is_discriminated_by_kind() -> None:
    adapter = TypeAdapter(AnalysisResult)
    result = adapter.validate_python({"kind": "tasks", "tasks": [{"task": "Reply"}]})
    assert isinstance(result, TaskBundle)


def test_empty_result() -> None:
    assert serialize_result(empty_result("summarize")) == {"kind": "summary", "summaries": []}
    with pytest.raises(ValueError):
        empty_result("translate")  # type: ignore[arg-type]
