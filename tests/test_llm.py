"""Tests for the Ollama client and error descriptions."""

from __future__ import annotations

import json

import httpx
import pytest

from inbox_dash.core.config import LlmSettings
from inbox_dash.intelligence.llm import LLMError, OllamaClient, describe_llm_error


def _client(handler, **overrides) -> tuple[OllamaClient, list[float]]:
    sleeps: list[float] = []
    settings = LlmSettings(initial_backoff_seconds=0.0, **overrides)
    client = OllamaClient(
        settings,
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        sleep=sleeps.append,
    )
    return client, sleeps


def test_generate_posts_prompt_with_json_format() -> None:
    payloads: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/generate"
        payloads.append(json.loads(request.content))
        return httpx.Response(200, json={"response": '{"ok": true}'})

    client, _ = _client(handler, model="tiny", max_output_tokens=64)
    assert client.generate("hello", json_mode=True) == '{"ok": true}'
    assert payloads[0]["model"] == "tiny"
    assert payloads[0]["format"] == "json"
    assert payloads[0]["stream"] is False
    assert payloads[0]["options"]["num_predict"] == 64
    assert client.provider_id == "ollama:tiny"


def test_chat_reads_message_content() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/chat"
        body = json.loads(request.content)
        assert body["messages"][-1] == {"role": "user", "content": "hi"}
        return httpx.Response(200, json={"message": {"role": "assistant", "content": "hey"}})

    client, _ = _client(handler)
    assert client.chat([{"role": "user", "content": "hi"}]) == "hey"


def test_transient_status_is_retried() -> None:
    statuses = iter([503, 429, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses)
        if status == 200:
            return httpx.Response(200, json={"response": "done"})
        return httpx.Response(status)

    client, sleeps = _client(handler, max_retries=3)
    assert client.generate("x") == "done"
    assert len(sleeps) == 2


def test_retries_are_bounded() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(503)

    client, sleeps = _client(handler, max_retries=3)
    with pytest.raises(LLMError) as excinfo:
        client.generate("x")
    assert excinfo.value.status_code == 503
    assert "after 3 attempts" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, LLMError)
    assert len(calls) == 3
    assert len(sleeps) == 2


def test_other_status_fails_immediately() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(404)

    client, sleeps = _client(handler)
    with pytest.raises(LLMError) as excinfo:
        client.generate("x")
    assert excinfo.value.status_code == 404
    assert calls == [1]
    assert sleeps == []


def test_network_errors_are_retried() -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) == 1:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json={"response": "ok"})

    client, sleeps = _client(handler)
    assert client.generate("x") == "ok"
    assert len(sleeps) == 1


def test_missing_response_field() -> None:
    client, _ = _client(lambda request: httpx.Response(200, json={"done": True}))
    with pytest.raises(LLMError, match="missing 'response'"):
        client.generate("x")


def test_invalid_json_body() -> None:
    client, _ = _client(lambda request: httpx.Response(200, text="not json"))
    with pytest.raises(LLMError, match="invalid JSON"):
        client.generate("x")


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (LLMError("x", status_code=503), "temporarily busy"),
        (LLMError("model overloaded"), "temporarily busy"),
        (LLMError("x", status_code=429), "Too many requests"),
        (LLMError("x", status_code=401), "Authentication error"),
        (LLMError("x", status_code=404), "AI model not found"),
        (LLMError("LLM network error: refused"), "Network error"),
        (RuntimeError("weird"), "Something went wrong"),
    ],
)
def test_describe_llm_error(error: BaseException, expected: str) -> None:
    assert expected in describe_llm_error(error)


def test_network_errors_exhaust_retries() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client, sleeps = _client(handler, max_retries=2)
    with pytest.raises(LLMError) as excinfo:
        client.generate("x")
    assert excinfo.value.status_code is None
    assert "network error" in str(excinfo.value.__cause__)
    assert "Network error" in describe_llm_error(excinfo.value)
    assert len(sleeps) == 1
