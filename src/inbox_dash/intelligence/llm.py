"""LLM client abstractions used by intelligence features."""

from __future__ import annotations

import json
import logging
import random
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import urljoin

import httpx

from inbox_dash.core.config import LlmSettings
from inbox_dash.core.interfaces import FetchError

LOGGER = logging.getLogger(__name__)

_RETRYABLE_STATUS = frozenset({429, 503})


class LLMError(FetchError):
    """Raised when the LLM provider fails to respond as expected."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LLMClient(Protocol):
    """Protocol describing the minimal LLM client behaviour."""

    @property
    def provider_id(self) -> str:
        """Identifier describing the backing model/provider."""
        raise NotImplementedError

    def generate(self, prompt: str, *, json_mode: bool = False) -> str:
        """Return the raw text completion for ``prompt``."""
        raise NotImplementedError

    def chat(self, messages: Sequence[Mapping[str, str]]) -> str:
        """Return the assistant reply for a role/content message list."""
        raise NotImplementedError


@dataclass(slots=True)
class OllamaClient:
    """Thin synchronous client for the Ollama HTTP API."""

    settings: LlmSettings
    http_client: httpx.Client | None = None
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def generate(self, prompt: str, *, json_mode: bool = False) -> str:
        """Send a completion request to the Ollama server."""
        payload: dict[str, Any] = {
            "model": self.settings.model,
            "prompt": prompt,
            "stream": False,
            "options": self._options(),
        }
        if json_mode:
            payload["format"] = "json"
        data = self._post("api/generate", payload)
        result = data.get("response")
        if not isinstance(result, str):
            raise LLMError("LLM response missing 'response' field")
        return result

    def chat(self, messages: Sequence[Mapping[str, str]]) -> str:
        """Send a multi-turn chat request to the Ollama server."""
        payload: dict[str, Any] = {
            "model": self.settings.model,
            "messages": [dict(message) for message in messages],
            "stream": False,
            "options": self._options(),
        }
        data = self._post("api/chat", payload)
        message = data.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise LLMError("LLM response missing 'message.content' field")
        return content

    @property
    def provider_id(self) -> str:
        """Return a human readable identifier for the configured model."""
        return f"ollama:{self.settings.model}"

    def _options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"temperature": self.settings.temperature}
        if self.settings.max_output_tokens is not None:
            options["num_predict"] = self.settings.max_output_tokens
        return options

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        endpoint = _resolve_endpoint(self.settings.base_url, path)
        attempts = self.settings.max_retries
        last_error: LLMError | None = None
        for attempt in range(attempts):
            try:
                response = self._send(endpoint, payload)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                last_error = LLMError(
                    f"LLM request failed with status {status_code}",
                    status_code=status_code,
                )
                if status_code not in _RETRYABLE_STATUS:
                    raise last_error from exc
            except httpx.TransportError as exc:
                last_error = LLMError(f"LLM network error: {exc}")
            except json.JSONDecodeError as exc:
                raise LLMError("LLM returned invalid JSON") from exc
            else:
                if not isinstance(data, dict):
                    raise LLMError("LLM returned an unexpected payload")
                return data

            if attempt < attempts - 1:
                delay = _backoff_delay(self.settings.initial_backoff_seconds, attempt)
                LOGGER.warning(
                    "Transient LLM failure (%s); retrying in %.2fs", last_error, delay
                )
                self.sleep(delay)

        raise LLMError(
            f"LLM request failed after {attempts} attempts: {last_error}",
            status_code=last_error.status_code if last_error else None,
        ) from last_error

    def _send(self, endpoint: str, payload: dict[str, Any]) -> httpx.Response:
        timeout = self.settings.timeout_seconds
        if self.http_client is not None:
            return self.http_client.post(endpoint, json=payload, timeout=timeout)
        return httpx.post(endpoint, json=payload, timeout=timeout)


def describe_llm_error(exc: BaseException) -> str:
    """Return a user-facing explanation for an AI service failure."""
    status_code = getattr(exc, "status_code", None)
    message = str(exc).lower()
    if status_code == 503 or "overloaded" in message:
        return "The AI service is temporarily busy. Please try again in a moment."
    if status_code == 429 or "rate limit" in message:
        return "Too many requests. Please wait a moment before trying again."
    if status_code in {401, 403}:
        return "Authentication error. Please check your AI service configuration."
    if status_code == 404:
        return "AI model not found. Please check the model configuration."
    if "network" in message or "timeout" in message:
        return "Network error. Please check your connection and try again."
    return "Something went wrong. Please try again."


def _backoff_delay(initial: float, attempt: int) -> float:
    return initial * (2**attempt) + random.uniform(0, initial / 2)


def _resolve_endpoint(base_url: str, path: str) -> str:
    trimmed = base_url.rstrip("/") + "/"
    return urljoin(trimmed, path)


__all__ = ["LLMClient", "LLMError", "OllamaClient", "describe_llm_error"]
