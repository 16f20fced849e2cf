"""Settings sections and the environment-driven settings loader."""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field


class MailSettings(BaseModel):
    """Settings controlling access to the Gmail REST API."""

    base_url: str = Field(
        default="https://gmail.googleapis.com/gmail/v1",
        description="Gmail API root URL",
    )
    user_id: str = Field(default="me", description="Mailbox owner identifier")
    page_size: int = Field(
        default=50, ge=1, le=500, description="Messages requested per page"
    )
    metadata_batch_size: int = Field(
        default=10, ge=1, description="Metadata requests issued per batch"
    )
    batch_delay_seconds: float = Field(
        default=0.1, ge=0.0, description="Pause between metadata batches"
    )
    timeout_seconds: int = Field(default=30, description="HTTP request timeout")


class AuthSettings(BaseModel):
    """Bearer token source for the mail provider."""

    access_token: str | None = Field(default=None, description="OAuth access token")
    expires_at: datetime | None = Field(
        default=None, description="Expiry of the configured access token"
    )
    token_file: Path | None = Field(
        default=None, description="Authorized-user JSON file holding the token"
    )


class LlmSettings(BaseModel):
    """Ollama connection, sampling and retry policy."""

    enabled: bool = Field(default=True, description="Call the LLM provider at all")
    base_url: str = Field(
        default="http://localhost:11434", description="Ollama server URL"
    )
    model: str = Field(default="gpt-oss:20b", description="Model identifier")
    timeout_seconds: int = Field(
        default=30, description="Request timeout for LLM calls"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for LLM completions",
    )
    max_output_tokens: int | None = Field(
        default=1024,
        ge=32,
        description="Maximum tokens to request from the provider",
    )
    fallback_enabled: bool = Field(
        default=True, description="Use keyword heuristics when no LLM is configured"
    )
    max_retries: int = Field(
        default=3, ge=1, description="Attempts made for transient LLM failures"
    )
    initial_backoff_seconds: float = Field(
        default=1.0, ge=0.0, description="First retry delay, doubled per attempt"
    )


class ClassificationSettings(BaseModel):
    """Settings for the background classification pipeline."""

    debounce_seconds: float = Field(
        default=1.0, ge=0.0, description="Quiet period before classifying"
    )
    batch_size: int = Field(
        default=50, ge=1, description="Messages submitted per pipeline batch"
    )
    service_batch_limit: int = Field(
        default=30, ge=1, description="Messages sent to the LLM per prompt"
    )
    known_ids_limit: int = Field(
        default=50, ge=0, description="Loaded ids listed for redundancy checks"
    )


class AssistantSettings(BaseModel):
    """Context window sizes used by the assistant panel."""

    recent_limit: int = Field(
        default=10, ge=1, description="Messages used when nothing is filtered"
    )
    context_limit: int = Field(
        default=50, ge=1, description="Messages used for a filtered view"
    )


class UiSettings(BaseModel):
    """Persisted interface preferences."""

    preferences_path: Path | None = Field(
        default=Path("./inbox_dash_ui.json"),
        description="JSON file storing sidebar and widget preferences",
    )


class LoggingSettings(BaseModel):
    """Root logger level and format."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Use the brace-style structured formatter"
    )


class AppSettings(BaseModel):
    """Every configuration section of the dashboard."""

    mail: MailSettings = Field(default_factory=MailSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    llm: LlmSettings = Field(default_factory=LlmSettings)
    classification: ClassificationSettings = Field(
        default_factory=ClassificationSettings
    )
    assistant: AssistantSettings = Field(default_factory=AssistantSettings)
    ui: UiSettings = Field(default_factory=UiSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


ENV_PREFIX = "INBOX_DASH_"
_NESTING_SEPARATOR = "__"


def _setting_path(variable: str) -> list[str]:
    """``INBOX_DASH_LLM__MODEL`` -> ``["llm", "model"]``."""
    name = variable.removeprefix(ENV_PREFIX)
    return [part.lower() for part in name.split(_NESTING_SEPARATOR) if part]


def _coerce(raw: str | None) -> Any:
    if raw is None or raw == "":
        return None
    lowered = raw.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    return raw


def _assign(tree: dict[str, Any], path: list[str], value: Any) -> None:
    node = tree
    for part in path[:-1]:
        node = cast(dict[str, Any], node.setdefault(part, {}))
    node[path[-1]] = value


def _prefixed(values: Mapping[str, str | None]) -> dict[str, str | None]:
    return {key: value for key, value in values.items() if key.startswith(ENV_PREFIX)}


def _read_env_sources(
    env_file: Path | str | None, *, include_environment: bool
) -> dict[str, Any]:
    """Merge the dotenv file and the process environment into a settings tree.

    Process variables win over the file.
    """
    sources: dict[str, str | None] = {}
    if env_file and Path(env_file).is_file():
        sources.update(_prefixed(dotenv_values(env_file)))
    if include_environment:
        sources.update(_prefixed(os.environ))

    tree: dict[str, Any] = {}
    for variable, raw in sources.items():
        path = _setting_path(variable)
        if path:
            _assign(tree, path, _coerce(raw))
    return tree


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    *,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Build settings from the env file, the environment, then ``overrides``."""
    tree = _read_env_sources(env_file, include_environment=include_environment)
    tree.update(overrides)
    return AppSettings.model_validate(tree)


__all__ = [
    "AppSettings",
    "AssistantSettings",
    "AuthSettings",
    "ClassificationSettings",
    "LlmSettings",
    "LoggingSettings",
    "MailSettings",
    "UiSettings",
    "load_app_settings",
]
