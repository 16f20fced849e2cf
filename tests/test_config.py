"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from inbox_dash.core.config import load_app_settings


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    """Ensure each test sees a fresh settings instance."""

    load_app_settings.cache_clear()


def test_defaults_loaded_without_env_file() -> None:
    """Default values should be returned when no overrides are present."""

    settings = load_app_settings(include_environment=False)
    assert settings.mail.base_url == "https://gmail.googleapis.com/gmail/v1"
    assert settings.mail.page_size == 50
    assert settings.llm.enabled is True
    assert settings.classification.batch_size == 50
    assert settings.classification.service_batch_limit == 30
    assert settings.ui.preferences_path == Path("./inbox_dash_ui.json")


def test_env_file_overrides(tmp_path: Path) -> None:
    """Values defined in an env file should override defaults."""

    env_file = tmp_path / "test.env"
    env_file.write_text(
        "INBOX_DASH_MAIL__PAGE_SIZE=25\n"
        "INBOX_DASH_LLM__ENABLED=false\n"
        "INBOX_DASH_AUTH__ACCESS_TOKEN=secret\n",
        encoding="utf-8",
    )

    settings = load_app_settings(env_file=env_file, include_environment=False)
    assert settings.mail.page_size == 25
    assert settings.llm.enabled is False
    assert settings.auth.access_token == "secret"


def test_environment_wins_over_env_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / "test.env"
    env_file.write_text("INBOX_DASH_LLM__MODEL=from-file\n", encoding="utf-8")
    monkeypatch.setenv("INBOX_DASH_LLM__MODEL", "from-env")

    settings = load_app_settings(env_file=env_file)
    assert settings.llm.model == "from-env"


def test_blank_value_falls_back_to_none(tmp_path: Path) -> None:
    env_file = tmp_path / "test.env"
    env_file.write_text("INBOX_DASH_UI__PREFERENCES_PATH=\n", encoding="utf-8")

    settings = load_app_settings(env_file=env_file, include_environment=False)
    assert settings.ui.preferences_path is None
