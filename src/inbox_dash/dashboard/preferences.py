"""Persisted UI preferences (sidebar state and active widget)."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .store import UiState, Widget

LOGGER = logging.getLogger(__name__)


class UiPreferences(BaseModel):
    """The subset of :class:`UiState` that survives restarts."""

    model_config = ConfigDict(populate_by_name=True)

    sidebar_expanded: bool = Field(default=True, alias="sidebarExpanded")
    active_widget: Widget = Field(default="email", alias="activeWidget")

    @classmethod
    def from_ui(cls, ui: UiState) -> UiPreferences:
        return cls(sidebar_expanded=ui.sidebar_expanded, active_widget=ui.active_widget)


def load_preferences(path: Path | None) -> UiPreferences:
    """Read preferences from ``path``; defaults when missing or unreadable."""
    if path is None or not path.is_file():
        return UiPreferences()
    try:
        return UiPreferences.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        LOGGER.warning("Ignoring unreadable UI preferences at %s: %s", path, exc)
        return UiPreferences()


def save_preferences(path: Path | None, preferences: UiPreferences) -> None:
    if path is None:
        return
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            preferences.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
        )
    except OSError as exc:
        LOGGER.warning("Failed to save UI preferences to %s: %s", path, exc)


__all__ = ["UiPreferences", "load_preferences", "save_preferences"]
