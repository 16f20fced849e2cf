"""Service container holding the dashboard's remote collaborators."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from .config import AppSettings

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

Factory = Callable[["ServiceContainer"], Any]


class ServiceContainer:
    """Lazily builds each registered service once and caches it."""

    def __init__(self, settings: AppSettings | None = None) -> None:
        self.settings = settings or AppSettings()
        self._factories: dict[str, Factory] = {}
        self._instances: dict[str, Any] = {}

    def register(self, key: str, factory: Callable[[ServiceContainer], T]) -> None:
        """Register ``factory`` under ``key``, dropping any cached instance."""
        self._factories[key] = factory
        self._instances.pop(key, None)

    def register_instance(self, key: str, instance: Any) -> None:
        self._factories[key] = lambda _container: instance
        self._instances[key] = instance

    def resolve(self, key: str) -> Any:
        if key in self._instances:
            return self._instances[key]
        try:
            factory = self._factories[key]
        except KeyError:
            raise KeyError(f"Service '{key}' is not registered") from None
        instance = factory(self)
        self._instances[key] = instance
        LOGGER.debug("Resolved service %s", key)
        return instance

    def try_resolve(self, key: str) -> Any | None:
        try:
            return self.resolve(key)
        except KeyError:
            return None

    def clear(self) -> None:
        """Drop cached instances so the next resolve rebuilds them."""
        self._instances.clear()


def build_container(settings: AppSettings) -> ServiceContainer:
    """Register the Gmail, LLM, classifier and assistant services."""
    # pylint: disable=import-outside-toplevel
    from inbox_dash.intelligence import (
        LLMAssistantService,
        LLMClassificationService,
        OllamaClient,
    )
    from inbox_dash.transport import GmailClient, StaticTokenProvider

    container = ServiceContainer(settings)
    container.register("auth", lambda c: StaticTokenProvider.from_settings(c.settings.auth))
    container.register(
        "mail_provider",
        lambda c: GmailClient(c.settings.mail, c.resolve("auth")),
    )
    container.register(
        "llm_client",
        lambda c: OllamaClient(c.settings.llm) if c.settings.llm.enabled else None,
    )
    container.register(
        "classifier",
        lambda c: LLMClassificationService(
            c.resolve("llm_client"),
            batch_limit=c.settings.classification.service_batch_limit,
            known_ids_limit=c.settings.classification.known_ids_limit,
            fallback_enabled=c.settings.llm.fallback_enabled,
        ),
    )
    container.register(
        "assistant",
        lambda c: LLMAssistantService(
            c.resolve("llm_client"), fallback_enabled=c.settings.llm.fallback_enabled
        ),
    )
    return container


__all__ = ["ServiceContainer", "build_container"]
