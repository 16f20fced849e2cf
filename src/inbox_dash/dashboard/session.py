"""Dashboard session wiring the store, pipeline and surfaces together."""

from __future__ import annotations

import logging
from collections.abc import MutableMapping

from inbox_dash.core.config import AppSettings
from inbox_dash.core.interfaces import (
    AssistantService,
    ClassificationService,
    MailProvider,
)
from inbox_dash.core.models import CATEGORIES, PRIORITIES, Priority
from inbox_dash.intelligence.results import EmailSummaryResult

from .assistant import AssistantPanel
from .detail import DetailSurface
from .loader import MessageLoader
from .navigation import KeyEvent, NavigationController, NavResult
from .pipeline import ClassificationPipeline
from .preferences import UiPreferences, load_preferences, save_preferences
from .store import (
    Action,
    DashboardState,
    EmailStore,
    SetActive,
    SetManualClassification,
    StateAccessor,
    ToggleSelect,
    UiState,
)

LOGGER = logging.getLogger(__name__)


class DashboardSession(StateAccessor):
    """One user's dashboard: state, background classification and surfaces."""

    def __init__(
        self,
        *,
        mail_provider: MailProvider,
        classifier: ClassificationService,
        assistant: AssistantService,
        settings: AppSettings | None = None,
        saved_summaries: MutableMapping[str, EmailSummaryResult] | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._preferences_path = self._settings.ui.preferences_path
        self._preferences = load_preferences(self._preferences_path)

        initial = DashboardState(
            ui=UiState(
                sidebar_expanded=self._preferences.sidebar_expanded,
                active_widget=self._preferences.active_widget,
            )
        )
        self.store = EmailStore(initial)
        self.loader = MessageLoader(
            self.store, mail_provider, page_size=self._settings.mail.page_size
        )
        self.pipeline = ClassificationPipeline(
            self.store,
            classifier,
            debounce_seconds=self._settings.classification.debounce_seconds,
            batch_size=self._settings.classification.batch_size,
        )
        self.navigation = NavigationController()
        self.detail = DetailSurface(
            self.store, mail_provider, assistant, saved_summaries=saved_summaries
        )
        self.assistant = AssistantPanel(
            self.store,
            assistant,
            self.loader,
            recent_limit=self._settings.assistant.recent_limit,
            context_limit=self._settings.assistant.context_limit,
        )
        self.store.subscribe(self._persist_preferences)

    # State accessor -----------------------------------------------------------
    def snapshot(self) -> DashboardState:
        return self.store.snapshot()

    def dispatch(self, action: Action) -> DashboardState:
        return self.store.dispatch(action)

    # Lifecycle ----------------------------------------------------------------
    def start(self) -> None:
        self.pipeline.start()

    def stop(self) -> None:
        self.pipeline.stop()

    # Commands -----------------------------------------------------------------
    async def handle_key(self, event: KeyEvent) -> NavResult | None:
        """Run the navigation controller, then the side effects it requested."""
        result = self.navigation.handle_key(event, self)
        if result is None:
            return None
        if result.close_detail:
            self.detail.close()
        elif result.open_message_id is not None:
            await self.detail.open(result.open_message_id)
        elif result.refresh:
            await self.loader.refresh()
        return result

    def activate(self, message_id: str) -> DashboardState:
        return self.dispatch(SetActive(message_id))

    def toggle_selection(self, message_id: str) -> DashboardState:
        return self.dispatch(ToggleSelect(message_id))

    async def open_message(self, message_id: str) -> None:
        await self.detail.open(message_id)

    def set_manual_classification(
        self,
        message_id: str,
        *,
        category: str | None = None,
        priority: Priority | None = None,
    ) -> DashboardState:
        """Record a user correction that automatic results never overwrite."""
        if category is not None and category not in CATEGORIES:
            raise ValueError(f"Unknown category: {category}")
        if priority is not None and priority not in PRIORITIES:
            raise ValueError(f"Unknown priority: {priority}")
        return self.dispatch(
            SetManualClassification(message_id, category=category, priority=priority)
        )

    def _persist_preferences(self, state: DashboardState, _action: Action) -> None:
        preferences = UiPreferences.from_ui(state.ui)
        if preferences == self._preferences:
            return
        self._preferences = preferences
        save_preferences(self._preferences_path, preferences)
        LOGGER.debug("Saved UI preferences %s", preferences.model_dump())


__all__ = ["DashboardSession"]
