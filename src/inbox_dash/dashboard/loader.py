"""Page loading against the mail provider."""

from __future__ import annotations

import asyncio
import logging

from inbox_dash.core.interfaces import AuthError, FetchError, MailProvider
from inbox_dash.core.models import FilterState, MessagePage

from .filters import requires_refetch, to_remote_query
from .store import (
    AppendMessages,
    EmailStore,
    ReplaceMessages,
    RequireReauth,
    SetError,
    SetFilters,
    SetLoading,
    SetLoadingMore,
)

LOGGER = logging.getLogger(__name__)


class MessageLoader:
    """Fetch pages into the store, discarding responses that were superseded.

    Each first-page request bumps a generation counter; a response is only
    applied while its generation is still the latest one issued.
    """

    def __init__(
        self, store: EmailStore, provider: MailProvider, *, page_size: int = 50
    ) -> None:
        self._store = store
        self._provider = provider
        self._page_size = page_size
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    async def load_first_page(self) -> bool:
        """Replace the message list with page one for the current filters."""
        self._generation += 1
        generation = self._generation
        query = to_remote_query(self._store.snapshot().filters)
        self._store.dispatch(SetError(None))
        self._store.dispatch(SetLoading(True))
        LOGGER.debug("Loading first page (generation %d, query=%r)", generation, query)

        page = await self._fetch(query, None, generation)
        if page is None:
            if self._is_current(generation) and self._store.snapshot().is_loading:
                self._store.dispatch(SetLoading(False))
            return False

        self._store.dispatch(ReplaceMessages(page.messages, page.next_cursor))
        LOGGER.info("Loaded %d messages", len(page.messages))
        return True

    async def load_more(self) -> bool:
        """Append the next page; a no-op unless more pages exist and none is loading."""
        state = self._store.snapshot()
        if not state.has_more or state.is_loading_more or state.cursor is None:
            return False

        generation = self._generation
        self._store.dispatch(SetLoadingMore(True))
        page = await self._fetch(to_remote_query(state.filters), state.cursor, generation)
        if page is None:
            if self._store.snapshot().is_loading_more:
                self._store.dispatch(SetLoadingMore(False))
            return False

        self._store.dispatch(AppendMessages(page.messages, page.next_cursor))
        return True

    async def refresh(self) -> bool:
        return await self.load_first_page()

    async def apply_filters(self, filters: FilterState) -> bool:
        """Store ``filters``; reload only when the provider query changed."""
        previous = self._store.snapshot().filters
        self._store.dispatch(SetFilters(filters))
        if requires_refetch(previous, filters):
            await self.load_first_page()
            return True
        return False

    async def reset_filters(self) -> bool:
        return await self.apply_filters(FilterState())

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _fetch(
        self, query: str, cursor: str | None, generation: int
    ) -> MessagePage | None:
        try:
            page = await asyncio.to_thread(
                self._provider.list_messages, query, self._page_size, cursor
            )
        except AuthError as exc:
            if self._is_current(generation):
                LOGGER.warning("Mail provider rejected credentials: %s", exc)
                self._store.dispatch(RequireReauth(str(exc)))
            return None
        except FetchError as exc:
            if self._is_current(generation):
                LOGGER.warning("Failed to fetch messages: %s", exc)
                self._store.dispatch(SetError(str(exc)))
            return None

        if not self._is_current(generation):
            LOGGER.debug(
                "Discarding stale page (generation %d, latest %d)",
                generation,
                self._generation,
            )
            return None
        return page


__all__ = ["MessageLoader"]
