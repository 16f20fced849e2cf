"""Protocol interfaces and error types for the external collaborators."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol

from .models import (
    ChatTurn,
    Classification,
    FullMessage,
    MessagePage,
    MessageSummary,
)

if TYPE_CHECKING:
    from inbox_dash.intelligence.results import (
        AnalysisKind,
        AnalysisResult,
        CategoryBundle,
        FilterBundle,
        SummaryBundle,
        TaskBundle,
    )

RECONNECT_MESSAGE = "Your mail session has expired. Please reconnect."


class DashboardError(RuntimeError):
    """Base class for errors raised by dashboard collaborators."""


class AuthError(DashboardError):
    """Raised when no usable bearer token is available."""

    def __init__(self, message: str = RECONNECT_MESSAGE, *, expired: bool = False):
        super().__init__(message)
        self.expired = expired


class FetchError(DashboardError):
    """Raised when a remote collaborator fails or answers with non-2xx."""


class ClassificationBatchError(FetchError):
    """Raised when a classification batch could not be completed."""


class ParseError(DashboardError):
    """Raised when an AI service returns a malformed payload."""


class AuthProvider(Protocol):
    """Yields bearer tokens for the mail provider."""

    def get_bearer_token(self) -> str:
        """Return a token or raise :class:`AuthError`."""
        raise NotImplementedError


class MailProvider(Protocol):
    """Paginated access to message metadata and full bodies."""

    def list_messages(
        self, query: str, page_size: int, cursor: str | None
    ) -> MessagePage:
        """Return one page of messages matching ``query``."""
        raise NotImplementedError

    def get_full_message(self, message_id: str) -> FullMessage:
        """Return the full content of a single message."""
        raise NotImplementedError


class ClassificationService(Protocol):
    """Assigns category, priority and redundancy to message batches."""

    def classify_batch(
        self, messages: Sequence[MessageSummary], known_ids: Sequence[str]
    ) -> Sequence[Classification]:
        """Return one classification per input message."""
        raise NotImplementedError


class AssistantService(Protocol):
    """Stateless conversational and analysis calls over message context."""

    def chat(
        self,
        message: str,
        context: Sequence[MessageSummary],
        history: Sequence[ChatTurn],
    ) -> str:
        """Answer ``message`` given the context window and full history."""
        raise NotImplementedError

    def summarize(self, context: Sequence[MessageSummary]) -> SummaryBundle:
        """Summarise each message in ``context``."""
        raise NotImplementedError

    def categorize(self, context: Sequence[MessageSummary]) -> CategoryBundle:
        """Assign a category and priority to each message."""
        raise NotImplementedError

    def extract_tasks(self, context: Sequence[MessageSummary]) -> TaskBundle:
        """Extract actionable tasks across ``context``."""
        raise NotImplementedError

    def suggest_filters(self, context: Sequence[MessageSummary]) -> FilterBundle:
        """Suggest provider searches and inbox insights."""
        raise NotImplementedError

    def suggest_reply(self, message: MessageSummary, tone: str) -> str:
        """Draft a reply body for ``message``."""
        raise NotImplementedError

    def analyze(
        self, kind: AnalysisKind, context: Sequence[MessageSummary]
    ) -> AnalysisResult:
        """Dispatch to the analysis named by ``kind``."""
        raise NotImplementedError


__all__ = [
    "AssistantService",
    "AuthError",
    "AuthProvider",
    "ClassificationBatchError",
    "ClassificationService",
    "DashboardError",
    "FetchError",
    "MailProvider",
    "ParseError",
    "RECONNECT_MESSAGE",
]
