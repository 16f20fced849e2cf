"""FastAPI application exposing the mail, AI and dashboard session routes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import replace
from typing import Any, Literal

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from inbox_dash.core import AppSettings, ServiceContainer, build_container, load_app_settings
from inbox_dash.core.interfaces import AuthError, FetchError
from inbox_dash.core.models import (
    CATEGORIES,
    ChatTurn,
    Classification,
    DateRange,
    FilterState,
    FullMessage,
    MessageMeta,
    MessageSummary,
    Priority,
    UserTag,
)
from inbox_dash.dashboard import DashboardSession, KeyEvent, derive_viewing_context
from inbox_dash.dashboard.assistant import AssistantPanelState, PanelTab
from inbox_dash.dashboard.detail import DetailState
from inbox_dash.dashboard.store import DashboardState, SetMessageTags, SetUserTags
from inbox_dash.intelligence.assistant import REPLY_TONES
from inbox_dash.intelligence.llm import LLMError, describe_llm_error
from inbox_dash.intelligence.results import (
    ANALYSIS_KINDS,
    EmailSummaryResult,
    serialize_result,
)

from .cache import SimpleCache

LOGGER = logging.getLogger(__name__)

_SESSION_ACTIONS = ("activate", "open", "toggle")


# Request payloads ---------------------------------------------------------------
class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EmailPayload(_CamelModel):
    id: str
    sender: str = Field(default="", alias="from")
    subject: str = ""
    snippet: str = ""
    date: str = ""
    body: str | None = None

    def to_summary(self) -> MessageSummary:
        return MessageSummary(
            id=self.id,
            sender=self.sender,
            subject=self.subject,
            snippet=self.snippet,
            date=self.date,
            body=self.body,
        )


class ClassifyRequest(_CamelModel):
    emails: list[EmailPayload] = Field(default_factory=list)
    existing_email_ids: list[str] = Field(default_factory=list, alias="existingEmailIds")


class ManualClassificationRequest(_CamelModel):
    email_id: str | None = Field(default=None, alias="emailId")
    category: str | None = None
    priority: str | None = None


class AnalyzeRequest(_CamelModel):
    action: str
    emails: list[EmailPayload] = Field(default_factory=list)


class ChatHistoryEntry(_CamelModel):
    role: Literal["user", "assistant", "model"]
    content: str

    def to_turn(self) -> ChatTurn:
        return ChatTurn("assistant" if self.role == "model" else self.role, self.content)


class ChatRequest(_CamelModel):
    action: str
    message: str | None = None
    emails: list[EmailPayload] | None = None
    history: list[ChatHistoryEntry] = Field(default_factory=list)
    email: EmailPayload | None = None
    tone: str = "professional"


class FiltersPatch(_CamelModel):
    search: str | None = None
    unread_only: bool | None = Field(default=None, alias="unreadOnly")
    has_attachment: bool | None = Field(default=None, alias="hasAttachment")
    date_range: DateRange | None = Field(default=None, alias="dateRange")
    categories: list[str] | None = None
    priorities: list[Priority] | None = None
    tags: list[str] | None = None
    exclude_redundant: bool | None = Field(default=None, alias="excludeRedundant")

    def apply_to(self, filters: FilterState) -> FilterState:
        updates: dict[str, Any] = {}
        for name in ("search", "unread_only", "has_attachment", "date_range"):
            value = getattr(self, name)
            if value is not None:
                updates[name] = value
        for name in ("categories", "priorities", "tags"):
            value = getattr(self, name)
            if value is not None:
                updates[name] = frozenset(value)
        if self.exclude_redundant is not None:
            updates["exclude_redundant"] = self.exclude_redundant
        return replace(filters, **updates)


class KeyRequest(_CamelModel):
    key: str
    ctrl_key: bool = Field(default=False, alias="ctrlKey")
    meta_key: bool = Field(default=False, alias="metaKey")
    target: str | None = None


class AssistantChatRequest(_CamelModel):
    message: str


class ApplyFilterRequest(_CamelModel):
    query: str


class TagPayload(_CamelModel):
    id: str
    name: str
    color: str = "gray"


class UserTagsRequest(_CamelModel):
    tags: list[TagPayload] = Field(default_factory=list)


class MessageTagsRequest(_CamelModel):
    tag_ids: list[str] = Field(default_factory=list, alias="tagIds")


class AssistantPanelPatch(_CamelModel):
    active_tab: PanelTab = Field(alias="activeTab")


def create_app(
    settings: AppSettings | None = None, container: ServiceContainer | None = None
) -> FastAPI:
    """Create and configure the FastAPI application."""
    if container is not None:
        app_settings = settings or container.settings
    else:
        app_settings = settings or load_app_settings()
    services = container or build_container(app_settings)

    app = FastAPI(title="Inbox Dash")
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    body_cache = SimpleCache()
    saved_summaries: dict[str, EmailSummaryResult] = {}
    app.state.container = services
    app.state.session = None

    async def get_session() -> DashboardSession:
        session: DashboardSession | None = app.state.session
        if session is None:
            session = DashboardSession(
                mail_provider=services.resolve("mail_provider"),
                classifier=services.resolve("classifier"),
                assistant=services.resolve("assistant"),
                settings=app_settings,
                saved_summaries=saved_summaries,
            )
            session.start()
            app.state.session = session
            LOGGER.info("Dashboard session started")
        return session

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        session: DashboardSession | None = app.state.session
        if session is not None:
            session.stop()
        provider = services.try_resolve("mail_provider")
        close = getattr(provider, "close", None)
        if callable(close):
            close()
        LOGGER.info("Dashboard shut down")

    @app.exception_handler(AuthError)
    async def handle_auth_error(_request: Request, exc: AuthError) -> JSONResponse:
        return JSONResponse(
            {"error": str(exc), "reconnect": True, "expired": exc.expired},
            status_code=401,
        )

    @app.exception_handler(FetchError)
    async def handle_fetch_error(_request: Request, exc: FetchError) -> JSONResponse:
        LOGGER.warning("Remote call failed: %s", exc)
        message = describe_llm_error(exc) if isinstance(exc, LLMError) else str(exc)
        return JSONResponse({"error": message}, status_code=500)

    # Mail provider --------------------------------------------------------------
    @app.get("/api/gmail/messages")
    async def list_messages(
        q: str = "", maxResults: int = 50, pageToken: str | None = None  # noqa: N803
    ) -> dict[str, Any]:
        """Fetch one page of message metadata."""
        provider = services.resolve("mail_provider")
        page = await asyncio.to_thread(
            provider.list_messages, q, max(1, min(maxResults, 500)), pageToken
        )
        return {
            "messages": [_serialize_meta(message) for message in page.messages],
            "nextPageToken": page.next_cursor,
            "resultSizeEstimate": page.result_size_estimate,
        }

    @app.get("/api/gmail/messages/{message_id}")
    async def get_message(message_id: str) -> dict[str, Any]:
        """Return the full message body, cached for a few minutes."""
        key = SimpleCache.make_key("message", message_id)
        cached = body_cache.get(key)
        if cached is not None:
            return cached
        provider = services.resolve("mail_provider")
        message = await asyncio.to_thread(provider.get_full_message, message_id)
        payload = _serialize_full(message)
        body_cache.set(key, payload)
        return payload

    # AI services ----------------------------------------------------------------
    @app.post("/api/classifications")
    async def classify(payload: ClassifyRequest) -> Any:
        if not payload.emails:
            return _error(400, "No emails provided")
        classifier = services.resolve("classifier")
        results = await asyncio.to_thread(
            classifier.classify_batch,
            [email.to_summary() for email in payload.emails],
            payload.existing_email_ids,
        )
        return {
            "classifications": {
                result.message_id: _serialize_classification(result)
                for result in results
            }
        }

    @app.put("/api/classifications")
    async def update_classification(
        payload: ManualClassificationRequest,
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> Any:
        if not payload.email_id:
            return _error(400, "Missing email ID")
        return _manual_classification(session, payload.email_id, payload)

    @app.post("/api/ai/analyze")
    async def analyze(payload: AnalyzeRequest) -> Any:
        if not payload.emails:
            return _error(400, "No emails provided")
        if payload.action not in ANALYSIS_KINDS:
            return _error(400, "Invalid action")
        assistant = services.resolve("assistant")
        result = await asyncio.to_thread(
            assistant.analyze,
            payload.action,
            [email.to_summary() for email in payload.emails],
        )
        return {"result": serialize_result(result)}

    @app.post("/api/ai/chat")
    async def chat(payload: ChatRequest) -> Any:
        assistant = services.resolve("assistant")
        if payload.action == "chat":
            if not payload.message or payload.emails is None:
                return _error(400, "Message and emails required")
            response = await asyncio.to_thread(
                assistant.chat,
                payload.message,
                [email.to_summary() for email in payload.emails],
                [entry.to_turn() for entry in payload.history],
            )
            return {"response": response}
        if payload.action == "reply":
            if payload.email is None:
                return _error(400, "Email required for reply suggestion")
            if payload.tone not in REPLY_TONES:
                return _error(400, "Invalid tone")
            response = await asyncio.to_thread(
                assistant.suggest_reply, payload.email.to_summary(), payload.tone
            )
            return {"response": response}
        return _error(400, "Invalid action")

    @app.get("/api/summaries/{message_id}")
    async def get_summary(message_id: str) -> dict[str, Any]:
        summary = saved_summaries.get(message_id)
        return {"summary": serialize_result(summary) if summary else None}

    @app.post("/api/summaries/{message_id}")
    async def save_summary(message_id: str, payload: EmailSummaryResult) -> dict[str, Any]:
        payload.id = message_id
        saved_summaries[message_id] = payload
        return {"success": True, "summary": serialize_result(payload)}

    @app.delete("/api/summaries/{message_id}")
    async def delete_summary(message_id: str) -> Any:
        if saved_summaries.pop(message_id, None) is None:
            return _error(404, "Summary not found")
        return {"success": True}

    # Dashboard session ----------------------------------------------------------
    @app.get("/api/session")
    async def session_state(
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> dict[str, Any]:
        return _serialize_session(session, app_settings)

    @app.post("/api/session/refresh")
    async def session_refresh(
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> dict[str, Any]:
        await session.loader.refresh()
        return _serialize_session(session, app_settings)

    @app.post("/api/session/load-more")
    async def session_load_more(
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> dict[str, Any]:
        await session.loader.load_more()
        return _serialize_session(session, app_settings)

    @app.patch("/api/session/filters")
    async def session_filters(
        payload: FiltersPatch,
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> Any:
        unknown = set(payload.categories or ()) - set(CATEGORIES)
        if unknown:
            return _error(400, f"Unknown categories: {', '.join(sorted(unknown))}")
        filters = payload.apply_to(session.snapshot().filters)
        refetched = await session.loader.apply_filters(filters)
        return {**_serialize_session(session, app_settings), "refetched": refetched}

    @app.post("/api/session/filters/reset")
    async def session_reset_filters(
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> dict[str, Any]:
        refetched = await session.loader.reset_filters()
        return {**_serialize_session(session, app_settings), "refetched": refetched}

    @app.post("/api/session/keys")
    async def session_key(
        payload: KeyRequest,
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> dict[str, Any]:
        event = KeyEvent(
            key=payload.key,
            ctrl=payload.ctrl_key,
            meta=payload.meta_key,
            target=payload.target,
        )
        result = await session.handle_key(event)
        return {
            **_serialize_session(session, app_settings),
            "input": result.input.value if result else None,
        }

    @app.post("/api/session/messages/{message_id}/{action}")
    async def session_message_action(
        message_id: str,
        action: str,
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> Any:
        if action not in _SESSION_ACTIONS:
            return _error(404, f"Unknown message action: {action}")
        if action == "activate":
            session.activate(message_id)
        elif action == "toggle":
            session.toggle_selection(message_id)
        else:
            await session.open_message(message_id)
        return _serialize_session(session, app_settings)

    @app.put("/api/session/tags")
    async def session_user_tags(
        payload: UserTagsRequest,
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> dict[str, Any]:
        tags = tuple(UserTag(tag.id, tag.name, tag.color) for tag in payload.tags)
        session.dispatch(SetUserTags(tags))
        return _serialize_session(session, app_settings)

    @app.put("/api/session/messages/{message_id}/tags")
    async def session_message_tags(
        message_id: str,
        payload: MessageTagsRequest,
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> Any:
        known = {tag.id for tag in session.snapshot().user_tags}
        unknown = sorted(set(payload.tag_ids) - known)
        if unknown:
            return _error(400, f"Unknown tags: {', '.join(unknown)}")
        session.dispatch(SetMessageTags(message_id, frozenset(payload.tag_ids)))
        return _serialize_session(session, app_settings)

    @app.put("/api/session/classifications/{message_id}")
    async def session_classification(
        message_id: str,
        payload: ManualClassificationRequest,
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> Any:
        return _manual_classification(session, message_id, payload)

    @app.get("/api/session/detail")
    async def session_detail(
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> dict[str, Any]:
        return _serialize_detail(session.detail.state, session.snapshot())

    @app.post("/api/session/detail/summarize")
    async def session_summarize(
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> dict[str, Any]:
        state = await session.detail.summarize()
        return _serialize_detail(state, session.snapshot())

    @app.get("/api/session/assistant")
    async def session_assistant(
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> dict[str, Any]:
        return _serialize_panel(session.assistant.state)

    @app.patch("/api/session/assistant")
    async def session_assistant_patch(
        payload: AssistantPanelPatch,
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> dict[str, Any]:
        session.assistant.set_active_tab(payload.active_tab)
        return _serialize_panel(session.assistant.state)

    @app.delete("/api/session/assistant/chat")
    async def session_assistant_clear_chat(
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> dict[str, Any]:
        session.assistant.clear_chat()
        return _serialize_panel(session.assistant.state)

    @app.delete("/api/session/assistant/results")
    async def session_assistant_clear_results(
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> dict[str, Any]:
        session.assistant.clear_results()
        return _serialize_panel(session.assistant.state)

    @app.post("/api/session/assistant/chat")
    async def session_assistant_chat(
        payload: AssistantChatRequest,
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> dict[str, Any]:
        state = await session.assistant.send(payload.message)
        return _serialize_panel(state)

    @app.post("/api/session/assistant/actions/{kind}")
    async def session_assistant_action(
        kind: str,
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> Any:
        if kind not in ANALYSIS_KINDS:
            return _error(400, "Invalid action")
        state = await session.assistant.run_action(kind)  # type: ignore[arg-type]
        return _serialize_panel(state)

    @app.post("/api/session/assistant/apply-filter")
    async def session_apply_filter(
        payload: ApplyFilterRequest,
        session: DashboardSession = Depends(get_session),  # noqa: B008
    ) -> dict[str, Any]:
        refetched = await session.assistant.apply_filter(payload.query)
        return {**_serialize_session(session, app_settings), "refetched": refetched}

    return app


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _manual_classification(
    session: DashboardSession, message_id: str, payload: ManualClassificationRequest
) -> Any:
    try:
        state = session.set_manual_classification(
            message_id,
            category=payload.category or None,
            priority=payload.priority or None,  # type: ignore[arg-type]
        )
    except ValueError as exc:
        return _error(400, str(exc))
    return {"classification": _serialize_classification(state.classifications[message_id])}


def _serialize_meta(message: MessageMeta) -> dict[str, Any]:
    return {
        "id": message.id,
        "threadId": message.thread_id,
        "from": message.sender,
        "subject": message.subject,
        "date": message.date,
        "snippet": message.snippet,
        "isUnread": message.is_unread,
        "hasAttachment": message.has_attachment,
        "labelIds": list(message.label_ids),
    }


def _serialize_full(message: FullMessage) -> dict[str, Any]:
    return {
        "id": message.id,
        "threadId": message.thread_id,
        "from": message.sender,
        "to": message.to,
        "subject": message.subject,
        "date": message.date,
        "body": message.body,
        "isHtml": message.is_html,
    }


def _serialize_classification(classification: Classification) -> dict[str, Any]:
    return {
        "emailId": classification.message_id,
        "category": classification.category,
        "priority": classification.priority,
        "isRedundant": classification.is_redundant,
        "redundantOf": classification.redundant_of,
        "confidence": classification.confidence,
        "aiReason": classification.reason,
        "isManual": classification.manual,
    }


def _serialize_filters(filters: FilterState) -> dict[str, Any]:
    return {
        "search": filters.search,
        "unreadOnly": filters.unread_only,
        "hasAttachment": filters.has_attachment,
        "dateRange": filters.date_range,
        "categories": sorted(filters.categories),
        "priorities": sorted(filters.priorities),
        "tags": sorted(filters.tags),
        "excludeRedundant": filters.exclude_redundant,
    }


def _ids(messages: Sequence[MessageMeta]) -> list[str]:
    return [message.id for message in messages]


def _serialize_session(session: DashboardSession, settings: AppSettings) -> dict[str, Any]:
    state = session.snapshot()
    context = derive_viewing_context(
        state,
        recent_limit=settings.assistant.recent_limit,
        context_limit=settings.assistant.context_limit,
    )
    return {
        "messages": [_serialize_meta(message) for message in state.messages],
        "visibleIds": _ids(state.visible),
        "classifications": {
            message_id: _serialize_classification(classification)
            for message_id, classification in state.classifications.items()
        },
        "userTags": [
            {"id": tag.id, "name": tag.name, "color": tag.color}
            for tag in state.user_tags
        ],
        "messageTags": {
            message_id: sorted(tag_ids)
            for message_id, tag_ids in state.message_tags.items()
        },
        "selection": {
            "activeId": state.selection.active_id,
            "selectedIds": sorted(state.selection.selected_ids),
        },
        "filters": _serialize_filters(state.filters),
        "hasMore": state.has_more,
        "isLoading": state.is_loading,
        "isLoadingMore": state.is_loading_more,
        "isClassifying": state.is_classifying,
        "error": state.error,
        "authRequired": state.auth_required,
        "ui": {
            "detailOpen": state.ui.detail_open,
            "sidebarExpanded": state.ui.sidebar_expanded,
            "activeWidget": state.ui.active_widget,
            "assistantOpen": state.ui.assistant_open,
            "shortcutsOpen": state.ui.shortcuts_open,
        },
        "viewingContext": {
            "type": context.type,
            "description": context.description,
            "emailIds": list(context.message_ids),
            "suggestedPrompts": list(context.suggested_prompts),
        },
    }


def _serialize_detail(detail: DetailState, state: DashboardState) -> dict[str, Any]:
    return {
        "open": state.ui.detail_open,
        "messageId": detail.message_id,
        "message": _serialize_full(detail.message) if detail.message else None,
        "isLoading": detail.is_loading,
        "error": detail.error,
        "summary": serialize_result(detail.summary) if detail.summary else None,
        "summaryLoading": detail.summary_loading,
        "summaryError": detail.summary_error,
    }


def _serialize_panel(panel: AssistantPanelState) -> dict[str, Any]:
    return {
        "activeTab": panel.active_tab,
        "messages": [
            {
                "role": turn.role,
                "content": turn.content,
                "timestamp": turn.timestamp.isoformat(),
            }
            for turn in panel.messages
        ],
        "isTyping": panel.is_typing,
        "summaries": [serialize_result(item) for item in panel.summaries],
        "categories": [serialize_result(item) for item in panel.categories],
        "tasks": [serialize_result(item) for item in panel.tasks],
        "suggestedFilters": [serialize_result(item) for item in panel.suggested_filters],
        "insights": list(panel.insights),
        "isAnalyzing": panel.is_analyzing,
        "analyzeError": panel.analyze_error,
    }


__all__ = ["create_app"]
