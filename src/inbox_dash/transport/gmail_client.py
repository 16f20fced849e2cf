"""Gmail REST adapter providing paginated metadata and full bodies."""

from __future__ import annotations

import base64
import binascii
import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import httpx

from inbox_dash.core.config import MailSettings
from inbox_dash.core.interfaces import AuthError, AuthProvider, FetchError, MailProvider
from inbox_dash.core.models import FullMessage, MessageMeta, MessagePage

LOGGER = logging.getLogger(__name__)

_METADATA_HEADERS = ("From", "Subject", "Date", "To")


class GmailClient(MailProvider):
    """Thin wrapper around the Gmail v1 REST API."""

    def __init__(
        self,
        settings: MailSettings,
        auth: AuthProvider,
        *,
        http_client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._auth = auth
        self._client = http_client or httpx.Client(timeout=settings.timeout_seconds)
        self._owns_client = http_client is None
        self._sleep = sleep

    def close(self) -> None:
        """Release the underlying HTTP connection pool."""
        if self._owns_client:
            self._client.close()

    # Public API ---------------------------------------------------------------
    def list_messages(
        self, query: str, page_size: int, cursor: str | None
    ) -> MessagePage:
        """Return metadata for one page of messages matching ``query``."""
        params: dict[str, Any] = {"maxResults": page_size}
        if query:
            params["q"] = query
        if cursor:
            params["pageToken"] = cursor

        listing = self._get("messages", params)
        refs = listing.get("messages") or []
        next_cursor = listing.get("nextPageToken") or None
        if not refs:
            return MessagePage(messages=(), next_cursor=next_cursor)

        ids = [ref["id"] for ref in refs if isinstance(ref, Mapping) and "id" in ref]
        raw_messages = self._fetch_in_batches(ids)
        LOGGER.info("Fetched %d messages (query=%r)", len(raw_messages), query)
        return MessagePage(
            messages=tuple(_format_meta(raw) for raw in raw_messages),
            next_cursor=next_cursor,
            result_size_estimate=int(listing.get("resultSizeEstimate") or 0),
        )

    def get_full_message(self, message_id: str) -> FullMessage:
        """Return the best available body for ``message_id``."""
        raw = self._get(f"messages/{message_id}", {"format": "full"})
        headers = _header_lookup(raw)
        body, is_html = extract_body(raw)
        return FullMessage(
            id=raw.get("id", message_id),
            thread_id=raw.get("threadId", ""),
            sender=headers.get("from", ""),
            to=headers.get("to", ""),
            subject=headers.get("subject", ""),
            date=headers.get("date", ""),
            body=body,
            is_html=is_html,
        )

    # Helpers ------------------------------------------------------------------
    def _fetch_in_batches(self, ids: Sequence[str]) -> list[dict[str, Any]]:
        batch_size = self._settings.metadata_batch_size
        results: list[dict[str, Any]] = []
        with ThreadPoolExecutor(max_workers=batch_size) as executor:
            for start in range(0, len(ids), batch_size):
                batch = ids[start : start + batch_size]
                results.extend(executor.map(self._get_metadata, batch))
                if start + batch_size < len(ids):
                    self._sleep(self._settings.batch_delay_seconds)
        return results

    def _get_metadata(self, message_id: str) -> dict[str, Any]:
        params = [("format", "metadata")]
        params.extend(("metadataHeaders", name) for name in _METADATA_HEADERS)
        return self._get(f"messages/{message_id}", params)

    def _get(
        self, path: str, params: Mapping[str, Any] | Sequence[tuple[str, Any]]
    ) -> dict[str, Any]:
        token = self._auth.get_bearer_token()
        url = f"{self._settings.base_url.rstrip('/')}/users/{self._settings.user_id}/{path}"
        try:
            response = self._client.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise FetchError(f"Gmail API network error: {exc}") from exc

        if response.status_code == 401:
            raise AuthError(expired=True)
        if not response.is_success:
            raise FetchError(
                f"Gmail API error: {response.status_code} - {response.text}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError("Gmail API returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise FetchError("Gmail API returned an unexpected payload")
        return payload


def _header_lookup(raw: Mapping[str, Any]) -> dict[str, str]:
    payload = raw.get("payload") or {}
    lookup: dict[str, str] = {}
    for header in payload.get("headers") or []:
        name = str(header.get("name", "")).lower()
        if name and name not in lookup:
            lookup[name] = str(header.get("value", ""))
    return lookup


def _format_meta(raw: Mapping[str, Any]) -> MessageMeta:
    headers = _header_lookup(raw)
    label_ids = tuple(raw.get("labelIds") or ())
    payload = raw.get("payload") or {}
    return MessageMeta(
        id=raw["id"],
        thread_id=raw.get("threadId", ""),
        sender=headers.get("from", ""),
        subject=headers.get("subject", ""),
        date=headers.get("date", ""),
        snippet=raw.get("snippet", ""),
        is_unread="UNREAD" in label_ids,
        has_attachment=has_attachment(payload.get("parts")),
        label_ids=label_ids,
    )


def has_attachment(parts: Iterable[Mapping[str, Any]] | None) -> bool:
    """Return ``True`` when any nested part is neither text nor multipart."""
    for part in parts or ():
        mime_type = part.get("mimeType") or ""
        if mime_type and not mime_type.startswith(("text/", "multipart/")):
            return True
        if has_attachment(part.get("parts")):
            return True
    return False


def extract_body(raw: Mapping[str, Any]) -> tuple[str, bool]:
    """Return ``(body, is_html)``; HTML wins over plain text, snippet last."""
    payload = raw.get("payload")
    if not payload:
        return "", False

    data = (payload.get("body") or {}).get("data")
    if data:
        return decode_base64url(data), payload.get("mimeType") == "text/html"

    parts = payload.get("parts")
    if parts:
        for mime_type, is_html in (("text/html", True), ("text/plain", False)):
            part = _find_part(parts, mime_type)
            part_data = (part.get("body") or {}).get("data") if part else None
            if part_data:
                return decode_base64url(part_data), is_html

    return raw.get("snippet") or "", False


def _find_part(
    parts: Iterable[Mapping[str, Any]], mime_type: str
) -> Mapping[str, Any] | None:
    for part in parts:
        if part.get("mimeType") == mime_type:
            return part
        nested = part.get("parts")
        if nested:
            found = _find_part(nested, mime_type)
            if found is not None:
                return found
    return None


def decode_base64url(data: str) -> str:
    """Decode Gmail's unpadded base64url payloads to text."""
    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError):
        LOGGER.warning("Failed to decode message body part")
        return ""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


__all__ = [
    "GmailClient",
    "decode_base64url",
    "extract_body",
    "has_attachment",
]
