"""Bearer token sources for the Gmail API."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from google.oauth2.credentials import Credentials

from inbox_dash.core.config import AuthSettings
from inbox_dash.core.datetime_utils import is_expired
from inbox_dash.core.interfaces import AuthError, AuthProvider

LOGGER = logging.getLogger(__name__)

GMAIL_SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]


class StaticTokenProvider(AuthProvider):
    """Serve a pre-issued access token; never refreshes it."""

    def __init__(
        self,
        access_token: str | None = None,
        *,
        expires_at: datetime | None = None,
        token_file: Path | None = None,
    ) -> None:
        self._access_token = access_token
        self._expires_at = expires_at
        self._token_file = token_file

    @classmethod
    def from_settings(cls, settings: AuthSettings) -> StaticTokenProvider:
        return cls(
            settings.access_token,
            expires_at=settings.expires_at,
            token_file=settings.token_file,
        )

    def get_bearer_token(self) -> str:
        """Return the configured token or raise :class:`AuthError`."""
        if self._access_token:
            if is_expired(self._expires_at):
                LOGGER.info("Access token expired at %s", self._expires_at)
                raise AuthError(expired=True)
            return self._access_token

        creds = _load_credentials(self._token_file)
        if creds is None or not creds.token:
            raise AuthError()
        if creds.expired:
            LOGGER.info("Cached token expired at %s", creds.expiry)
            raise AuthError(expired=True)
        return creds.token


def _load_credentials(token_path: Path | None) -> Credentials | None:
    """Read an authorized-user token file without refreshing it."""
    if token_path is None:
        return None
    if not token_path.exists():
        LOGGER.warning("Token file not found: %s", token_path)
        return None
    try:
        return Credentials.from_authorized_user_file(str(token_path), GMAIL_SCOPES)
    except (OSError, ValueError) as exc:
        LOGGER.warning("Ignoring unreadable token file %s: %s", token_path, exc)
        return None


__all__ = ["GMAIL_SCOPES", "StaticTokenProvider"]
