"""Transport adapters for the Gmail API."""

from .auth import StaticTokenProvider
from .gmail_client import GmailClient

__all__ = ["GmailClient", "StaticTokenProvider"]
