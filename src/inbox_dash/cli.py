"""Command-line entry point for Inbox Dash."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from inbox_dash.core import AppSettings, build_container, configure_logging, load_app_settings
from inbox_dash.core.models import CATEGORIES, FilterState
from inbox_dash.dashboard import DashboardSession
from inbox_dash.dashboard.filters import describe_filters
from inbox_dash.dashboard.navigation import SHORTCUT_GROUPS
from inbox_dash.dashboard.store import SetFilters


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Inbox Dash email dashboard")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=["info", "inbox", "ask", "shortcuts"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "--search",
        default="",
        help="Provider search text for the inbox and ask commands.",
    )
    parser.add_argument(
        "--unread",
        action="store_true",
        help="Only list unread messages.",
    )
    parser.add_argument(
        "--category",
        dest="categories",
        action="append",
        choices=CATEGORIES,
        default=None,
        help="Keep only messages classified into this category (repeatable).",
    )
    parser.add_argument(
        "--question",
        default="Summarize my inbox",
        help="Question for the ask command.",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> None:
    """Execute the requested CLI command."""
    command = args.command
    if command == "info":
        print("Inbox Dash is ready. Provide a mail access token to get started.")
        print(f"Mail API: {settings.mail.base_url}")
        print(f"LLM: {settings.llm.model if settings.llm.enabled else 'disabled'}")
    elif command == "shortcuts":
        for group, shortcuts in SHORTCUT_GROUPS:
            print(group)
            for keys, description in shortcuts:
                print(f"  {keys:<16} {description}")
    elif command == "inbox":
        asyncio.run(_run_inbox(settings, _filters_from_args(args)))
    elif command == "ask":
        asyncio.run(_run_ask(settings, _filters_from_args(args), args.question))


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    execute(args, settings)


def _filters_from_args(args: argparse.Namespace) -> FilterState:
    return FilterState(
        search=args.search,
        unread_only=args.unread,
        categories=frozenset(args.categories or ()),
    )


def _build_session(settings: AppSettings) -> DashboardSession:
    container = build_container(settings)
    return DashboardSession(
        mail_provider=container.resolve("mail_provider"),
        classifier=container.resolve("classifier"),
        assistant=container.resolve("assistant"),
        settings=_without_ui_persistence(settings),
    )


def _without_ui_persistence(settings: AppSettings) -> AppSettings:
    ui = settings.ui.model_copy(update={"preferences_path": None})
    return settings.model_copy(update={"ui": ui})


async def _load(session: DashboardSession, filters: FilterState) -> bool:
    session.dispatch(SetFilters(filters))
    await session.loader.load_first_page()
    state = session.snapshot()
    if state.auth_required or state.error:
        print(f"Unable to load messages: {state.error}")
        return False
    await session.pipeline.flush()
    return True


async def _run_inbox(settings: AppSettings, filters: FilterState) -> None:
    """Load the first page, classify it and print the visible messages."""
    session = _build_session(settings)
    if not await _load(session, filters):
        return

    state = session.snapshot()
    visible = state.visible
    print(f"{describe_filters(state.filters)}: {len(visible)} of {len(state.messages)}")
    for message in visible:
        classification = state.classifications.get(message.id)
        label = (
            f"{classification.category}/{classification.priority}"
            if classification
            else "unclassified"
        )
        marker = "*" if message.is_unread else " "
        print(f"{marker} [{label:<18}] {message.sender[:30]:<30} {message.subject}")
    if state.has_more:
        print("More messages are available.")


async def _run_ask(settings: AppSettings, filters: FilterState, question: str) -> None:
    """Ask the assistant about the messages in the current viewing context."""
    session = _build_session(settings)
    if not await _load(session, filters):
        return
    panel = await session.assistant.send(question)
    if panel.messages:
        print(panel.messages[-1].content)


__all__ = ["build_parser", "execute", "main"]
