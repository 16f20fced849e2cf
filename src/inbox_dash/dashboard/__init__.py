"""Client-side dashboard state: store, pipeline, navigation and surfaces."""

from .context import ViewingContext, derive_viewing_context
from .navigation import KeyEvent, NavigationController, NavInput
from .pipeline import ClassificationPipeline
from .session import DashboardSession
from .store import DashboardState, EmailStore, reduce

__all__ = [
    "ClassificationPipeline",
    "DashboardSession",
    "DashboardState",
    "EmailStore",
    "KeyEvent",
    "NavInput",
    "NavigationController",
    "ViewingContext",
    "derive_viewing_context",
    "reduce",
]
