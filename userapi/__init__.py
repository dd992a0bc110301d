"""User management API: CRUD over in-memory user records behind bearer tokens."""

from __future__ import annotations

from typing import Any

from .config import Settings, load_settings
from .store import UserStore


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the configured ASGI application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Settings",
    "UserStore",
    "create_app",
    "load_settings",
]
