"""Broken Access Control demonstration: vulnerable and secure user APIs."""

from __future__ import annotations

from typing import Any

from .database import Database, resolve_database_path


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the application with both API surfaces."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


def create_secure_app(*args: Any, **kwargs: Any):
    """Factory function for an application without the vulnerable routes."""

    from .service import create_app as _create_app

    kwargs["include_vulnerable"] = False
    return _create_app(*args, **kwargs)


__all__ = [
    "Database",
    "resolve_database_path",
    "create_app",
    "create_secure_app",
]
