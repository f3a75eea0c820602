"""Credential, status, and audit core of the payment tracking portal."""

from __future__ import annotations

from typing import Any

from .database import Database, resolve_database_path
from .models import PaymentStatus
from .portal import PaymentPortal


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the JSON API application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Database",
    "PaymentPortal",
    "PaymentStatus",
    "create_app",
    "resolve_database_path",
]
