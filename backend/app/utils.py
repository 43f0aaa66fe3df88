"""Shared utility helpers used across services."""
from contextlib import contextmanager
from datetime import datetime, timezone

from django.db import InterfaceError, OperationalError

from app.services.exceptions import TransientStoreError


def utcnow() -> datetime:
    """Return timezone-aware UTC now. Replaces deprecated datetime.utcnow()."""
    return datetime.now(timezone.utc)


@contextmanager
def store_errors(operation: str):
    """
    Translate driver-level timeouts and connection failures into
    TransientStoreError so callers see a retryable error, not a hang or a
    backend-specific exception.
    """
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        raise TransientStoreError(f"{operation} failed: {exc}") from exc
