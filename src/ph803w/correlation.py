"""
Correlation ID tracking for log tracing across async operations.

Each device session and discovery run gets its own correlation ID so that
interleaved log lines from concurrent sessions can be told apart.
"""

from __future__ import annotations

import contextvars
from collections.abc import Generator
from contextlib import contextmanager

from uuid_extensions import uuid7

__all__ = [
    "correlation_context",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID.

    Returns:
        New time-ordered UUID v7 as a hex string without dashes
    """
    return uuid7().hex


def get_correlation_id() -> str | None:
    """Get current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set correlation ID in current context (None clears it)."""
    _correlation_id.set(correlation_id)


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
    auto_generate: bool = True,
) -> Generator[str | None]:
    """
    Context manager for correlation ID scope.

    Generates a correlation ID if none is provided and auto_generate is set.
    Restores the previous correlation ID on exit.

    Example:
        with correlation_context() as corr_id:
            logger.info("Connecting")  # log line carries corr_id
    """
    previous_id = get_correlation_id()

    if correlation_id is None and auto_generate:
        correlation_id = generate_correlation_id()

    set_correlation_id(correlation_id)

    try:
        yield correlation_id
    finally:
        set_correlation_id(previous_id)


def ensure_correlation_id() -> str:
    """
    Ensure a correlation ID exists in current context.

    Useful for task entry points: tasks copy the context of their creator, so
    a session's reconnect and keepalive tasks keep the session's ID.
    """
    current_id = get_correlation_id()
    if current_id is None:
        current_id = generate_correlation_id()
        set_correlation_id(current_id)
    return current_id
