"""
Correlation ID generation and context management.

Every request and every scheduler run gets a short ID that ties together the
log lines, Sentry events and error responses it produced.
"""

import uuid
from contextvars import ContextVar

# Request-scoped (or job-scoped) correlation ID
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def generate_correlation_id() -> str:
    """
    Generate a short, unique correlation ID.

    Returns:
        8-character hexadecimal string (e.g., "abc123de").
    """
    return uuid.uuid4().hex[:8]


def get_correlation_id() -> str:
    """Return the current context's correlation ID, or "" when unset."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """
    Set the correlation ID for the current context.

    Args:
        correlation_id: The ID to attach to subsequent log lines.
    """
    correlation_id_var.set(correlation_id)


def ensure_correlation_id() -> str:
    """
    Return the current correlation ID, generating one if none is set.

    Background jobs call this so their log lines can still be grouped.
    """
    current = correlation_id_var.get()
    if not current:
        current = generate_correlation_id()
        correlation_id_var.set(current)
    return current
