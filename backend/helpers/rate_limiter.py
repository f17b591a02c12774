"""Rate limiter configuration module.

Kept apart from main.py so routers can import the limiter without a cycle.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from models.config import settings

# Keyed by client address; imported by routers and main.py
limiter = Limiter(key_func=get_remote_address)


def report_submit_limit() -> str:
    """Current report intake limit (read per request so tests can override it)."""
    return settings.REPORT_SUBMIT_RATE_LIMIT
