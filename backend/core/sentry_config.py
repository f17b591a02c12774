"""
Sentry SDK configuration.

Sentry only starts when SENTRY_DSN is set. Events are scrubbed of user
identity and of free text written by reporters and moderators (report
reasons, suspension reasons), which can quote abusive content verbatim.
"""

import os
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.loguru import LoguruIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.types import Event, Hint

# Request body keys that carry user-written text
SCRUBBED_BODY_KEYS = ("reason", "description", "notes", "text", "message")

HEALTH_TRANSACTIONS = ("/api/health", "GET /api/health", "health_check")


def _before_send(event: Event, hint: Hint) -> Event | None:
    """
    Scrub PII and user-written text before sending to Sentry.

    Returns:
        Modified event, or None to drop it.
    """
    user = event.get("user")
    if user:
        # Keep only ID
        user.pop("email", None)
        user.pop("username", None)
        if "ip_address" in user:
            user["ip_address"] = "{{auto}}"  # Anonymized by Sentry

    request = event.get("request")
    if request and isinstance(request, dict):
        request.pop("cookies", None)
        headers = request.get("headers")
        if isinstance(headers, dict) and "Authorization" in headers:
            headers["Authorization"] = "[Filtered]"
        data = request.get("data")
        if isinstance(data, dict):
            for key in SCRUBBED_BODY_KEYS:
                if key in data:
                    data[key] = "[Filtered]"

    return event


def _before_send_transaction(event: Event, hint: Hint) -> Event | None:
    """Drop health check transactions."""
    if event.get("transaction", "") in HEALTH_TRANSACTIONS:
        return None
    return event


def _traces_sampler(sampling_context: dict[str, Any]) -> float:
    """
    Sample staff actions more heavily than public traffic.

    Returns:
        Sample rate between 0.0 and 1.0.
    """
    if sampling_context.get("parent_sampled") is True:
        return 1.0

    path = sampling_context.get("asgi_scope", {}).get("path", "")
    if path == "/api/health":
        return 0.0
    if path.startswith("/api/admin/moderation"):
        return 0.5
    # Content filtering runs on every post; keep its volume down
    if path.startswith("/api/content-filter"):
        return 0.05
    return 0.2


def init_sentry() -> None:
    """
    Initialize Sentry SDK with FastAPI integration.

    Call this BEFORE creating the FastAPI app instance.
    """
    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        return

    sentry_sdk.init(
        dsn=dsn,
        environment=os.getenv("ENVIRONMENT", "development"),
        release=os.getenv("SENTRY_RELEASE", "unknown"),
        send_default_pii=False,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            LoguruIntegration(),
        ],
        traces_sampler=_traces_sampler,
        sample_rate=1.0,
        before_send=_before_send,
        before_send_transaction=_before_send_transaction,
        attach_stacktrace=True,
        max_breadcrumbs=50,
        ignore_errors=[KeyboardInterrupt, SystemExit],
    )
