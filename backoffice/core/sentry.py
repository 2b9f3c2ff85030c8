"""
Sentry error tracking integration for the back-office API.

Provides:
- Automatic exception capture
- Operator alerts for partially applied contract approvals
"""

import logging
from typing import Optional, Dict, Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from backoffice.config import settings

logger = logging.getLogger(__name__)

_sentry_initialized = False


def init_sentry() -> None:
    """
    Initialize Sentry SDK with FastAPI integration.

    Called during application startup in main.py.
    """
    global _sentry_initialized

    if not settings.SENTRY_DSN:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return

    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            release=settings.VERSION,
            traces_sample_rate=0.1 if settings.is_production else 1.0,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
                LoggingIntegration(
                    level=logging.WARNING,
                    event_level=logging.ERROR,
                ),
            ],
            before_send=filter_sensitive_data,
            send_default_pii=False,
            attach_stacktrace=True,
        )
        _sentry_initialized = True
        logger.info("Sentry initialized for %s environment", settings.ENVIRONMENT)
    except Exception as e:
        logger.warning("Failed to initialize Sentry: %s", type(e).__name__)


def filter_sensitive_data(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Filter sensitive data before sending to Sentry.

    Removes authorization headers, cookies and client tax documents.
    """
    request = event.get("request") or {}

    headers = request.get("headers")
    if isinstance(headers, dict):
        for header in ("authorization", "cookie", "apikey", "x-api-key"):
            if header in headers:
                headers[header] = "[Filtered]"

    data = request.get("data")
    if isinstance(data, dict):
        for field in ("clientDoc", "client_doc", "token", "password"):
            if field in data:
                data[field] = "[Filtered]"

    return event


def capture_exception(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """Capture an exception to Sentry with additional context."""
    if not _sentry_initialized:
        return None

    with sentry_sdk.new_scope() as scope:
        for key, value in (context or {}).items():
            scope.set_extra(key, value)
        return sentry_sdk.capture_exception(exception)


def capture_message(
    message: str,
    level: str = "info",
    context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """Capture a message to Sentry."""
    if not _sentry_initialized:
        return None

    with sentry_sdk.new_scope() as scope:
        for key, value in (context or {}).items():
            scope.set_extra(key, value)
        return sentry_sdk.capture_message(message, level=level)
