"""
Middleware modules for the back-office API.

- Request ID tracking for log correlation
"""

from .correlation import CorrelationIdMiddleware, CorrelationLogFilter, request_id_ctx

__all__ = [
    "CorrelationIdMiddleware",
    "CorrelationLogFilter",
    "request_id_ctx",
]
