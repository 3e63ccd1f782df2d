"""Prometheus metrics, correlation ids and structured logging."""

from __future__ import annotations

from .correlation import correlation_scope, get_correlation_id, set_correlation_id
from .metrics import GatewayMetrics
from .structured_logging import configure_logging, message_log_context

__all__ = [
    "GatewayMetrics",
    "configure_logging",
    "correlation_scope",
    "get_correlation_id",
    "message_log_context",
    "set_correlation_id",
]
