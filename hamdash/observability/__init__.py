"""Observability helpers."""

from hamdash.observability.otel import (
    initialize,
    is_enabled,
    record_ingestion,
    record_parser_failure,
    record_refresh,
    record_token_cost,
    shutdown,
    start_span,
)

__all__ = [
    "initialize",
    "is_enabled",
    "shutdown",
    "start_span",
    "record_ingestion",
    "record_parser_failure",
    "record_refresh",
    "record_token_cost",
]
