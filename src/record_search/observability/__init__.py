"""Observability helpers: structured logging, tracing and Prometheus metrics."""

from record_search.observability.context import get_trace_context, schema_context, set_trace_context, trace_context
from record_search.observability.logging import JsonFormatter, configure_logging, configure_logging_from_settings
from record_search.observability.metrics import (
    BATCHES,
    DOCUMENTS_INDEXED,
    QUERY_ERRORS,
    SEARCH_COUNT,
    SEARCH_LATENCY,
    get_metrics,
    get_metrics_content_type,
    track_latency,
)
from record_search.observability.tracing import create_span, get_tracer, init_tracing


__all__ = [
    "BATCHES",
    "DOCUMENTS_INDEXED",
    "QUERY_ERRORS",
    "SEARCH_COUNT",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "configure_logging",
    "configure_logging_from_settings",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_tracing",
    "schema_context",
    "set_trace_context",
    "trace_context",
    "track_latency",
]
