"""Prometheus metrics for indexing and search."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator


DOCUMENTS_INDEXED = Counter(
    "record_search_documents_indexed_total",
    "Documents added to a store",
    ["schema"],
)

BATCHES = Counter(
    "record_search_batches_total",
    "Batch indexing transactions by outcome",
    ["schema", "outcome"],
)

SEARCH_COUNT = Counter(
    "record_search_searches_total",
    "Parsed searches",
    ["schema"],
)

QUERY_ERRORS = Counter(
    "record_search_query_errors_total",
    "Query texts rejected by the parser",
    ["schema"],
)

SEARCH_LATENCY = Histogram(
    "record_search_results_latency_seconds",
    "Latency of retrieving one result page",
    ["schema"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)


@contextmanager
def track_latency(histogram: Histogram, **labels: str) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get content type for a metrics endpoint."""
    return CONTENT_TYPE_LATEST
