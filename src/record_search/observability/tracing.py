"""OpenTelemetry spans around batch indexing and result retrieval."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, Tracer

from record_search.observability.context import update_span_id


logger = logging.getLogger(__name__)

# Resolved lazily so settings are read after the application configured them.
_tracer_holder: dict[str, Tracer | None] = {"tracer": None}


def init_tracing(service_name: str = "record-search", **resource_attributes: str) -> TracerProvider:
    """Install an SDK tracer provider and use it for record-search spans.

    Exporters are the application's business: attach span processors to the
    returned provider.
    """
    provider = TracerProvider(resource=Resource.create({"service.name": service_name, **resource_attributes}))
    trace.set_tracer_provider(provider)
    _tracer_holder["tracer"] = provider.get_tracer("record_search")
    logger.info("Tracing initialized for service: %s", service_name)
    return provider


def get_tracer() -> Tracer:
    tracer = _tracer_holder["tracer"]
    if tracer is None:
        from record_search.config import get_settings

        if get_settings().tracing_enabled:
            init_tracing()
            tracer = _tracer_holder["tracer"]
        else:
            # No-op until the host application installs a provider.
            tracer = _tracer_holder["tracer"] = trace.get_tracer("record_search")
    return tracer  # type: ignore[return-value]


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: Mapping[str, Any] | None = None,
) -> Iterator[Span]:
    """Run the block inside span ``name``; its id is copied into log lines."""
    with get_tracer().start_as_current_span(name, kind=kind, attributes=attributes) as span:
        span_context = span.get_span_context()
        if span_context.is_valid:
            update_span_id(format(span_context.span_id, "016x"))
        try:
            yield span
        except Exception as exc:
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            raise
