"""JSON log lines for indexing and search.

Every line carries the trace and span ids from
:mod:`record_search.observability.context` and, inside
:func:`~record_search.observability.context.schema_context`, the name of the
record schema being worked on.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
import sys
from typing import Any

import orjson

from record_search.observability.context import get_trace_context


TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Attributes every LogRecord has; anything else arrived through ``extra=``.
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def _shorten(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _fallback(value: Any) -> Any:
    # Term sets, store paths and raw facet values show up as log extras.
    if isinstance(value, (set, frozenset)):
        try:
            return sorted(value)
        except TypeError:
            return list(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, (Path, BaseException)):
        return str(value)
    return repr(value)


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    MAX_MESSAGE_LEN = 2000
    MAX_VALUE_LEN = 500

    def format(self, record: logging.LogRecord) -> str:
        context = get_trace_context()
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "component": record.name.rpartition(".")[2],
            "message": _shorten(record.getMessage(), self.MAX_MESSAGE_LEN),
            "trace_id": context.get("trace_id", ""),
            "span_id": context.get("span_id", ""),
        }
        if context.get("schema"):
            entry["schema"] = context["schema"]
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in vars(record).items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            entry[key] = _shorten(value, self.MAX_VALUE_LEN) if isinstance(value, str) else value

        return orjson.dumps(entry, default=_fallback).decode()


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    *,
    logger_levels: dict[str, str] | None = None,
) -> None:
    """Replace the root logger's handlers with one stdout handler.

    Args:
        level: Root log level name, case-insensitive.
        json_output: Use :class:`JsonFormatter` instead of plain text.
        logger_levels: Level overrides keyed by logger name, e.g.
            ``{"record_search.search.store": "WARNING"}``.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_level(level))

    for name, override in (logger_levels or {}).items():
        logging.getLogger(name).setLevel(_level(override))


def configure_logging_from_settings(settings: Any = None) -> None:
    """Configure logging from ``log_level`` and ``log_json`` settings."""
    if settings is None:
        from record_search.config import get_settings

        settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
