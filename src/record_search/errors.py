"""Exception hierarchy shared by the schema compiler and the engine façade.

Configuration problems surface when a schema is compiled, store problems
when a database is opened or flushed, and query problems when free text is
parsed. Each kind has its own class so callers can tell them apart.
"""

from __future__ import annotations


class RecordSearchError(Exception):
    """Base class for every error raised by record_search."""


class SchemaError(RecordSearchError):
    """A record schema cannot be compiled."""


class UnsupportedLanguage(SchemaError):
    """No stemmer or stopword list exists for a language identifier."""

    def __init__(self, language: str) -> None:
        super().__init__(f"Unsupported stopper language: {language}")
        self.language = language


class UnsupportedShape(SchemaError):
    """The record type is not a named-field record."""

    def __init__(self, record_type: object) -> None:
        name = getattr(record_type, "__qualname__", repr(record_type))
        super().__init__(f"{name} is not a named-field record (dataclass, NamedTuple or pydantic model)")
        self.record_type = record_type


class UnknownField(SchemaError):
    """Field options reference a field the record type does not declare."""

    def __init__(self, record_type: object, field_name: str) -> None:
        name = getattr(record_type, "__qualname__", repr(record_type))
        super().__init__(f"{name} has no field named '{field_name}'")
        self.field_name = field_name


class InvalidPrefix(SchemaError):
    """A term prefix is not usable."""


class StoreError(RecordSearchError):
    """The underlying store could not be opened, read or written."""


class QueryError(RecordSearchError):
    """Query text could not be parsed."""

    def __init__(self, message: str, query: str | None = None) -> None:
        super().__init__(message)
        self.query = query


class IndexingError(RecordSearchError):
    """A record inside a batch could not be turned into a document.

    The batch's transaction has been cancelled when this is raised; the
    original exception is available as ``__cause__``.
    """

    def __init__(self, position: int, record: object) -> None:
        super().__init__(f"Failed to index record #{position} of batch; transaction cancelled")
        self.position = position
        self.record = record
