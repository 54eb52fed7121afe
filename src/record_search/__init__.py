"""Map record types onto a text-search index and query them back."""

from record_search.config import Settings, get_settings
from record_search.errors import (
    IndexingError,
    InvalidPrefix,
    QueryError,
    RecordSearchError,
    SchemaError,
    StoreError,
    UnknownField,
    UnsupportedLanguage,
    UnsupportedShape,
)
from record_search.search.classifier import FieldDescriptor, FieldOptions
from record_search.search.compiler import Payload, PayloadMode, SchemaOptions
from record_search.search.engine import Indexer, Search, Searcher
from record_search.search.schema import RecordSchema, define_schema
from record_search.search.store import DbAction
from record_search.search.values import deserialize_value, serialize_value


__all__ = [
    "DbAction",
    "FieldDescriptor",
    "FieldOptions",
    "Indexer",
    "IndexingError",
    "InvalidPrefix",
    "Payload",
    "PayloadMode",
    "QueryError",
    "RecordSchema",
    "RecordSearchError",
    "SchemaError",
    "SchemaOptions",
    "Search",
    "Searcher",
    "Settings",
    "StoreError",
    "UnknownField",
    "UnsupportedLanguage",
    "UnsupportedShape",
    "define_schema",
    "deserialize_value",
    "get_settings",
    "serialize_value",
]
