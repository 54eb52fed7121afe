"""Record schemas.

``define_schema`` is the entry point: call it once per record type, usually
at import time, and reuse the result for every record::

    @dataclass
    class StateInfo:
        name: str
        population: int
        motto: str

    STATE_SCHEMA = define_schema(
        StateInfo,
        SchemaOptions(language="english", payload=Payload.custom(to_json)),
        name=FieldOptions(index=True, prefix="XS"),
        population=FieldOptions(facet=True),
        motto=FieldOptions(prefix="XM", alias="slogan"),
    )
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from record_search.errors import UnknownField
from record_search.search.classifier import FieldDescriptor, FieldOptions
from record_search.search.compiler import (
    CompiledSchema,
    IndexProgram,
    QueryConfiguration,
    SchemaDescriptor,
    SchemaOptions,
    compile_schema,
)
from record_search.search.document import Document, TermGenerator
from record_search.search.query import QueryParser


R = TypeVar("R")


class RecordSchema(Generic[R]):
    """Compiled schema of one record type."""

    def __init__(self, descriptor: SchemaDescriptor, compiled: CompiledSchema) -> None:
        self.descriptor = descriptor
        self.compiled = compiled

    @property
    def record_type(self) -> type[R]:
        return self.descriptor.record_type

    @property
    def name(self) -> str:
        return self.record_type.__qualname__

    @property
    def fields(self) -> tuple[FieldDescriptor, ...]:
        return self.descriptor.fields

    @property
    def program(self) -> IndexProgram:
        return self.compiled.program

    @property
    def query_config(self) -> QueryConfiguration:
        return self.compiled.query_config

    @property
    def prefixes(self) -> Mapping[str, tuple[str, ...]]:
        return self.compiled.query_config.prefixes

    def index(self, record: R, termgen: TermGenerator | None = None) -> Document:
        """Build the document for ``record``."""
        if not isinstance(record, self.record_type):
            raise TypeError(f"{self.name} schema cannot index {type(record).__name__}")
        return self.compiled.program.run(record, termgen)

    def query_parser(self) -> QueryParser:
        """Return a fresh parser configured with this schema's prefixes and language."""
        return self.compiled.query_config.query_parser()

    def slot(self, field_name: str) -> int:
        """Value slot holding the faceted field ``field_name``."""
        try:
            return self.compiled.facet_slots[field_name]
        except KeyError:
            raise UnknownField(self.record_type, field_name) from None

    def __repr__(self) -> str:
        return f"RecordSchema({self.name}, fields={len(self.fields)}, prefixes={dict(self.prefixes)})"


def define_schema(record_type: type[R], options: SchemaOptions | None = None, **field_options: Any) -> RecordSchema[R]:
    """Classify and compile the schema of ``record_type``.

    Keyword arguments map field names to :class:`FieldOptions`.

    Raises:
        SchemaError: the record type or its options cannot be compiled.
    """
    for name, value in field_options.items():
        if not isinstance(value, FieldOptions):
            raise TypeError(f"Options for field '{name}' must be FieldOptions, got {type(value).__name__}")
    descriptor = SchemaDescriptor.describe(record_type, options, field_options)
    return RecordSchema(descriptor, compile_schema(descriptor))
