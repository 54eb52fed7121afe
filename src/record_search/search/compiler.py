"""Schema compilation.

A :class:`SchemaDescriptor` is compiled in one pass into two artifacts:

* an :class:`IndexProgram`, the steps that turn one record into a document;
* a :class:`QueryConfiguration`, the prefix table and language settings a
  query parser needs to find what the program indexed.

Both are built from the same loop over the same field descriptors, so every
prefix the program writes is a prefix the parser can read and the other way
round.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
import logging
from types import MappingProxyType
from typing import Any

from record_search.search.classifier import FieldDescriptor, FieldOptions, classify_fields
from record_search.search.document import DEFAULT_POSITION_GAP, Document, TermGenerator
from record_search.search.encoders import (
    Encodes,
    PayloadFunctionEncoder,
    StringPayloadEncoder,
    text_encoder,
)
from record_search.search.lang import Stemmer, StopList, resolve_language
from record_search.search.query import QueryParser


logger = logging.getLogger(__name__)


class PayloadMode(str, Enum):
    NONE = "none"
    STRINGIFY = "stringify"
    CUSTOM = "custom"


@dataclass(frozen=True)
class Payload:
    """What a document stores as its data: nothing, ``str(record)`` or a custom encoding."""

    mode: PayloadMode = PayloadMode.NONE
    function: Callable[[Any], str | bytes] | None = None

    def __post_init__(self) -> None:
        if (self.mode is PayloadMode.CUSTOM) != (self.function is not None):
            raise ValueError("A payload function is required for, and only allowed with, PayloadMode.CUSTOM")

    @classmethod
    def none(cls) -> Payload:
        return cls(PayloadMode.NONE)

    @classmethod
    def stringify(cls) -> Payload:
        return cls(PayloadMode.STRINGIFY)

    @classmethod
    def custom(cls, function: Callable[[Any], str | bytes]) -> Payload:
        return cls(PayloadMode.CUSTOM, function)

    def encoder(self) -> Encodes[bytes] | None:
        if self.mode is PayloadMode.STRINGIFY:
            return StringPayloadEncoder()
        if self.mode is PayloadMode.CUSTOM:
            assert self.function is not None
            return PayloadFunctionEncoder(self.function)
        return None


@dataclass(frozen=True)
class SchemaOptions:
    """Record-level schema options.

    Args:
        language: Stemmer and stopword language, e.g. ``"english"``.
        full_text: Index the text of the whole record under the root prefix.
        full_text_fn: Custom whole-record text; implies ``full_text``.
        payload: Document data mode.
        position_gap: Term positions skipped after each indexed field.
    """

    language: str | None = None
    full_text: bool = False
    full_text_fn: Callable[[Any], str] | None = None
    payload: Payload = field(default_factory=Payload.none)
    position_gap: int = DEFAULT_POSITION_GAP


@dataclass(frozen=True)
class SchemaDescriptor:
    """Everything declared about one record type."""

    record_type: Any
    fields: tuple[FieldDescriptor, ...]
    language: str | None = None
    emit_full_text: bool = False
    full_text_encoder: Encodes[str] | None = None
    payload: Payload = field(default_factory=Payload.none)
    position_gap: int = DEFAULT_POSITION_GAP

    @classmethod
    def describe(
        cls,
        record_type: Any,
        options: SchemaOptions | None = None,
        field_options: Mapping[str, FieldOptions] | None = None,
    ) -> SchemaDescriptor:
        options = options or SchemaOptions()
        if options.position_gap < 0:
            raise ValueError("position_gap must be non-negative")
        emit_full_text = options.full_text or options.full_text_fn is not None
        return cls(
            record_type=record_type,
            fields=classify_fields(record_type, field_options),
            language=options.language,
            emit_full_text=emit_full_text,
            full_text_encoder=text_encoder(options.full_text_fn) if emit_full_text else None,
            payload=options.payload,
            position_gap=options.position_gap,
        )


@dataclass(frozen=True)
class EmitFacetValue:
    slot: int
    field: FieldDescriptor

    def apply(self, record: Any, document: Document, termgen: TermGenerator) -> None:
        assert self.field.facet_encoder is not None
        document.set_value(self.slot, self.field.facet_encoder.encode(self.field.value_of(record)))


@dataclass(frozen=True)
class EmitIndexedTerm:
    field: FieldDescriptor
    prefix: str = ""

    def apply(self, record: Any, document: Document, termgen: TermGenerator) -> None:
        assert self.field.index_encoder is not None
        termgen.index_text(self.field.index_encoder.encode(self.field.value_of(record)), prefix=self.prefix)


@dataclass(frozen=True)
class IncreaseTermPosition:
    gap: int = DEFAULT_POSITION_GAP

    def apply(self, record: Any, document: Document, termgen: TermGenerator) -> None:
        termgen.increase_termpos(self.gap)


@dataclass(frozen=True)
class EmitFullText:
    encoder: Encodes[str]

    def apply(self, record: Any, document: Document, termgen: TermGenerator) -> None:
        termgen.index_text(self.encoder.encode(record))


@dataclass(frozen=True)
class SetPayload:
    encoder: Encodes[bytes]

    def apply(self, record: Any, document: Document, termgen: TermGenerator) -> None:
        document.set_data(self.encoder.encode(record))


IndexStep = EmitFacetValue | EmitIndexedTerm | IncreaseTermPosition | EmitFullText | SetPayload


@dataclass(frozen=True)
class IndexProgram:
    """Ordered steps turning one record into a fresh document."""

    steps: tuple[IndexStep, ...]
    stemmer: Stemmer | None = None
    stopper: StopList | None = None

    def run(self, record: Any, termgen: TermGenerator | None = None) -> Document:
        if termgen is None:
            termgen = TermGenerator(self.stemmer, self.stopper)
        else:
            termgen.set_stemmer(self.stemmer)
            termgen.set_stopper(self.stopper)

        document = Document()
        termgen.set_document(document)
        for step in self.steps:
            step.apply(record, document, termgen)
        return document


@dataclass(frozen=True)
class QueryConfiguration:
    """Field name -> prefixes table plus the language used at index time."""

    prefixes: Mapping[str, tuple[str, ...]]
    stemmer: Stemmer | None = None
    stopper: StopList | None = None

    def query_parser(self) -> QueryParser:
        return QueryParser(self.prefixes, self.stemmer, self.stopper)

    def used_prefixes(self) -> frozenset[str]:
        return frozenset(prefix for prefixes in self.prefixes.values() for prefix in prefixes)


@dataclass(frozen=True)
class CompiledSchema:
    program: IndexProgram
    query_config: QueryConfiguration
    facet_slots: Mapping[str, int]


def compile_schema(descriptor: SchemaDescriptor) -> CompiledSchema:
    """Compile ``descriptor`` into an index program and a query configuration.

    Raises:
        UnsupportedLanguage: the declared language has no stemmer or stopwords.
    """
    stemmer: Stemmer | None = None
    stopper: StopList | None = None
    if descriptor.language is not None:
        language = resolve_language(descriptor.language)
        stemmer, stopper = language.stemmer, language.stoplist

    steps: list[IndexStep] = []
    facet_slots: dict[str, int] = {}
    for slot, field_descriptor in enumerate(f for f in descriptor.fields if f.is_facet):
        steps.append(EmitFacetValue(slot, field_descriptor))
        facet_slots[field_descriptor.name] = slot

    prefixes: dict[str, tuple[str, ...]] = {}
    for field_descriptor in descriptor.fields:
        if not field_descriptor.is_indexed:
            continue
        prefix = field_descriptor.prefix or ""
        steps.append(EmitIndexedTerm(field_descriptor, prefix))
        steps.append(IncreaseTermPosition(descriptor.position_gap))
        for name in (field_descriptor.name, field_descriptor.alias):
            if name is not None and prefix not in prefixes.get(name, ()):
                prefixes[name] = prefixes.get(name, ()) + (prefix,)

    if descriptor.emit_full_text:
        assert descriptor.full_text_encoder is not None
        steps.append(EmitFullText(descriptor.full_text_encoder))

    payload_encoder = descriptor.payload.encoder()
    if payload_encoder is not None:
        steps.append(SetPayload(payload_encoder))

    logger.debug(
        "Compiled schema %s: %d steps, %d facet slots, %d prefixed names",
        getattr(descriptor.record_type, "__qualname__", descriptor.record_type),
        len(steps),
        len(facet_slots),
        len(prefixes),
    )
    return CompiledSchema(
        program=IndexProgram(tuple(steps), stemmer, stopper),
        query_config=QueryConfiguration(MappingProxyType(prefixes), stemmer, stopper),
        facet_slots=MappingProxyType(facet_slots),
    )
