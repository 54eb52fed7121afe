"""Field classification.

Reads the declared fields of a record type, in declaration order, and turns
the options attached to each into a :class:`FieldDescriptor` describing the
roles it plays.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import dataclasses
from dataclasses import dataclass
from enum import Enum
import re
from typing import Any

from pydantic import BaseModel

from record_search.errors import InvalidPrefix, SchemaError, UnknownField, UnsupportedShape
from record_search.search.analyzers import STEM_PREFIX
from record_search.search.encoders import Encodes, facet_encoder, text_encoder


_PREFIX_RE = re.compile(r"[A-Z]+")
_ALIAS_RE = re.compile(r"\w+")


class FieldRole(str, Enum):
    INDEXED = "indexed"
    FACETED = "faceted"


@dataclass(frozen=True)
class FieldOptions:
    """Options for one field of a record schema.

    Args:
        facet: Store the field in a value slot.
        facet_fn: Custom facet function; implies ``facet``. Its result is
            serialized like a plain facet value.
        index: Index the field's text.
        index_fn: Custom text function; implies ``index``.
        prefix: Term prefix for the field; implies ``index``.
        alias: Extra name the field can be searched under.
    """

    facet: bool = False
    facet_fn: Callable[[Any], Any] | None = None
    index: bool = False
    index_fn: Callable[[Any], str] | None = None
    prefix: str | None = None
    alias: str | None = None


@dataclass(frozen=True)
class FieldDescriptor:
    """Roles and encoders of one declared field.

    ``identity`` is the field name, or its zero-based position for records
    whose fields have no names.
    """

    identity: str | int
    is_facet: bool = False
    facet_encoder: Encodes[bytes] | None = None
    is_indexed: bool = False
    index_encoder: Encodes[str] | None = None
    prefix: str | None = None
    alias: str | None = None

    @property
    def name(self) -> str:
        return str(self.identity)

    @property
    def roles(self) -> frozenset[FieldRole]:
        roles = set()
        if self.is_indexed:
            roles.add(FieldRole.INDEXED)
        if self.is_facet:
            roles.add(FieldRole.FACETED)
        return frozenset(roles)

    def value_of(self, record: Any) -> Any:
        if isinstance(self.identity, int):
            return record[self.identity]
        return getattr(record, self.identity)


def validate_prefix(prefix: str) -> str:
    """Return ``prefix`` if it can be used as a term prefix.

    Prefixes are upper-case ASCII letters. ``Z`` starts stemmed terms and
    cannot begin a prefix. The empty string is the root prefix.
    """
    if prefix == "":
        return prefix
    if not _PREFIX_RE.fullmatch(prefix):
        raise InvalidPrefix(f"Prefix {prefix!r} must be upper-case ASCII letters")
    if prefix.startswith(STEM_PREFIX):
        raise InvalidPrefix(f"Prefix {prefix!r} may not start with {STEM_PREFIX!r}, which marks stemmed terms")
    return prefix


def classify_field(identity: str | int, options: FieldOptions | None = None) -> FieldDescriptor:
    options = options or FieldOptions()
    is_facet = options.facet or options.facet_fn is not None
    is_indexed = options.index or options.index_fn is not None or options.prefix is not None

    prefix = validate_prefix(options.prefix) if options.prefix is not None else None
    if options.alias is not None and not _ALIAS_RE.fullmatch(options.alias):
        raise SchemaError(f"Alias {options.alias!r} for field {identity!r} must be a single word")

    return FieldDescriptor(
        identity=identity,
        is_facet=is_facet,
        facet_encoder=facet_encoder(options.facet_fn) if is_facet else None,
        is_indexed=is_indexed,
        index_encoder=text_encoder(options.index_fn) if is_indexed else None,
        prefix=prefix,
        alias=options.alias,
    )


def record_field_names(record_type: Any) -> list[str]:
    """Declared field names of a dataclass, NamedTuple or pydantic model."""
    if not isinstance(record_type, type):
        raise UnsupportedShape(record_type)
    if dataclasses.is_dataclass(record_type):
        return [field.name for field in dataclasses.fields(record_type)]
    if issubclass(record_type, tuple) and hasattr(record_type, "_fields"):
        return list(record_type._fields)
    if issubclass(record_type, BaseModel):
        return list(record_type.model_fields)
    raise UnsupportedShape(record_type)


def classify_fields(
    record_type: Any,
    options: Mapping[str, FieldOptions] | None = None,
) -> tuple[FieldDescriptor, ...]:
    """Classify every declared field of ``record_type``.

    Raises:
        UnsupportedShape: ``record_type`` is not a named-field record.
        UnknownField: ``options`` names a field the record does not declare.
        InvalidPrefix: a prefix is not usable.
    """
    options = options or {}
    names = record_field_names(record_type)
    for name in options:
        if name not in names:
            raise UnknownField(record_type, name)
    return tuple(classify_field(name, options.get(name)) for name in names)
