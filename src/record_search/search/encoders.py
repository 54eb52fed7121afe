"""Field and record encoders.

Every role a field (or the whole record) can play has an encoder: text for
indexed fields, bytes for facet slots and for the stored payload. The
built-in encoders cover the common case; a function supplied in the schema
options replaces the built-in for that one field.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from record_search.search.values import serialize_value


T_co = TypeVar("T_co", covariant=True)


class Encodes(Protocol[T_co]):
    """Turns a field value (or a whole record) into ``T_co``."""

    def encode(self, value: Any) -> T_co:  # pragma: no cover - interface definition
        ...


def _function_name(function: Callable[..., Any]) -> str:
    return getattr(function, "__qualname__", repr(function))


@dataclass(frozen=True)
class StringEncoder:
    """Default text encoder: ``str(value)``."""

    def encode(self, value: Any) -> str:
        return str(value)


@dataclass(frozen=True)
class ValueEncoder:
    """Default facet encoder: :func:`serialize_value`."""

    def encode(self, value: Any) -> bytes:
        return serialize_value(value)


@dataclass(frozen=True)
class TextFunctionEncoder:
    function: Callable[[Any], str]

    def encode(self, value: Any) -> str:
        text = self.function(value)
        if not isinstance(text, str):
            raise TypeError(f"{_function_name(self.function)} returned {type(text).__name__}, expected str")
        return text


@dataclass(frozen=True)
class ValueFunctionEncoder:
    """Runs a custom facet function and serializes what it returns."""

    function: Callable[[Any], Any]

    def encode(self, value: Any) -> bytes:
        return serialize_value(self.function(value))


@dataclass(frozen=True)
class StringPayloadEncoder:
    """Stores ``str(record)`` as UTF-8."""

    def encode(self, value: Any) -> bytes:
        return str(value).encode("utf-8")


@dataclass(frozen=True)
class PayloadFunctionEncoder:
    function: Callable[[Any], str | bytes]

    def encode(self, value: Any) -> bytes:
        payload = self.function(value)
        if isinstance(payload, str):
            return payload.encode("utf-8")
        if isinstance(payload, (bytes, bytearray, memoryview)):
            return bytes(payload)
        raise TypeError(f"{_function_name(self.function)} returned {type(payload).__name__}, expected str or bytes")


def text_encoder(function: Callable[[Any], str] | None = None) -> Encodes[str]:
    return TextFunctionEncoder(function) if function is not None else StringEncoder()


def facet_encoder(function: Callable[[Any], Any] | None = None) -> Encodes[bytes]:
    return ValueFunctionEncoder(function) if function is not None else ValueEncoder()
