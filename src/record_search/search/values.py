"""Facet value serialization.

Numbers are stored as 8-byte big-endian doubles with the sign bit flipped
(and every bit flipped for negatives), so that comparing the raw bytes gives
the same order as comparing the numbers. Strings are stored as UTF-8.
"""

from __future__ import annotations

import math
import struct
from typing import Any


_SIGN_BIT = 1 << 63
_ALL_BITS = (1 << 64) - 1
# Largest magnitude a double holds for every integer below it.
MAX_EXACT_INT = 2**53


def serialize_value(value: Any) -> bytes:
    """Serialize an int, float, str or bytes value for a value slot."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, bool):
        value = int(value)
    if isinstance(value, int):
        if abs(value) > MAX_EXACT_INT:
            raise ValueError(f"{value} is too large to store exactly in a value slot")
        return _sortable_pack(float(value))
    if isinstance(value, float):
        return _sortable_pack(value)
    raise TypeError(f"Cannot serialize {type(value).__name__} into a value slot")


def deserialize_value(raw: bytes, kind: type = bytes) -> Any:
    """Decode bytes written by :func:`serialize_value` back into ``kind``."""
    if kind is bytes:
        return bytes(raw)
    if kind is str:
        return bytes(raw).decode("utf-8")
    if kind is float:
        return _sortable_unpack(raw)
    if kind is int:
        return int(_sortable_unpack(raw))
    if kind is bool:
        return bool(_sortable_unpack(raw))
    raise TypeError(f"Cannot deserialize a value slot into {kind!r}")


def _sortable_pack(number: float) -> bytes:
    if math.isnan(number):
        raise ValueError("NaN cannot be stored in a value slot")
    if number == 0.0:
        number = 0.0  # fold -0.0
    (bits,) = struct.unpack(">Q", struct.pack(">d", number))
    bits = bits ^ _ALL_BITS if bits & _SIGN_BIT else bits | _SIGN_BIT
    return struct.pack(">Q", bits)


def _sortable_unpack(raw: bytes) -> float:
    if len(raw) != 8:
        raise ValueError(f"Numeric value slots hold 8 bytes, got {len(raw)}")
    (bits,) = struct.unpack(">Q", raw)
    bits = bits ^ _SIGN_BIT if bits & _SIGN_BIT else bits ^ _ALL_BITS
    return struct.unpack(">d", struct.pack(">Q", bits))[0]
