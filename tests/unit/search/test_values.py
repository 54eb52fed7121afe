"""Unit tests for value slot serialization."""

import math

import pytest

from record_search.search.values import MAX_EXACT_INT, deserialize_value, serialize_value


@pytest.mark.unit
def test_numbers_serialize_to_eight_bytes():
    assert len(serialize_value(20)) == 8
    assert len(serialize_value(-1.5)) == 8


@pytest.mark.unit
def test_serialized_numbers_sort_like_numbers():
    numbers = [-1e300, -1000, -2.5, -1, 0, 1e-9, 1, 2.5, 20, 1000, 1e300, math.inf]
    encoded = [serialize_value(number) for number in numbers]
    assert encoded == sorted(encoded)


@pytest.mark.unit
@pytest.mark.parametrize("number", [0, 20, -7, 4903185, 39512223])
def test_integers_decode_exactly(number):
    assert deserialize_value(serialize_value(number), int) == number


@pytest.mark.unit
def test_negative_zero_folds_to_zero():
    assert serialize_value(-0.0) == serialize_value(0)


@pytest.mark.unit
def test_strings_are_utf8_and_bytes_pass_through():
    assert serialize_value("Zürich") == "Zürich".encode()
    assert deserialize_value(serialize_value("Zürich"), str) == "Zürich"
    assert serialize_value(b"\x00\x01") == b"\x00\x01"


@pytest.mark.unit
def test_bool_serializes_as_integer():
    assert serialize_value(True) == serialize_value(1)
    assert deserialize_value(serialize_value(False), bool) is False


@pytest.mark.unit
def test_nan_is_rejected():
    with pytest.raises(ValueError, match="NaN"):
        serialize_value(float("nan"))


@pytest.mark.unit
def test_unsupported_types_are_rejected():
    with pytest.raises(TypeError, match="list"):
        serialize_value([1, 2])
    with pytest.raises(TypeError):
        deserialize_value(b"", list)


@pytest.mark.unit
def test_numeric_decode_checks_length():
    with pytest.raises(ValueError, match="8 bytes"):
        deserialize_value(b"abc", float)


@pytest.mark.unit
@pytest.mark.parametrize("number", [MAX_EXACT_INT, -MAX_EXACT_INT, MAX_EXACT_INT - 1])
def test_integers_at_exact_limit_decode_exactly(number):
    assert deserialize_value(serialize_value(number), int) == number


@pytest.mark.unit
@pytest.mark.parametrize("number", [MAX_EXACT_INT + 1, -MAX_EXACT_INT - 1, 10**20])
def test_integers_beyond_exact_limit_are_rejected(number):
    with pytest.raises(ValueError, match="too large"):
        serialize_value(number)
