"""Unit tests for field classification."""

from dataclasses import dataclass
from typing import NamedTuple

from pydantic import BaseModel
import pytest

from record_search.errors import InvalidPrefix, SchemaError, UnknownField, UnsupportedShape
from record_search.search.classifier import FieldOptions, FieldRole, classify_field, classify_fields, record_field_names
from record_search.search.encoders import StringEncoder, ValueEncoder
from record_search.search.values import serialize_value


@dataclass
class City:
    name: str
    country: str
    population: int


class Point(NamedTuple):
    x: float
    y: float


class Book(BaseModel):
    title: str
    year: int


@pytest.mark.unit
def test_field_without_options_has_no_roles():
    descriptor = classify_field("name")
    assert descriptor.roles == frozenset()
    assert descriptor.facet_encoder is None
    assert descriptor.index_encoder is None


@pytest.mark.unit
def test_prefix_alone_implies_indexing():
    descriptor = classify_field("name", FieldOptions(prefix="XS"))
    assert descriptor.is_indexed
    assert descriptor.prefix == "XS"
    assert isinstance(descriptor.index_encoder, StringEncoder)


@pytest.mark.unit
def test_custom_functions_imply_their_roles():
    descriptor = classify_field("admitted", FieldOptions(facet_fn=lambda value: int(value[:4]), index_fn=str.upper))
    assert descriptor.roles == {FieldRole.FACETED, FieldRole.INDEXED}
    assert descriptor.facet_encoder.encode("1819-12-14") == serialize_value(1819)
    assert descriptor.index_encoder.encode("abc") == "ABC"


@pytest.mark.unit
def test_facet_and_index_roles_encode_independently():
    descriptor = classify_field("population", FieldOptions(facet=True, index=True))
    assert isinstance(descriptor.facet_encoder, ValueEncoder)
    assert descriptor.facet_encoder.encode(20) == serialize_value(20)
    assert descriptor.index_encoder.encode(20) == "20"


@pytest.mark.unit
def test_index_fn_must_return_text():
    descriptor = classify_field("population", FieldOptions(index_fn=lambda value: value))
    with pytest.raises(TypeError, match="expected str"):
        descriptor.index_encoder.encode(20)


@pytest.mark.unit
@pytest.mark.parametrize("prefix", ["xs", "X1", "ZX", "X S"])
def test_invalid_prefixes_are_rejected(prefix):
    with pytest.raises(InvalidPrefix):
        classify_field("name", FieldOptions(prefix=prefix))


@pytest.mark.unit
def test_empty_prefix_is_the_root():
    assert classify_field("name", FieldOptions(prefix="")).prefix == ""


@pytest.mark.unit
def test_alias_must_be_one_word():
    with pytest.raises(SchemaError, match="single word"):
        classify_field("motto", FieldOptions(index=True, alias="state motto"))


@pytest.mark.unit
def test_value_of_reads_attributes_and_positions():
    city = City("Oslo", "Norway", 700000)
    assert classify_field("country").value_of(city) == "Norway"
    assert classify_field(1).value_of(Point(1.0, 2.0)) == 2.0
    assert classify_field(1).name == "1"


@pytest.mark.unit
@pytest.mark.parametrize(
    ("record_type", "names"),
    [
        (City, ["name", "country", "population"]),
        (Point, ["x", "y"]),
        (Book, ["title", "year"]),
    ],
)
def test_record_field_names_follow_declaration_order(record_type, names):
    assert record_field_names(record_type) == names


@pytest.mark.unit
@pytest.mark.parametrize("record_type", [dict, tuple, int, City("a", "b", 1), "City"])
def test_unsupported_shapes_are_rejected(record_type):
    with pytest.raises(UnsupportedShape):
        record_field_names(record_type)


@pytest.mark.unit
def test_classify_fields_covers_every_field():
    descriptors = classify_fields(City, {"population": FieldOptions(facet=True)})
    assert [descriptor.identity for descriptor in descriptors] == ["name", "country", "population"]
    assert [descriptor.is_facet for descriptor in descriptors] == [False, False, True]


@pytest.mark.unit
def test_classify_fields_rejects_unknown_field():
    with pytest.raises(UnknownField, match="City has no field named 'mayor'"):
        classify_fields(City, {"mayor": FieldOptions(index=True)})
