"""Unit tests for documents and the term generator."""

import pytest

from record_search.search.document import Document, TermGenerator
from record_search.search.lang import StopList


def _strip_s(word: str) -> str:
    return word[:-1] if word.endswith("s") else word


@pytest.fixture
def termgen():
    generator = TermGenerator(stemmer=_strip_s, stopper=StopList(["of", "the"]))
    generator.set_document(Document())
    return generator


@pytest.mark.unit
def test_index_text_adds_positional_and_stemmed_terms(termgen):
    termgen.index_text("State of the Unions", prefix="XS")
    document = termgen.document

    assert document.positions("XSstate") == [1]
    assert document.positions("XSunions") == [4]
    assert document.has_term("ZXSunion")
    assert document.positions("ZXSunion") == []
    assert not document.has_term("XSof")
    assert not document.has_term("XSthe")


@pytest.mark.unit
def test_termpos_counts_trailing_stopwords(termgen):
    termgen.index_text("north of the")
    assert termgen.termpos == 3


@pytest.mark.unit
def test_increase_termpos_separates_fields(termgen):
    termgen.index_text("alpha beta")
    termgen.increase_termpos()
    termgen.index_text("gamma")
    assert termgen.document.positions("alpha") == [1]
    assert termgen.document.positions("beta") == [2]
    assert termgen.document.positions("gamma") == [103]


@pytest.mark.unit
def test_set_document_resets_termpos(termgen):
    termgen.index_text("one two three")
    termgen.set_document(Document())
    termgen.index_text("four")
    assert termgen.document.positions("four") == [1]


@pytest.mark.unit
def test_repeated_words_raise_wdf(termgen):
    termgen.index_text("cats and cats")
    termlist = {term: (wdf, list(positions)) for term, wdf, positions in termgen.document.termlist()}
    assert termlist["cats"] == (2, [1, 3])
    assert termlist["Zcat"] == (2, [])
    assert termgen.document.doc_length == 6


@pytest.mark.unit
def test_set_stemmer_and_stopper_rebuild_analyzer():
    generator = TermGenerator()
    generator.set_document(Document())
    generator.set_stemmer(_strip_s)
    generator.set_stopper(StopList(["the"]))
    generator.index_text("the dogs")
    assert generator.document.has_term("Zdog")
    assert generator.document.positions("dogs") == [2]


@pytest.mark.unit
def test_index_text_requires_document():
    with pytest.raises(RuntimeError, match="set_document"):
        TermGenerator().index_text("orphan")


@pytest.mark.unit
def test_value_slots_and_data():
    document = Document()
    document.set_value(2, b"\x01")
    document.set_data("payload ✓")

    assert document.get_value(2) == b"\x01"
    assert document.get_value(0) == b""
    assert document.values() == {2: b"\x01"}
    assert document.get_data() == "payload ✓".encode()
    assert str(document) == "payload ✓"


@pytest.mark.unit
def test_value_slot_validation():
    document = Document()
    with pytest.raises(ValueError):
        document.set_value(-1, b"")
    with pytest.raises(TypeError, match="bytes"):
        document.set_value(0, "text")
    with pytest.raises(ValueError):
        document.add_term("")
