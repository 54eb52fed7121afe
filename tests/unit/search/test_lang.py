"""Unit tests for language resolution."""

import pytest

from record_search.errors import UnsupportedLanguage
from record_search.search.lang import StopList, Stemmer, resolve_language


@pytest.mark.unit
@pytest.mark.parametrize("word", ["the", "The", "THE", "tHe"])
def test_stopword_membership_ignores_case(word):
    stoplist = resolve_language("english").stoplist
    assert stoplist.is_stopword(word)
    assert word in stoplist


@pytest.mark.unit
def test_stoplist_from_words_lowercases_and_collapses_duplicates():
    stoplist = StopList.from_words(["And", "and", "AND", "Or"])
    assert len(stoplist) == 2
    assert sorted(stoplist) == ["and", "or"]
    assert stoplist("oR")
    assert not stoplist("xor")


@pytest.mark.unit
def test_stoplist_contains_rejects_non_strings():
    assert 3 not in StopList(["3"])


@pytest.mark.unit
def test_resolve_language_accepts_name_and_code():
    assert resolve_language("english").stemmer("cats") == "cat"
    assert resolve_language("en").stoplist.is_stopword("of")
    assert resolve_language("en").stemmer("running") == "run"


@pytest.mark.unit
def test_resolve_language_is_case_sensitive():
    with pytest.raises(UnsupportedLanguage, match="Unsupported stopper language: English"):
        resolve_language("English")


@pytest.mark.unit
def test_resolve_language_rejects_unknown_language():
    with pytest.raises(UnsupportedLanguage) as exc_info:
        resolve_language("klingon")
    assert exc_info.value.language == "klingon"


@pytest.mark.unit
def test_resolved_language_is_shared():
    assert resolve_language("english") is resolve_language("english")


@pytest.mark.unit
def test_stemmer_for_unknown_language_is_none():
    assert Stemmer.for_language("klingon") is None
    assert StopList.for_language("klingon") is None
