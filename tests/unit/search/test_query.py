"""Unit tests for the query parser and query evaluation."""

from array import array

import pytest

from record_search.errors import QueryError
from record_search.search.lang import StopList
from record_search.search.models import Posting
from record_search.search.query import (
    And,
    AndMaybe,
    AndNot,
    MatchNothing,
    Or,
    Phrase,
    QueryParser,
    ScoringContext,
    Term,
)
from record_search.search.stats import CollectionStats


PREFIXES = {"name": ("XS",), "title": ("XS",), "motto": ("XM",)}


@pytest.fixture
def parser():
    return QueryParser(PREFIXES, stopper=StopList(["of", "the"]))


@pytest.fixture
def stemming_parser():
    return QueryParser(PREFIXES, stemmer=lambda word: word.rstrip("s"), stopper=StopList(["the"]))


@pytest.mark.unit
@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("beta", Term("beta")),
        ("Beta", Term("beta")),
        ("name:beta", Term("XSbeta")),
        ("title:Beta", Term("XSbeta")),
        ("alpha beta", Or((Term("alpha"), Term("beta")))),
        ("alpha OR beta", Or((Term("alpha"), Term("beta")))),
        ("alpha AND beta", And((Term("alpha"), Term("beta")))),
        ("alpha NOT beta", AndNot(Term("alpha"), Term("beta"))),
        ("alpha AND NOT beta", AndNot(Term("alpha"), Term("beta"))),
        ("+alpha beta", AndMaybe(Term("alpha"), Term("beta"))),
        ("alpha -beta", AndNot(Term("alpha"), Term("beta"))),
        ("(alpha OR beta) AND gamma", And((Or((Term("alpha"), Term("beta"))), Term("gamma")))),
        ("alpha and beta", Or((Term("alpha"), Term("and"), Term("beta")))),
    ],
)
def test_parse_structure(parser, text, expected):
    assert parser.parse_query(text) == expected


@pytest.mark.unit
def test_phrase_keeps_stopword_gaps(parser):
    assert parser.parse_query('"State of the Union"') == Phrase(("state", "union"), (0, 3))


@pytest.mark.unit
def test_field_phrase_uses_field_prefix(parser):
    assert parser.parse_query('motto:"ever upward"') == Phrase(("XMever", "XMupward"), (0, 1))


@pytest.mark.unit
def test_unknown_field_is_plain_text(parser):
    assert parser.parse_query("capital:juneau") == Phrase(("capital", "juneau"), (0, 1))


@pytest.mark.unit
def test_hyphenated_word_is_a_phrase(parser):
    assert parser.parse_query("north-dakota") == Phrase(("north", "dakota"), (0, 1))


@pytest.mark.unit
@pytest.mark.parametrize("text", ["", "   ", "the", "-beta", "of NOT alpha"])
def test_queries_without_positive_terms_match_nothing(parser, text):
    assert parser.parse_query(text) == MatchNothing()


@pytest.mark.unit
def test_stopwords_drop_out_of_boolean_queries(parser):
    assert parser.parse_query("the AND cat") == Term("cat")
    assert parser.parse_query("cat NOT the") == Term("cat")


@pytest.mark.unit
def test_plain_words_use_stemmed_terms(stemming_parser):
    assert stemming_parser.parse_query("cats") == Term("Zcat")
    assert stemming_parser.parse_query("name:cats") == Term("ZXScat")


@pytest.mark.unit
def test_phrases_use_unstemmed_terms(stemming_parser):
    assert stemming_parser.parse_query('"cats"') == Term("cats")
    assert stemming_parser.parse_query('name:"black cats"') == Phrase(("XSblack", "XScats"), (0, 1))


@pytest.mark.unit
def test_name_with_several_prefixes_searches_all():
    parser = QueryParser({"text": ("XA", "XB")})
    assert parser.parse_query("text:word") == Or((Term("XAword"), Term("XBword")))


@pytest.mark.unit
def test_add_prefix_ignores_duplicates():
    parser = QueryParser()
    parser.add_prefix("name", "XS")
    parser.add_prefix("name", "XS")
    assert parser.prefixes == {"name": ("XS",)}


@pytest.mark.unit
@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("(alpha", "Unbalanced parentheses"),
        ("alpha)", "Unbalanced parentheses"),
        ("()", "Expected a term"),
        ('"alpha beta', "Unterminated phrase"),
        ("alpha AND", "Expected a term but found end of query"),
        ("OR alpha", "Expected a term"),
        ("NOT alpha", "Expected a term"),
        ("name:", "empty term"),
        ('name:""', "empty term"),
        ("alpha - beta", "Dangling"),
        ("+", "Dangling"),
        ("+AND", "missing its term"),
    ],
)
def test_malformed_queries_raise(parser, text, message):
    with pytest.raises(QueryError, match=message) as exc_info:
        parser.parse_query(text)
    assert exc_info.value.query == text


@pytest.mark.unit
def test_query_str_is_readable(parser):
    assert str(parser.parse_query("alpha AND NOT beta")) == "(alpha AND_NOT beta)"
    assert str(parser.parse_query('"ever upward"')) == "(ever@0 upward@1 PHRASE 2)"


class FakeSource:
    def __init__(self, postings):
        self._postings = postings

    def postings(self, term):
        return self._postings.get(term, [])


def _posting(doc_id, *positions, doc_length=10):
    return Posting(doc_id, wdf=len(positions), doc_length=doc_length, positions=array("I", positions))


@pytest.fixture
def source():
    return FakeSource(
        {
            "alpha": [_posting(1, 1), _posting(2, 1), _posting(4, 5)],
            "beta": [_posting(2, 2), _posting(3, 1), _posting(4, 1)],
        }
    )


@pytest.fixture
def context():
    return ScoringContext(CollectionStats(document_count=10, total_length=100))


@pytest.mark.unit
def test_term_matches_every_posting(source, context):
    weights = Term("alpha").evaluate(source, context)
    assert set(weights) == {1, 2, 4}
    assert all(weight > 0 for weight in weights.values())


@pytest.mark.unit
def test_boolean_evaluation(source, context):
    alpha, beta = Term("alpha"), Term("beta")
    alpha_weights = alpha.evaluate(source, context)

    assert set(And((alpha, beta)).evaluate(source, context)) == {2, 4}
    assert set(Or((alpha, beta)).evaluate(source, context)) == {1, 2, 3, 4}
    assert set(AndNot(alpha, beta).evaluate(source, context)) == {1}

    maybe = AndMaybe(alpha, beta).evaluate(source, context)
    assert set(maybe) == {1, 2, 4}
    assert maybe[1] == pytest.approx(alpha_weights[1])
    assert maybe[2] > alpha_weights[2]


@pytest.mark.unit
def test_phrase_requires_positions_at_offsets(source, context):
    assert set(Phrase(("alpha", "beta"), (0, 1)).evaluate(source, context)) == {2}
    assert set(Phrase(("beta", "alpha"), (0, 4)).evaluate(source, context)) == {4}
    assert Phrase(("alpha", "gamma"), (0, 1)).evaluate(source, context) == {}


@pytest.mark.unit
def test_match_nothing_is_empty(source, context):
    assert MatchNothing().is_empty
    assert MatchNothing().evaluate(source, context) == {}
    assert MatchNothing().terms() == ()
