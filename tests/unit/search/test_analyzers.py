"""Unit tests for the shared text analyzer."""

import pytest

from record_search.search.analyzers import LowercaseFilter, RegexTokenizer, StopFilter, TextAnalyzer, Token
from record_search.search.lang import StopList


@pytest.mark.unit
def test_regex_tokenizer_positions_and_offsets():
    tokens = list(RegexTokenizer()("Don't panic, Arthur"))
    assert [token.text for token in tokens] == ["Don't", "panic", "Arthur"]
    assert [token.position for token in tokens] == [0, 1, 2]
    assert (tokens[1].start_char, tokens[1].end_char) == (6, 11)


@pytest.mark.unit
def test_lowercase_filter_copies_changed_tokens_only():
    lower = Token("already", 0, 0, 7)
    tokens = list(LowercaseFilter()([lower, Token("UPPER", 1, 8, 13)]))
    assert tokens[0] is lower
    assert tokens[1].text == "upper"


@pytest.mark.unit
def test_stop_filter_keeps_original_positions():
    tokens = [Token("the", 0, 0, 3), Token("union", 1, 4, 9)]
    kept = list(StopFilter(StopList(["the"]))(tokens))
    assert [(token.text, token.position) for token in kept] == [("union", 1)]


@pytest.mark.unit
def test_analyze_reports_words_seen_including_stopwords():
    analyzer = TextAnalyzer(stopper=StopList(["of", "the"]))
    tokens, word_count = analyzer.analyze("State of the Union")
    assert [(token.text, token.position) for token in tokens] == [("state", 0), ("union", 3)]
    assert word_count == 4


@pytest.mark.unit
def test_term_construction_with_and_without_stemmer():
    plain = TextAnalyzer()
    assert plain.positional_term("beta", "XS") == "XSbeta"
    assert plain.stemmed_term("beta", "XS") is None

    stemming = TextAnalyzer(stemmer=lambda word: word.rstrip("s"))
    assert stemming.stemmed_term("cats", "XS") == "ZXScat"
    assert stemming.stemmed_term("cats") == "Zcat"


@pytest.mark.unit
def test_is_stopword_without_stopper():
    assert not TextAnalyzer().is_stopword("the")
