"""Unit tests for phrase position matching."""

import pytest

from record_search.search.phrase import phrase_frequency


@pytest.mark.unit
def test_adjacent_terms_match():
    assert phrase_frequency([[1, 7], [2, 9]], [0, 1]) == 1


@pytest.mark.unit
def test_offsets_keep_stopword_gaps():
    # "state of the union": state@0, union@3
    assert phrase_frequency([[1], [4]], [0, 3]) == 1
    assert phrase_frequency([[1], [2]], [0, 3]) == 0


@pytest.mark.unit
def test_counts_every_occurrence():
    assert phrase_frequency([[1, 5, 9], [2, 6, 12]], [0, 1]) == 2


@pytest.mark.unit
def test_missing_term_never_matches():
    assert phrase_frequency([[1], []], [0, 1]) == 0
    assert phrase_frequency([], []) == 0


@pytest.mark.unit
def test_mismatched_offsets_are_rejected():
    with pytest.raises(ValueError):
        phrase_frequency([[1], [2]], [0])
