"""Phrase matching over term positions.

A quoted query such as ``"state of the union"`` becomes a sequence of
positional terms with relative offsets. Stopwords are not indexed but still
occupy a position, so the offsets keep their gaps: with English stopwords the
phrase above is ``state@0, union@3``.
"""

from __future__ import annotations

from collections.abc import Sequence


def phrase_frequency(position_lists: Sequence[Sequence[int]], offsets: Sequence[int]) -> int:
    """Count occurrences of a phrase in one document.

    Args:
        position_lists: Positions of each phrase term in the document, in
            phrase order.
        offsets: Offset of each term relative to the start of the phrase.

    Returns:
        Number of anchor positions at which every term appears at its offset.
    """
    if len(position_lists) != len(offsets):
        raise ValueError("Each phrase term needs exactly one offset")
    if not position_lists:
        return 0
    if any(not positions for positions in position_lists):
        return 0

    # Anchor on the rarest term to keep the candidate set small.
    pivot = min(range(len(position_lists)), key=lambda index: len(position_lists[index]))
    pivot_offset = offsets[pivot]
    lookups = [frozenset(positions) for positions in position_lists]

    count = 0
    for position in position_lists[pivot]:
        start = position - pivot_offset
        if start < 0:
            continue
        if all(start + offset in lookup for lookup, offset in zip(lookups, offsets)):
            count += 1
    return count
