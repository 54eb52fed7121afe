"""Statistical helpers for BM25 scoring.

The functions here stay independent of any storage backend so they can be
unit tested without a database.
"""

from __future__ import annotations

from dataclasses import dataclass
import math


@dataclass(frozen=True)
class CollectionStats:
    """Document count and total length of a store snapshot."""

    document_count: int
    total_length: int

    @property
    def average_length(self) -> float:
        if self.document_count == 0:
            return 0.0
        return self.total_length / self.document_count


def calculate_idf(term_freq: int, total_docs: int, *, floor: float = 1e-6) -> float:
    """Return inverse document frequency with small-sample smoothing.

    The IDF is floored so that terms present in most documents of a small
    store get a near-zero weight instead of a negative one.
    """

    if total_docs <= 0:
        return 0.0
    df = max(0, min(term_freq, total_docs))
    numerator = total_docs - df + 0.5
    denominator = df + 0.5
    ratio = max(numerator / denominator, floor)
    return max(math.log(ratio + floor) + 1.0, floor)


def bm25(wdf: int, doc_length: int, avg_doc_length: float, *, k1: float = 1.2, b: float = 0.75) -> float:
    """Compute the BM25 term weight without IDF."""

    if wdf <= 0:
        return 0.0
    length_ratio = doc_length / max(avg_doc_length, 1e-9)
    denominator = wdf + k1 * (1 - b + b * length_ratio)
    return (wdf * (k1 + 1)) / denominator
