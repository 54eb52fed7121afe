"""Match retrieval: ranking a query against a store snapshot."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator
from dataclasses import dataclass
import logging

from record_search.config import Settings, get_settings
from record_search.search.document import Document
from record_search.search.query import MatchNothing, Query, ScoringContext
from record_search.search.store import Database, WritableDatabase


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MSetItem:
    """One match: its rank in the full result list, weight and document."""

    doc_id: int
    rank: int
    weight: float
    document: Document

    def get_value(self, slot: int) -> bytes:
        return self.document.get_value(slot)

    def get_data(self) -> bytes:
        return self.document.get_data()


class MSet:
    """A window of ranked matches."""

    def __init__(self, items: list[MSetItem], *, first: int, matches_estimated: int) -> None:
        self.items = items
        self.first = first
        self.matches_estimated = matches_estimated

    def matches(self) -> list[MSetItem]:
        return list(self.items)

    @property
    def size(self) -> int:
        return len(self.items)

    def empty(self) -> bool:
        return not self.items

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[MSetItem]:
        return iter(self.items)

    def __getitem__(self, index: int) -> MSetItem:
        return self.items[index]

    def __repr__(self) -> str:
        return f"MSet(first={self.first}, size={len(self.items)}, matches_estimated={self.matches_estimated})"


class Enquire:
    """Runs a query against a store and returns ranked windows of matches.

    Matches are ordered by BM25 weight (highest first, ties by document id)
    unless :meth:`set_sort_by_value` asks for a value slot order.
    """

    def __init__(self, database: Database | WritableDatabase, *, settings: Settings | None = None) -> None:
        self.database = database
        self.settings = settings or get_settings()
        self.query: Query = MatchNothing()
        self.sort_slot: int | None = None
        self.sort_reverse = False

    def set_query(self, query: Query) -> None:
        self.query = query

    def get_query(self) -> Query:
        return self.query

    def set_sort_by_value(self, slot: int, reverse: bool = False) -> None:
        """Order matches by the raw bytes in ``slot``; documents without it sort first."""
        self.sort_slot = slot
        self.sort_reverse = reverse

    def set_sort_by_relevance(self) -> None:
        self.sort_slot = None
        self.sort_reverse = False

    def get_mset(self, first: int, maxitems: int, check_at_least: int | None = None) -> MSet:
        """Return up to ``maxitems`` matches starting at rank ``first``.

        When ``check_at_least`` is given only the top ``check_at_least``
        matches are ranked; windows past that bound are empty.
        """
        if first < 0 or maxitems < 0:
            raise ValueError("first and maxitems must be non-negative")
        ranked = self._ranked(check_at_least)
        window = ranked[first : first + maxitems]
        items = [
            MSetItem(
                doc_id=doc_id,
                rank=first + offset,
                weight=weight,
                document=self.database.get_document(doc_id),
            )
            for offset, (doc_id, weight) in enumerate(window)
        ]
        logger.debug("%s: %d matches, returning %d from %d", self.query, len(ranked), len(items), first)
        return MSet(items, first=first, matches_estimated=len(ranked))

    def value_counts(self, slot: int, check_at_least: int | None = None) -> Counter[bytes]:
        """Count the values in ``slot`` across the (bounded) matches."""
        values = self.database.slot_values(slot)
        counts: Counter[bytes] = Counter()
        for doc_id, _weight in self._ranked(check_at_least):
            value = values.get(doc_id)
            if value is not None:
                counts[value] += 1
        return counts

    def _ranked(self, check_at_least: int | None) -> list[tuple[int, float]]:
        if check_at_least is not None and check_at_least < 0:
            raise ValueError("check_at_least must be non-negative")
        if self.query.is_empty:
            return []
        context = ScoringContext(
            self.database.collection_stats(),
            k1=self.settings.bm25_k1,
            b=self.settings.bm25_b,
        )
        matches = self.query.evaluate(self.database, context)
        ranked = sorted(matches.items(), key=lambda item: (-item[1], item[0]))
        if self.sort_slot is not None:
            values = self.database.slot_values(self.sort_slot)
            # Stable sort keeps relevance order among equal values.
            ranked.sort(key=lambda item: values.get(item[0], b""), reverse=self.sort_reverse)
        if check_at_least is not None:
            ranked = ranked[:check_at_least]
        return ranked
