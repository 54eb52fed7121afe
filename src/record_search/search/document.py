"""Documents and the term generator that fills them."""

from __future__ import annotations

from array import array
from collections.abc import Callable, Iterator, Mapping

from record_search.search.analyzers import TextAnalyzer


DEFAULT_POSITION_GAP = 100


class Document:
    """A searchable document: terms with positions, value slots and data.

    A document built by a record schema belongs to the caller until it is
    handed to :meth:`WritableDatabase.add_document`; documents returned in a
    match set are loaded from the store and carry their ``doc_id``.
    """

    def __init__(self, doc_id: int | None = None) -> None:
        self.doc_id = doc_id
        self._positions: dict[str, array] = {}
        self._wdf: dict[str, int] = {}
        self._values: dict[int, bytes] = {}
        self._data = b""

    def add_posting(self, term: str, position: int, wdf_inc: int = 1) -> None:
        """Add an occurrence of ``term`` at ``position``."""
        if not term:
            raise ValueError("Terms must be non-empty")
        self._positions.setdefault(term, array("I")).append(position)
        self._wdf[term] = self._wdf.get(term, 0) + wdf_inc

    def add_term(self, term: str, wdf_inc: int = 1) -> None:
        """Add ``term`` without positional information."""
        if not term:
            raise ValueError("Terms must be non-empty")
        self._wdf[term] = self._wdf.get(term, 0) + wdf_inc

    def termlist(self) -> Iterator[tuple[str, int, array]]:
        """Yield ``(term, wdf, positions)`` in term order."""
        for term in sorted(self._wdf):
            yield term, self._wdf[term], self._positions.get(term, array("I"))

    def has_term(self, term: str) -> bool:
        return term in self._wdf

    def positions(self, term: str) -> list[int]:
        return list(self._positions.get(term, ()))

    @property
    def doc_length(self) -> int:
        return sum(self._wdf.values())

    def set_value(self, slot: int, value: bytes) -> None:
        if slot < 0:
            raise ValueError(f"Value slots are non-negative, got {slot}")
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError(f"Value slot {slot} expects bytes, got {type(value).__name__}")
        self._values[slot] = bytes(value)

    def get_value(self, slot: int) -> bytes:
        """Return the value in ``slot`` or ``b""`` when unset."""
        return self._values.get(slot, b"")

    def values(self) -> Mapping[int, bytes]:
        return dict(self._values)

    def set_data(self, data: bytes | str) -> None:
        self._data = data.encode("utf-8") if isinstance(data, str) else bytes(data)

    def get_data(self) -> bytes:
        return self._data

    def __str__(self) -> str:
        return self._data.decode("utf-8", errors="replace")

    def __repr__(self) -> str:
        return f"Document(doc_id={self.doc_id}, terms={len(self._wdf)}, values={sorted(self._values)})"


class TermGenerator:
    """Turns text into terms on the current document.

    Every non-stop word ``w`` at position ``p`` under prefix ``P`` becomes the
    positional term ``P + w``; with a stemmer it also adds the unpositioned
    term ``"Z" + P + stem(w)``. Stopwords consume a position but add nothing.
    """

    def __init__(
        self,
        stemmer: Callable[[str], str] | None = None,
        stopper: Callable[[str], bool] | None = None,
    ) -> None:
        self.analyzer = TextAnalyzer(stemmer, stopper)
        self.document: Document | None = None
        self.termpos = 0

    def set_stemmer(self, stemmer: Callable[[str], str] | None) -> None:
        self.analyzer = TextAnalyzer(stemmer, self.analyzer.stopper)

    def set_stopper(self, stopper: Callable[[str], bool] | None) -> None:
        self.analyzer = TextAnalyzer(self.analyzer.stemmer, stopper)

    def set_document(self, document: Document) -> None:
        """Direct output to ``document`` and reset the term position."""
        self.document = document
        self.termpos = 0

    def index_text(self, text: str, wdf_inc: int = 1, prefix: str = "") -> None:
        document = self._require_document()
        tokens, word_count = self.analyzer.analyze(text)
        for token in tokens:
            position = self.termpos + token.position + 1
            document.add_posting(self.analyzer.positional_term(token.text, prefix), position, wdf_inc)
            stemmed = self.analyzer.stemmed_term(token.text, prefix)
            if stemmed is not None:
                document.add_term(stemmed, wdf_inc)
        self.termpos += word_count

    def increase_termpos(self, delta: int = DEFAULT_POSITION_GAP) -> None:
        self.termpos += delta

    def _require_document(self) -> Document:
        if self.document is None:
            raise RuntimeError("TermGenerator has no document; call set_document() first")
        return self.document
