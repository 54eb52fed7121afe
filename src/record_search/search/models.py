"""Search data models."""

from array import array
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Posting:
    """A posting represents a term occurrence in a document."""

    doc_id: int
    wdf: int = 0
    doc_length: int = 0
    positions: array = field(default_factory=lambda: array("I"))

    @classmethod
    def from_row(cls, doc_id: int, wdf: int, doc_length: int, positions_blob: bytes | None) -> "Posting":
        """Create from a ``postings`` row joined with the document length."""
        positions = array("I")
        if positions_blob:
            positions.frombytes(positions_blob)
        return cls(doc_id=int(doc_id), wdf=int(wdf or 0), doc_length=int(doc_length or 0), positions=positions)
