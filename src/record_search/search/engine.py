"""Indexing and search façade over a compiled record schema.

An :class:`Indexer` owns the writable store and turns records into documents
with the schema's index program. A :class:`Searcher` reads a snapshot of the
store and parses query text with the schema's query configuration, so
``name:beta`` finds exactly what the ``name`` field indexed.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
import logging
from pathlib import Path
from typing import Any, Generic, TypeVar

from record_search.config import Settings, get_settings
from record_search.errors import IndexingError, QueryError
from record_search.observability import (
    BATCHES,
    DOCUMENTS_INDEXED,
    QUERY_ERRORS,
    SEARCH_COUNT,
    SEARCH_LATENCY,
    create_span,
    schema_context,
    track_latency,
)
from record_search.search.document import Document, TermGenerator
from record_search.search.enquire import Enquire, MSet
from record_search.search.query import Query, QueryParser
from record_search.search.schema import RecordSchema
from record_search.search.store import Database, DbAction, WritableDatabase
from record_search.search.values import deserialize_value


logger = logging.getLogger(__name__)

R = TypeVar("R")

DocumentCallback = Callable[[Document, Any], None]


class Indexer(Generic[R]):
    """Writes records of one schema into a store."""

    def __init__(self, schema: RecordSchema[R], database: WritableDatabase) -> None:
        self.schema = schema
        self.database = database
        self.termgen = TermGenerator()

    @classmethod
    def open_with_mode(
        cls,
        schema: RecordSchema[R],
        path: str | Path,
        action: DbAction,
        *,
        settings: Settings | None = None,
    ) -> Indexer[R]:
        return cls(schema, WritableDatabase.open(path, action, settings=settings))

    @classmethod
    def create(cls, schema: RecordSchema[R], path: str | Path, *, settings: Settings | None = None) -> Indexer[R]:
        """Create a new store; fails if one exists at ``path``."""
        return cls.open_with_mode(schema, path, DbAction.CREATE, settings=settings)

    @classmethod
    def open(cls, schema: RecordSchema[R], path: str | Path, *, settings: Settings | None = None) -> Indexer[R]:
        """Open an existing store; fails if there is none at ``path``."""
        return cls.open_with_mode(schema, path, DbAction.OPEN, settings=settings)

    @classmethod
    def create_or_open(
        cls, schema: RecordSchema[R], path: str | Path, *, settings: Settings | None = None
    ) -> Indexer[R]:
        return cls.open_with_mode(schema, path, DbAction.CREATE_OR_OPEN, settings=settings)

    @classmethod
    def create_or_overwrite(
        cls, schema: RecordSchema[R], path: str | Path, *, settings: Settings | None = None
    ) -> Indexer[R]:
        """Open a fresh store at ``path``, deleting any existing one."""
        return cls.open_with_mode(schema, path, DbAction.CREATE_OR_OVERWRITE, settings=settings)

    @classmethod
    def inmemory(cls, schema: RecordSchema[R], *, settings: Settings | None = None) -> Indexer[R]:
        return cls(schema, WritableDatabase.inmemory(settings=settings))

    @property
    def settings(self) -> Settings:
        return self.database.settings

    @property
    def doc_count(self) -> int:
        return self.database.doc_count

    def index(self, record: R, callback: DocumentCallback | None = None) -> int:
        """Index one record and return its document id.

        ``callback(document, record)`` runs after the schema's steps and
        before the document is added. The document becomes visible to readers
        after the next :meth:`commit`.
        """
        with schema_context(self.schema.name):
            doc_id = self._add(record, callback)
        DOCUMENTS_INDEXED.labels(schema=self.schema.name).inc()
        return doc_id

    def batch_index(self, records: Iterable[R], callback: DocumentCallback | None = None) -> list[int]:
        """Index ``records`` in one transaction and commit it.

        If any record fails, nothing from the batch is written and
        :class:`IndexingError` is raised with the failing record's position.
        A :class:`StoreError` while writing the batch also discards it.
        """
        name = self.schema.name
        doc_ids: list[int] = []
        with schema_context(name), create_span("indexer.batch_index", attributes={"record_search.schema": name}) as span:
            self.database.begin_transaction()
            try:
                for position, record in enumerate(records):
                    try:
                        doc_ids.append(self._add(record, callback))
                    except Exception as exc:
                        raise IndexingError(position, record) from exc
                self.database.commit_transaction()
            except BaseException:
                if self.database.in_transaction:
                    self.database.cancel_transaction()
                BATCHES.labels(schema=name, outcome="rolled_back").inc()
                logger.debug("Batch for %s rolled back after %d documents", name, len(doc_ids))
                raise
            span.set_attribute("record_search.documents", len(doc_ids))

        BATCHES.labels(schema=name, outcome="committed").inc()
        DOCUMENTS_INDEXED.labels(schema=name).inc(len(doc_ids))
        logger.debug("Committed batch of %d %s documents", len(doc_ids), name)
        return doc_ids

    def commit(self) -> None:
        """Flush pending documents so new readers can see them."""
        self.database.commit()

    def search(
        self,
        query: str,
        page_size: int | None = None,
        max_docs: int | None = None,
        **kwargs: Any,
    ) -> Search[R]:
        """Search the committed state of this indexer's store.

        The returned :class:`Search` reads through its own snapshot; close it,
        or use it as a context manager, to release that snapshot.
        """
        searcher = Searcher.from_indexer(self)
        try:
            search = searcher.search(query, page_size, max_docs, **kwargs)
        except BaseException:
            searcher.close()
            raise
        search.owns_searcher = True
        return search

    def close(self) -> None:
        self.database.close()

    def __enter__(self) -> Indexer[R]:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _add(self, record: R, callback: DocumentCallback | None) -> int:
        document = self.schema.index(record, self.termgen)
        if callback is not None:
            callback(document, record)
        return self.database.add_document(document)


class Searcher(Generic[R]):
    """Searches a read-only snapshot of a store."""

    def __init__(self, schema: RecordSchema[R], database: Database, *, settings: Settings | None = None) -> None:
        self.schema = schema
        self.database = database
        self.settings = settings or get_settings()

    @classmethod
    def from_indexer(cls, indexer: Indexer[R]) -> Searcher[R]:
        return cls(indexer.schema, indexer.database.read_only(), settings=indexer.settings)

    @classmethod
    def open(cls, schema: RecordSchema[R], path: str | Path, *, settings: Settings | None = None) -> Searcher[R]:
        return cls(schema, Database.open(path, settings=settings), settings=settings)

    @property
    def doc_count(self) -> int:
        return self.database.doc_count

    def search(
        self,
        query: str,
        page_size: int | None = None,
        max_docs: int | None = None,
        sort_by_value: int | str | None = None,
        reverse: bool = False,
    ) -> Search[R]:
        """Parse ``query`` and return a handle for paging through its matches.

        Args:
            query: Free query text.
            page_size: Matches per page; defaults to ``default_page_size``.
            max_docs: Matches considered in total; defaults to the store's
                document count.
            sort_by_value: Facet slot (or faceted field name) to order by
                instead of relevance.
            reverse: Descending value order.

        Raises:
            QueryError: ``query`` is malformed.
        """
        page_size = self.settings.default_page_size if page_size is None else page_size
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        max_docs = self.database.doc_count if max_docs is None else max_docs
        if max_docs < 0:
            raise ValueError("max_docs must be non-negative")

        enquire = Enquire(self.database, settings=self.settings)
        if sort_by_value is not None:
            enquire.set_sort_by_value(self._slot(sort_by_value), reverse)
        search = Search(self, enquire, page_size=page_size, max_docs=max_docs)
        search.update(query)
        SEARCH_COUNT.labels(schema=self.schema.name).inc()
        return search

    def reopen(self) -> None:
        """Move to the latest committed state of the store."""
        self.database.reopen()

    def close(self) -> None:
        self.database.close()

    def __enter__(self) -> Searcher[R]:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _slot(self, slot: int | str) -> int:
        return self.schema.slot(slot) if isinstance(slot, str) else slot


class Search(Generic[R]):
    """An active query with paged access to its matches."""

    def __init__(self, searcher: Searcher[R], enquire: Enquire, *, page_size: int, max_docs: int) -> None:
        self.searcher = searcher
        self.enquire = enquire
        self.parser: QueryParser = searcher.schema.query_parser()
        self.page_size = page_size
        self.max_docs = max_docs
        self.query_text = ""
        self.owns_searcher = False

    @property
    def query(self) -> Query:
        return self.enquire.get_query()

    def results(self, page: int = 0) -> MSet:
        """Return page ``page`` (zero-based); pages past the end are empty."""
        if page < 0:
            raise ValueError("page must be non-negative")
        name = self.searcher.schema.name
        first = page * self.page_size
        with (
            schema_context(name),
            create_span("search.results", attributes={"record_search.schema": name, "record_search.page": page}),
            track_latency(SEARCH_LATENCY, schema=name),
        ):
            return self.enquire.get_mset(first, self.page_size, self.max_docs)

    def update(self, query: str) -> None:
        """Replace the active query; on a parse error the old query stays active."""
        try:
            parsed = self.parser.parse_query(query)
        except QueryError:
            QUERY_ERRORS.labels(schema=self.searcher.schema.name).inc()
            raise
        self.enquire.set_query(parsed)
        self.query_text = query

    def facet_counts(self, slot: int | str, kind: type | None = None) -> dict[Any, int]:
        """Count facet values in ``slot`` across all matches.

        Values are raw bytes unless ``kind`` (``int``, ``float``, ``str``...)
        is given.
        """
        counts = self.enquire.value_counts(self.searcher._slot(slot), self.max_docs)
        if kind is None:
            return dict(counts)
        return {deserialize_value(value, kind): count for value, count in counts.items()}

    def close(self) -> None:
        """Release the snapshot when this search was opened by :meth:`Indexer.search`."""
        if self.owns_searcher:
            self.searcher.close()

    def __enter__(self) -> Search[R]:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
