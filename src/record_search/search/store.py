"""SQLite-backed term store.

A store is a directory holding one SQLite database (``records.db``) in WAL
mode. Documents added through a :class:`WritableDatabase` are buffered in
memory and written in one SQLite transaction on :meth:`~WritableDatabase.commit`
(or when the buffer reaches ``flush_threshold`` outside a transaction), so a
reader never sees half of a commit.

A :class:`Database` opened on a file holds a read transaction as its
snapshot: it keeps seeing the store as it was when opened until
:meth:`Database.reopen` is called. A read-only view of an in-memory store
shares the writer's connection and sees every commit immediately.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
import logging
from pathlib import Path
import sqlite3

from record_search.config import Settings, get_settings
from record_search.errors import StoreError
from record_search.search.document import Document
from record_search.search.models import Posting
from record_search.search.stats import CollectionStats


logger = logging.getLogger(__name__)

STORE_FILENAME = "records.db"
FORMAT_VERSION = "1"

_SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS metadata (
        key TEXT PRIMARY KEY,
        value TEXT
    );

    CREATE TABLE IF NOT EXISTS documents (
        doc_id INTEGER PRIMARY KEY,
        data BLOB NOT NULL,
        doc_length INTEGER NOT NULL
    );

    CREATE TABLE IF NOT EXISTS postings (
        term TEXT NOT NULL,
        doc_id INTEGER NOT NULL,
        wdf INTEGER NOT NULL,
        positions_blob BLOB,
        PRIMARY KEY (term, doc_id)
    ) WITHOUT ROWID;

    CREATE TABLE IF NOT EXISTS doc_values (
        slot INTEGER NOT NULL,
        doc_id INTEGER NOT NULL,
        value BLOB NOT NULL,
        PRIMARY KEY (slot, doc_id)
    ) WITHOUT ROWID;
"""


class DbAction(str, Enum):
    """How :meth:`WritableDatabase.open` treats an existing or missing store."""

    CREATE = "create"
    OPEN = "open"
    CREATE_OR_OPEN = "create_or_open"
    CREATE_OR_OVERWRITE = "create_or_overwrite"


def apply_read_pragmas(conn: sqlite3.Connection, settings: Settings) -> None:
    """Apply read-optimized PRAGMAs and forbid writes on this connection."""
    conn.execute(f"PRAGMA busy_timeout = {int(settings.sqlite_busy_timeout_ms)}")
    conn.execute(f"PRAGMA cache_size = {int(settings.sqlite_cache_size_kb)}")
    conn.execute(f"PRAGMA mmap_size = {int(settings.sqlite_mmap_size_bytes)}")
    conn.execute("PRAGMA query_only = 1")


def apply_write_pragmas(conn: sqlite3.Connection, settings: Settings, *, in_memory: bool = False) -> None:
    """Apply write-optimized PRAGMAs."""
    if not in_memory:
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute(f"PRAGMA busy_timeout = {int(settings.sqlite_busy_timeout_ms)}")
        conn.execute(f"PRAGMA mmap_size = {int(settings.sqlite_mmap_size_bytes)}")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute(f"PRAGMA cache_size = {int(settings.sqlite_cache_size_kb)}")


def store_path(directory: str | Path) -> Path:
    """Return the SQLite file used for the store in ``directory``."""
    return Path(directory) / STORE_FILENAME


class _StoreReader:
    """Read operations shared by writable and read-only handles."""

    _conn: sqlite3.Connection | None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("Store handle is closed")
        return self._conn

    def _committed_doc_count(self) -> int:
        try:
            return int(self._connection().execute("SELECT COUNT(*) FROM documents").fetchone()[0])
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to count documents: {exc}") from exc

    def collection_stats(self) -> CollectionStats:
        try:
            count, total = (
                self._connection().execute("SELECT COUNT(*), COALESCE(SUM(doc_length), 0) FROM documents").fetchone()
            )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read collection statistics: {exc}") from exc
        return CollectionStats(document_count=int(count), total_length=int(total))

    def postings(self, term: str) -> list[Posting]:
        """Return every posting for ``term``, ordered by document id."""
        try:
            cursor = self._connection().execute(
                "SELECT p.doc_id, p.wdf, d.doc_length, p.positions_blob "
                "FROM postings AS p JOIN documents AS d ON d.doc_id = p.doc_id "
                "WHERE p.term = ? ORDER BY p.doc_id",
                (term,),
            )
            return [Posting.from_row(*row) for row in cursor]
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read postings for {term!r}: {exc}") from exc

    def term_exists(self, term: str) -> bool:
        try:
            row = self._connection().execute("SELECT 1 FROM postings WHERE term = ? LIMIT 1", (term,)).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to look up {term!r}: {exc}") from exc
        return row is not None

    def get_document(self, doc_id: int) -> Document:
        """Load the stored form (data and value slots) of ``doc_id``."""
        conn = self._connection()
        try:
            row = conn.execute("SELECT data FROM documents WHERE doc_id = ?", (doc_id,)).fetchone()
            if row is None:
                raise StoreError(f"Document {doc_id} not found")
            document = Document(doc_id=doc_id)
            document.set_data(row[0])
            for slot, value in conn.execute("SELECT slot, value FROM doc_values WHERE doc_id = ?", (doc_id,)):
                document.set_value(int(slot), value)
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to load document {doc_id}: {exc}") from exc
        return document

    def slot_values(self, slot: int) -> dict[int, bytes]:
        """Return ``doc_id -> value`` for every document with ``slot`` set."""
        try:
            cursor = self._connection().execute("SELECT doc_id, value FROM doc_values WHERE slot = ?", (slot,))
            return {int(doc_id): bytes(value) for doc_id, value in cursor}
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read value slot {slot}: {exc}") from exc

    def all_doc_ids(self) -> list[int]:
        try:
            return [int(row[0]) for row in self._connection().execute("SELECT doc_id FROM documents ORDER BY doc_id")]
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to list documents: {exc}") from exc


class Database(_StoreReader):
    """Read-only snapshot of a store."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        path: Path | None = None,
        owns_connection: bool = True,
    ) -> None:
        self._conn = conn
        self.path = path
        self._owns_connection = owns_connection
        if owns_connection:
            self._begin_snapshot()

    @classmethod
    def open(cls, directory: str | Path, *, settings: Settings | None = None) -> Database:
        settings = settings or get_settings()
        db_path = store_path(directory)
        if not db_path.is_file():
            raise StoreError(f"No store at {directory}")
        try:
            conn = sqlite3.connect(db_path, isolation_level=None, cached_statements=0)
            with _close_on_error(conn):
                apply_read_pragmas(conn, settings)
                _check_format(conn, db_path)
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to open store {directory}: {exc}") from exc
        logger.debug("Opened read-only store %s", db_path)
        return cls(conn, path=db_path)

    @property
    def doc_count(self) -> int:
        return self._committed_doc_count()

    def reopen(self) -> None:
        """Move the snapshot forward to the latest commit."""
        if not self._owns_connection:
            return
        try:
            self._connection().execute("COMMIT")
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to release snapshot: {exc}") from exc
        self._begin_snapshot()

    def close(self) -> None:
        if self._conn is None:
            return
        if self._owns_connection:
            try:
                self._conn.close()
            except sqlite3.Error as exc:
                logger.warning("Failed to close store %s: %s", self.path, exc)
        self._conn = None

    def _begin_snapshot(self) -> None:
        try:
            conn = self._connection()
            conn.execute("BEGIN")
            # The first read pins the WAL snapshot for this transaction.
            conn.execute("SELECT COUNT(*) FROM documents").fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to start read snapshot: {exc}") from exc

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class WritableDatabase(_StoreReader):
    """Writable handle on a store.

    Documents are buffered until :meth:`commit`. Inside a transaction nothing
    is flushed until :meth:`commit_transaction`; :meth:`cancel_transaction`
    drops everything added since :meth:`begin_transaction`.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        path: Path | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._conn = conn
        self.path = path
        self.settings = settings or get_settings()
        self._pending: list[tuple[int, Document]] = []
        self._in_transaction = False
        self._transaction_start = 0
        self._next_doc_id = self._load_next_doc_id()

    @classmethod
    def open(
        cls,
        directory: str | Path,
        action: DbAction = DbAction.CREATE_OR_OPEN,
        *,
        settings: Settings | None = None,
    ) -> WritableDatabase:
        settings = settings or get_settings()
        directory = Path(directory)
        db_path = store_path(directory)
        exists = db_path.exists()

        if action is DbAction.CREATE and exists:
            raise StoreError(f"Store already exists at {directory}")
        if action is DbAction.OPEN and not exists:
            raise StoreError(f"No store at {directory}")

        try:
            if action is DbAction.CREATE_OR_OVERWRITE and exists:
                _remove_store_files(db_path)
            directory.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(db_path, isolation_level=None, cached_statements=0)
            with _close_on_error(conn):
                apply_write_pragmas(conn, settings)
                if exists and action is not DbAction.CREATE_OR_OVERWRITE:
                    _check_format(conn, db_path)
                else:
                    _initialize(conn)
        except (OSError, sqlite3.Error) as exc:
            raise StoreError(f"Failed to open store {directory} ({action.value}): {exc}") from exc

        logger.debug("Opened writable store %s (%s)", db_path, action.value)
        return cls(conn, path=db_path, settings=settings)

    @classmethod
    def inmemory(cls, *, settings: Settings | None = None) -> WritableDatabase:
        settings = settings or get_settings()
        try:
            conn = sqlite3.connect(":memory:", isolation_level=None, cached_statements=0)
            apply_write_pragmas(conn, settings, in_memory=True)
            _initialize(conn)
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to create in-memory store: {exc}") from exc
        return cls(conn, settings=settings)

    @property
    def doc_count(self) -> int:
        """Committed documents plus documents waiting for the next flush."""
        return self._committed_doc_count() + len(self._pending)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def add_document(self, document: Document) -> int:
        """Queue ``document`` and return the id it will be stored under."""
        doc_id = self._next_doc_id
        self._next_doc_id += 1
        document.doc_id = doc_id
        self._pending.append((doc_id, document))
        if not self._in_transaction and len(self._pending) >= self.settings.flush_threshold:
            logger.debug("Flush threshold %d reached", self.settings.flush_threshold)
            self._flush()
        return doc_id

    def begin_transaction(self) -> None:
        if self._in_transaction:
            raise StoreError("A transaction is already in progress")
        self._flush()
        self._in_transaction = True
        self._transaction_start = self._next_doc_id

    def commit_transaction(self) -> None:
        if not self._in_transaction:
            raise StoreError("No transaction in progress")
        try:
            self._flush()
        except StoreError:
            # Dropped so a later flush cannot write it.
            self.cancel_transaction()
            raise
        self._in_transaction = False

    def cancel_transaction(self) -> None:
        if not self._in_transaction:
            raise StoreError("No transaction in progress")
        dropped = len(self._pending)
        self._pending.clear()
        self._next_doc_id = self._transaction_start
        self._in_transaction = False
        logger.debug("Cancelled transaction, dropped %d documents", dropped)

    def commit(self) -> None:
        """Flush pending documents so readers can see them."""
        if self._in_transaction:
            raise StoreError("Cannot commit inside a transaction; use commit_transaction()")
        self._flush()

    def read_only(self) -> Database:
        """Return a read-only view of the committed state of this store."""
        conn = self._connection()
        if self.path is None:
            return Database(conn, owns_connection=False)
        return Database.open(self.path.parent, settings=self.settings)

    def close(self) -> None:
        """Flush pending documents (cancelling an open transaction) and close."""
        if self._conn is None:
            return
        if self._in_transaction:
            self.cancel_transaction()
        try:
            self._flush()
        finally:
            try:
                self._conn.close()
            except sqlite3.Error as exc:
                logger.warning("Failed to close store %s: %s", self.path, exc)
            self._conn = None

    def __enter__(self) -> WritableDatabase:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _load_next_doc_id(self) -> int:
        try:
            row = self._connection().execute("SELECT COALESCE(MAX(doc_id), 0) FROM documents").fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read last document id: {exc}") from exc
        return int(row[0]) + 1

    def _flush(self) -> None:
        if not self._pending:
            return
        conn = self._connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                _write_documents(conn, self._pending)
                conn.execute("COMMIT")
            except sqlite3.Error:
                conn.execute("ROLLBACK")
                raise
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to flush {len(self._pending)} documents: {exc}") from exc
        logger.debug("Flushed %d documents to %s", len(self._pending), self.path or ":memory:")
        self._pending.clear()


def _write_documents(conn: sqlite3.Connection, pending: Iterable[tuple[int, Document]]) -> None:
    documents_data = []
    postings_data = []
    values_data = []
    for doc_id, document in pending:
        documents_data.append((doc_id, document.get_data(), document.doc_length))
        for term, wdf, positions in document.termlist():
            postings_data.append((term, doc_id, wdf, positions.tobytes() if positions else None))
        for slot, value in document.values().items():
            values_data.append((slot, doc_id, value))

    conn.executemany("INSERT INTO documents (doc_id, data, doc_length) VALUES (?, ?, ?)", documents_data)
    if postings_data:
        conn.executemany(
            "INSERT INTO postings (term, doc_id, wdf, positions_blob) VALUES (?, ?, ?, ?)",
            postings_data,
        )
    if values_data:
        conn.executemany("INSERT INTO doc_values (slot, doc_id, value) VALUES (?, ?, ?)", values_data)


def _initialize(conn: sqlite3.Connection) -> None:
    conn.executescript(_SCHEMA_SQL)
    conn.executemany(
        "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
        [
            ("format_version", FORMAT_VERSION),
            ("created_at", datetime.now(timezone.utc).isoformat()),
        ],
    )


def _check_format(conn: sqlite3.Connection, db_path: Path) -> None:
    try:
        row = conn.execute("SELECT value FROM metadata WHERE key = 'format_version'").fetchone()
    except sqlite3.OperationalError as exc:
        raise StoreError(f"{db_path} is not a record-search store") from exc
    if row is None or row[0] != FORMAT_VERSION:
        raise StoreError(f"{db_path} has unsupported store format {row[0] if row else None!r}")


@contextmanager
def _close_on_error(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    try:
        yield conn
    except BaseException:
        conn.close()
        raise


def _remove_store_files(db_path: Path) -> None:
    db_path.unlink()
    for sidecar in db_path.parent.glob(f"{db_path.name}-*"):
        sidecar.unlink()
