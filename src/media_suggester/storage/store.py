"""
Document store implementations following the gold standard pattern.

Pattern: Protocol → Production impl → Test double → Factory

This module contains:
1. SqliteDocumentStore - SQLite file database (default)
2. PgDocumentStore - PostgreSQL via psycopg
3. InMemoryDocumentStore - In-memory store (testing/development)
4. get_document_store() - Factory function

Every write is gated on the document fingerprint: re-upserting content
that has not changed is a no-op reported as "skipped". Batch writes run
in a single transaction and roll back completely on failure.

INTERVIEW TALKING POINT:
------------------------
"Change detection lives in the store, not in the caller. The indexer asks
for all fingerprints once, only pays for embeddings of documents that
actually changed, and the store re-checks inside the write transaction so
a stale caller can never clobber a row with identical content."
"""

from __future__ import annotations

import logging
import re
import sqlite3
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterable, Iterator

from media_suggester.core.errors import StorageError
from media_suggester.observability.attributes import (
    STORE_BATCH_SKIPPED,
    STORE_BATCH_WRITTEN,
    batch_attributes,
)
from media_suggester.observability.tracer import NoOpTracer, TracerProtocol
from media_suggester.storage.codec import decode_embedding, encode_embedding
from media_suggester.storage.document import Document

if TYPE_CHECKING:
    from media_suggester.config import SuggesterConfig

# Optional: Only import psycopg if available (SQLite needs nothing extra)
try:
    import psycopg

    PSYCOPG_AVAILABLE = True
except ImportError:
    PSYCOPG_AVAILABLE = False

logger = logging.getLogger(__name__)

_TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_COLUMNS = "id, name, text, fingerprint, embedding"


def _check_table_name(table_name: str) -> str:
    # Table names are interpolated into SQL, so only plain identifiers pass
    if not _TABLE_NAME_RE.match(table_name):
        raise ValueError(f"Invalid table name: {table_name!r}")
    return table_name


def _row_to_document(row: tuple) -> Document:
    return Document(
        id=row[0],
        name=row[1],
        text=row[2],
        fingerprint=row[3],
        embedding=decode_embedding(row[4]),
    )


def _document_params(doc: Document) -> tuple:
    return (doc.id, doc.name, doc.text, doc.fingerprint, encode_embedding(doc.embedding))


# ---------------------------------------------------------------------------
# SQLITE STORE (Default)
# ---------------------------------------------------------------------------


def _casefold(value: str | None) -> str | None:
    return None if value is None else value.casefold()


class SqliteDocumentStore:
    """
    SQLite document store.

    One instance owns one connection for its session. Several instances
    may open the same database file; concurrent writers are arbitrated by
    SQLite's own locking (writes take the lock up front with
    BEGIN IMMEDIATE). Storage order is insertion order (rowid), and an
    in-place update keeps a document's position.
    """

    backend = "sqlite"

    def __init__(
        self,
        database_path: str,
        table_name: str = "documents",
        tracer: TracerProtocol | None = None,
    ):
        """
        Args:
            database_path: Database file, or ":memory:"
            table_name: Table holding the documents
            tracer: Tracer for batch spans (NoOp if not provided)
        """
        self.database_path = database_path
        self.table_name = _check_table_name(table_name)
        self._tracer = tracer or NoOpTracer()
        self._conn: sqlite3.Connection | None = None

    # -- connection lifecycle ------------------------------------------------

    def connect(self) -> None:
        """Open the database connection."""
        try:
            # Autocommit mode; transactions are opened explicitly
            self._conn = sqlite3.connect(self.database_path, isolation_level=None)
            self._conn.create_function("casefold", 1, _casefold, deterministic=True)
            if self.database_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
        except sqlite3.Error as e:
            raise StorageError(f"Could not open database {self.database_path}: {e}") from e
        logger.debug(f"Opened SQLite database: {self.database_path}")

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "SqliteDocumentStore":
        self._connection()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _connection(self) -> sqlite3.Connection:
        if not self._conn:
            self.connect()
        return self._conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connection()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise

    # -- schema ----------------------------------------------------------------

    def initialize(self) -> None:
        """Create the documents table and its indexes (idempotent)."""
        table = self.table_name
        try:
            self._connection().executescript(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    text TEXT NOT NULL,
                    fingerprint TEXT NOT NULL,
                    embedding BLOB
                );
                CREATE INDEX IF NOT EXISTS idx_{table}_id ON {table}(id);
                CREATE INDEX IF NOT EXISTS idx_{table}_fingerprint ON {table}(fingerprint);
                """
            )
        except sqlite3.Error as e:
            raise StorageError(f"Could not initialize table {table}: {e}") from e

    # -- reads -----------------------------------------------------------------

    def _select(self, where: str = "", params: tuple = ()) -> list[Document]:
        sql = f"SELECT {_COLUMNS} FROM {self.table_name} {where} ORDER BY rowid"
        try:
            rows = self._connection().execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Query on {self.table_name} failed: {e}") from e
        return [_row_to_document(row) for row in rows]

    def get(self, doc_id: str) -> Document | None:
        """Load a single document by id, None if absent."""
        docs = self._select("WHERE id = ?", (doc_id,))
        return docs[0] if docs else None

    def list_all(self) -> list[Document]:
        """Load every stored document."""
        return self._select()

    def search_by_name(self, substring: str) -> list[Document]:
        """Documents whose name contains `substring`, ignoring case."""
        if not substring:
            return self.list_all()
        return self._select("WHERE instr(casefold(name), ?) > 0", (substring.casefold(),))

    def list_all_with_embedding(self) -> list[Document]:
        """Load every document that has an embedding."""
        return list(self.iter_with_embedding())

    def iter_with_embedding(self) -> Iterator[Document]:
        """Yield documents with an embedding straight from the cursor."""
        sql = (
            f"SELECT {_COLUMNS} FROM {self.table_name} "
            "WHERE embedding IS NOT NULL ORDER BY rowid"
        )
        try:
            cursor = self._connection().execute(sql)
        except sqlite3.Error as e:
            raise StorageError(f"Query on {self.table_name} failed: {e}") from e
        try:
            for row in cursor:
                yield _row_to_document(row)
        except sqlite3.Error as e:
            raise StorageError(f"Reading {self.table_name} failed: {e}") from e
        finally:
            cursor.close()

    def get_fingerprints(self) -> dict[str, str]:
        """Load every (id, fingerprint) pair in one query."""
        try:
            rows = self._connection().execute(
                f"SELECT id, fingerprint FROM {self.table_name}"
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Query on {self.table_name} failed: {e}") from e
        return dict(rows)

    def count(self) -> int:
        """Number of stored documents."""
        try:
            row = self._connection().execute(
                f"SELECT COUNT(*) FROM {self.table_name}"
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Query on {self.table_name} failed: {e}") from e
        return row[0]

    # -- writes ----------------------------------------------------------------

    def _upsert_sql(self) -> str:
        return f"""
            INSERT INTO {self.table_name} ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                text = excluded.text,
                fingerprint = excluded.fingerprint,
                embedding = excluded.embedding
        """

    def upsert_one(self, doc: Document) -> bool:
        """
        Save a document unless the stored fingerprint is identical.

        Returns:
            True if the document was written, False if skipped.
        """
        try:
            with self._transaction() as conn:
                row = conn.execute(
                    f"SELECT fingerprint FROM {self.table_name} WHERE id = ?",
                    (doc.id,),
                ).fetchone()
                if row is not None and row[0] == doc.fingerprint:
                    logger.debug(f"Skipping {doc.id} - fingerprint unchanged")
                    return False
                conn.execute(self._upsert_sql(), _document_params(doc))
        except sqlite3.Error as e:
            raise StorageError(f"Saving document {doc.id} failed: {e}") from e
        return True

    def upsert_many(self, docs: Iterable[Document]) -> int:
        """
        Save changed documents in one all-or-nothing transaction.

        Existing fingerprints are loaded once up front; documents whose
        fingerprint matches are skipped.

        Returns:
            Number of documents written (not skipped).
        """
        docs = list(docs)
        with self._tracer.start_span(
            "store.upsert_many", attributes=batch_attributes(self.backend, len(docs))
        ) as span:
            written = 0
            try:
                with self._transaction() as conn:
                    existing = dict(
                        conn.execute(f"SELECT id, fingerprint FROM {self.table_name}").fetchall()
                    )
                    logger.debug(f"Loaded {len(existing)} existing document fingerprints")
                    sql = self._upsert_sql()
                    for doc in docs:
                        if existing.get(doc.id) == doc.fingerprint:
                            logger.debug(f"Skipping {doc.id} - fingerprint unchanged")
                            continue
                        conn.execute(sql, _document_params(doc))
                        existing[doc.id] = doc.fingerprint
                        written += 1
            except sqlite3.Error as e:
                span.record_exception(e)
                span.set_status("error", str(e))
                raise StorageError(f"Batch save rolled back: {e}") from e

            span.set_attribute(STORE_BATCH_WRITTEN, written)
            span.set_attribute(STORE_BATCH_SKIPPED, len(docs) - written)
            logger.info(f"Saved {written} of {len(docs)} documents ({len(docs) - written} unchanged)")
            return written


# ---------------------------------------------------------------------------
# POSTGRES STORE
# ---------------------------------------------------------------------------


def _like_pattern(substring: str) -> str:
    escaped = substring.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class PgDocumentStore:
    """
    PostgreSQL document store using psycopg.

    Same table layout as the SQLite store, with the embedding held in a
    BYTEA column using the identical float32 encoding. The check-then-write
    in upsert_one locks the row with SELECT ... FOR UPDATE. Listing order
    is whatever the server returns.
    """

    backend = "postgres"

    def __init__(
        self,
        connection_string: str,
        table_name: str = "documents",
        tracer: TracerProtocol | None = None,
    ):
        self.connection_string = connection_string
        self.table_name = _check_table_name(table_name)
        self._tracer = tracer or NoOpTracer()
        self._conn = None

    def connect(self) -> None:
        """Establish database connection."""
        if not PSYCOPG_AVAILABLE:
            raise ImportError(
                "psycopg not available. Install with: pip install 'media-suggester[postgres]'"
            )
        try:
            self._conn = psycopg.connect(self.connection_string, autocommit=True)
        except psycopg.Error as e:
            raise StorageError(f"Could not connect to PostgreSQL: {e}") from e

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "PgDocumentStore":
        self._connection()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _connection(self):
        if not self._conn:
            self.connect()
        return self._conn

    def initialize(self) -> None:
        """Create the documents table and indexes (idempotent)."""
        table = self.table_name
        conn = self._connection()
        try:
            with conn.transaction():
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        text TEXT NOT NULL,
                        fingerprint TEXT NOT NULL,
                        embedding BYTEA
                    )
                    """
                )
                conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_id ON {table}(id)")
                conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{table}_fingerprint ON {table}(fingerprint)"
                )
        except psycopg.Error as e:
            raise StorageError(f"Could not initialize table {table}: {e}") from e

    def _select(self, where: str = "", params: tuple = ()) -> list[Document]:
        sql = f"SELECT {_COLUMNS} FROM {self.table_name} {where}"
        try:
            rows = self._connection().execute(sql, params).fetchall()
        except psycopg.Error as e:
            raise StorageError(f"Query on {self.table_name} failed: {e}") from e
        return [_row_to_document(row) for row in rows]

    def get(self, doc_id: str) -> Document | None:
        docs = self._select("WHERE id = %s", (doc_id,))
        return docs[0] if docs else None

    def list_all(self) -> list[Document]:
        return self._select()

    def search_by_name(self, substring: str) -> list[Document]:
        if not substring:
            return self.list_all()
        return self._select("WHERE name ILIKE %s", (_like_pattern(substring),))

    def list_all_with_embedding(self) -> list[Document]:
        return list(self.iter_with_embedding())

    def iter_with_embedding(self) -> Iterator[Document]:
        """Yield documents row by row using psycopg's streaming mode."""
        sql = f"SELECT {_COLUMNS} FROM {self.table_name} WHERE embedding IS NOT NULL"
        try:
            for row in self._connection().cursor().stream(sql):
                yield _row_to_document(row)
        except psycopg.Error as e:
            raise StorageError(f"Reading {self.table_name} failed: {e}") from e

    def get_fingerprints(self) -> dict[str, str]:
        try:
            rows = self._connection().execute(
                f"SELECT id, fingerprint FROM {self.table_name}"
            ).fetchall()
        except psycopg.Error as e:
            raise StorageError(f"Query on {self.table_name} failed: {e}") from e
        return {row[0]: row[1] for row in rows}

    def count(self) -> int:
        try:
            row = self._connection().execute(
                f"SELECT COUNT(*) FROM {self.table_name}"
            ).fetchone()
        except psycopg.Error as e:
            raise StorageError(f"Query on {self.table_name} failed: {e}") from e
        return row[0]

    def _upsert_sql(self) -> str:
        return f"""
            INSERT INTO {self.table_name} ({_COLUMNS})
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (id) DO UPDATE SET
                name = EXCLUDED.name,
                text = EXCLUDED.text,
                fingerprint = EXCLUDED.fingerprint,
                embedding = EXCLUDED.embedding
        """

    def upsert_one(self, doc: Document) -> bool:
        """Save a document unless the stored fingerprint is identical."""
        conn = self._connection()
        try:
            with conn.transaction():
                row = conn.execute(
                    f"SELECT fingerprint FROM {self.table_name} WHERE id = %s FOR UPDATE",
                    (doc.id,),
                ).fetchone()
                if row is not None and row[0] == doc.fingerprint:
                    logger.debug(f"Skipping {doc.id} - fingerprint unchanged")
                    return False
                conn.execute(self._upsert_sql(), _document_params(doc))
        except psycopg.Error as e:
            raise StorageError(f"Saving document {doc.id} failed: {e}") from e
        return True

    def upsert_many(self, docs: Iterable[Document]) -> int:
        """Save changed documents in one all-or-nothing transaction."""
        docs = list(docs)
        conn = self._connection()
        with self._tracer.start_span(
            "store.upsert_many", attributes=batch_attributes(self.backend, len(docs))
        ) as span:
            written = 0
            try:
                with conn.transaction():
                    existing = {
                        row[0]: row[1]
                        for row in conn.execute(
                            f"SELECT id, fingerprint FROM {self.table_name}"
                        ).fetchall()
                    }
                    sql = self._upsert_sql()
                    for doc in docs:
                        if existing.get(doc.id) == doc.fingerprint:
                            logger.debug(f"Skipping {doc.id} - fingerprint unchanged")
                            continue
                        conn.execute(sql, _document_params(doc))
                        existing[doc.id] = doc.fingerprint
                        written += 1
            except psycopg.Error as e:
                span.record_exception(e)
                span.set_status("error", str(e))
                raise StorageError(f"Batch save rolled back: {e}") from e

            span.set_attribute(STORE_BATCH_WRITTEN, written)
            span.set_attribute(STORE_BATCH_SKIPPED, len(docs) - written)
            logger.info(f"Saved {written} of {len(docs)} documents ({len(docs) - written} unchanged)")
            return written


# ---------------------------------------------------------------------------
# IN-MEMORY STORE (Testing/Development)
# ---------------------------------------------------------------------------


class InMemoryDocumentStore:
    """
    In-memory document store for development/testing.

    Implements the same interface as the SQL stores without a database.
    Rows are kept in their encoded form, so documents handed back are
    fresh copies and batch writes are staged and swapped in atomically.
    """

    backend = "memory"

    def __init__(self, tracer: TracerProtocol | None = None):
        self._tracer = tracer or NoOpTracer()
        self._rows: dict[str, tuple] = {}

    def connect(self) -> None:
        """No-op for in-memory store."""
        pass

    def close(self) -> None:
        """No-op for in-memory store."""
        pass

    def initialize(self) -> None:
        """No-op for in-memory store."""
        pass

    def __enter__(self) -> "InMemoryDocumentStore":
        return self

    def __exit__(self, *exc_info) -> None:
        pass

    @staticmethod
    def _encode(doc: Document) -> tuple:
        # Mirror the NOT NULL constraints of the SQL schema
        for field_name in ("id", "name", "text", "fingerprint"):
            if not isinstance(getattr(doc, field_name), str):
                raise StorageError(f"Document field {field_name!r} must be a string")
        return _document_params(doc)

    def get(self, doc_id: str) -> Document | None:
        row = self._rows.get(doc_id)
        return _row_to_document(row) if row is not None else None

    def list_all(self) -> list[Document]:
        return [_row_to_document(row) for row in self._rows.values()]

    def search_by_name(self, substring: str) -> list[Document]:
        needle = substring.casefold()
        return [
            _row_to_document(row)
            for row in self._rows.values()
            if needle in row[1].casefold()
        ]

    def list_all_with_embedding(self) -> list[Document]:
        return list(self.iter_with_embedding())

    def iter_with_embedding(self) -> Iterator[Document]:
        for row in list(self._rows.values()):
            if row[4] is not None:
                yield _row_to_document(row)

    def get_fingerprints(self) -> dict[str, str]:
        return {doc_id: row[3] for doc_id, row in self._rows.items()}

    def count(self) -> int:
        return len(self._rows)

    def upsert_one(self, doc: Document) -> bool:
        existing = self._rows.get(doc.id)
        if existing is not None and existing[3] == doc.fingerprint:
            logger.debug(f"Skipping {doc.id} - fingerprint unchanged")
            return False
        self._rows[doc.id] = self._encode(doc)
        return True

    def upsert_many(self, docs: Iterable[Document]) -> int:
        docs = list(docs)
        with self._tracer.start_span(
            "store.upsert_many", attributes=batch_attributes(self.backend, len(docs))
        ) as span:
            staged = dict(self._rows)
            written = 0
            for doc in docs:
                existing = staged.get(doc.id)
                if existing is not None and existing[3] == doc.fingerprint:
                    continue
                staged[doc.id] = self._encode(doc)
                written += 1
            self._rows = staged
            span.set_attribute(STORE_BATCH_WRITTEN, written)
            return written


# ---------------------------------------------------------------------------
# FACTORY FUNCTION
# ---------------------------------------------------------------------------


def get_document_store(
    config: SuggesterConfig | None = None,
    tracer: TracerProtocol | None = None,
    in_memory: bool = False,
) -> SqliteDocumentStore | PgDocumentStore | InMemoryDocumentStore:
    """
    Factory function to get the appropriate document store.

    Args:
        config: Application config (defaults if not provided)
        tracer: Tracer handed to the store
        in_memory: Return InMemoryDocumentStore regardless of config

    Returns:
        DocumentStore implementation
    """
    if in_memory:
        return InMemoryDocumentStore(tracer=tracer)

    if config is None:
        from media_suggester.config import SuggesterConfig

        config = SuggesterConfig()

    if config.use_postgres:
        if not config.database_url:
            raise ValueError("use_postgres is set but no database_url is configured")
        return PgDocumentStore(config.database_url, config.table_name, tracer=tracer)
    return SqliteDocumentStore(config.database_path, config.table_name, tracer=tracer)
