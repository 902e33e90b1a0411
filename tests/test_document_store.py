"""
Unit Tests for the Document Store

Runs the same behavioural checks against SqliteDocumentStore and
InMemoryDocumentStore, plus SQLite-specific persistence checks.

STAFF ENGINEER PATTERNS:
------------------------
1. Test through the protocol interface (both backends, one suite)
2. Compare stored bytes, not just returned objects
3. Inject a failing record to prove batch rollback
"""

import sqlite3

import numpy as np
import pytest

from media_suggester.config import SuggesterConfig
from media_suggester.core import DocumentStore, StorageError
from media_suggester.storage import (
    Document,
    InMemoryDocumentStore,
    SqliteDocumentStore,
    compute_fingerprint,
    encode_embedding,
    get_document_store,
)


# ---------------------------------------------------------------------------
# FIXTURES
# ---------------------------------------------------------------------------


@pytest.fixture(params=["sqlite", "memory"])
def store(request, tmp_path):
    """An initialized store of each backend."""
    if request.param == "sqlite":
        s = SqliteDocumentStore(str(tmp_path / "docs.db"))
    else:
        s = InMemoryDocumentStore()
    s.initialize()
    yield s
    s.close()


def make_doc(doc_id, name="Movie", text=None, embedding=(1.0, 0.0, 0.0)):
    text = text if text is not None else f"text for {doc_id}"
    return Document(
        id=doc_id,
        name=name,
        text=text,
        embedding=None if embedding is None else np.array(embedding, dtype=np.float32),
    )


def snapshot(store):
    """Everything the store holds, in encoded form."""
    return [
        (d.id, d.name, d.text, d.fingerprint, encode_embedding(d.embedding))
        for d in store.list_all()
    ]


# ---------------------------------------------------------------------------
# DOCUMENT MODEL
# ---------------------------------------------------------------------------


class TestDocument:
    """Test Document dataclass."""

    def test_fingerprint_derived_from_text(self):
        """Empty fingerprint should be filled with the MD5 of the text."""
        doc = Document(id="1", name="A", text="hello")

        assert doc.fingerprint == "5d41402abc4b2a76b9719d911017c592"
        assert doc.fingerprint == compute_fingerprint("hello")

    def test_identical_text_identical_fingerprint(self):
        """Fingerprint is a pure function of text."""
        a = Document(id="1", name="A", text="same text")
        b = Document(id="2", name="B", text="same text")

        assert a.fingerprint == b.fingerprint

    def test_explicit_fingerprint_kept(self):
        """Caller-supplied fingerprint should not be overwritten."""
        doc = Document(id="1", name="A", text="hello", fingerprint="abc")

        assert doc.fingerprint == "abc"

    def test_embedding_coerced_to_float32(self):
        """Embeddings are held at storage precision."""
        doc = Document(id="1", name="A", text="t", embedding=[0.5, 0.25])

        assert doc.embedding.dtype == np.float32
        assert doc.dimensions == 2
        assert doc.has_embedding

    def test_default_fields(self):
        """Documents start without an embedding."""
        doc = Document(id="1", name="A", text="t")

        assert doc.embedding is None
        assert doc.dimensions == 0
        assert not doc.has_embedding


# ---------------------------------------------------------------------------
# BASIC OPERATIONS
# ---------------------------------------------------------------------------


class TestStoreBasics:
    """Lookup and listing behaviour shared by all backends."""

    def test_implements_protocol(self, store):
        """Store should satisfy the DocumentStore protocol."""
        assert isinstance(store, DocumentStore)

    def test_initialize_is_idempotent(self, store):
        """initialize() can run on every startup."""
        store.upsert_one(make_doc("d1"))
        store.initialize()
        store.initialize()

        assert store.count() == 1

    def test_get_missing_returns_none(self, store):
        """Unknown ids return None."""
        assert store.get("nope") is None

    def test_get_round_trips_fields(self, store):
        """Stored fields come back unchanged, embedding bit-exact."""
        doc = make_doc("d1", name="Alien", text="A crew meets a creature", embedding=[0.1, 0.2, 0.3])
        store.upsert_one(doc)

        loaded = store.get("d1")

        assert loaded.name == "Alien"
        assert loaded.text == "A crew meets a creature"
        assert loaded.fingerprint == doc.fingerprint
        assert loaded.embedding.tobytes() == doc.embedding.tobytes()

    def test_list_all_in_storage_order(self, store):
        """list_all returns every document in insertion order."""
        for doc_id in ["c", "a", "b"]:
            store.upsert_one(make_doc(doc_id))

        assert [d.id for d in store.list_all()] == ["c", "a", "b"]

    def test_missing_embedding_distinct_from_empty(self, store):
        """None and a zero-length vector are stored differently."""
        store.upsert_one(make_doc("none", embedding=None))
        store.upsert_one(make_doc("empty", embedding=[]))

        assert store.get("none").embedding is None
        empty = store.get("empty").embedding
        assert empty is not None
        assert len(empty) == 0

    def test_list_all_with_embedding_filters(self, store):
        """Only documents with an embedding are listed."""
        store.upsert_one(make_doc("with"))
        store.upsert_one(make_doc("without", embedding=None))

        assert [d.id for d in store.list_all_with_embedding()] == ["with"]
        assert [d.id for d in store.iter_with_embedding()] == ["with"]

    def test_get_fingerprints(self, store):
        """All (id, fingerprint) pairs in one call."""
        d1, d2 = make_doc("d1"), make_doc("d2")
        store.upsert_many([d1, d2])

        assert store.get_fingerprints() == {"d1": d1.fingerprint, "d2": d2.fingerprint}

    def test_count(self, store):
        """count() reflects stored documents."""
        assert store.count() == 0
        store.upsert_many([make_doc("d1"), make_doc("d2")])

        assert store.count() == 2


# ---------------------------------------------------------------------------
# NAME SEARCH
# ---------------------------------------------------------------------------


class TestSearchByName:
    """Case-insensitive containment search."""

    @pytest.fixture(autouse=True)
    def _docs(self, store):
        store.upsert_many([
            make_doc("1", name="Star Wars"),
            make_doc("2", name="star trek"),
            make_doc("3", name="Alien"),
        ])

    def test_case_insensitive(self, store):
        """Case should not matter."""
        assert [d.id for d in store.search_by_name("STAR")] == ["1", "2"]

    def test_empty_matches_everything(self, store):
        """Empty substring matches all documents."""
        assert len(store.search_by_name("")) == 3

    def test_no_match(self, store):
        """Unmatched substring returns an empty list."""
        assert store.search_by_name("Predator") == []

    def test_wildcards_are_literal(self, store):
        """SQL wildcard characters match literally."""
        assert store.search_by_name("%") == []
        assert store.search_by_name("_") == []


# ---------------------------------------------------------------------------
# FINGERPRINT-GATED WRITES
# ---------------------------------------------------------------------------


class TestUpsertOne:
    """upsert_one change detection."""

    def test_new_document_saved(self, store):
        """First upsert writes and reports saved."""
        assert store.upsert_one(make_doc("d1")) is True
        assert store.get("d1") is not None

    def test_unchanged_fingerprint_skipped(self, store):
        """Same fingerprint is a no-op: nothing written, reports skipped."""
        store.upsert_one(make_doc("d1", name="Original", embedding=[1, 0, 0]))
        before = snapshot(store)

        # Same text (so same fingerprint) but different name and embedding
        result = store.upsert_one(make_doc("d1", name="Renamed", embedding=[0, 1, 0]))

        assert result is False
        assert snapshot(store) == before

    def test_changed_fingerprint_overwrites_all_fields(self, store):
        """A new fingerprint replaces name, text, fingerprint and embedding together."""
        store.upsert_one(make_doc("d1", name="Old", text="old text", embedding=[1, 0, 0]))

        new = make_doc("d1", name="New", text="new text", embedding=[0, 0, 1])
        assert store.upsert_one(new) is True

        loaded = store.get("d1")
        assert loaded.name == "New"
        assert loaded.text == "new text"
        assert loaded.fingerprint == new.fingerprint
        assert loaded.embedding.tolist() == [0.0, 0.0, 1.0]
        assert store.count() == 1

    def test_update_keeps_storage_position(self, store):
        """Updating in place does not move the document."""
        store.upsert_many([make_doc("a"), make_doc("b"), make_doc("c")])
        store.upsert_one(make_doc("a", text="changed"))

        assert [d.id for d in store.list_all()] == ["a", "b", "c"]

    def test_embedding_can_be_cleared_by_update(self, store):
        """A changed document without embedding stores NULL."""
        store.upsert_one(make_doc("d1", text="v1"))
        store.upsert_one(make_doc("d1", text="v2", embedding=None))

        assert store.get("d1").embedding is None


class TestUpsertMany:
    """upsert_many batching and atomicity."""

    def test_returns_number_written(self, store):
        """Count equals documents written, not documents passed."""
        assert store.upsert_many([make_doc(f"d{i}") for i in range(4)]) == 4

    def test_half_unchanged(self, store):
        """Unchanged half is skipped and its stored bytes untouched."""
        originals = [make_doc(f"d{i}", text=f"v1 {i}") for i in range(6)]
        store.upsert_many(originals)
        unchanged_before = [row for row in snapshot(store) if row[0] in {"d0", "d1", "d2"}]

        batch = [
            make_doc("d0", text="v1 0", name="ignored"),
            make_doc("d1", text="v1 1", name="ignored"),
            make_doc("d2", text="v1 2", name="ignored"),
            make_doc("d3", text="v2 3"),
            make_doc("d4", text="v2 4"),
            make_doc("d5", text="v2 5"),
        ]

        assert store.upsert_many(batch) == 3
        unchanged_after = [row for row in snapshot(store) if row[0] in {"d0", "d1", "d2"}]
        assert unchanged_after == unchanged_before
        assert store.get("d4").text == "v2 4"

    def test_empty_batch(self, store):
        """Empty batch writes nothing."""
        assert store.upsert_many([]) == 0

    def test_duplicate_ids_in_batch(self, store):
        """A repeated identical document in one batch is written once."""
        doc = make_doc("d1")
        twin = make_doc("d1")

        assert store.upsert_many([doc, twin]) == 1
        assert store.count() == 1

    def test_failure_rolls_back_whole_batch(self, store):
        """A failing record leaves the corpus exactly as before the call."""
        store.upsert_many([make_doc("keep", text="v1")])
        before = snapshot(store)

        bad = make_doc("bad")
        bad.name = None  # violates NOT NULL

        with pytest.raises(StorageError):
            store.upsert_many([
                make_doc("keep", text="v2"),
                make_doc("new-1"),
                bad,
                make_doc("new-2"),
            ])

        assert snapshot(store) == before
        assert store.get("new-1") is None

    def test_store_usable_after_rollback(self, store):
        """A failed batch does not leave a transaction open."""
        bad = make_doc("bad")
        bad.name = None
        with pytest.raises(StorageError):
            store.upsert_many([make_doc("a"), bad])

        assert store.upsert_many([make_doc("a")]) == 1
        assert store.upsert_one(make_doc("b")) is True


# ---------------------------------------------------------------------------
# SQLITE SPECIFICS
# ---------------------------------------------------------------------------


class TestSqlitePersistence:
    """Behaviour that depends on the SQLite backend."""

    def test_data_survives_reopen(self, tmp_path):
        """Documents persist across connections."""
        path = str(tmp_path / "docs.db")
        with SqliteDocumentStore(path) as store:
            store.initialize()
            store.upsert_one(make_doc("d1", embedding=[0.5, 0.5]))

        with SqliteDocumentStore(path) as store:
            loaded = store.get("d1")

        assert loaded.embedding.tolist() == [0.5, 0.5]

    def test_two_instances_share_corpus(self, tmp_path):
        """Independent store instances see each other's committed writes."""
        path = str(tmp_path / "docs.db")
        writer = SqliteDocumentStore(path)
        reader = SqliteDocumentStore(path)
        writer.initialize()

        writer.upsert_many([make_doc("d1"), make_doc("d2")])

        assert reader.count() == 2
        assert reader.upsert_one(make_doc("d1")) is False
        writer.close()
        reader.close()

    def test_schema_has_fingerprint_index(self, tmp_path):
        """initialize() creates the fingerprint index."""
        path = str(tmp_path / "docs.db")
        with SqliteDocumentStore(path) as store:
            store.initialize()

        conn = sqlite3.connect(path)
        indexes = {row[1] for row in conn.execute("PRAGMA index_list(documents)")}
        conn.close()

        assert "idx_documents_fingerprint" in indexes

    def test_embedding_blob_layout(self, tmp_path):
        """Embedding column holds raw float32 bytes, 4 per component."""
        path = str(tmp_path / "docs.db")
        with SqliteDocumentStore(path) as store:
            store.initialize()
            store.upsert_one(make_doc("d1", embedding=[1.0, 2.0, 3.0]))
            store.upsert_one(make_doc("d2", embedding=None))

        conn = sqlite3.connect(path)
        rows = dict(conn.execute("SELECT id, embedding FROM documents"))
        conn.close()

        assert rows["d1"] == np.array([1.0, 2.0, 3.0], dtype=np.float32).tobytes()
        assert len(rows["d1"]) == 12
        assert rows["d2"] is None

    def test_in_memory_database(self):
        """':memory:' databases work for throwaway stores."""
        store = SqliteDocumentStore(":memory:")
        store.initialize()
        store.upsert_one(make_doc("d1"))

        assert store.count() == 1
        store.close()

    def test_missing_table_raises_storage_error(self, tmp_path):
        """Queries before initialize() surface as StorageError."""
        store = SqliteDocumentStore(str(tmp_path / "docs.db"))

        with pytest.raises(StorageError):
            store.list_all()
        store.close()

    def test_invalid_table_name_rejected(self):
        """Table names must be plain identifiers."""
        with pytest.raises(ValueError):
            SqliteDocumentStore(":memory:", table_name="docs; DROP TABLE x")


# ---------------------------------------------------------------------------
# FACTORY FUNCTION
# ---------------------------------------------------------------------------


class TestGetDocumentStore:
    """Test the get_document_store factory function."""

    def test_defaults_to_sqlite(self, tmp_path):
        """Default config gives a SQLite store at the configured path."""
        config = SuggesterConfig(database_path=str(tmp_path / "x.db"), table_name="movies")
        store = get_document_store(config)

        assert isinstance(store, SqliteDocumentStore)
        assert store.database_path == str(tmp_path / "x.db")
        assert store.table_name == "movies"

    def test_in_memory(self):
        """in_memory=True returns the test double."""
        assert isinstance(get_document_store(in_memory=True), InMemoryDocumentStore)

    def test_postgres_requires_url(self):
        """use_postgres without a URL is a configuration error."""
        with pytest.raises(ValueError):
            get_document_store(SuggesterConfig(use_postgres=True))
