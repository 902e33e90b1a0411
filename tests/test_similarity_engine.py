"""
Tests for top-N similarity search.

The streaming selection is checked against the full-scan oracle for every
k on corpora with ties, zero vectors and mismatched dimensions.
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from media_suggester.core import InvalidQueryError
from media_suggester.observability.attributes import (
    SIMILARITY_CANDIDATES,
    SIMILARITY_EXCLUDED,
    SIMILARITY_RESULT_COUNT,
)
from media_suggester.similarity import SimilarityEngine, top_n_full_scan, top_n_streaming
from media_suggester.storage import Document, InMemoryDocumentStore, SqliteDocumentStore


# ---------------------------------------------------------------------------
# FIXTURES
# ---------------------------------------------------------------------------


def doc(doc_id, embedding):
    return Document(id=doc_id, name=doc_id.upper(), text=f"text {doc_id}", embedding=embedding)


@pytest.fixture(params=["sqlite", "memory"])
def axis_store(request, tmp_path):
    """Five documents around the x axis, on each backend."""
    if request.param == "sqlite":
        store = SqliteDocumentStore(str(tmp_path / "docs.db"))
        store.initialize()
    else:
        store = InMemoryDocumentStore()
    store.upsert_many([
        doc("d1", [1, 0, 0]),
        doc("d2", [0, 1, 0]),
        doc("d3", [0.9, 0.1, 0]),
        doc("d4", [-1, 0, 0]),
        doc("d5", [0, 0, 1]),
    ])
    yield store
    store.close()


@pytest.fixture
def engine(axis_store):
    return SimilarityEngine(axis_store)


def random_corpus(seed, size=60, dims=8):
    """Corpus with duplicate vectors, zero vectors and wrong-sized vectors."""
    rng = np.random.default_rng(seed)
    base = rng.standard_normal((size // 3, dims)).astype(np.float32)
    docs = []
    for i in range(size):
        roll = i % 10
        if roll == 0:
            embedding = np.zeros(dims, dtype=np.float32)
        elif roll == 1:
            embedding = rng.standard_normal(dims + 1).astype(np.float32)
        else:
            # repeated rows produce exact score ties
            embedding = base[rng.integers(len(base))]
        docs.append(doc(f"doc-{i}", embedding))
    return docs


def ids(results):
    return [r.document.id for r in results]


# ---------------------------------------------------------------------------
# RANKING
# ---------------------------------------------------------------------------


class TestFindSimilar:
    """Ranking behaviour of SimilarityEngine.find_similar()."""

    def test_top_three_near_x_axis(self, engine):
        """Self first, near neighbour second, then one of the orthogonal docs."""
        query = doc("q", [1, 0, 0])

        results = engine.find_similar(query, top_n=3)

        assert len(results) == 3
        assert results[0].document.id == "d1"
        assert results[0].score == pytest.approx(1.0, abs=1e-6)
        assert results[1].document.id == "d3"
        assert results[1].score == pytest.approx(0.9939, abs=1e-4)
        assert results[2].document.id in {"d2", "d5"}
        assert results[2].score == pytest.approx(0.0, abs=1e-6)

    def test_ties_resolved_by_storage_order(self, engine):
        """d2 precedes d5 in storage, so it wins the tie."""
        results = engine.find_similar(doc("q", [1, 0, 0]), top_n=4)

        assert ids(results) == ["d1", "d3", "d2", "d5"]

    def test_scores_descending(self, engine):
        results = engine.find_similar(doc("q", [0.2, 0.7, 0.1]), top_n=5)

        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)

    def test_top_n_larger_than_corpus(self, engine):
        """Returns every eligible document, least similar last."""
        results = engine.find_similar(doc("q", [1, 0, 0]), top_n=100)

        assert len(results) == 5
        assert results[-1].document.id == "d4"
        assert results[-1].score == pytest.approx(-1.0, abs=1e-6)

    def test_query_document_itself_not_excluded(self, engine, axis_store):
        """A stored document searched by id is its own best match."""
        stored = axis_store.get("d3")

        assert engine.find_similar(stored, top_n=1)[0].document.id == "d3"

    def test_results_carry_full_documents(self, engine):
        result = engine.find_similar(doc("q", [1, 0, 0]), top_n=1)[0]

        assert result.document.name == "D1"
        assert result.document.embedding.tolist() == [1.0, 0.0, 0.0]
        assert result.to_dict() == {"id": "d1", "name": "D1", "score": result.score}

    def test_empty_store(self):
        engine = SimilarityEngine(InMemoryDocumentStore())

        assert engine.find_similar(doc("q", [1, 0]), top_n=5) == []


class TestEligibility:
    """Which corpus documents may appear in results."""

    def test_dimension_mismatch_excluded(self, axis_store):
        axis_store.upsert_one(doc("short", [1, 0]))
        engine = SimilarityEngine(axis_store)

        assert "short" not in ids(engine.find_similar(doc("q", [1, 0, 0]), top_n=10))

    def test_only_matching_dimension_docs_returned(self, axis_store):
        """A 2-dim query only sees 2-dim documents."""
        axis_store.upsert_one(doc("short", [1, 0]))
        engine = SimilarityEngine(axis_store)

        assert ids(engine.find_similar(doc("q", [1, 1]), top_n=10)) == ["short"]

    def test_documents_without_embedding_never_returned(self, axis_store):
        axis_store.upsert_one(Document(id="bare", name="Bare", text="no vector"))
        engine = SimilarityEngine(axis_store)

        assert "bare" not in ids(engine.find_similar(doc("q", [1, 0, 0]), top_n=10))

    def test_empty_stored_embedding_excluded(self, axis_store):
        axis_store.upsert_one(doc("empty", []))
        engine = SimilarityEngine(axis_store)

        assert "empty" not in ids(engine.find_similar(doc("q", [1, 0, 0]), top_n=10))

    def test_zero_vector_document_scores_zero(self, axis_store):
        axis_store.upsert_one(doc("zero", [0, 0, 0]))
        engine = SimilarityEngine(axis_store)

        results = {r.document.id: r.score for r in engine.find_similar(doc("q", [1, 0, 0]), 10)}
        assert results["zero"] == 0.0


class TestInvalidQueries:
    """Queries rejected before touching the store."""

    def test_missing_embedding(self, engine):
        with pytest.raises(InvalidQueryError):
            engine.find_similar(Document(id="q", name="Q", text="t"), top_n=3)

    def test_empty_embedding(self, engine):
        with pytest.raises(InvalidQueryError):
            engine.find_similar(doc("q", []), top_n=3)

    @pytest.mark.parametrize("top_n", [0, -1])
    def test_non_positive_top_n(self, engine, top_n):
        with pytest.raises(InvalidQueryError):
            engine.find_similar(doc("q", [1, 0, 0]), top_n=top_n)

    def test_full_scan_validates_too(self, engine):
        with pytest.raises(InvalidQueryError):
            engine.find_similar_full_scan(doc("q", [1, 0, 0]), top_n=0)

    def test_invalid_query_is_value_error(self, engine):
        """Callers catching ValueError also see query errors."""
        with pytest.raises(ValueError):
            engine.find_similar(doc("q", []), top_n=3)


# ---------------------------------------------------------------------------
# STREAMING VS FULL SCAN
# ---------------------------------------------------------------------------


class TestStreamingMatchesFullScan:
    """The bounded selection agrees with sorting the whole corpus."""

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_identical_for_every_k(self, seed):
        corpus = random_corpus(seed)
        query = np.random.default_rng(seed + 100).standard_normal(8).astype(np.float32)

        for k in range(1, len(corpus) + 2):
            streamed, scored_s, excluded_s = top_n_streaming(query, corpus, k)
            scanned, scored_f, excluded_f = top_n_full_scan(query, corpus, k)

            assert ids(streamed) == ids(scanned), f"k={k}"
            assert [r.score for r in streamed] == [r.score for r in scanned]
            assert (scored_s, excluded_s) == (scored_f, excluded_f)

    def test_sqlite_cursor_matches_full_scan(self, tmp_path):
        """The streaming path over a live SQLite cursor agrees with the oracle."""
        store = SqliteDocumentStore(str(tmp_path / "docs.db"))
        store.initialize()
        corpus = random_corpus(4)
        store.upsert_many(corpus)
        engine = SimilarityEngine(store)
        query = doc("q", np.random.default_rng(104).standard_normal(8))

        for k in range(1, len(corpus) + 2):
            streamed = engine.find_similar(query, k)
            scanned = top_n_full_scan(query.embedding, corpus, k)[0]

            assert ids(streamed) == ids(scanned), f"k={k}"
            assert [r.score for r in streamed] == [r.score for r in scanned]
        store.close()

    def test_engine_paths_agree(self):
        store = InMemoryDocumentStore()
        store.upsert_many(random_corpus(9))
        engine = SimilarityEngine(store)
        query = doc("q", store.get("doc-5").embedding)

        for k in (1, 5, 17, 100):
            assert ids(engine.find_similar(query, k)) == ids(engine.find_similar_full_scan(query, k))

    def test_counts_exclusions(self):
        corpus = [doc("a", [1, 0]), doc("b", [1, 0, 0]), doc("c", [0, 1])]

        results, scored, excluded = top_n_streaming(np.array([1, 0], dtype=np.float32), corpus, 5)

        assert ids(results) == ["a", "c"]
        assert scored == 2
        assert excluded == 1

    def test_streaming_consumes_iterator_once(self):
        """Candidates may be a one-shot generator."""
        corpus = (d for d in [doc("a", [1, 0]), doc("b", [0, 1])])

        results, _, _ = top_n_streaming(np.array([1, 0], dtype=np.float32), corpus, 1)

        assert ids(results) == ["a"]


class TestStoreAccess:
    """How each path reads the corpus."""

    def test_find_similar_streams(self):
        """The streaming path never materializes the corpus."""
        store = MagicMock()
        store.iter_with_embedding.return_value = iter([doc("a", [1, 0])])
        store.list_all_with_embedding.side_effect = AssertionError("materialized corpus")

        results = SimilarityEngine(store).find_similar(doc("q", [1, 0]), top_n=1)

        assert ids(results) == ["a"]
        store.iter_with_embedding.assert_called_once()

    def test_full_scan_lists(self):
        store = MagicMock()
        store.list_all_with_embedding.return_value = [doc("a", [1, 0])]

        SimilarityEngine(store).find_similar_full_scan(doc("q", [1, 0]), top_n=1)

        store.list_all_with_embedding.assert_called_once()
        store.iter_with_embedding.assert_not_called()

    def test_span_attributes_recorded(self, axis_store):
        tracer = MagicMock()
        span = tracer.start_span.return_value.__enter__.return_value
        axis_store.upsert_one(doc("short", [1, 0]))

        SimilarityEngine(axis_store, tracer=tracer).find_similar(doc("q", [1, 0, 0]), 2)

        name = tracer.start_span.call_args[0][0]
        assert name == "similarity.streaming"
        span.set_attribute.assert_any_call(SIMILARITY_CANDIDATES, 5)
        span.set_attribute.assert_any_call(SIMILARITY_EXCLUDED, 1)
        span.set_attribute.assert_any_call(SIMILARITY_RESULT_COUNT, 2)
