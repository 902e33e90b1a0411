"""
Similarity engine - top-N nearest neighbours by cosine similarity.

Two algorithms over the same corpus:

STREAMING (find_similar) - production path
  One pass over store.iter_with_embedding(), keeping only the N best
  candidates in a bounded min-heap. O(M log N) time, O(N) memory.

FULL SCAN (find_similar_full_scan) - reference path
  Materializes every embedded document, scores all of them, sorts.
  O(M log M) time, O(M) memory. Useful as a correctness oracle.

Both skip corpus documents whose embedding length differs from the
query's, and both order equal scores by storage order (earlier first),
so they return identical rankings for the same inputs.

INTERVIEW TALKING POINT:
------------------------
"The streaming search never holds more than N documents. The heap is
keyed on (score, -position), so the root is always the weakest hit and,
among equal scores, the most recently seen one. That makes eviction
agree exactly with a stable sort, which is what lets us test the fast
path against the naive one for every k."
"""

from __future__ import annotations

import heapq
import logging
from itertools import count
from typing import Iterable

import numpy as np

from media_suggester.core.errors import InvalidQueryError
from media_suggester.core.protocols import DocumentStore, SimilarityResult
from media_suggester.observability.attributes import (
    SIMILARITY_CANDIDATES,
    SIMILARITY_EXCLUDED,
    SIMILARITY_RESULT_COUNT,
    similarity_attributes,
)
from media_suggester.observability.tracer import NoOpTracer, TracerProtocol
from media_suggester.similarity.vectors import cosine_similarity
from media_suggester.storage.document import Document

logger = logging.getLogger(__name__)


def _validate_query(query: Document, top_n: int) -> np.ndarray:
    if query.embedding is None or len(query.embedding) == 0:
        raise InvalidQueryError("Query document must have an embedding.")
    if top_n < 1:
        raise InvalidQueryError(f"top_n must be at least 1, got {top_n}")
    return query.embedding


def top_n_streaming(
    query_embedding: np.ndarray,
    candidates: Iterable[Document],
    top_n: int,
) -> tuple[list[SimilarityResult], int, int]:
    """
    Bounded single-pass selection of the `top_n` most similar candidates.

    Returns:
        (results sorted by descending score, candidates scored, candidates
        excluded for dimension mismatch)
    """
    dimensions = len(query_embedding)
    # Entries are (score, -position, document); position breaks ties so
    # documents are never compared and earlier documents win ties
    heap: list[tuple[float, int, Document]] = []
    positions = count()
    scored = excluded = 0

    for doc in candidates:
        position = next(positions)
        if doc.embedding is None or len(doc.embedding) != dimensions:
            excluded += 1
            continue

        score = cosine_similarity(query_embedding, doc.embedding)
        scored += 1
        if len(heap) < top_n:
            heapq.heappush(heap, (score, -position, doc))
        elif score > heap[0][0]:
            heapq.heapreplace(heap, (score, -position, doc))

    results = []
    while heap:
        score, _, doc = heapq.heappop(heap)
        results.append(SimilarityResult(document=doc, score=score))
    results.reverse()
    return results, scored, excluded


def top_n_full_scan(
    query_embedding: np.ndarray,
    candidates: Iterable[Document],
    top_n: int,
) -> tuple[list[SimilarityResult], int, int]:
    """Score every candidate, sort descending, keep the first `top_n`."""
    dimensions = len(query_embedding)
    results = []
    excluded = 0
    for doc in candidates:
        if doc.embedding is None or len(doc.embedding) != dimensions:
            excluded += 1
            continue
        results.append(
            SimilarityResult(document=doc, score=cosine_similarity(query_embedding, doc.embedding))
        )

    # sort is stable, so equal scores keep storage order
    results.sort(key=lambda r: r.score, reverse=True)
    return results[:top_n], len(results), excluded


class SimilarityEngine:
    """
    Answers "top-N most similar" queries against a DocumentStore.

    Dependencies are INJECTED: the store supplies the corpus and the
    tracer receives one span per query.
    """

    def __init__(self, store: DocumentStore, tracer: TracerProtocol | None = None):
        self._store = store
        self._tracer = tracer or NoOpTracer()

    def find_similar(self, query: Document, top_n: int = 10) -> list[SimilarityResult]:
        """
        Find the `top_n` stored documents most similar to `query`.

        Streams the corpus once and keeps at most `top_n` candidates in
        memory.

        Args:
            query: Document with a populated embedding
            top_n: Maximum number of results (callers clamp it, e.g. to 100)

        Returns:
            SimilarityResult list sorted by similarity, highest first

        Raises:
            InvalidQueryError: query has no embedding, or top_n < 1
        """
        embedding = _validate_query(query, top_n)
        return self._run("streaming", top_n_streaming, embedding, top_n, self._store.iter_with_embedding())

    def find_similar_full_scan(self, query: Document, top_n: int = 10) -> list[SimilarityResult]:
        """Same contract as find_similar, computed by sorting the whole corpus."""
        embedding = _validate_query(query, top_n)
        return self._run("full_scan", top_n_full_scan, embedding, top_n, self._store.list_all_with_embedding())

    def _run(self, algorithm, select, embedding, top_n, candidates) -> list[SimilarityResult]:
        with self._tracer.start_span(
            f"similarity.{algorithm}",
            attributes=similarity_attributes(algorithm, top_n, len(embedding)),
        ) as span:
            results, scored, excluded = select(embedding, candidates, top_n)
            span.set_attribute(SIMILARITY_CANDIDATES, scored)
            span.set_attribute(SIMILARITY_EXCLUDED, excluded)
            span.set_attribute(SIMILARITY_RESULT_COUNT, len(results))

        if excluded:
            logger.debug(f"Excluded {excluded} documents with mismatched embedding dimensions")
        logger.debug(f"{algorithm} search scored {scored} documents, returning {len(results)}")
        return results
