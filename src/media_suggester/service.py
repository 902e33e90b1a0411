"""
Query service - the read side used by tool endpoints and the CLI.

Wraps the store, the similarity engine and the embedding provider behind
the operations a client asks for: similar movies by id or description,
a single document, the corpus size, and name search.
"""

from __future__ import annotations

import logging

from media_suggester.config import SuggesterConfig
from media_suggester.core.errors import InvalidQueryError
from media_suggester.core.protocols import DocumentStore, EmbeddingProvider, SimilarityResult
from media_suggester.sessions import SessionManager, get_session_manager
from media_suggester.similarity.engine import SimilarityEngine
from media_suggester.storage.document import Document

logger = logging.getLogger(__name__)

QUERY_DOC_ID = "query_temp"


class SuggesterService:
    """Catalog browsing and similarity queries over one store session."""

    def __init__(
        self,
        config: SuggesterConfig,
        store: DocumentStore,
        engine: SimilarityEngine,
        embeddings: EmbeddingProvider,
        sessions: SessionManager | None = None,
    ):
        self.config = config
        self._store = store
        self._engine = engine
        self._embeddings = embeddings
        self._sessions = sessions if sessions is not None else get_session_manager(config)

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    def clamp_top_n(self, top_n: int | None) -> int:
        """Default missing values and clamp to [1, max_top_n]."""
        if top_n is None:
            top_n = self.config.default_top_n
        return max(1, min(top_n, self.config.max_top_n))

    def _remember(self, session_id: str | None, query: str, results: list[SimilarityResult]) -> None:
        if session_id is None:
            return
        self._sessions.sweep_expired()
        record = self._sessions.open(session_id)
        record.last_query = query
        record.last_result_ids = [r.document.id for r in results]

    def find_similar_to(
        self,
        doc_id: str,
        top_n: int | None = None,
        session_id: str | None = None,
    ) -> list[SimilarityResult] | None:
        """
        Documents most similar to a stored document.

        Returns:
            Ranked results, or None if `doc_id` is not in the store.

        Raises:
            InvalidQueryError: the stored document has no embedding yet
        """
        doc = self._store.get(doc_id)
        if doc is None:
            logger.info(f"No document with id '{doc_id}'")
            return None
        results = self._engine.find_similar(doc, top_n=self.clamp_top_n(top_n))
        self._remember(session_id, f"similar:{doc_id}", results)
        return results

    def search_by_description(
        self,
        description: str,
        top_n: int | None = None,
        session_id: str | None = None,
    ) -> list[SimilarityResult]:
        """Documents most similar to a free-text description."""
        if not description or not description.strip():
            raise InvalidQueryError("Please provide a search query.")
        query = Document(
            id=QUERY_DOC_ID,
            name="Search Query",
            text=description,
            embedding=self._embeddings.embed(description),
        )
        results = self._engine.find_similar(query, top_n=self.clamp_top_n(top_n))
        self._remember(session_id, description, results)
        return results

    def get_document(self, doc_id: str) -> Document | None:
        return self._store.get(doc_id)

    def count(self) -> int:
        return self._store.count()

    def list_matching(self, name_filter: str = "", limit: int = 20) -> tuple[list[Document], int]:
        """
        Documents whose name contains `name_filter`.

        Returns:
            (first `limit` matches, total number of matches); limit is
            clamped to max_top_n.
        """
        limit = self.clamp_top_n(limit)
        matches = self._store.search_by_name(name_filter)
        return matches[:limit], len(matches)
