"""
Core protocols defining contracts between components.

Infrastructure components implement these protocols, which keeps the
similarity engine, the indexer and the query service independent of the
storage backend and the embedding model.

PATTERN:
- Protocol defines the contract
- Multiple implementations possible (SQLite, PostgreSQL, in-memory)
- Factory functions for instantiation
- Test doubles for fast unit tests
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Iterator, Protocol, runtime_checkable

import numpy as np

if TYPE_CHECKING:
    from media_suggester.storage.document import Document


# ---------------------------------------------------------------------------
# EMBEDDING PROVIDER PROTOCOL
# ---------------------------------------------------------------------------


@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Contract for embedding generation.

    Implementations:
    - OpenAIEmbeddings (production, any OpenAI-compatible endpoint)
    - MockEmbeddings (testing)
    """

    def embed(self, text: str) -> np.ndarray:
        """Generate a normalized embedding for a single text."""
        ...

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate normalized embeddings for multiple texts."""
        ...


# ---------------------------------------------------------------------------
# DOCUMENT STORE PROTOCOL
# ---------------------------------------------------------------------------


@runtime_checkable
class DocumentStore(Protocol):
    """
    Contract for durable, fingerprint-gated document persistence.

    Implementations:
    - SqliteDocumentStore (default)
    - PgDocumentStore (PostgreSQL)
    - InMemoryDocumentStore (testing)
    """

    def connect(self) -> None:
        """Open the backing connection."""
        ...

    def close(self) -> None:
        """Close the backing connection."""
        ...

    def initialize(self) -> None:
        """Create table and indexes if they do not exist."""
        ...

    def get(self, doc_id: str) -> Document | None:
        """Exact lookup by id."""
        ...

    def list_all(self) -> list[Document]:
        """All documents in storage order."""
        ...

    def search_by_name(self, substring: str) -> list[Document]:
        """Case-insensitive name containment search."""
        ...

    def list_all_with_embedding(self) -> list[Document]:
        """All documents that carry an embedding."""
        ...

    def iter_with_embedding(self) -> Iterator[Document]:
        """Lazily yield documents that carry an embedding."""
        ...

    def get_fingerprints(self) -> dict[str, str]:
        """Map of id -> fingerprint for the whole corpus."""
        ...

    def count(self) -> int:
        """Number of stored documents."""
        ...

    def upsert_one(self, doc: Document) -> bool:
        """Write doc unless its fingerprint is unchanged. True if written."""
        ...

    def upsert_many(self, docs: Iterable[Document]) -> int:
        """Write changed docs in one transaction. Returns number written."""
        ...


# ---------------------------------------------------------------------------
# QUERY RESULTS
# ---------------------------------------------------------------------------


@dataclass
class SimilarityResult:
    """A stored document paired with its cosine similarity to the query."""

    document: Document
    score: float

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization (embedding omitted)."""
        return {
            "id": self.document.id,
            "name": self.document.name,
            "score": self.score,
        }
