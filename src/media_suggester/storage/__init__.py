"""
Storage module - durable, fingerprint-gated document persistence.

This module provides:
- Document: The document model
- compute_fingerprint(): Content hash used for change detection
- encode_embedding() / decode_embedding(): float32 blob codec
- SqliteDocumentStore: SQLite store (default)
- PgDocumentStore: PostgreSQL store
- InMemoryDocumentStore: Testing/development store
- get_document_store(): Factory function
"""

from media_suggester.storage.document import Document, compute_fingerprint
from media_suggester.storage.codec import decode_embedding, encode_embedding
from media_suggester.storage.store import (
    SqliteDocumentStore,
    PgDocumentStore,
    InMemoryDocumentStore,
    get_document_store,
)

__all__ = [
    # Document
    "Document",
    "compute_fingerprint",
    # Codec
    "encode_embedding",
    "decode_embedding",
    # Implementations
    "SqliteDocumentStore",
    "PgDocumentStore",
    "InMemoryDocumentStore",
    # Factory
    "get_document_store",
]
