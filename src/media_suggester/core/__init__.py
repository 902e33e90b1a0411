"""
Core module - shared protocols, result types and errors.

USAGE:
------
from media_suggester.core import DocumentStore, EmbeddingProvider

class MyStore:
    '''Implements DocumentStore protocol.'''
    ...
"""

from media_suggester.core.errors import (
    SuggesterError,
    InvalidQueryError,
    StorageError,
    EmbeddingError,
)
from media_suggester.core.protocols import (
    # Protocols
    EmbeddingProvider,
    DocumentStore,
    # Data classes
    SimilarityResult,
)

__all__ = [
    # Errors
    "SuggesterError",
    "InvalidQueryError",
    "StorageError",
    "EmbeddingError",
    # Protocols
    "EmbeddingProvider",
    "DocumentStore",
    # Data classes
    "SimilarityResult",
]
