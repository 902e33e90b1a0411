"""
Error taxonomy for the store and similarity engine.

Dimension mismatches are deliberately absent: a corpus document whose
embedding length differs from the query is excluded from ranking, not
reported.
"""


class SuggesterError(Exception):
    """Base class for all errors raised by media_suggester."""


class InvalidQueryError(SuggesterError, ValueError):
    """The query cannot be answered (missing/empty embedding, bad top_n)."""


class StorageError(SuggesterError):
    """An underlying persistence operation failed.

    Batch writes are rolled back before this is raised, so the corpus is
    left exactly as it was before the call.
    """


class EmbeddingError(SuggesterError):
    """The embedding provider returned an unusable response."""
