"""
Embeddings module - text embedding generation.

1. Protocol (EmbeddingProvider) defines the interface
2. Production implementation (OpenAIEmbeddings)
3. Test double (MockEmbeddings) for fast testing
4. Factory function (get_embedding_provider)
"""

from media_suggester.core.protocols import EmbeddingProvider
from media_suggester.embeddings.openai_embeddings import (
    EmbeddingUsage,
    OpenAIEmbeddings,
    MockEmbeddings,
    get_embedding_provider,
)

__all__ = [
    "EmbeddingProvider",
    "EmbeddingUsage",
    "OpenAIEmbeddings",
    "MockEmbeddings",
    "get_embedding_provider",
]
