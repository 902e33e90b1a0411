"""
Embeddings Module - Single Responsibility: Generate text embeddings.

It has ONE job: convert document text to unit-length float32 vectors.
Any OpenAI-compatible endpoint works; the default configuration points
at a local Ollama server.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from openai import OpenAI

from media_suggester.core.protocols import EmbeddingProvider
from media_suggester.similarity.vectors import normalize

if TYPE_CHECKING:
    from media_suggester.config import SuggesterConfig


@dataclass
class EmbeddingUsage:
    """Token usage reported for the most recent embedding request."""
    model: str
    input_tokens: int | None = None
    total_tokens: int | None = None


class OpenAIEmbeddings:
    """
    Embedding provider for OpenAI-compatible APIs.

    Every returned vector is L2-normalized, so stored embeddings are unit
    length regardless of what the model emits.
    """

    def __init__(
        self,
        model: str = "qwen3-embedding:0.6b",
        base_url: str | None = "http://localhost:11434/v1",
        api_key: str = "ollama",
        client: OpenAI | None = None,
    ):
        self.model = model
        self._client = client or OpenAI(api_key=api_key, base_url=base_url)
        self.last_usage: EmbeddingUsage | None = None

    def _create(self, texts: list[str]) -> list[np.ndarray]:
        response = self._client.embeddings.create(input=texts, model=self.model)
        usage = getattr(response, "usage", None)
        self.last_usage = EmbeddingUsage(
            model=getattr(response, "model", None) or self.model,
            input_tokens=getattr(usage, "prompt_tokens", None),
            total_tokens=getattr(usage, "total_tokens", None),
        )
        items = sorted(response.data, key=lambda item: item.index)
        return [normalize(np.array(item.embedding, dtype=np.float32)) for item in items]

    def embed(self, text: str) -> np.ndarray:
        """Generate a normalized embedding for a single text."""
        return self._create([text])[0]

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate normalized embeddings for multiple texts in one request."""
        if not texts:
            return []
        return self._create(texts)


class MockEmbeddings:
    """
    Mock embedding provider for testing without API calls.

    Generates deterministic unit vectors seeded from a text hash.
    NOT for production use - only for testing/development.
    """

    def __init__(self, dimensions: int = 384):
        self._dimensions = dimensions
        self.calls: list[str] = []

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, text: str) -> np.ndarray:
        """Generate deterministic pseudo-embedding from text hash."""
        self.calls.append(text)
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "little")
        rng = np.random.default_rng(seed)
        return normalize(rng.standard_normal(self._dimensions).astype(np.float32))

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate embeddings for multiple texts."""
        return [self.embed(text) for text in texts]


def get_embedding_provider(
    config: SuggesterConfig | None = None,
    use_mock: bool = False,
) -> EmbeddingProvider:
    """
    Factory function to get the appropriate embedding provider.

    Args:
        config: Application config (endpoint, model, key)
        use_mock: If True, return MockEmbeddings (for testing)
    """
    if use_mock:
        return MockEmbeddings()
    if config is None:
        return OpenAIEmbeddings()
    return OpenAIEmbeddings(
        model=config.embedding_model,
        base_url=config.embedding_endpoint,
        api_key=config.embedding_api_key,
    )
