"""
Similarity module - cosine similarity and top-N retrieval.
"""

from media_suggester.similarity.vectors import cosine_similarity, normalize
from media_suggester.similarity.engine import (
    SimilarityEngine,
    top_n_streaming,
    top_n_full_scan,
)

__all__ = [
    "cosine_similarity",
    "normalize",
    "SimilarityEngine",
    "top_n_streaming",
    "top_n_full_scan",
]
