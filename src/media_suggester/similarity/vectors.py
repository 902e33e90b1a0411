"""
Vector math on float32 embeddings.

Accumulation stays in float32, matching the precision vectors are stored at.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

_F32 = np.float32


def cosine_similarity(a: np.ndarray | Sequence[float], b: np.ndarray | Sequence[float]) -> float:
    """
    Cosine similarity = (A · B) / (||A|| * ||B||)

    Returns a value in [-1, 1]: 1 = same direction, 0 = orthogonal,
    -1 = opposite. If either vector has zero magnitude the result is 0.0.

    Raises:
        ValueError: if the vectors differ in length
    """
    a = np.asarray(a, dtype=_F32)
    b = np.asarray(b, dtype=_F32)
    if a.shape != b.shape:
        raise ValueError(f"Vector length mismatch: {a.shape[0]} != {b.shape[0]}")

    magnitude_a = np.sqrt(np.dot(a, a))
    magnitude_b = np.sqrt(np.dot(b, b))
    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0
    return float(np.dot(a, b) / (magnitude_a * magnitude_b))


def normalize(vector: np.ndarray | Sequence[float]) -> np.ndarray:
    """Scale to unit length. Zero vectors are returned unchanged."""
    vector = np.asarray(vector, dtype=_F32)
    magnitude = np.sqrt(np.dot(vector, vector))
    if magnitude == 0:
        return vector
    return vector / magnitude
