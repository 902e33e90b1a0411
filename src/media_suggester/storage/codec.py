"""
Binary encoding of embeddings.

Layout: native-endian concatenation of 4-byte IEEE-754 floats, no header.
The dimensionality is the byte length divided by four. A missing
embedding is encoded as None (SQL NULL), which stays distinct from the
zero-length encoding of an empty vector.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

EMBEDDING_DTYPE = np.dtype(np.float32)


def encode_embedding(embedding: np.ndarray | Sequence[float] | None) -> bytes | None:
    """Serialize a vector to raw float32 bytes (None stays None)."""
    if embedding is None:
        return None
    return np.asarray(embedding, dtype=EMBEDDING_DTYPE).tobytes()


def decode_embedding(blob: bytes | bytearray | memoryview | None) -> np.ndarray | None:
    """Recover a float32 vector from raw bytes, bit-exact."""
    if blob is None:
        return None
    if len(blob) % EMBEDDING_DTYPE.itemsize:
        raise ValueError(
            f"Embedding blob of {len(blob)} bytes is not a whole number of float32 values"
        )
    # frombuffer returns a read-only view over the blob; copy to own the data
    return np.frombuffer(bytes(blob), dtype=EMBEDDING_DTYPE).copy()
