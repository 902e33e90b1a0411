"""
Document model for the store.

Single responsibility: Define the structure of documents kept in the
store and how their fingerprint is derived.
"""

import hashlib
from dataclasses import dataclass

import numpy as np


def compute_fingerprint(text: str) -> str:
    """Lowercase hex MD5 of the UTF-8 text.

    Used only to detect whether a document changed since it was stored,
    not for integrity or security.
    """
    return hashlib.md5(text.encode("utf-8"), usedforsecurity=False).hexdigest()


@dataclass
class Document:
    """
    A document with an optional embedding.

    The fingerprint is derived from `text` when the caller leaves it empty.
    Embeddings are held as float32 arrays, matching their stored precision.
    """
    id: str
    name: str
    text: str
    fingerprint: str = ""
    embedding: np.ndarray | None = None

    def __post_init__(self) -> None:
        if not self.fingerprint:
            self.fingerprint = compute_fingerprint(self.text)
        if self.embedding is not None:
            self.embedding = np.asarray(self.embedding, dtype=np.float32)

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None

    @property
    def dimensions(self) -> int:
        """Embedding length, 0 when there is none."""
        return 0 if self.embedding is None else int(self.embedding.shape[0])

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "text": self.text,
            "fingerprint": self.fingerprint,
            "dimensions": self.dimensions,
        }
