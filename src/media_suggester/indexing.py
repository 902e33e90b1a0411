"""
Indexing pipeline - embed and store documents that changed.

Fingerprints for the whole corpus are read once, so unchanged documents
never reach the embedding provider. Changed documents are embedded and
written batch by batch; each batch is one store transaction.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, replace
from typing import Iterable

from media_suggester.core.errors import EmbeddingError
from media_suggester.core.protocols import DocumentStore, EmbeddingProvider
from media_suggester.observability.attributes import INDEX_SAVED, INDEX_SKIPPED, INDEX_TOTAL
from media_suggester.observability.tracer import NoOpTracer, TracerProtocol
from media_suggester.storage.document import Document

logger = logging.getLogger(__name__)

# Number of recent batches the ETA estimate averages over
_TIMING_WINDOW = 10
_MAX_NAME_LENGTH = 35


@dataclass
class IndexReport:
    """Outcome of an indexing run."""
    total: int
    saved: int
    skipped: int
    elapsed_seconds: float


def _short_name(name: str) -> str:
    if len(name) > _MAX_NAME_LENGTH:
        return name[: _MAX_NAME_LENGTH - 3] + "..."
    return name


def _format_eta(seconds: float) -> str:
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def index_documents(
    documents: Iterable[Document],
    store: DocumentStore,
    embeddings: EmbeddingProvider,
    batch_size: int = 32,
    tracer: TracerProtocol | None = None,
) -> IndexReport:
    """
    Embed and save every document whose fingerprint differs from the store.

    Args:
        documents: Fingerprinted documents; they are not modified, embedded
            copies are what get stored
        store: Target store
        embeddings: Provider used for changed documents only
        batch_size: Documents per embedding request and per transaction
        tracer: Tracer for the run span

    Returns:
        IndexReport with saved/skipped counts

    Raises:
        EmbeddingError: the provider returned a different number of vectors
            than texts; nothing from that batch is written
        StorageError: a batch write failed and was rolled back
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")

    tracer = tracer or NoOpTracer()
    documents = list(documents)
    started = time.perf_counter()

    with tracer.start_span("index.run", attributes={INDEX_TOTAL: len(documents)}) as span:
        existing = store.get_fingerprints()
        changed = [doc for doc in documents if existing.get(doc.id) != doc.fingerprint]
        skipped = len(documents) - len(changed)
        logger.info(
            f"{len(documents)} documents, {skipped} unchanged, {len(changed)} to embed"
        )

        saved = 0
        processed = 0
        per_doc_times: deque[float] = deque(maxlen=_TIMING_WINDOW)
        for start in range(0, len(changed), batch_size):
            batch = changed[start : start + batch_size]
            batch_started = time.perf_counter()

            vectors = embeddings.embed_batch([doc.text for doc in batch])
            if len(vectors) != len(batch):
                raise EmbeddingError(
                    f"Embedding provider returned {len(vectors)} vectors for {len(batch)} texts"
                )
            saved += store.upsert_many(
                [replace(doc, embedding=vector) for doc, vector in zip(batch, vectors)]
            )

            elapsed = time.perf_counter() - batch_started
            per_doc_times.append(elapsed / len(batch))
            processed += len(batch)
            avg = sum(per_doc_times) / len(per_doc_times)
            eta = _format_eta(avg * (len(changed) - processed))

            progress = [
                f"[{processed}/{len(changed)}]",
                f"Time: {elapsed:.2f}s Avg: {avg:.2f}s/doc Left: {eta}",
            ]
            usage = getattr(embeddings, "last_usage", None)
            if usage is not None and usage.input_tokens is not None:
                progress.append(f"Tokens: {usage.input_tokens}")
            progress.append(f"Last: {_short_name(batch[-1].name)}")
            logger.info(", ".join(progress))

        span.set_attribute(INDEX_SAVED, saved)
        span.set_attribute(INDEX_SKIPPED, skipped)

    report = IndexReport(
        total=len(documents),
        saved=saved,
        skipped=skipped,
        elapsed_seconds=time.perf_counter() - started,
    )
    logger.info(f"Indexed {report.saved} new/updated documents in {report.elapsed_seconds:.1f}s")
    return report
