"""
Semantic Conventions for Span Attributes

Attribute keys for store, similarity and indexing spans, plus the
OTel GenAI keys used around embedding calls.

Reference: https://opentelemetry.io/docs/specs/semconv/gen-ai/
"""

# ---------------------------------------------------------------------------
# GENAI NAMESPACE (OTel standard)
# ---------------------------------------------------------------------------

GEN_AI_REQUEST_MODEL = "gen_ai.request.model"
GEN_AI_USAGE_INPUT_TOKENS = "gen_ai.usage.input_tokens"


# ---------------------------------------------------------------------------
# STORE NAMESPACE (custom)
# ---------------------------------------------------------------------------

STORE_BACKEND = "store.backend"  # "sqlite", "postgres", "memory"
STORE_BATCH_SIZE = "store.batch.size"
STORE_BATCH_WRITTEN = "store.batch.written"
STORE_BATCH_SKIPPED = "store.batch.skipped"


# ---------------------------------------------------------------------------
# SIMILARITY NAMESPACE (custom)
# ---------------------------------------------------------------------------

SIMILARITY_ALGORITHM = "similarity.algorithm"  # "streaming", "full_scan"
SIMILARITY_TOP_N = "similarity.top_n"
SIMILARITY_DIMENSIONS = "similarity.dimensions"
SIMILARITY_CANDIDATES = "similarity.candidates"
SIMILARITY_EXCLUDED = "similarity.excluded"  # dimension mismatches
SIMILARITY_RESULT_COUNT = "similarity.result_count"


# ---------------------------------------------------------------------------
# INDEXING NAMESPACE (custom)
# ---------------------------------------------------------------------------

INDEX_TOTAL = "index.total"
INDEX_SAVED = "index.saved"
INDEX_SKIPPED = "index.skipped"


# ---------------------------------------------------------------------------
# HELPER FUNCTIONS
# ---------------------------------------------------------------------------


def similarity_attributes(algorithm: str, top_n: int, dimensions: int) -> dict:
    """Build attributes for a similarity query span."""
    return {
        SIMILARITY_ALGORITHM: algorithm,
        SIMILARITY_TOP_N: top_n,
        SIMILARITY_DIMENSIONS: dimensions,
    }


def batch_attributes(backend: str, size: int) -> dict:
    """Build attributes for a batch upsert span."""
    return {
        STORE_BACKEND: backend,
        STORE_BATCH_SIZE: size,
    }
