"""
Application configuration.

A single SuggesterConfig value is built at process start and handed to
each component that needs it. Nothing in the package reads settings from
a module-level global.
"""

import os
from dataclasses import dataclass

_TRUTHY = ("true", "1", "yes")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() in _TRUTHY


@dataclass
class SuggesterConfig:
    """Configuration for storage, embeddings, queries and tracing.

    Environment Variables:
        SUGGESTER_DATABASE_PATH: SQLite database file (default: docs.db)
        DATABASE_URL: PostgreSQL connection string (optional)
        SUGGESTER_USE_POSTGRES: Use PostgreSQL instead of SQLite (default: false)
        SUGGESTER_TABLE_NAME: Table holding documents (default: documents)
        SUGGESTER_EMBEDDING_ENDPOINT: OpenAI-compatible base URL
            (default: http://localhost:11434/v1, a local Ollama)
        SUGGESTER_EMBEDDING_MODEL: Embedding model name
        SUGGESTER_EMBEDDING_API_KEY: API key sent to the endpoint
        SUGGESTER_DEFAULT_TOP_N: Results returned when the caller gives none
        SUGGESTER_MAX_TOP_N: Upper bound callers are clamped to
        SUGGESTER_INDEX_BATCH_SIZE: Documents embedded and written per batch
        SUGGESTER_SESSION_TTL_SECONDS: Idle time before a session is swept
        SUGGESTER_TRACING_ENABLED: Emit OpenTelemetry spans (default: false)
        OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: OTLP collector (console if empty)
    """

    database_path: str = "docs.db"
    database_url: str | None = None
    use_postgres: bool = False
    table_name: str = "documents"
    embedding_endpoint: str = "http://localhost:11434/v1"
    embedding_model: str = "qwen3-embedding:0.6b"
    embedding_api_key: str = "ollama"
    default_top_n: int = 10
    max_top_n: int = 100
    index_batch_size: int = 32
    session_ttl_seconds: float = 3600.0
    tracing_enabled: bool = False
    otlp_endpoint: str | None = None

    @classmethod
    def from_env(cls) -> "SuggesterConfig":
        """Load config from environment variables."""
        return cls(
            database_path=os.environ.get("SUGGESTER_DATABASE_PATH", "docs.db"),
            database_url=os.environ.get("DATABASE_URL") or None,
            use_postgres=_env_bool("SUGGESTER_USE_POSTGRES"),
            table_name=os.environ.get("SUGGESTER_TABLE_NAME", "documents"),
            embedding_endpoint=os.environ.get(
                "SUGGESTER_EMBEDDING_ENDPOINT", "http://localhost:11434/v1"
            ),
            embedding_model=os.environ.get(
                "SUGGESTER_EMBEDDING_MODEL", "qwen3-embedding:0.6b"
            ),
            embedding_api_key=os.environ.get("SUGGESTER_EMBEDDING_API_KEY", "ollama"),
            default_top_n=int(os.environ.get("SUGGESTER_DEFAULT_TOP_N", "10")),
            max_top_n=int(os.environ.get("SUGGESTER_MAX_TOP_N", "100")),
            index_batch_size=int(os.environ.get("SUGGESTER_INDEX_BATCH_SIZE", "32")),
            session_ttl_seconds=float(
                os.environ.get("SUGGESTER_SESSION_TTL_SECONDS", "3600")
            ),
            tracing_enabled=_env_bool("SUGGESTER_TRACING_ENABLED"),
            otlp_endpoint=os.environ.get("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT") or None,
        )
