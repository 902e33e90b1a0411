"""
Observability Module - OpenTelemetry tracing

USAGE:
------
# At application startup:
from media_suggester.observability import init_tracing, build_tracer

init_tracing(config)          # installs an SDK provider if tracing is enabled
tracer = build_tracer(config) # hand this to the store / engine / indexer

with tracer.start_span("my_operation", attributes={"key": "value"}) as span:
    span.set_attribute("result", "success")
"""

from __future__ import annotations

import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from media_suggester.config import SuggesterConfig
from media_suggester.observability.tracer import (
    TracerProtocol,
    SpanProtocol,
    NoOpTracer,
    NoOpSpan,
    OTelTracer,
    build_tracer,
)
from media_suggester.observability.attributes import (
    SIMILARITY_ALGORITHM,
    SIMILARITY_TOP_N,
    SIMILARITY_RESULT_COUNT,
    STORE_BACKEND,
    INDEX_SAVED,
    INDEX_SKIPPED,
    similarity_attributes,
    batch_attributes,
)

logger = logging.getLogger(__name__)


def init_tracing(config: SuggesterConfig, service_name: str = "media-suggester") -> TracerProvider | None:
    """
    Install an OpenTelemetry SDK tracer provider.

    Spans go to the OTLP endpoint when one is configured, otherwise to the
    console. Call once at application startup.

    Args:
        config: Application config

    Returns:
        The installed provider, or None if tracing is disabled or the OTLP
        exporter is not installed.
    """
    if not config.tracing_enabled:
        logger.debug("Tracing disabled")
        return None

    if config.otlp_endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        except ImportError as e:
            logger.warning(f"OTLP exporter not installed, tracing disabled: {e}")
            return None
        exporter = OTLPSpanExporter(endpoint=config.otlp_endpoint)
        logger.info(f"Exporting spans to: {config.otlp_endpoint}")
    else:
        exporter = ConsoleSpanExporter()
        logger.info("Exporting spans to console")

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    return provider


def shutdown_tracing(provider: TracerProvider | None) -> None:
    """Flush and shut down a provider returned by init_tracing()."""
    if provider is None:
        return
    try:
        provider.shutdown()
    except Exception as e:
        logger.warning(f"Error shutting down tracing: {e}")


__all__ = [
    # Initialization
    "init_tracing",
    "shutdown_tracing",
    # Tracer
    "TracerProtocol",
    "SpanProtocol",
    "NoOpTracer",
    "NoOpSpan",
    "OTelTracer",
    "build_tracer",
    # Attributes
    "SIMILARITY_ALGORITHM",
    "SIMILARITY_TOP_N",
    "SIMILARITY_RESULT_COUNT",
    "STORE_BACKEND",
    "INDEX_SAVED",
    "INDEX_SKIPPED",
    "similarity_attributes",
    "batch_attributes",
]
