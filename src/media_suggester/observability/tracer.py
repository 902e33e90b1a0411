"""
Tracer Factory and NoOp Implementations

build_tracer() returns either a wrapped OTel tracer or a NoOpTracer,
depending on the configuration it is handed. The tracer is passed into
the components that emit spans; there is no process-wide tracer cache.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, ContextManager, Iterator, Protocol

from opentelemetry import trace
from opentelemetry.trace import StatusCode

if TYPE_CHECKING:
    from media_suggester.config import SuggesterConfig


# ---------------------------------------------------------------------------
# PROTOCOLS
# ---------------------------------------------------------------------------


class SpanProtocol(Protocol):
    """What store, engine and indexer code may do with an open span."""

    def set_attribute(self, key: str, value: Any) -> None:
        ...

    def set_status(self, status: str, description: str | None = None) -> None:
        """`status` is "ok" or "error"."""
        ...

    def record_exception(self, exception: BaseException) -> None:
        ...


class TracerProtocol(Protocol):
    """Opens spans; used as `with tracer.start_span(name, attributes) as span`."""

    def start_span(
        self, name: str, attributes: dict[str, Any] | None = None
    ) -> ContextManager[SpanProtocol]:
        ...


# ---------------------------------------------------------------------------
# DISABLED TRACING
# ---------------------------------------------------------------------------


class NoOpSpan:
    """Span that discards everything it is given."""

    def set_attribute(self, key: str, value: Any) -> None:
        return None

    def set_status(self, status: str, description: str | None = None) -> None:
        return None

    def record_exception(self, exception: BaseException) -> None:
        return None


_NOOP_SPAN = NoOpSpan()


class NoOpTracer:
    """Tracer used when tracing is off; every span is the same NoOpSpan."""

    @contextmanager
    def start_span(self, name: str, attributes: dict[str, Any] | None = None) -> Iterator[NoOpSpan]:
        yield _NOOP_SPAN


# ---------------------------------------------------------------------------
# OPENTELEMETRY ADAPTERS
# ---------------------------------------------------------------------------

_STATUS_CODES = {"ok": StatusCode.OK, "error": StatusCode.ERROR}


class OTelSpan:
    """Adapts an opentelemetry Span to SpanProtocol."""

    def __init__(self, span: trace.Span):
        self._span = span

    def set_attribute(self, key: str, value: Any) -> None:
        self._span.set_attribute(key, value)

    def set_status(self, status: str, description: str | None = None) -> None:
        self._span.set_status(_STATUS_CODES.get(status, StatusCode.ERROR), description)

    def record_exception(self, exception: BaseException) -> None:
        self._span.record_exception(exception)


class OTelTracer:
    """Adapts an opentelemetry Tracer; spans become the current span while open."""

    def __init__(self, tracer: trace.Tracer):
        self._tracer = tracer

    @contextmanager
    def start_span(self, name: str, attributes: dict[str, Any] | None = None) -> Iterator[OTelSpan]:
        with self._tracer.start_as_current_span(name, attributes=attributes) as span:
            yield OTelSpan(span)


# ---------------------------------------------------------------------------
# FACTORY
# ---------------------------------------------------------------------------


def build_tracer(
    config: SuggesterConfig | None = None,
    service_name: str = "media-suggester",
) -> TracerProtocol:
    """
    Build a tracer for the given configuration.

    Returns OTelTracer when tracing is enabled, otherwise NoOpTracer for
    zero overhead. Spans only leave the process once init_tracing() has
    installed an SDK tracer provider.

    Args:
        config: Application config (tracing disabled if not provided)
        service_name: Instrumentation scope name

    Returns:
        TracerProtocol implementation
    """
    if config is None or not config.tracing_enabled:
        return NoOpTracer()
    return OTelTracer(trace.get_tracer(service_name))
