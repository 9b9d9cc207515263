"""
Tracer factory for pipeline spans.

Ingestion and retrieval code only ever does four things with a span:
attach attributes, mark it succeeded, or mark it failed with the
exception that was contained. Span covers exactly that, with a real
OTel-backed implementation and a no-op one for when tracing is off
(the default), so callers never check whether tracing is enabled.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Protocol

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace import Status, StatusCode

SERVICE_NAME = "doc-retrieval-pipeline"


class Span(Protocol):
    def set_attribute(self, key: str, value: Any) -> None: ...

    def set_attributes(self, attributes: Mapping[str, Any]) -> None: ...

    def succeed(self) -> None: ...

    def fail(self, error: BaseException) -> None:
        """Record `error` on the span and mark it failed."""
        ...


class Tracer(Protocol):
    def start_span(self, name: str, attributes: Mapping[str, Any] | None = None) -> Iterator[Span]: ...


# ---------------------------------------------------------------------------
# TRACING OFF
# ---------------------------------------------------------------------------


class NoOpSpan:
    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def set_attributes(self, attributes: Mapping[str, Any]) -> None:
        pass

    def succeed(self) -> None:
        pass

    def fail(self, error: BaseException) -> None:
        pass


class NoOpTracer:
    @contextmanager
    def start_span(self, name: str, attributes: Mapping[str, Any] | None = None) -> Iterator[NoOpSpan]:
        yield NoOpSpan()


# ---------------------------------------------------------------------------
# TRACING ON
# ---------------------------------------------------------------------------


class OTelSpan:
    def __init__(self, span: trace.Span):
        self._span = span

    def set_attribute(self, key: str, value: Any) -> None:
        self._span.set_attribute(key, value)

    def set_attributes(self, attributes: Mapping[str, Any]) -> None:
        self._span.set_attributes(dict(attributes))

    def succeed(self) -> None:
        self._span.set_status(Status(StatusCode.OK))

    def fail(self, error: BaseException) -> None:
        self._span.record_exception(error)
        self._span.set_status(Status(StatusCode.ERROR, f"{type(error).__name__}: {error}"))


class OTelTracer:
    """
    Spans on an OTel tracer.

    Exceptions leaving a span are not recorded automatically: a failed
    document is contained by the sweep or change feed, and only the code
    that catches it calls fail().
    """

    def __init__(self, tracer: trace.Tracer):
        self._tracer = tracer

    @contextmanager
    def start_span(self, name: str, attributes: Mapping[str, Any] | None = None) -> Iterator[OTelSpan]:
        with self._tracer.start_as_current_span(
            name,
            attributes=dict(attributes) if attributes else None,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            yield OTelSpan(span)


# ---------------------------------------------------------------------------
# FACTORY
# ---------------------------------------------------------------------------


_tracer: Tracer | None = None


def get_tracer() -> Tracer:
    """
    Tracer for pipeline spans, chosen once per process.

    OTelTracer only when PHOENIX_ENABLED is set and init_phoenix() has
    installed an SDK TracerProvider; NoOpTracer otherwise.
    """
    global _tracer
    if _tracer is not None:
        return _tracer

    from doc_retrieval_pipeline.observability.config import get_config

    if get_config().enabled and isinstance(trace.get_tracer_provider(), TracerProvider):
        _tracer = OTelTracer(trace.get_tracer(SERVICE_NAME))
    else:
        _tracer = NoOpTracer()
    return _tracer


def reset_tracer() -> None:
    """Forget the chosen tracer (after init/shutdown, and in tests)."""
    global _tracer
    _tracer = None
