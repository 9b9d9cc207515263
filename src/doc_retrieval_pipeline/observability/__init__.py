"""
Observability Module - Phoenix + OpenTelemetry Integration

Traces sweeps, change-feed items, and retrieval calls, plus every OpenAI
request through OpenInference auto-instrumentation.

USAGE:
------
# At application startup:
from doc_retrieval_pipeline.observability import init_phoenix

init_phoenix()  # Exports spans if PHOENIX_ENABLED=true

# In code that needs tracing:
from doc_retrieval_pipeline.observability import get_tracer

tracer = get_tracer()
with tracer.start_span("my_operation", attributes={"key": "value"}) as span:
    # ... do work ...
    span.set_attribute("result", "success")
"""

from __future__ import annotations

import logging

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from doc_retrieval_pipeline.observability.config import (
    PhoenixConfig,
    get_config,
    reset_config,
)
from doc_retrieval_pipeline.observability.tracer import (
    Tracer,
    Span,
    NoOpTracer,
    NoOpSpan,
    get_tracer,
    reset_tracer,
)
from doc_retrieval_pipeline.observability.attributes import (
    GEN_AI_SYSTEM,
    GEN_AI_REQUEST_MODEL,
    INGESTION_PATH,
    INGESTION_DOCUMENT_ID,
    INGESTION_ACTION,
    INGESTION_ERROR,
    RETRIEVAL_LIMIT,
    RETRIEVAL_THRESHOLD,
    RETRIEVAL_CANDIDATE_POOL,
    RETRIEVAL_RESULT_COUNT,
    ingestion_document_attributes,
    sweep_summary_attributes,
    retrieval_attributes,
)

logger = logging.getLogger(__name__)

_phoenix_initialized = False


def _local_phoenix_endpoint() -> str | None:
    """Launch the local Phoenix app and return its OTLP traces endpoint."""
    try:
        import phoenix as px
    except ImportError as e:
        logger.warning(f"Phoenix not installed and no collector endpoint set, tracing disabled: {e}")
        return None

    session = px.launch_app()
    logger.info(f"Phoenix UI available at: {session.url}")
    return f"{session.url.rstrip('/')}/v1/traces"


def init_phoenix(config: PhoenixConfig | None = None) -> bool:
    """
    Initialize Phoenix observability.

    This should be called once at application startup.
    Sets up the OpenTelemetry tracer provider and registers auto-instrumentors.

    Args:
        config: Optional config (uses env vars if not provided)

    Returns:
        True if tracing was initialized, False if disabled or failed
    """
    global _phoenix_initialized
    if _phoenix_initialized:
        return True

    config = config or get_config()

    if not config.enabled:
        logger.debug("Phoenix observability disabled")
        return False

    endpoint = config.collector_endpoint or _local_phoenix_endpoint()
    if endpoint is None:
        return False

    try:
        resource = Resource.create({
            "service.name": config.project_name,
            "openinference.project.name": config.project_name,
        })
        provider = TracerProvider(resource=resource)
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
        trace.set_tracer_provider(provider)
        logger.info(f"Exporting traces to: {endpoint}")

        from doc_retrieval_pipeline.observability.instrumentation import register_instrumentors
        register_instrumentors()
    except Exception as e:
        logger.error(f"Failed to initialize Phoenix: {e}")
        return False

    reset_tracer()
    _phoenix_initialized = True
    return True


def shutdown_phoenix() -> None:
    """Flush pending spans and reset tracing state."""
    global _phoenix_initialized

    if not _phoenix_initialized:
        return

    provider = trace.get_tracer_provider()
    if isinstance(provider, TracerProvider):
        try:
            provider.shutdown()
        except Exception as e:
            logger.warning(f"Error shutting down tracer provider: {e}")

    reset_tracer()
    reset_config()
    _phoenix_initialized = False


__all__ = [
    # Initialization
    "init_phoenix",
    "shutdown_phoenix",
    # Config
    "PhoenixConfig",
    "get_config",
    "reset_config",
    # Tracer
    "Tracer",
    "Span",
    "NoOpTracer",
    "NoOpSpan",
    "get_tracer",
    "reset_tracer",
    # Attributes
    "GEN_AI_SYSTEM",
    "GEN_AI_REQUEST_MODEL",
    "INGESTION_PATH",
    "INGESTION_DOCUMENT_ID",
    "INGESTION_ACTION",
    "INGESTION_ERROR",
    "RETRIEVAL_LIMIT",
    "RETRIEVAL_THRESHOLD",
    "RETRIEVAL_CANDIDATE_POOL",
    "RETRIEVAL_RESULT_COUNT",
    # Helpers
    "ingestion_document_attributes",
    "sweep_summary_attributes",
    "retrieval_attributes",
]
