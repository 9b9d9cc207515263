"""
Unit Tests for Observability Module

Tests the Phoenix/OpenTelemetry integration with focus on:
1. Graceful degradation (NoOpTracer when disabled)
2. Configuration loading from environment
3. Span attributes emitted by ingestion and retrieval

PATTERNS:
---------
1. Tests work WITHOUT a collector (spans captured in memory)
2. Environment variable handling tested with patch.dict
3. Global tracer/config reset around every test
"""

import numpy as np
import pytest
from unittest.mock import patch, MagicMock

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from doc_retrieval_pipeline.core.errors import ProviderError
from doc_retrieval_pipeline.documents.document import Document
from doc_retrieval_pipeline.documents.store import InMemoryDocumentStore
from doc_retrieval_pipeline.embeddings.openai_embeddings import MockEmbeddings
from doc_retrieval_pipeline.ingestion.policy import EmbeddingVersionPolicy
from doc_retrieval_pipeline.ingestion.sweep import IngestionSweep
from doc_retrieval_pipeline.observability import init_phoenix, shutdown_phoenix
from doc_retrieval_pipeline.observability.config import (
    PhoenixConfig,
    get_config,
    reset_config,
)
from doc_retrieval_pipeline.observability.tracer import (
    NoOpTracer,
    NoOpSpan,
    OTelTracer,
    get_tracer,
    reset_tracer,
)
from doc_retrieval_pipeline.observability.attributes import (
    INGESTION_ACTION,
    INGESTION_DOCUMENT_ID,
    INGESTION_PATH,
    INGESTION_SWEEP_CREATED,
    INGESTION_SWEEP_FAILED,
    RETRIEVAL_CANDIDATE_POOL,
    RETRIEVAL_QUERY,
    RETRIEVAL_RESULT_COUNT,
    GEN_AI_REQUEST_MODEL,
    ingestion_document_attributes,
    retrieval_attributes,
    sweep_summary_attributes,
)
from doc_retrieval_pipeline.retrieval.engine import RetrievalEngine


# ---------------------------------------------------------------------------
# FIXTURES
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_observability():
    reset_tracer()
    reset_config()
    yield
    reset_tracer()
    reset_config()


@pytest.fixture
def exporter():
    return InMemorySpanExporter()


@pytest.fixture
def otel_tracer(exporter):
    """A real OTel tracer that records spans in memory, without touching the global provider."""
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return OTelTracer(provider.get_tracer("test"))


# ---------------------------------------------------------------------------
# CONFIG TESTS
# ---------------------------------------------------------------------------


class TestPhoenixConfig:
    """Test configuration loading."""

    def test_config_defaults(self):
        """Config should have sensible defaults when env vars not set."""
        with patch.dict("os.environ", {}, clear=True):
            config = PhoenixConfig.from_env()

        assert config.enabled is False
        assert config.project_name == "doc-retrieval-pipeline"
        assert config.collector_endpoint is None
        # Raw queries stay out of traces unless asked for
        assert config.capture_content is False

    @pytest.mark.parametrize("value", ["true", "1", "yes", "TRUE"])
    def test_config_enabled_values(self, value):
        with patch.dict("os.environ", {"PHOENIX_ENABLED": value}):
            assert PhoenixConfig.from_env().enabled is True

    @pytest.mark.parametrize("value", ["false", "0", "no"])
    def test_config_disabled_values(self, value):
        with patch.dict("os.environ", {"PHOENIX_ENABLED": value}):
            assert PhoenixConfig.from_env().enabled is False

    def test_config_collector_endpoint(self):
        with patch.dict("os.environ", {"PHOENIX_COLLECTOR_ENDPOINT": "https://phoenix.example.com/v1/traces"}):
            config = PhoenixConfig.from_env()
        assert config.collector_endpoint == "https://phoenix.example.com/v1/traces"

    def test_empty_endpoint_is_none(self):
        with patch.dict("os.environ", {"PHOENIX_COLLECTOR_ENDPOINT": ""}):
            assert PhoenixConfig.from_env().collector_endpoint is None

    def test_get_config_singleton(self):
        assert get_config() is get_config()


# ---------------------------------------------------------------------------
# TRACER TESTS
# ---------------------------------------------------------------------------


class TestNoOpTracer:
    """Test NoOpTracer for graceful degradation."""

    def test_noop_span_accepts_everything(self):
        with NoOpTracer().start_span("test_span", attributes={"key": "value"}) as span:
            assert isinstance(span, NoOpSpan)
            span.set_attribute("number", 42)
            span.set_attributes({"a": 1, "b": 2})
            span.succeed()
            span.fail(ValueError("test error"))

    def test_noop_tracer_does_not_swallow_exceptions(self):
        with pytest.raises(ValueError):
            with NoOpTracer().start_span("failing_operation"):
                raise ValueError("Test error")


class TestGetTracer:
    """Test the get_tracer factory function."""

    def test_returns_noop_when_disabled(self):
        with patch.dict("os.environ", {"PHOENIX_ENABLED": "false"}):
            assert isinstance(get_tracer(), NoOpTracer)

    def test_singleton(self):
        with patch.dict("os.environ", {"PHOENIX_ENABLED": "false"}):
            assert get_tracer() is get_tracer()

    def test_returns_noop_without_sdk_provider(self):
        """Enabled but init_phoenix() never ran: spans would go nowhere."""
        with patch.dict("os.environ", {"PHOENIX_ENABLED": "true"}):
            with patch("doc_retrieval_pipeline.observability.tracer.trace.get_tracer_provider") as get_provider:
                get_provider.return_value = MagicMock()
                assert isinstance(get_tracer(), NoOpTracer)

    def test_returns_otel_tracer_with_sdk_provider(self):
        with patch.dict("os.environ", {"PHOENIX_ENABLED": "true"}):
            with patch("doc_retrieval_pipeline.observability.tracer.trace.get_tracer_provider") as get_provider:
                get_provider.return_value = TracerProvider()
                assert isinstance(get_tracer(), OTelTracer)


class TestOTelTracer:
    """Test the OTel wrapper records what callers set."""

    def test_attributes_and_success(self, otel_tracer, exporter):
        with otel_tracer.start_span("op", attributes={"a": 1}) as span:
            span.set_attribute("b", "two")
            span.set_attributes({"c": 3.5})
            span.succeed()

        (finished,) = exporter.get_finished_spans()
        assert finished.name == "op"
        assert finished.attributes["a"] == 1
        assert finished.attributes["b"] == "two"
        assert finished.attributes["c"] == 3.5
        assert finished.status.is_ok

    def test_fail_records_exception_and_error_status(self, otel_tracer, exporter):
        with otel_tracer.start_span("op") as span:
            span.fail(ProviderError("quota exceeded"))

        (finished,) = exporter.get_finished_spans()
        assert not finished.status.is_ok
        assert finished.status.description == "ProviderError: quota exceeded"
        assert finished.events[0].name == "exception"

    def test_exception_not_recorded_automatically(self, otel_tracer, exporter):
        with pytest.raises(ValueError):
            with otel_tracer.start_span("op"):
                raise ValueError("contained elsewhere")

        (finished,) = exporter.get_finished_spans()
        assert not finished.events


# ---------------------------------------------------------------------------
# INIT / SHUTDOWN
# ---------------------------------------------------------------------------


class TestInitPhoenix:
    """Test init_phoenix() degradation paths."""

    def teardown_method(self):
        shutdown_phoenix()

    def test_disabled(self):
        assert init_phoenix(PhoenixConfig(enabled=False)) is False

    def test_no_endpoint_and_no_phoenix(self):
        with patch("doc_retrieval_pipeline.observability._local_phoenix_endpoint", return_value=None):
            assert init_phoenix(PhoenixConfig(enabled=True)) is False

    def test_collector_endpoint(self):
        config = PhoenixConfig(enabled=True, collector_endpoint="http://collector:6006/v1/traces")

        with patch("doc_retrieval_pipeline.observability.OTLPSpanExporter") as exporter_cls, \
                patch("doc_retrieval_pipeline.observability.trace.set_tracer_provider") as set_provider, \
                patch("doc_retrieval_pipeline.observability.instrumentation.register_instrumentors") as register:
            assert init_phoenix(config) is True

        exporter_cls.assert_called_once_with(endpoint="http://collector:6006/v1/traces")
        provider = set_provider.call_args[0][0]
        assert provider.resource.attributes["service.name"] == "doc-retrieval-pipeline"
        register.assert_called_once()


# ---------------------------------------------------------------------------
# ATTRIBUTE HELPER TESTS
# ---------------------------------------------------------------------------


class TestAttributeHelpers:
    """Test attribute helper functions."""

    def test_ingestion_document_attributes(self):
        attrs = ingestion_document_attributes("sweep", "doc-1", "create", "text-embedding-3-large")

        assert attrs[INGESTION_PATH] == "sweep"
        assert attrs[INGESTION_DOCUMENT_ID] == "doc-1"
        assert attrs[INGESTION_ACTION] == "create"
        assert attrs[GEN_AI_REQUEST_MODEL] == "text-embedding-3-large"

    def test_ingestion_document_attributes_without_model(self):
        assert GEN_AI_REQUEST_MODEL not in ingestion_document_attributes("change_feed", "d", "skip")

    def test_sweep_summary_attributes(self):
        attrs = sweep_summary_attributes(total=3, created=1, migrated=1, skipped=1, failed=0)

        assert attrs[INGESTION_SWEEP_CREATED] == 1
        assert attrs[INGESTION_SWEEP_FAILED] == 0

    def test_retrieval_attributes_omit_query_by_default(self):
        attrs = retrieval_attributes(limit=5, threshold=0.3, candidate_pool=200)

        assert attrs[RETRIEVAL_CANDIDATE_POOL] == 200
        assert RETRIEVAL_QUERY not in attrs

    def test_retrieval_attributes_with_query(self):
        attrs = retrieval_attributes(limit=5, threshold=0.3, candidate_pool=200, query="hostel")
        assert attrs[RETRIEVAL_QUERY] == "hostel"


# ---------------------------------------------------------------------------
# INTEGRATION: SPANS FROM PIPELINE CODE
# ---------------------------------------------------------------------------


class TestPipelineSpans:
    """Test that ingestion and retrieval emit the expected spans."""

    def test_sweep_spans(self, otel_tracer, exporter):
        store = InMemoryDocumentStore()
        store.insert_document(Document(id="a", title="A", body="a"))
        store.insert_document(Document(id="b", title="B", body="b"))
        embeddings = MockEmbeddings(dimensions=8, model_name="mock-model")
        policy = EmbeddingVersionPolicy(current_model="mock-model", current_dim=8)
        real_embed = embeddings.embed

        def flaky_embed(text):
            if text.startswith("B"):
                raise ProviderError("boom")
            return real_embed(text)

        with patch("doc_retrieval_pipeline.ingestion.sweep.get_tracer", return_value=otel_tracer), \
                patch("doc_retrieval_pipeline.ingestion.embedder.get_tracer", return_value=otel_tracer), \
                patch.object(embeddings, "embed", side_effect=flaky_embed):
            IngestionSweep(store, embeddings, policy).reconcile()

        spans = {s.attributes.get(INGESTION_DOCUMENT_ID, s.name): s for s in exporter.get_finished_spans()}
        assert spans["ingestion.sweep"].attributes[INGESTION_SWEEP_CREATED] == 1
        assert spans["ingestion.sweep"].attributes[INGESTION_SWEEP_FAILED] == 1
        assert spans["a"].status.is_ok
        assert not spans["b"].status.is_ok
        assert spans["b"].events[0].name == "exception"

    def test_retrieval_span(self, otel_tracer, exporter):
        store = InMemoryDocumentStore()
        store.insert_document(Document(id="a", title="A", body="a", embedding=np.array([1.0, 0.0])))
        embeddings = MagicMock()
        embeddings.embed.return_value = np.array([1.0, 0.0])

        with patch("doc_retrieval_pipeline.retrieval.engine.get_tracer", return_value=otel_tracer):
            RetrievalEngine(store, embeddings).retrieve("secret query")

        (span,) = exporter.get_finished_spans()
        assert span.name == "retrieval.retrieve"
        assert span.attributes[RETRIEVAL_CANDIDATE_POOL] == 200
        assert span.attributes[RETRIEVAL_RESULT_COUNT] == 1
        assert RETRIEVAL_QUERY not in span.attributes
