"""
Pipeline runtime - wires the components and runs the process lifecycle.

Process startup, as the request layer sees it:

    pipeline = build_pipeline(PipelineConfig.from_env())
    pipeline.reconcile()          # one sweep
    pipeline.start()              # change feed in the background
    pipeline.retrieve("query")    # from any request thread

supervise_change_feed() adds what the bare processor leaves to its
owner: after a StreamTerminated it resubscribes with exponential
backoff and jitter.
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass

from doc_retrieval_pipeline.core.errors import ConfigurationError
from doc_retrieval_pipeline.core.protocols import EmbeddingProvider, ScoredDocument
from doc_retrieval_pipeline.documents.store import (
    InMemoryDocumentStore,
    PgDocumentStore,
    get_document_store,
)
from doc_retrieval_pipeline.embeddings.openai_embeddings import get_embedding_provider
from doc_retrieval_pipeline.ingestion.change_feed import ChangeFeedHandle, ChangeFeedProcessor
from doc_retrieval_pipeline.ingestion.outcome import SweepOutcome
from doc_retrieval_pipeline.ingestion.policy import EmbeddingVersionPolicy
from doc_retrieval_pipeline.ingestion.sweep import IngestionSweep
from doc_retrieval_pipeline.retrieval.engine import RetrievalEngine
from doc_retrieval_pipeline.service.config import PipelineConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# PIPELINE BUNDLE
# ---------------------------------------------------------------------------


@dataclass
class Pipeline:
    """All components, sharing one store and one provider."""

    config: PipelineConfig
    store: PgDocumentStore | InMemoryDocumentStore
    embeddings: EmbeddingProvider
    policy: EmbeddingVersionPolicy
    sweep: IngestionSweep
    change_feed: ChangeFeedProcessor
    engine: RetrievalEngine

    def reconcile(self) -> SweepOutcome:
        return self.sweep.reconcile()

    def start(self) -> ChangeFeedHandle:
        return self.change_feed.start()

    def retrieve(
        self,
        query: str,
        limit: int | None = None,
        threshold: float | None = None,
    ) -> list[ScoredDocument]:
        return self.engine.retrieve(query, limit=limit, threshold=threshold)

    def close(self) -> None:
        handle = self.change_feed.handle
        if handle is not None:
            handle.cancel()
            handle.wait(timeout=5.0)
        self.store.close()


def build_pipeline(
    config: PipelineConfig | None = None,
    store: PgDocumentStore | InMemoryDocumentStore | None = None,
    embeddings: EmbeddingProvider | None = None,
) -> Pipeline:
    """
    Factory for a fully wired pipeline.

    Args:
        config: Pipeline configuration (from env if not provided)
        store: Document store (built from config if not provided)
        embeddings: Embedding provider (built from config if not provided)

    Raises:
        ConfigurationError: if the provider's output length disagrees with
            the configured dimension
    """
    config = config or PipelineConfig.from_env()

    if embeddings is None:
        embeddings = get_embedding_provider(
            use_mock=config.use_mock_embeddings,
            model=config.embedding_model,
            dimensions=config.embedding_dim,
            timeout=config.request_timeout,
        )
    if embeddings.dimensions != config.embedding_dim:
        raise ConfigurationError(
            f"Embedding provider returns {embeddings.dimensions} dimensions, "
            f"configured index dimension is {config.embedding_dim}"
        )
    if embeddings.model_name != config.embedding_model:
        raise ConfigurationError(
            f"Embedding provider model {embeddings.model_name} does not match "
            f"configured model {config.embedding_model}"
        )

    if store is None:
        store = get_document_store(use_postgres=config.use_postgres, config=config.store_config())

    policy = config.policy()
    return Pipeline(
        config=config,
        store=store,
        embeddings=embeddings,
        policy=policy,
        sweep=IngestionSweep(store, embeddings, policy, max_workers=config.sweep_max_workers),
        change_feed=ChangeFeedProcessor(store, embeddings, policy),
        engine=RetrievalEngine(store, embeddings, config.retrieval_config()),
    )


# ---------------------------------------------------------------------------
# CHANGE FEED SUPERVISION
# ---------------------------------------------------------------------------


@dataclass
class BackoffConfig:
    """
    Resubscription backoff.

    Attributes:
        initial_delay: Seconds before the first resubscribe
        max_delay: Upper bound for any single delay
        multiplier: Growth factor per consecutive failure
        jitter: Randomise each delay by ±25%
        max_restarts: Give up after this many restarts (None = never)
    """
    initial_delay: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0
    jitter: bool = True
    max_restarts: int | None = None


def calculate_delay(attempt: int, config: BackoffConfig) -> float:
    """Delay in seconds before restart number `attempt` (0-based)."""
    delay = min(config.initial_delay * (config.multiplier ** attempt), config.max_delay)
    if config.jitter:
        delay *= 0.75 + (random.random() * 0.5)  # 0.75 to 1.25
    return delay


def supervise_change_feed(
    processor: ChangeFeedProcessor,
    stop: threading.Event,
    backoff: BackoffConfig | None = None,
    check_interval: float = 0.5,
) -> int:
    """
    Keep the change feed subscribed until `stop` is set.

    Returns:
        Number of restarts performed

    Raises:
        StreamTerminated: when max_restarts is exhausted
    """
    backoff = backoff or BackoffConfig()
    restarts = 0

    while not stop.is_set():
        handle = processor.start()
        while not handle.wait(timeout=check_interval):
            if stop.is_set():
                handle.cancel()
                handle.wait()
                return restarts

        if stop.is_set() or handle.error is None:
            # Cancelled by someone else
            return restarts

        if backoff.max_restarts is not None and restarts >= backoff.max_restarts:
            logger.error(f"Change feed gave up after {restarts} restarts: {handle.error}")
            raise handle.error

        delay = calculate_delay(restarts, backoff)
        restarts += 1
        logger.warning(f"Change feed terminated ({handle.error}); resubscribing in {delay:.1f}s")
        if stop.wait(delay):
            break

    return restarts
