"""
Ingestion sweep - one reconciliation pass over the whole collection.

Runs once at process start (and on demand). For every document the
version policy decides skip / create / migrate; pending and stale
documents are embedded from title + body and written back.

FAILURE ISOLATION:
------------------
A ProviderError or StoreError on one document is recorded in the
SweepOutcome and the sweep moves on. Any other exception raised for a
single document is logged with its traceback and recorded the same
way. Only a failure to list the collection itself aborts the pass.

Re-running against a current collection performs zero writes.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor

from doc_retrieval_pipeline.core.errors import ProviderError, StoreError
from doc_retrieval_pipeline.core.protocols import DocumentStore, EmbeddingProvider
from doc_retrieval_pipeline.documents.document import Document
from doc_retrieval_pipeline.ingestion.embedder import DocumentEmbedder
from doc_retrieval_pipeline.ingestion.outcome import SweepOutcome
from doc_retrieval_pipeline.ingestion.policy import EmbeddingAction, EmbeddingVersionPolicy
from doc_retrieval_pipeline.observability import get_tracer, sweep_summary_attributes

logger = logging.getLogger(__name__)

SWEEP_PATH = "sweep"


class IngestionSweep:
    """
    Reconciles every stored embedding with the active model.

    Args:
        store: Document store to scan and update
        embeddings: Embedding provider for the active model
        policy: Version policy shared with the change feed
        max_workers: Parallel embedding calls (1 = sequential)
    """

    def __init__(
        self,
        store: DocumentStore,
        embeddings: EmbeddingProvider,
        policy: EmbeddingVersionPolicy,
        max_workers: int = 1,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._store = store
        self._embedder = DocumentEmbedder(store, embeddings, policy)
        self.max_workers = max_workers

    def _process_one(self, document: Document) -> EmbeddingAction | Exception:
        try:
            return self._embedder.process(document, SWEEP_PATH)
        except (ProviderError, StoreError) as e:
            logger.error(f"Error embedding document {document.id} ({document.title}): {e}")
            return e
        except Exception as e:
            logger.exception(f"Unexpected error embedding document {document.id} ({document.title})")
            return e

    def reconcile(self) -> SweepOutcome:
        """
        Scan the collection once and fix every pending or stale embedding.

        Raises:
            StoreError: if the collection cannot be listed
        """
        start = time.time()
        outcome = SweepOutcome()

        with get_tracer().start_span("ingestion.sweep") as span:
            documents = self._store.find_all()
            logger.info(f"Found {len(documents)} documents in total")

            if self.max_workers == 1:
                results = map(self._process_one, documents)
                for document, result in zip(documents, results):
                    self._record(outcome, document, result)
            else:
                with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                    # map() keeps input order, so counts stay deterministic
                    for document, result in zip(documents, pool.map(self._process_one, documents)):
                        self._record(outcome, document, result)

            outcome.duration_ms = (time.time() - start) * 1000
            span.set_attributes(sweep_summary_attributes(
                outcome.total, outcome.created, outcome.migrated, outcome.skipped, outcome.failed
            ))

        logger.info(
            f"Ingestion sweep complete. {outcome.created} embedded, "
            f"{outcome.migrated} re-embedded, {outcome.skipped} skipped, "
            f"{outcome.failed} failed ({outcome.duration_ms:.0f}ms)"
        )
        return outcome

    @staticmethod
    def _record(outcome: SweepOutcome, document: Document, result: EmbeddingAction | Exception) -> None:
        if isinstance(result, Exception):
            outcome.record_failure(document.id, result)
        else:
            outcome.record(result)
