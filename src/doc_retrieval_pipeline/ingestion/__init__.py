"""
Ingestion module - keeps stored embeddings in step with the active model.

Two independent producers share one version policy:
- IngestionSweep: one-shot reconcile() over the whole collection
- ChangeFeedProcessor: long-lived start() consuming insert notifications
"""

from doc_retrieval_pipeline.ingestion.change_feed import (
    ChangeFeedHandle,
    ChangeFeedProcessor,
    FeedState,
)
from doc_retrieval_pipeline.ingestion.embedder import DocumentEmbedder
from doc_retrieval_pipeline.ingestion.outcome import (
    FeedOutcome,
    IngestionFailure,
    IngestionOutcome,
    SweepOutcome,
)
from doc_retrieval_pipeline.ingestion.policy import EmbeddingAction, EmbeddingVersionPolicy
from doc_retrieval_pipeline.ingestion.sweep import IngestionSweep

__all__ = [
    # Policy
    "EmbeddingAction",
    "EmbeddingVersionPolicy",
    # Paths
    "DocumentEmbedder",
    "IngestionSweep",
    "ChangeFeedProcessor",
    "ChangeFeedHandle",
    "FeedState",
    # Outcomes
    "IngestionOutcome",
    "SweepOutcome",
    "FeedOutcome",
    "IngestionFailure",
]
