"""
Per-document embedding step shared by the sweep and the change feed.

classify → (skip | embed title+body → write vector and model tag)

Errors are NOT contained here: ProviderError and StoreError propagate so
each ingestion path applies its own containment and bookkeeping.
"""

from __future__ import annotations

import logging

from doc_retrieval_pipeline.core.protocols import DocumentStore, EmbeddingProvider
from doc_retrieval_pipeline.documents.document import Document
from doc_retrieval_pipeline.ingestion.policy import EmbeddingAction, EmbeddingVersionPolicy
from doc_retrieval_pipeline.observability import (
    INGESTION_ERROR,
    get_tracer,
    ingestion_document_attributes,
)

logger = logging.getLogger(__name__)


class DocumentEmbedder:
    """Applies the version policy to one document and writes the result."""

    def __init__(
        self,
        store: DocumentStore,
        embeddings: EmbeddingProvider,
        policy: EmbeddingVersionPolicy,
    ):
        self._store = store
        self._embeddings = embeddings
        self._policy = policy

    @property
    def policy(self) -> EmbeddingVersionPolicy:
        return self._policy

    def process(self, document: Document, path: str) -> EmbeddingAction:
        """
        Bring one document's embedding up to date.

        Args:
            document: The document as read from the store
            path: "sweep" or "change_feed", for logs and spans

        Returns:
            The action that was applied
        """
        action = self._policy.classify(document)
        attrs = ingestion_document_attributes(path, document.id, action.value, self._embeddings.model_name)

        with get_tracer().start_span(f"ingestion.{path}.document", attributes=attrs) as span:
            if action is EmbeddingAction.SKIP:
                logger.debug(f"Skipping document with current embedding: {document.title}")
                return action

            if action is EmbeddingAction.MIGRATE and not self._policy.is_known_stale(document):
                logger.warning(
                    f"Document {document.id} has an unrecognised embedding "
                    f"({document.embedding_dim} dims, model={document.embedding_model}); re-embedding"
                )

            try:
                vector = self._embeddings.embed(document.embedding_text())
                self._store.update_embedding(document.id, vector, self._embeddings.model_name)
            except Exception as e:
                span.set_attribute(INGESTION_ERROR, str(e))
                span.fail(e)
                raise

            span.succeed()

        if action is EmbeddingAction.CREATE:
            logger.info(f"Embedded document: {document.title}")
        else:
            logger.info(f"Re-embedded document with {self._embeddings.model_name}: {document.title}")
        return action
