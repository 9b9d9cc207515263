"""
Core protocols defining contracts for the entire system.

All infrastructure components implement these protocols, so the
ingestion paths and the retrieval engine depend only on the contract:
- Protocol defines the contract
- Production implementation (OpenAIEmbeddings, PgDocumentStore)
- Test double (MockEmbeddings, InMemoryDocumentStore)
- Factory functions for instantiation
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Protocol, runtime_checkable

import numpy as np

if TYPE_CHECKING:
    from doc_retrieval_pipeline.documents.document import Document


INSERT = "insert"


# ---------------------------------------------------------------------------
# EMBEDDING PROVIDER PROTOCOL
# ---------------------------------------------------------------------------


@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Contract for embedding generation.

    The output length must stay fixed for the lifetime of an index;
    changing it requires a re-embedding migration.

    Implementations:
    - OpenAIEmbeddings (production)
    - MockEmbeddings (testing)
    """

    @property
    def model_name(self) -> str:
        """Identifier written next to every vector as the model tag."""
        ...

    @property
    def dimensions(self) -> int:
        """Length of every vector this provider returns."""
        ...

    def embed(self, text: str) -> np.ndarray:
        """Generate embedding for a single text."""
        ...

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate embeddings for multiple texts."""
        ...


# ---------------------------------------------------------------------------
# DOCUMENT STORE PROTOCOL
# ---------------------------------------------------------------------------


@dataclass
class ChangeEvent:
    """
    A single entry of the store's change notification stream.

    `document` is the full new document when the store can ship it with
    the event; otherwise the consumer loads it by `document_id`.
    """

    operation_type: str
    document_id: str
    document: Document | None = None

    @property
    def is_insert(self) -> bool:
        return self.operation_type == INSERT


@dataclass
class ScoredDocument:
    """A document paired with its similarity score (higher = closer)."""

    document: Document
    score: float

    def to_dict(self) -> dict:
        data = self.document.to_dict()
        data["score"] = self.score
        return data


@runtime_checkable
class DocumentStore(Protocol):
    """
    Contract for the persistent document collection.

    Implementations:
    - PgDocumentStore (production with PostgreSQL + pgvector)
    - InMemoryDocumentStore (testing/development)
    """

    def find_all(self) -> list[Document]:
        """Return every document in the collection."""
        ...

    def find_by_id(self, document_id: str) -> Document | None:
        """Point read. None when the id is unknown."""
        ...

    def update_embedding(
        self,
        document_id: str,
        vector: np.ndarray,
        model: str | None = None,
    ) -> None:
        """Set one document's embedding (and model tag) in place."""
        ...

    def insert_notifications(self, stop: threading.Event) -> Iterator[ChangeEvent]:
        """
        Subscribe to inserts and return the ordered event stream.

        The subscription is live when this returns: every insert made
        after the call shows up in the stream, which runs until `stop`
        is set. Raises StreamTerminated if the subscription fails.
        """
        ...

    def similarity_search(
        self,
        query_vector: np.ndarray,
        candidate_pool_size: int,
        limit: int,
    ) -> list[ScoredDocument]:
        """Nearest neighbours of `query_vector`, best first."""
        ...
