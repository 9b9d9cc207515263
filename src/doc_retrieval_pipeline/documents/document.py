"""
Document model for the retrieval system.

Single responsibility: define the structure of documents kept in the
document store. The embedding is mutated in place by ingestion; every
other field belongs to the external authoring path.
"""

from dataclasses import dataclass, field
from datetime import datetime

import numpy as np


@dataclass
class Document:
    """
    A document with an optional embedding.

    `embedding_model` is the model tag written together with the vector.
    Documents embedded before tags existed carry only the vector, and
    their generation is inferred from its length.
    """
    id: str
    title: str
    body: str
    source: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    embedding: np.ndarray | None = field(default=None, repr=False)
    embedding_model: str | None = None
    score: float | None = None  # Only set on retrieval results

    @property
    def embedding_dim(self) -> int | None:
        """Length of the stored vector, None when there is none."""
        if self.embedding is None:
            return None
        return len(self.embedding)

    def embedding_text(self) -> str:
        """Input text for the embedding provider."""
        return f"{self.title} {self.body}"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization (vector omitted)."""
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "source": self.source,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "embedding_dim": self.embedding_dim,
            "embedding_model": self.embedding_model,
            "score": self.score,
        }
