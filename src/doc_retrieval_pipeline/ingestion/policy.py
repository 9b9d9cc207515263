"""
Embedding version policy - decides what a document's embedding needs.

Single source of truth for both ingestion paths (sweep and change feed),
so they always agree on whether a document is pending, current, or stale.

Classification order:
1. No vector (or an empty one)                -> CREATE
2. Vector carries a model tag:
   tag is current AND length is current       -> SKIP
   anything else                              -> MIGRATE
3. Legacy vector without a tag, by length:
   current dimension                          -> SKIP
   superseded or unrecognised dimension       -> MIGRATE

SKIP therefore always implies the stored length equals the current
dimension. A stale document is migrated straight to the current model;
no intermediate generation is ever targeted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from doc_retrieval_pipeline.documents.document import Document


class EmbeddingAction(str, Enum):
    """What ingestion should do with a document's embedding."""

    SKIP = "skip"
    CREATE = "create"
    MIGRATE = "migrate"


@dataclass(frozen=True)
class EmbeddingVersionPolicy:
    """
    Pure classification of a document's embedding state.

    Args:
        current_model: Tag of the active embedding model
        current_dim: Output length of the active model
        superseded_models: Previously valid model tags and their lengths
            (copied into a read-only mapping)
    """

    current_model: str
    current_dim: int
    superseded_models: Mapping[str, int] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "superseded_models", MappingProxyType(dict(self.superseded_models)))

    @property
    def superseded_dims(self) -> frozenset[int]:
        """Lengths produced by earlier generations, minus the current one."""
        return frozenset(self.superseded_models.values()) - {self.current_dim}

    def is_current(self, document: Document) -> bool:
        return self.classify(document) is EmbeddingAction.SKIP

    def classify(self, document: Document) -> EmbeddingAction:
        dim = document.embedding_dim
        if not dim:
            return EmbeddingAction.CREATE

        if document.embedding_model is not None:
            if document.embedding_model == self.current_model and dim == self.current_dim:
                return EmbeddingAction.SKIP
            return EmbeddingAction.MIGRATE

        if dim == self.current_dim:
            return EmbeddingAction.SKIP
        # Superseded lengths and unknown lengths are both re-embedded
        return EmbeddingAction.MIGRATE

    def is_known_stale(self, document: Document) -> bool:
        """True when the vector matches a superseded generation."""
        if document.embedding_model is not None:
            return document.embedding_model in self.superseded_models
        return document.embedding_dim in self.superseded_dims
