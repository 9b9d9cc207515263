"""
Context building for answer generation.

retrieve_context() is the graceful-degradation wrapper the request layer
calls: a provider or store failure yields an empty context with `error`
set, so the user still gets an answer and the failure stays
distinguishable from "nothing relevant was found".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from doc_retrieval_pipeline.core.errors import ProviderError, StoreError
from doc_retrieval_pipeline.core.protocols import ScoredDocument
from doc_retrieval_pipeline.retrieval.engine import RetrievalEngine

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n---\n\n"


@dataclass
class RetrievedContext:
    """Context text plus the results it was built from."""
    text: str
    results: list[ScoredDocument] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def is_empty(self) -> bool:
        return not self.results


def format_context(results: list[ScoredDocument]) -> str:
    """Render results as blocks the chat model can read."""
    blocks = []
    for result in results:
        doc = result.document
        created = doc.created_at.isoformat() if doc.created_at else "unknown"
        blocks.append(f"Title: {doc.title}\nContent: {doc.body}\nCreated: {created}")
    return CONTEXT_SEPARATOR.join(blocks)


def retrieve_context(
    engine: RetrievalEngine,
    query: str,
    limit: int | None = None,
    threshold: float | None = None,
) -> RetrievedContext:
    """Retrieve and format context, degrading to empty on failure."""
    try:
        results = engine.retrieve(query, limit=limit, threshold=threshold)
    except (ProviderError, StoreError) as e:
        logger.error(f"Error retrieving documents: {e}")
        return RetrievedContext(text="", error=f"{type(e).__name__}: {e}")

    return RetrievedContext(text=format_context(results), results=results)
