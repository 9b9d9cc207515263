"""
Retrieval engine - turns a free-text query into ranked, filtered documents.

ALGORITHM:
----------
1. Embed the query with the same provider that embedded the documents
2. Ask the store for the `limit` nearest documents, searching a candidate
   pool `over_fetch_ratio` times larger than `limit` for better recall
3. Keep results whose score >= threshold, best first

An empty list means "nothing relevant" and is not an error. Provider and
store failures propagate so callers can tell the two apart.

Thresholds are calibrated against one embedding model's score
distribution, so they are configuration (and per-call overrides), never
constants.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from doc_retrieval_pipeline.core.protocols import DocumentStore, EmbeddingProvider, ScoredDocument
from doc_retrieval_pipeline.observability import (
    RETRIEVAL_RESULT_COUNT,
    get_config,
    get_tracer,
    retrieval_attributes,
)
from doc_retrieval_pipeline.observability.attributes import (
    RETRIEVAL_CANDIDATE_COUNT,
    RETRIEVAL_TOP_SCORE,
)

logger = logging.getLogger(__name__)


@dataclass
class RetrievalConfig:
    """Defaults for retrieve() calls."""

    default_limit: int = 5
    default_threshold: float = 0.3
    over_fetch_ratio: int = 40  # 5 results → 200 candidates


class RetrievalEngine:
    """
    Query-time retrieval over the document store.

    Holds no mutable state, so one instance can serve any number of
    concurrent callers.
    """

    def __init__(
        self,
        store: DocumentStore,
        embeddings: EmbeddingProvider,
        config: RetrievalConfig | None = None,
    ):
        self._store = store
        self._embeddings = embeddings
        self.config = config or RetrievalConfig()

    def candidate_pool_size(self, limit: int) -> int:
        return max(limit * self.config.over_fetch_ratio, limit)

    def retrieve(
        self,
        query: str,
        limit: int | None = None,
        threshold: float | None = None,
    ) -> list[ScoredDocument]:
        """
        Find documents relevant to `query`.

        Args:
            query: Free-text query
            limit: Maximum number of results (default from config)
            threshold: Minimum score; <= 0 disables filtering (default from config)

        Returns:
            Results in descending score order, at most `limit`, all >= threshold

        Raises:
            ValueError: if limit < 1
            ProviderError: if the query cannot be embedded
            StoreError: if the similarity search fails
        """
        limit = self.config.default_limit if limit is None else limit
        threshold = self.config.default_threshold if threshold is None else threshold
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")

        pool = self.candidate_pool_size(limit)
        captured_query = query if get_config().capture_content else None

        with get_tracer().start_span(
            "retrieval.retrieve",
            attributes=retrieval_attributes(limit, threshold, pool, captured_query),
        ) as span:
            query_vector = self._embeddings.embed(query)
            candidates = self._store.similarity_search(query_vector, pool, limit)

            ranked = sorted(candidates, key=lambda r: r.score, reverse=True)
            if threshold > 0:
                ranked = [r for r in ranked if r.score >= threshold]
            results = ranked[:limit]

            span.set_attribute(RETRIEVAL_CANDIDATE_COUNT, len(candidates))
            span.set_attribute(RETRIEVAL_RESULT_COUNT, len(results))
            if results:
                span.set_attribute(RETRIEVAL_TOP_SCORE, results[0].score)

        logger.debug(
            f"Retrieved {len(results)} of {len(candidates)} candidates "
            f"(limit={limit}, threshold={threshold})"
        )
        return results
