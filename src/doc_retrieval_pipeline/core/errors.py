"""
Error taxonomy for the ingestion and retrieval pipeline.

Adapters translate library exceptions (openai, psycopg) into these types
so the ingestion paths and the retrieval engine can decide, per error
class, whether to contain the failure or let it propagate:

- ProviderError: embedding call failed. Contained per document during
  ingestion, surfaced to the caller during retrieval.
- StoreError: read/write/search failed. Contained per document during
  ingestion, fatal for a retrieval call.
- StreamTerminated: the insert notification subscription itself ended.
  Never per document; the owning process decides whether to resubscribe.
"""


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(PipelineError):
    """Raised when settings are missing or inconsistent."""


class ProviderError(PipelineError):
    """Raised when the embedding provider fails."""


class StoreError(PipelineError):
    """Raised when a document store operation fails."""


class StreamTerminated(PipelineError):
    """Raised when the insert notification stream ends unexpectedly."""
