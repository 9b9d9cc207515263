"""
Pipeline configuration.

One explicit object, built once at startup (normally from the
environment) and handed to build_pipeline(). Nothing in the package
reads a global connection or client.

Environment Variables:
    DATABASE_URL: Postgres connection string
    USE_POSTGRES: Use the Postgres store instead of the in-memory one
        (default: false; the CLI refuses to run without it)
    USE_MOCK_EMBEDDINGS: Use deterministic mock embeddings (default: false)
    EMBEDDING_MODEL: Active embedding model (default: text-embedding-3-large)
    EMBEDDING_DIM: Active embedding dimension (default: model's native size)
    SUPERSEDED_EMBEDDING_MODELS: "model:dim,model:dim" of earlier generations
    RETRIEVAL_LIMIT / RETRIEVAL_THRESHOLD / RETRIEVAL_OVER_FETCH: retrieval defaults
    SWEEP_MAX_WORKERS: Parallel embedding calls during the sweep (default: 1)
    EXTERNAL_CALL_TIMEOUT: Seconds before an OpenAI or Postgres call gives up (default: 30)
    CHAT_MODEL: Model used by `ask` (default: gpt-3.5-turbo)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from doc_retrieval_pipeline.core.errors import ConfigurationError
from doc_retrieval_pipeline.documents.store import StoreConfig
from doc_retrieval_pipeline.embeddings.openai_embeddings import DEFAULT_MODEL, MODEL_DIMENSIONS
from doc_retrieval_pipeline.ingestion.policy import EmbeddingVersionPolicy
from doc_retrieval_pipeline.retrieval.engine import RetrievalConfig

DEFAULT_SUPERSEDED_MODELS = {
    "text-embedding-3-small": 1536,
    "text-embedding-ada-002": 1536,
}


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes")


def parse_superseded_models(value: str) -> dict[str, int]:
    """Parse "model:dim,model:dim" into a dict."""
    models: dict[str, int] = {}
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, sep, dim = entry.rpartition(":")
        if not sep or not name or not dim.isdigit():
            raise ConfigurationError(
                f"Invalid superseded model entry {entry!r}, expected model:dim",
                details={"value": value},
            )
        models[name] = int(dim)
    return models


@dataclass
class PipelineConfig:
    """Everything the pipeline needs to wire itself up."""

    database_url: str = "postgresql://localhost/doc_retrieval"
    use_postgres: bool = False
    use_mock_embeddings: bool = False

    embedding_model: str = DEFAULT_MODEL
    embedding_dim: int = MODEL_DIMENSIONS[DEFAULT_MODEL]
    superseded_models: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_SUPERSEDED_MODELS))

    default_limit: int = 5
    default_threshold: float = 0.3
    over_fetch_ratio: int = 40

    sweep_max_workers: int = 1
    request_timeout: float = 30.0
    chat_model: str = "gpt-3.5-turbo"

    @classmethod
    def from_env(cls) -> PipelineConfig:
        """Load config from environment variables."""
        model = os.environ.get("EMBEDDING_MODEL", DEFAULT_MODEL)
        superseded = os.environ.get("SUPERSEDED_EMBEDDING_MODELS")

        try:
            config = cls(
                database_url=os.environ.get("DATABASE_URL", "postgresql://localhost/doc_retrieval"),
                use_postgres=_env_bool("USE_POSTGRES"),
                use_mock_embeddings=_env_bool("USE_MOCK_EMBEDDINGS"),
                embedding_model=model,
                embedding_dim=int(os.environ.get("EMBEDDING_DIM", MODEL_DIMENSIONS.get(model, 1536))),
                superseded_models=(
                    parse_superseded_models(superseded)
                    if superseded is not None
                    else {k: v for k, v in DEFAULT_SUPERSEDED_MODELS.items() if k != model}
                ),
                default_limit=int(os.environ.get("RETRIEVAL_LIMIT", "5")),
                default_threshold=float(os.environ.get("RETRIEVAL_THRESHOLD", "0.3")),
                over_fetch_ratio=int(os.environ.get("RETRIEVAL_OVER_FETCH", "40")),
                sweep_max_workers=int(os.environ.get("SWEEP_MAX_WORKERS", "1")),
                request_timeout=float(os.environ.get("EXTERNAL_CALL_TIMEOUT", "30")),
                chat_model=os.environ.get("CHAT_MODEL", "gpt-3.5-turbo"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

        config.validate()
        return config

    def validate(self) -> None:
        """Raise ConfigurationError on inconsistent settings."""
        if self.embedding_dim < 1:
            raise ConfigurationError("EMBEDDING_DIM must be positive")
        if self.default_limit < 1:
            raise ConfigurationError("RETRIEVAL_LIMIT must be at least 1")
        if self.over_fetch_ratio < 1:
            raise ConfigurationError("RETRIEVAL_OVER_FETCH must be at least 1")
        if self.sweep_max_workers < 1:
            raise ConfigurationError("SWEEP_MAX_WORKERS must be at least 1")
        if self.request_timeout <= 0:
            raise ConfigurationError("EXTERNAL_CALL_TIMEOUT must be positive")
        if self.embedding_model in self.superseded_models:
            raise ConfigurationError(
                f"{self.embedding_model} is both the active and a superseded model"
            )

    def policy(self) -> EmbeddingVersionPolicy:
        return EmbeddingVersionPolicy(
            current_model=self.embedding_model,
            current_dim=self.embedding_dim,
            superseded_models=dict(self.superseded_models),
        )

    def store_config(self) -> StoreConfig:
        return StoreConfig(
            connection_string=self.database_url,
            embedding_dim=self.embedding_dim,
            connect_timeout=max(int(self.request_timeout), 1),
            pool_timeout=self.request_timeout,
            statement_timeout=self.request_timeout,
        )

    def retrieval_config(self) -> RetrievalConfig:
        return RetrievalConfig(
            default_limit=self.default_limit,
            default_threshold=self.default_threshold,
            over_fetch_ratio=self.over_fetch_ratio,
        )
