"""
Structured ingestion outcomes.

Both ingestion paths contain per-document errors, so the counts and the
(document_id, error) pairs collected here are the only record of what
went wrong besides the log.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from doc_retrieval_pipeline.ingestion.policy import EmbeddingAction


@dataclass(frozen=True)
class IngestionFailure:
    """One document that could not be embedded."""
    document_id: str
    error: str
    error_type: str

    @classmethod
    def from_exception(cls, document_id: str, exc: Exception) -> IngestionFailure:
        return cls(document_id=document_id, error=str(exc), error_type=type(exc).__name__)


@dataclass
class IngestionOutcome:
    """Counts per classification plus the failures."""
    created: int = 0
    migrated: int = 0
    skipped: int = 0
    failed: int = 0
    failures: list[IngestionFailure] = field(default_factory=list)

    def record(self, action: EmbeddingAction) -> None:
        if action is EmbeddingAction.CREATE:
            self.created += 1
        elif action is EmbeddingAction.MIGRATE:
            self.migrated += 1
        else:
            self.skipped += 1

    def record_failure(self, document_id: str, exc: Exception) -> None:
        self.failed += 1
        self.failures.append(IngestionFailure.from_exception(document_id, exc))

    @property
    def writes(self) -> int:
        """Embedding writes that landed."""
        return self.created + self.migrated

    @property
    def total(self) -> int:
        return self.created + self.migrated + self.skipped + self.failed

    @property
    def counts(self) -> dict[str, int]:
        return {
            "created": self.created,
            "migrated": self.migrated,
            "skipped": self.skipped,
            "failed": self.failed,
        }

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0


@dataclass
class SweepOutcome(IngestionOutcome):
    """Result of one reconcile() pass."""
    duration_ms: float = 0.0


@dataclass
class FeedOutcome(IngestionOutcome):
    """Running totals of a change feed subscription."""
    ignored: int = 0  # non-insert events
