"""
Change feed processor - embeds newly inserted documents as they arrive.

ARCHITECTURE:
-------------
    store.insert_notifications()  →  pump thread  →  queue.Queue  →  worker thread
                                                      (ordered)       (one item at a time)

The pump only moves events from the store's stream onto the queue; the
worker classifies each inserted document through the version policy,
embeds it, and writes the vector back.

STATE MACHINE:
--------------
    IDLE → SUBSCRIBING → ACTIVE → ACTIVE       (per-item error, logged and recorded)
                                → TERMINATED   (stream error or cancel())

A per-item ProviderError/StoreError never ends the subscription. A
failure of the stream itself ends it: events already queued are still
processed, then the handle moves to TERMINATED with `error` set to a
StreamTerminated. Resubscribing is the owner's call (see
service.runtime.supervise_change_feed).

cancel() stops consumption between items: a document write that is in
flight always completes.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum

from doc_retrieval_pipeline.core.errors import ProviderError, StoreError, StreamTerminated
from doc_retrieval_pipeline.core.protocols import ChangeEvent, DocumentStore, EmbeddingProvider
from doc_retrieval_pipeline.ingestion.embedder import DocumentEmbedder
from doc_retrieval_pipeline.ingestion.outcome import FeedOutcome
from doc_retrieval_pipeline.ingestion.policy import EmbeddingVersionPolicy

logger = logging.getLogger(__name__)

FEED_PATH = "change_feed"


class FeedState(str, Enum):
    IDLE = "idle"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"
    TERMINATED = "terminated"


@dataclass
class _StreamEnd:
    """Queue sentinel: no more events will follow."""
    error: StreamTerminated | None = None


class ChangeFeedHandle:
    """Cancellable subscription returned by ChangeFeedProcessor.start()."""

    def __init__(self, processor: ChangeFeedProcessor):
        self._processor = processor
        self._stop = threading.Event()
        self._queue: queue.Queue = queue.Queue()
        self._state = FeedState.IDLE
        self._state_lock = threading.Lock()
        self._pump: threading.Thread | None = None
        self._worker: threading.Thread | None = None
        self.outcome = FeedOutcome()
        self.error: StreamTerminated | None = None

    @property
    def state(self) -> FeedState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: FeedState) -> None:
        with self._state_lock:
            if self._state is FeedState.TERMINATED:
                return
            logger.debug(f"Change feed {self._state.value} -> {state.value}")
            self._state = state

    @property
    def is_running(self) -> bool:
        return self.state in (FeedState.SUBSCRIBING, FeedState.ACTIVE)

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def _start(self) -> None:
        self._set_state(FeedState.SUBSCRIBING)
        self._worker = threading.Thread(target=self._processor._consume, args=(self,), name="change-feed-worker", daemon=True)
        self._pump = threading.Thread(target=self._processor._pump, args=(self,), name="change-feed-pump", daemon=True)
        self._worker.start()
        self._pump.start()

    def cancel(self) -> None:
        """Stop consuming notifications. Idempotent."""
        if self._stop.is_set():
            return
        logger.info("Cancelling change feed subscription")
        self._stop.set()
        # Wake the worker if it is waiting on an empty queue
        self._queue.put(_StreamEnd())

    def wait(self, timeout: float | None = None) -> bool:
        """Block until both threads exit. Returns True if they did."""
        for thread in (self._worker, self._pump):
            if thread is not None:
                thread.join(timeout)
        return not any(t is not None and t.is_alive() for t in (self._worker, self._pump))


class ChangeFeedProcessor:
    """
    Long-lived consumer of the store's insert notifications.

    Args:
        store: Document store providing the notification stream
        embeddings: Embedding provider for the active model
        policy: Version policy shared with the sweep
    """

    def __init__(
        self,
        store: DocumentStore,
        embeddings: EmbeddingProvider,
        policy: EmbeddingVersionPolicy,
    ):
        self._store = store
        self._embedder = DocumentEmbedder(store, embeddings, policy)
        self._handle: ChangeFeedHandle | None = None
        self._lock = threading.Lock()

    @property
    def handle(self) -> ChangeFeedHandle | None:
        return self._handle

    def start(self) -> ChangeFeedHandle:
        """
        Subscribe to inserts. Returns the live handle if one is already
        running, otherwise a fresh subscription.
        """
        with self._lock:
            if self._handle is not None and self._handle.is_running:
                return self._handle

            handle = ChangeFeedHandle(self)
            handle._start()
            self._handle = handle
            logger.info("Watching for new documents...")
            return handle

    # -----------------------------------------------------------------------
    # THREAD BODIES
    # -----------------------------------------------------------------------

    def _pump(self, handle: ChangeFeedHandle) -> None:
        """Move stream events onto the queue until the stream ends."""
        end = _StreamEnd()
        try:
            # Returns once the store has registered the subscription
            stream = self._store.insert_notifications(handle._stop)
            handle._set_state(FeedState.ACTIVE)
            for event in stream:
                handle._queue.put(event)
            if not handle.cancelled:
                end.error = StreamTerminated("Insert notification stream ended unexpectedly")
        except StreamTerminated as e:
            end.error = e
        except Exception as e:
            terminated = StreamTerminated(f"Insert notification stream failed: {e}")
            terminated.__cause__ = e
            end.error = terminated

        if end.error is not None:
            logger.error(f"Change stream error: {end.error}")
        handle._queue.put(end)

    def _consume(self, handle: ChangeFeedHandle) -> None:
        """Process queued events one at a time, in order."""
        while True:
            item = handle._queue.get()

            if isinstance(item, _StreamEnd):
                handle.error = item.error
                break

            if handle.cancelled:
                break

            self._handle_event(item, handle.outcome)

        handle._set_state(FeedState.TERMINATED)
        logger.info(
            f"Change feed stopped. {handle.outcome.created} embedded, "
            f"{handle.outcome.failed} failed"
        )

    def _handle_event(self, event: ChangeEvent, outcome: FeedOutcome) -> None:
        if not event.is_insert:
            outcome.ignored += 1
            return

        try:
            document = event.document or self._store.find_by_id(event.document_id)
            if document is None:
                raise StoreError(
                    f"Inserted document {event.document_id} not found",
                    details={"document_id": event.document_id},
                )
            logger.info(f"New document detected: {document.title}")
            outcome.record(self._embedder.process(document, FEED_PATH))
        except (ProviderError, StoreError) as e:
            logger.error(f"Error embedding new document {event.document_id}: {e}")
            outcome.record_failure(event.document_id, e)
        except Exception as e:
            # Unexpected bug for one item: still must not end the subscription
            logger.exception(f"Unexpected error embedding new document {event.document_id}")
            outcome.record_failure(event.document_id, e)
