"""
Document store implementations.

Pattern: Protocol → Production impl → Test double → Factory

This module contains:
1. StoreConfig - Configuration dataclass
2. PgDocumentStore - PostgreSQL with pgvector (production)
3. InMemoryDocumentStore - In-memory store (testing/development)
4. get_document_store() - Factory function

The Postgres store keeps one dimension-less `vector` column so vectors
from a superseded model can live next to current ones until the sweep
migrates them. The HNSW index is partial: it only covers rows whose
vector has the configured dimension, cast to halfvec (HNSW on plain
`vector` stops at 2000 dimensions).

Inserts are announced with LISTEN/NOTIFY: a trigger sends the new id on
`notify_channel` and `insert_notifications()` turns those into
ChangeEvents.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import queue
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator

import numpy as np
import psycopg
from pgvector.psycopg import register_vector
from psycopg_pool import ConnectionPool

from doc_retrieval_pipeline.core.errors import StoreError, StreamTerminated
from doc_retrieval_pipeline.core.protocols import INSERT, ChangeEvent, ScoredDocument
from doc_retrieval_pipeline.documents.document import Document

logger = logging.getLogger(__name__)

# hnsw.ef_search upper bound enforced by pgvector
MAX_EF_SEARCH = 1000

_COLUMNS = "id, title, body, source, created_at, updated_at, embedding, embedding_model"


# ---------------------------------------------------------------------------
# CONFIGURATION
# ---------------------------------------------------------------------------


@dataclass
class StoreConfig:
    """Configuration for the document store."""

    connection_string: str = "postgresql://localhost/doc_retrieval"
    table_name: str = "documents"
    index_name: str = "documents_embedding_idx"
    notify_channel: str = "documents_inserted"
    embedding_dim: int = 3072
    min_pool_size: int = 1
    max_pool_size: int = 10
    connect_timeout: int = 10  # seconds
    pool_timeout: float = 30.0  # seconds to wait for a pooled connection
    statement_timeout: float | None = 30.0  # seconds per statement, None for no limit
    poll_interval: float = 1.0  # seconds between stop checks while listening


@dataclass
class IndexInfo:
    """What the database reports about the vector index."""

    name: str
    exists: bool
    definition: str | None = None


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate psycopg failures into StoreError."""
    try:
        yield
    except psycopg.Error as e:
        raise StoreError(f"{operation} failed: {e}", details={"operation": operation}) from e


def _row_to_document(row: tuple) -> Document:
    return Document(
        id=row[0],
        title=row[1],
        body=row[2],
        source=row[3],
        created_at=row[4],
        updated_at=row[5],
        embedding=row[6],
        embedding_model=row[7],
    )


# ---------------------------------------------------------------------------
# PGVECTOR STORE (Production)
# ---------------------------------------------------------------------------


class PgDocumentStore:
    """
    PostgreSQL document store using pgvector.

    Reads and writes go through a connection pool so concurrent retrieval
    calls never share a transaction. The notification stream holds its
    own dedicated connection for LISTEN.
    """

    def __init__(self, config: StoreConfig):
        self.config = config
        self._pool: ConnectionPool | None = None

    def _configure(self, conn: psycopg.Connection) -> None:
        conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
        register_vector(conn)

    def _connection_kwargs(self) -> dict:
        kwargs = {"autocommit": True, "connect_timeout": self.config.connect_timeout}
        if self.config.statement_timeout:
            kwargs["options"] = f"-c statement_timeout={int(self.config.statement_timeout * 1000)}"
        return kwargs

    def connect(self) -> None:
        """Open the connection pool."""
        if self._pool is not None:
            return
        with _store_errors("connect"):
            self._pool = ConnectionPool(
                self.config.connection_string,
                min_size=self.config.min_pool_size,
                max_size=self.config.max_pool_size,
                timeout=self.config.pool_timeout,
                kwargs=self._connection_kwargs(),
                configure=self._configure,
                open=True,
            )

    def close(self) -> None:
        """Close the connection pool."""
        if self._pool:
            self._pool.close()
            self._pool = None

    @contextmanager
    def _connection(self, operation: str) -> Iterator[psycopg.Connection]:
        if self._pool is None:
            self.connect()
        with _store_errors(operation):
            with self._pool.connection() as conn:
                yield conn

    def create_schema(self) -> None:
        """Create the documents table, vector index, and insert trigger."""
        table = self.config.table_name
        dim = self.config.embedding_dim

        with self._connection("create_schema") as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
                    title TEXT NOT NULL,
                    body TEXT NOT NULL,
                    source TEXT,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                    updated_at TIMESTAMPTZ,
                    embedding vector,
                    embedding_model TEXT
                )
            """
            )

            # Partial index: only vectors of the active dimension are searchable
            conn.execute(
                f"""
                CREATE INDEX IF NOT EXISTS {self.config.index_name}
                ON {table}
                USING hnsw ((embedding::halfvec({dim})) halfvec_cosine_ops)
                WITH (m = 16, ef_construction = 64)
                WHERE vector_dims(embedding) = {dim}
            """
            )

            conn.execute(
                f"""
                CREATE OR REPLACE FUNCTION {table}_notify_insert() RETURNS trigger AS $$
                BEGIN
                    PERFORM pg_notify('{self.config.notify_channel}', NEW.id);
                    RETURN NEW;
                END;
                $$ LANGUAGE plpgsql
            """
            )
            conn.execute(
                f"""
                CREATE OR REPLACE TRIGGER {table}_insert_notify
                AFTER INSERT ON {table}
                FOR EACH ROW EXECUTE FUNCTION {table}_notify_insert()
            """
            )

    def describe_index(self) -> IndexInfo:
        """Look up the vector index definition."""
        with self._connection("describe_index") as conn:
            row = conn.execute(
                "SELECT indexname, indexdef FROM pg_indexes WHERE tablename = %s AND indexname = %s",
                (self.config.table_name, self.config.index_name),
            ).fetchone()

        if row is None:
            return IndexInfo(name=self.config.index_name, exists=False)
        return IndexInfo(name=row[0], exists=True, definition=row[1])

    def insert_document(self, doc: Document) -> str:
        """Insert a new document. Returns the id the store assigned."""
        with self._connection("insert_document") as conn:
            row = conn.execute(
                f"""
                INSERT INTO {self.config.table_name}
                    (id, title, body, source, created_at, updated_at, embedding, embedding_model)
                VALUES (COALESCE(%s, gen_random_uuid()::text), %s, %s, %s,
                        COALESCE(%s, now()), %s, %s, %s)
                RETURNING id
                """,
                (
                    doc.id or None,
                    doc.title,
                    doc.body,
                    doc.source,
                    doc.created_at,
                    doc.updated_at,
                    doc.embedding,
                    doc.embedding_model,
                ),
            ).fetchone()
        return row[0]

    def find_all(self) -> list[Document]:
        """Full scan of the collection, oldest first."""
        with self._connection("find_all") as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM {self.config.table_name} ORDER BY created_at, id"
            ).fetchall()
        return [_row_to_document(row) for row in rows]

    def find_by_id(self, document_id: str) -> Document | None:
        """Point read."""
        with self._connection("find_by_id") as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM {self.config.table_name} WHERE id = %s",
                (document_id,),
            ).fetchone()
        return _row_to_document(row) if row else None

    def update_embedding(
        self,
        document_id: str,
        vector: np.ndarray,
        model: str | None = None,
    ) -> None:
        """Overwrite the embedding and model tag, nothing else."""
        with self._connection("update_embedding") as conn:
            cursor = conn.execute(
                f"UPDATE {self.config.table_name} SET embedding = %s, embedding_model = %s WHERE id = %s",
                (np.asarray(vector, dtype=np.float32), model, document_id),
            )
            updated = cursor.rowcount

        if updated == 0:
            raise StoreError(
                f"Document {document_id} not found",
                details={"operation": "update_embedding", "document_id": document_id},
            )

    def similarity_search(
        self,
        query_vector: np.ndarray,
        candidate_pool_size: int,
        limit: int,
    ) -> list[ScoredDocument]:
        """Approximate nearest neighbours by cosine distance."""
        dim = self.config.embedding_dim
        query_vector = np.asarray(query_vector, dtype=np.float32)
        if query_vector.shape[0] != dim:
            raise StoreError(
                f"Query vector has {query_vector.shape[0]} dimensions, index expects {dim}",
                details={"operation": "similarity_search"},
            )

        ef_search = min(max(candidate_pool_size, limit), MAX_EF_SEARCH)

        with self._connection("similarity_search") as conn:
            with conn.transaction():
                # Scoped to this transaction only
                conn.execute("SELECT set_config('hnsw.ef_search', %s, true)", (str(ef_search),))
                rows = conn.execute(
                    f"""
                    SELECT id, title, body, source, created_at, updated_at, embedding_model,
                           (embedding::halfvec({dim})) <=> (%s::vector)::halfvec({dim}) AS distance
                    FROM {self.config.table_name}
                    WHERE vector_dims(embedding) = {dim}
                    ORDER BY (embedding::halfvec({dim})) <=> (%s::vector)::halfvec({dim})
                    LIMIT %s
                    """,
                    (query_vector, query_vector, limit),
                ).fetchall()

        results = []
        for row in rows:
            score = 1 - float(row[7])  # Convert distance to similarity
            doc = Document(
                id=row[0],
                title=row[1],
                body=row[2],
                source=row[3],
                created_at=row[4],
                updated_at=row[5],
                embedding_model=row[6],
                score=score,
            )
            results.append(ScoredDocument(document=doc, score=score))
        return results

    def insert_notifications(self, stop: threading.Event) -> Iterator[ChangeEvent]:
        """
        Subscribe to inserts and return the event stream.

        The LISTEN is issued before this returns, so every insert committed
        afterwards is delivered. Events carry only the document id; the
        consumer loads the row. Any connection-level failure ends the
        stream with StreamTerminated.
        """
        try:
            conn = psycopg.connect(
                self.config.connection_string,
                autocommit=True,
                connect_timeout=self.config.connect_timeout,
            )
        except psycopg.Error as e:
            raise StreamTerminated(f"Could not subscribe to inserts: {e}") from e

        try:
            conn.execute(f"LISTEN {self.config.notify_channel}")
        except psycopg.Error as e:
            conn.close()
            raise StreamTerminated(f"Could not subscribe to inserts: {e}") from e

        logger.info(f"Listening on channel {self.config.notify_channel}")
        return self._listen(conn, stop)

    def _listen(self, conn: psycopg.Connection, stop: threading.Event) -> Iterator[ChangeEvent]:
        try:
            while not stop.is_set():
                for notify in conn.notifies(timeout=self.config.poll_interval):
                    yield ChangeEvent(operation_type=INSERT, document_id=notify.payload)
                    if stop.is_set():
                        break
        except psycopg.Error as e:
            raise StreamTerminated(f"Insert notification stream failed: {e}") from e
        finally:
            conn.close()


# ---------------------------------------------------------------------------
# IN-MEMORY STORE (Testing/Development)
# ---------------------------------------------------------------------------

_STREAM_CLOSED = object()


class InMemoryDocumentStore:
    """
    In-memory document store for development/testing.

    Implements the same contract as PgDocumentStore but doesn't require
    Postgres. Uses exact cosine similarity, searches only vectors whose
    length matches the query, and fans inserts out to every active
    notification subscriber.
    """

    def __init__(self, poll_interval: float = 0.05):
        self.poll_interval = poll_interval
        self._documents: dict[str, Document] = {}
        self._lock = threading.Lock()
        self._subscribers: list[queue.Queue] = []

    def connect(self) -> None:
        """No-op for in-memory store."""
        pass

    def close(self) -> None:
        """End every active notification stream."""
        with self._lock:
            subscribers = list(self._subscribers)
        for q in subscribers:
            q.put(_STREAM_CLOSED)

    def create_schema(self) -> None:
        """No-op for in-memory store."""
        pass

    def describe_index(self) -> IndexInfo:
        return IndexInfo(name="in-memory", exists=True, definition="exact cosine scan")

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def insert_document(self, doc: Document) -> str:
        """Store a copy of `doc` and notify subscribers."""
        stored = copy.copy(doc)
        stored.id = doc.id or uuid.uuid4().hex
        if stored.created_at is None:
            stored.created_at = datetime.now(timezone.utc)
        stored.score = None

        with self._lock:
            self._documents[stored.id] = stored
            subscribers = list(self._subscribers)

        for q in subscribers:
            q.put(ChangeEvent(operation_type=INSERT, document_id=stored.id, document=copy.copy(stored)))
        return stored.id

    def find_all(self) -> list[Document]:
        with self._lock:
            return [copy.copy(doc) for doc in self._documents.values()]

    def find_by_id(self, document_id: str) -> Document | None:
        with self._lock:
            doc = self._documents.get(document_id)
            return copy.copy(doc) if doc else None

    def update_embedding(
        self,
        document_id: str,
        vector: np.ndarray,
        model: str | None = None,
    ) -> None:
        with self._lock:
            doc = self._documents.get(document_id)
            if doc is None:
                raise StoreError(
                    f"Document {document_id} not found",
                    details={"operation": "update_embedding", "document_id": document_id},
                )
            self._documents[document_id] = dataclasses.replace(
                doc,
                embedding=np.asarray(vector, dtype=np.float32),
                embedding_model=model,
            )

    def insert_notifications(self, stop: threading.Event) -> Iterator[ChangeEvent]:
        """Register a subscriber now and return its event stream."""
        q: queue.Queue = queue.Queue()
        with self._lock:
            self._subscribers.append(q)
        return self._drain(q, stop)

    def _drain(self, q: queue.Queue, stop: threading.Event) -> Iterator[ChangeEvent]:
        try:
            while not stop.is_set():
                try:
                    item = q.get(timeout=self.poll_interval)
                except queue.Empty:
                    continue
                if item is _STREAM_CLOSED:
                    raise StreamTerminated("In-memory notification stream closed")
                yield item
        finally:
            with self._lock:
                self._subscribers.remove(q)

    def _cosine_similarity(self, a: np.ndarray, b: np.ndarray) -> float:
        """Calculate cosine similarity between two vectors."""
        norm = np.linalg.norm(a) * np.linalg.norm(b)
        if norm == 0:
            return 0.0
        return float(np.dot(a, b) / norm)

    def similarity_search(
        self,
        query_vector: np.ndarray,
        candidate_pool_size: int,
        limit: int,
    ) -> list[ScoredDocument]:
        """Exact search; the candidate pool only bounds the pre-limit set."""
        query_vector = np.asarray(query_vector, dtype=np.float32)
        with self._lock:
            candidates = [
                doc for doc in self._documents.values()
                if doc.embedding is not None and len(doc.embedding) == len(query_vector)
            ]

        scored = [(doc, self._cosine_similarity(query_vector, doc.embedding)) for doc in candidates]

        # Sort by score descending
        scored.sort(key=lambda x: x[1], reverse=True)
        pool = scored[: max(candidate_pool_size, limit)]

        return [
            ScoredDocument(document=dataclasses.replace(doc, score=score), score=score)
            for doc, score in pool[:limit]
        ]


# ---------------------------------------------------------------------------
# FACTORY FUNCTION
# ---------------------------------------------------------------------------


def get_document_store(
    use_postgres: bool = False,
    config: StoreConfig | None = None,
) -> PgDocumentStore | InMemoryDocumentStore:
    """
    Factory function to get the appropriate document store.

    Args:
        use_postgres: Use PostgreSQL store (default: False for dev)
        config: Store configuration (uses defaults if not provided)

    Returns:
        DocumentStore implementation
    """
    if use_postgres:
        return PgDocumentStore(config or StoreConfig())
    return InMemoryDocumentStore()
