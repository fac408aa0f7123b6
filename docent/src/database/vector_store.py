"""
Docent - VectorIndex
=====================
OOP wrapper around LanceDB providing:
  • Table bootstrap with a strict PyArrow schema (fixed vector dimension)
  • Idempotent chunk insertion (exists-check by ``id`` before every add)
  • Vector similarity search followed by hybrid lexical re-ranking and
    per-source deduplication

Design decisions:
  • **Owned connection** — each ``VectorIndex`` opens its own
    ``lancedb.DBConnection`` in ``initialize()`` and releases it in
    ``cleanup()``.  Build one per process and pass it around.
  • **Dependency Injection** — the embedder is injected (or built from
    ``settings`` at ``initialize()``), making the index testable with
    fake embedders.
  • **Fail-soft retrieval** — ``search`` never raises; store or provider
    errors degrade to "no context found".
  • **Fail-loud startup** — embedder construction and connection errors
    propagate out of ``initialize()``.

Usage:
    from docent.src.database.vector_store import VectorIndex
    index = VectorIndex()
    index.initialize()
    index.index(chunks)
    matches = index.search("paintings by Monet", k=3)
    index.cleanup()
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import lancedb
import pyarrow as pa
from pydantic import ValidationError

from docent.config.settings import settings
from docent.src.core.models import Chunk, ChunkMetadata, RetrievedMatch
from docent.src.core.reranker import HybridReranker
from docent.src.utils.logger import get_logger
from docent.src.utils.text_utils import normalize_query

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
IndexedRecord = dict[str, str | int | list[float]]
SearchRow = dict[str, str | int | float | list[float]]

# ── Constants ──────────────────────────────────────────────────────────
PLACEHOLDER_ID = "temp"
_EMBED_BATCH_SIZE = 64


# ── Embedder Protocol ─────────────────────────────────────────────────

@runtime_checkable
class Embedder(Protocol):
    """Structural type for any LangChain-compatible embedding model."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...


class EmbedderInitError(RuntimeError):
    """The embedding provider did not yield a usable embedder."""


def build_schema(dim: int) -> pa.Schema:
    """LanceDB table schema; the fixed-size list pins the vector dimension."""
    return pa.schema([
        pa.field("id", pa.utf8()),
        pa.field("vector", pa.list_(pa.float32(), dim)),
        pa.field("content", pa.utf8()),
        pa.field("source", pa.utf8()),
        pa.field("chunk_index", pa.int32()),
    ])


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class VectorIndex:
    """
    High-level abstraction over one LanceDB vector table.

    Parameters
    ----------
    embedder
        Any object satisfying the ``Embedder`` protocol.  When omitted it
        is built from ``settings`` during ``initialize()``.
    db_path
        Override the database directory.  Defaults to ``settings.LANCEDB_PATH``.
    table_name
        Override the table name.  Defaults to ``settings.LANCEDB_TABLE_NAME``.
    dim
        Vector dimension.  Defaults to ``settings.EMBEDDING_DIM``.
    reranker
        Optional custom ``HybridReranker``.
    """

    __slots__ = ("_embedder", "_db_path", "_table_name", "_dim", "_reranker", "db", "table")

    def __init__(self, embedder: Embedder | None = None, db_path: str | None = None, table_name: str | None = None, dim: int | None = None, reranker: HybridReranker | None = None) -> None:
        self._embedder = embedder
        self._db_path: str = str(db_path or settings.LANCEDB_PATH)
        self._table_name: str = table_name or settings.LANCEDB_TABLE_NAME
        self._dim: int = settings.EMBEDDING_DIM if dim is None else dim
        self._reranker = reranker or HybridReranker()
        self.db: lancedb.DBConnection | None = None
        self.table: lancedb.table.Table | None = None

    # ══════════════════════════════════════════════════════════════════
    #  LIFECYCLE
    # ══════════════════════════════════════════════════════════════════

    def initialize(self) -> None:
        """
        Build the embedder, connect, and open or bootstrap the table.

        Raises
        ------
        EmbedderInitError
            If the provider yields something that cannot embed text.
        OSError
            On LanceDB filesystem errors.
        """
        if self._embedder is None:
            from docent.src.providers.embeddings import build_embedder

            self._embedder = build_embedder(settings)
        if not isinstance(self._embedder, Embedder):
            raise EmbedderInitError(f"Failed to initialize embedder: {type(self._embedder).__name__} is not a callable embedding model")

        try:
            self.db = lancedb.connect(self._db_path)
            if self._table_name in self.db.table_names():
                self.table = self.db.open_table(self._table_name)
                self.table.delete(f"id = {_quote(PLACEHOLDER_ID)}")
                logger.info("Opened existing table '%s' (%d rows).", self._table_name, self.table.count_rows())
            else:
                self.table = self._bootstrap_table()
                logger.info("Created new table '%s' (dim=%d).", self._table_name, self._dim)
        except OSError as exc:
            logger.error("LanceDB filesystem error at %s: %s", self._db_path, exc)
            raise
        except Exception:
            logger.exception("Unexpected error connecting to LanceDB.")
            raise


    def _bootstrap_table(self) -> lancedb.table.Table:
        """Create the table from a placeholder row, then delete that row."""
        placeholder: IndexedRecord = {"id": PLACEHOLDER_ID, "vector": [0.0] * self._dim, "content": "", "source": "", "chunk_index": 0}
        table = self.db.create_table(self._table_name, data=[placeholder], schema=build_schema(self._dim))
        table.delete(f"id = {_quote(PLACEHOLDER_ID)}")
        return table


    def cleanup(self) -> None:
        """Close the table and connection, then drop the handles.  Safe to call repeatedly."""
        if self.db is None and self.table is None:
            logger.debug("VectorIndex already closed.")
            return
        for handle in (self.table, self.db):
            # Not every lancedb release exposes close().
            close = getattr(handle, "close", None)
            if callable(close):
                try:
                    close()
                except Exception as exc:
                    logger.warning("Error closing LanceDB handle %r: %s", handle, exc)
        self.table = None
        self.db = None
        logger.info("VectorIndex connection to '%s' closed.", self._db_path)

    # ══════════════════════════════════════════════════════════════════
    #  INDEXING
    # ══════════════════════════════════════════════════════════════════

    def index(self, chunks: list[Chunk]) -> list[Chunk]:
        """
        Embed *chunks* and insert the ones not yet stored.

        Re-running over the same chunks never creates duplicates: every
        insert is preceded by an exact ``id`` lookup.

        Returns
        -------
        list[Chunk]
            Copies of the chunks that were embedded successfully, with
            ``vector`` populated (already-stored chunks included).
        """
        table = self._require_table()
        logger.info("Embedding %d chunk(s) in batches of %d …", len(chunks), _EMBED_BATCH_SIZE)

        embedded: list[Chunk] = []
        inserted = skipped = 0

        for start in range(0, len(chunks), _EMBED_BATCH_SIZE):
            batch = chunks[start : start + _EMBED_BATCH_SIZE]
            for chunk, vector in zip(batch, self._embed_batch(batch)):
                if not vector:
                    logger.error("Empty vector generated for chunk %s (%s); skipping.", chunk.id, chunk.metadata.source)
                    continue
                if len(vector) != self._dim:
                    logger.error("Vector for chunk %s has dimension %d, expected %d; skipping.", chunk.id, len(vector), self._dim)
                    continue

                stored = chunk.model_copy(update={"vector": vector})
                embedded.append(stored)

                try:
                    if self._exists(table, chunk.id):
                        skipped += 1
                        logger.debug("Chunk %s from %s already exists, skipping.", chunk.id, chunk.metadata.source)
                        continue
                    table.add([self._to_record(stored)])
                    inserted += 1
                except Exception as exc:
                    logger.error("Failed to store chunk %s from %s: %s", chunk.id, chunk.metadata.source, exc)

        if not embedded and chunks:
            logger.warning("No chunks embedded successfully.")
        logger.info("Indexed %d chunk(s): %d inserted, %d already present. Table '%s' now has %d rows.", len(embedded), inserted, skipped, self._table_name, table.count_rows())
        return embedded


    def _embed_batch(self, batch: list[Chunk]) -> list[list[float]]:
        """Embed a batch; if the batch call fails, retry chunk by chunk."""
        texts = [c.content for c in batch]
        try:
            vectors = self._embedder.embed_documents(texts)
            if len(vectors) == len(texts):
                return [list(v) for v in vectors]
            logger.warning("Embedding batch returned %d vectors for %d texts; retrying per chunk.", len(vectors), len(texts))
        except Exception as exc:
            logger.warning("Embedding batch of %d failed (%s); retrying per chunk.", len(texts), exc)

        vectors: list[list[float]] = []
        for chunk in batch:
            try:
                vectors.append(list(self._embedder.embed_documents([chunk.content])[0]))
            except Exception as exc:
                logger.error("Error embedding chunk %s: %s", chunk.id, exc)
                vectors.append([])
        return vectors


    @staticmethod
    def _exists(table: lancedb.table.Table, chunk_id: str) -> bool:
        return table.count_rows(f"id = {_quote(chunk_id)}") > 0


    @staticmethod
    def _to_record(chunk: Chunk) -> IndexedRecord:
        return {"id": chunk.id, "vector": chunk.vector, "content": chunk.content, "source": chunk.metadata.source, "chunk_index": chunk.metadata.chunk_index}

    # ══════════════════════════════════════════════════════════════════
    #  RETRIEVAL
    # ══════════════════════════════════════════════════════════════════

    def search(self, query: str, k: int | None = None) -> list[RetrievedMatch]:
        """
        Vector search for the ``k`` nearest chunks, then hybrid re-ranking.

        Returns an empty list on any store or embedding error.
        """
        k = settings.SEARCH_RESULTS_LIMIT if k is None else k
        normalised = normalize_query(query)
        if not normalised or k < 1:
            return []

        try:
            table = self._require_table()
            query_vector = self._embedder.embed_query(normalised)
            rows: list[SearchRow] = table.search(list(query_vector)).limit(k).to_list()
            candidates = [self._to_match(row) for row in rows]
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            logger.error("Search for '%s' returned unexpected results: %s", normalised[:80], exc)
            return []
        except Exception:
            logger.exception("Search for '%s' failed.", normalised[:80])
            return []

        matches = self._reranker.rerank(normalised, candidates, k)
        logger.info("Search '%s': %d raw → %d ranked.", normalised[:80], len(candidates), len(matches))
        return matches


    @staticmethod
    def _to_match(row: SearchRow) -> RetrievedMatch:
        if row.get("id") == PLACEHOLDER_ID:
            raise ValueError("placeholder row present in results")
        chunk = Chunk(id=str(row["id"]), content=str(row["content"]), vector=list(row.get("vector") or []), metadata=ChunkMetadata(source=str(row["source"]), chunk_index=int(row["chunk_index"])))
        return RetrievedMatch(chunk=chunk, vector_distance=float(row["_distance"]))

    # ══════════════════════════════════════════════════════════════════
    #  MAINTENANCE
    # ══════════════════════════════════════════════════════════════════

    def count(self) -> int:
        """Return the total number of rows in the table."""
        if self.table is None:
            return 0
        return self.table.count_rows()


    def drop(self) -> None:
        """Drop the vector table (used for full re-ingestion)."""
        if self.db is None:
            logger.warning("No database connection; nothing to drop.")
            return
        try:
            self.db.drop_table(self._table_name)
            self.table = None
            logger.info("Dropped table '%s'.", self._table_name)
        except (ValueError, FileNotFoundError):
            logger.warning("Table '%s' does not exist — nothing to drop.", self._table_name)


    def _require_table(self) -> lancedb.table.Table:
        if self.table is None:
            raise RuntimeError("Vector table is not initialised. Call initialize() first.")
        return self.table


    def __repr__(self) -> str:
        return f"VectorIndex(db='{self._db_path}', table='{self._table_name}', rows={self.count()})"
