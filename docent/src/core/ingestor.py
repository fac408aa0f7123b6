"""
Docent - IngestionPipeline
===========================
Startup indexing: ``DocumentLoader`` → ``TextSplitter`` → ``VectorIndex.index``.

Runs sequentially over documents and then over chunks; it is the only
writer to the vector table.  Because chunk ids are regenerated
deterministically and ``VectorIndex.index`` checks every id before
inserting, running the pipeline on every start leaves an unchanged
corpus untouched.

Usage:
    from docent.src.core.ingestor import IngestionPipeline
    pipeline = IngestionPipeline(index)
    summary  = pipeline.run()
"""

from __future__ import annotations

import time
from pathlib import Path

from docent.config.settings import settings
from docent.src.core.loader import DocumentLoader
from docent.src.database.vector_store import VectorIndex
from docent.src.utils.logger import get_logger

logger = get_logger(__name__)

IngestionSummary = dict[str, int | float]


class IngestionPipeline:
    """
    Parameters
    ----------
    index
        An initialised ``VectorIndex`` (injected).
    loader
        Optional custom ``DocumentLoader``.
    source_dir
        Override the document root.  Defaults to ``settings.DOCUMENT_PATH``.
    """

    def __init__(self, index: VectorIndex, loader: DocumentLoader | None = None, source_dir: Path | str | None = None) -> None:
        self._index = index
        self._loader = loader or DocumentLoader()
        self._source_dir = Path(source_dir or settings.DOCUMENT_PATH)


    def run(self) -> IngestionSummary:
        """
        Load, chunk, embed and store the document tree.

        Returns
        -------
        dict
            ``total_files``, ``files_failed``, ``total_chunks``,
            ``chunks_embedded``, ``total_rows``, ``elapsed_seconds``.
        """
        t_start = time.perf_counter()
        logger.info("Starting ingestion from %s", self._source_dir)

        chunks = self._loader.load(self._source_dir)
        report = self._loader.last_report
        embedded = self._index.index(chunks) if chunks else []

        summary: IngestionSummary = {
            "total_files": report.files_found,
            "files_failed": len(report.failed_files),
            "total_chunks": len(chunks),
            "chunks_embedded": len(embedded),
            "total_rows": self._index.count(),
            "elapsed_seconds": round(time.perf_counter() - t_start, 2),
        }
        logger.info("Ingestion complete — %d file(s), %d chunk(s), %d embedded, %d row(s) stored in %.2fs.", summary["total_files"], summary["total_chunks"], summary["chunks_embedded"], summary["total_rows"], summary["elapsed_seconds"])
        return summary
