"""
Docent - Database Setup & Ingestion Script
===========================================
CLI entry point that orchestrates:
    1. Load settings (fail-fast on configuration errors).
    2. Initialise the ``VectorIndex`` (optionally drop the existing table).
    3. Run the ``IngestionPipeline``.
    4. Print a structured execution summary with timing breakdown.

Flags:
    --drop       Drop the LanceDB table before ingesting (full re-ingestion).
    --drop-only  Drop the table and exit immediately (no ingestion).
    --source     Override ``DOCUMENT_PATH`` for this run.

Usage:
    python -m docent.scripts.setup_db              # Normal ingestion (idempotent)
    python -m docent.scripts.setup_db --drop       # Drop table, re-ingest everything
    python -m docent.scripts.setup_db --drop-only  # Drop table and exit
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="Docent — Initialise the vector database and index the document tree.")
    parser.add_argument("--drop", action="store_true", default=False, help="Drop the LanceDB table before ingesting.")
    parser.add_argument("--drop-only", action="store_true", default=False, help="Drop the LanceDB table and exit (no ingestion).")
    parser.add_argument("--source", type=Path, default=None, help="Document root to index (defaults to DOCUMENT_PATH).")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from docent.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1
    settings_ms = (time.perf_counter() - t_settings) * 1000

    # Now that settings is loaded, we can safely import the logger
    from docent.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Settings loaded in %.1fms", settings_ms)

    source = args.source or settings.DOCUMENT_PATH
    _print_header(settings, source)

    # ── 1. Initialise VectorIndex (embedder + LanceDB, timed) ──────────
    from docent.src.database.vector_store import VectorIndex

    t_index = time.perf_counter()
    index = VectorIndex()
    try:
        index.initialize()
    except Exception:
        logger.exception("Failed to initialise the vector index.")
        return 1
    index_ms = (time.perf_counter() - t_index) * 1000
    logger.info("VectorIndex initialised in %.1fms", index_ms)

    try:
        if args.drop or args.drop_only:
            logger.warning("Dropping table '%s' as requested.", settings.LANCEDB_TABLE_NAME)
            index.drop()

            if args.drop_only:
                logger.info("--drop-only: Table dropped. Exiting.")
                _print_footer({}, time.perf_counter() - t_start, settings_ms, index_ms)
                return 0

            # Re-initialise so a fresh table is bootstrapped
            index.initialize()

        logger.info("VectorIndex ready — table '%s' (%d existing rows).", settings.LANCEDB_TABLE_NAME, index.count())

        # ── 2. Run IngestionPipeline ───────────────────────────────────
        from docent.src.core.ingestor import IngestionPipeline

        summary = IngestionPipeline(index, source_dir=source).run()
    finally:
        index.cleanup()

    # ── 3. Print execution summary ─────────────────────────────────────
    _print_footer(summary, time.perf_counter() - t_start, settings_ms, index_ms)
    return 0


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object, source: Path) -> None:
    print()
    print("=" * 60)
    print("  DOCENT — Vector Database Setup & Ingestion")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                                      # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_MODEL} ({settings.EMBEDDING_PROVIDER}, dim={settings.EMBEDDING_DIM})")  # type: ignore[attr-defined]
    print(f"  LanceDB path : {settings.LANCEDB_PATH}")                             # type: ignore[attr-defined]
    print(f"  Table        : {settings.LANCEDB_TABLE_NAME}")                       # type: ignore[attr-defined]
    print(f"  Source dir   : {source}")
    print(f"  Chunking     : {settings.CHUNK_SIZE} chars, overlap {settings.CHUNK_OVERLAP}")  # type: ignore[attr-defined]
    print("=" * 60)
    print()


def _print_footer(summary: dict[str, int | float], elapsed: float, settings_ms: float, index_ms: float) -> None:
    startup_ms = settings_ms + index_ms
    processing_s = elapsed - (startup_ms / 1000)

    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Total files scanned  : {summary.get('total_files', 0)}")
    print(f"  Files failed         : {summary.get('files_failed', 0)}")
    print(f"  Chunks created       : {summary.get('total_chunks', 0)}")
    print(f"  Chunks embedded      : {summary.get('chunks_embedded', 0)}")
    print(f"  Rows in table        : {summary.get('total_rows', 0)}")
    print("-" * 60)
    print("  TIMING BREAKDOWN")
    print("-" * 60)
    print(f"  Settings + .env load : {settings_ms:>8.1f}ms")
    print(f"  Index initialisation : {index_ms:>8.1f}ms")
    print(f"  Processing time      : {processing_s:>8.2f}s")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    sys.exit(main())
