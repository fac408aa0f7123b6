"""
Docent - DocumentLoader
========================
Walks a document tree, flattens each structured (JSON) record into
``key: value`` text and splits it into ``Chunk`` objects.

Key design decisions:
    • **Partial-failure tolerant** – a file that cannot be read or parsed
      is logged and skipped; the rest of the tree is still loaded.
    • **Deterministic order** – files are visited in sorted path order and
      fields in declaration order, so chunk indices are reproducible.
    • **Relative sources** – ``metadata.source`` is the POSIX path relative
      to the root, which keeps the folder structure visible in citations.
    • **No embedding here** – vectors are left empty for ``VectorIndex``.

Usage:
    from docent.src.core.loader import DocumentLoader
    loader = DocumentLoader()
    chunks = loader.load(settings.DOCUMENT_PATH)
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path

from docent.config.settings import settings
from docent.src.core.chunker import TextSplitter
from docent.src.core.models import Chunk
from docent.src.utils.logger import get_logger
from docent.src.utils.text_utils import clean_text, is_empty_value, render_value

logger = get_logger(__name__)

# File extensions the loader knows how to parse
_SUPPORTED_EXTENSIONS = {".json"}


class DocumentParseError(ValueError):
    """Raised when a file is readable but is not a flat field/value record."""


@dataclass
class LoadReport:
    files_found: int = 0
    files_parsed: int = 0
    failed_files: list[str] = field(default_factory=list)
    total_chunks: int = 0
    elapsed_seconds: float = 0.0


class DocumentLoader:
    """
    Parameters
    ----------
    chunk_size / chunk_overlap
        Character bounds for the splitter.  Default to
        ``settings.CHUNK_SIZE`` / ``settings.CHUNK_OVERLAP`` (750 / 75).
    """

    def __init__(self, chunk_size: int | None = None, chunk_overlap: int | None = None) -> None:
        self._splitter = TextSplitter(settings.CHUNK_SIZE if chunk_size is None else chunk_size, settings.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap)
        self.last_report = LoadReport()

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    def load(self, root_path: Path | str) -> list[Chunk]:
        """
        Load every supported document under *root_path*.

        Returns
        -------
        list[Chunk]
            Un-embedded chunks in file then chunk order.  May be empty.
        """
        t_start = time.perf_counter()
        root = Path(root_path)
        report = LoadReport()
        self.last_report = report
        chunks: list[Chunk] = []

        if not root.is_dir():
            logger.warning("Document root does not exist or is not a directory: %s", root)
            return chunks

        files = self._find_files(root)
        report.files_found = len(files)
        logger.info("Found %d document file(s) under %s", len(files), root)

        for filepath in files:
            relative = filepath.relative_to(root).as_posix()
            try:
                record = self._parse_file(filepath)
            except (OSError, UnicodeDecodeError, json.JSONDecodeError, DocumentParseError) as exc:
                logger.error("Failed to parse %s: %s", relative, exc)
                report.failed_files.append(relative)
                continue

            report.files_parsed += 1
            text = self._flatten(record)
            segments = self._splitter.split_text(text)

            for index, segment in enumerate(segments):
                chunks.append(Chunk.create(content=segment, source=relative, chunk_index=index))
            logger.debug("File '%s' → %d chunk(s).", relative, len(segments))

        report.total_chunks = len(chunks)
        report.elapsed_seconds = round(time.perf_counter() - t_start, 2)

        if not chunks:
            logger.warning("No chunks created. Check that %s contains valid %s files.", root, ", ".join(sorted(_SUPPORTED_EXTENSIONS)))
        else:
            logger.info("Created %d chunk(s) from %d file(s) (%d failed) in %.2fs.", len(chunks), report.files_parsed, len(report.failed_files), report.elapsed_seconds)
        return chunks

    # ══════════════════════════════════════════════════════════════════
    #  FILE DISCOVERY & PARSING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def _find_files(root: Path) -> list[Path]:
        return sorted(p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in _SUPPORTED_EXTENSIONS)


    @staticmethod
    def _parse_file(filepath: Path) -> dict[str, object]:
        """Read and decode one JSON document; it must be a single object."""
        record = json.loads(filepath.read_text(encoding="utf-8"))
        if not isinstance(record, dict):
            raise DocumentParseError(f"expected a JSON object, got {type(record).__name__}")
        return record


    @staticmethod
    def _flatten(record: dict[str, object]) -> str:
        """One ``key: value`` line per non-empty field, in declaration order."""
        lines: list[str] = []
        for key, value in record.items():
            if is_empty_value(value):
                continue
            rendered = render_value(value)
            if rendered:
                lines.append(f"{clean_text(str(key))}: {rendered}")
        return "\n".join(lines)
