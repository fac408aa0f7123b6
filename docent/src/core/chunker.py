"""
Docent - Text Splitter
=======================
Word-based, character-bounded splitter with a trailing overlap window.

Lengths are real character counts of the joined segment (words plus one
space between them).  Words are never split, so a single word longer
than ``chunk_size`` is emitted as its own oversized segment.

Usage:
    from docent.src.core.chunker import TextSplitter
    splitter = TextSplitter(chunk_size=750, chunk_overlap=75)
    segments = splitter.split_text(text)
"""

from __future__ import annotations


class TextSplitter:
    """
    Parameters
    ----------
    chunk_size
        Upper bound, in characters, of every emitted segment.
    chunk_overlap
        Upper bound, in characters, of the tail window copied from one
        segment into the start of the next.
    """

    __slots__ = ("chunk_size", "chunk_overlap")

    def __init__(self, chunk_size: int, chunk_overlap: int) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if not 0 <= chunk_overlap < chunk_size:
            raise ValueError(f"chunk_overlap must be in [0, {chunk_size}), got {chunk_overlap}")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap


    def split_text(self, text: str) -> list[str]:
        """Split *text* into ordered, overlapping segments."""
        segments: list[str] = []
        current: list[str] = []
        current_len = 0

        for word in text.split():
            added = len(word) if not current else len(word) + 1
            if current and current_len + added > self.chunk_size:
                segments.append(" ".join(current))
                current = self._overlap_window(current, len(word))
                current_len = _joined_length(current)
                added = len(word) if not current else len(word) + 1

            current.append(word)
            current_len += added

        if current:
            segments.append(" ".join(current))
        return segments


    def _overlap_window(self, words: list[str], next_word_len: int) -> list[str]:
        """
        Longest tail of *words* whose joined length is ≤ ``chunk_overlap``,
        shortened from the front until the next word still fits in
        ``chunk_size``.
        """
        window: list[str] = []
        length = 0
        for word in reversed(words):
            candidate = length + len(word) + (1 if window else 0)
            if candidate > self.chunk_overlap:
                break
            window.insert(0, word)
            length = candidate

        while window and length + 1 + next_word_len > self.chunk_size:
            dropped = window.pop(0)
            length -= len(dropped) + (1 if window else 0)
        return window


def _joined_length(words: list[str]) -> int:
    if not words:
        return 0
    return sum(len(w) for w in words) + len(words) - 1


def split_text(text: str, chunk_size: int, chunk_overlap: int) -> list[str]:
    """Functional shortcut for one-off splits."""
    return TextSplitter(chunk_size, chunk_overlap).split_text(text)
