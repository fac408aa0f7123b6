"""
Docent - Text Utilities
========================
Stateless helpers shared by ingestion and retrieval:

- ``clean_text``        → sanitise a document value before chunking.
- ``normalize_query``   → collapse whitespace in a user question.
- ``query_tokens``      → lower-cased, punctuation-trimmed query words.
- ``render_value``      → turn a JSON field value into one line of text.
"""

from __future__ import annotations

import json
import re
import string
import unicodedata

# Control characters (C0/C1) plus BOM, zero-width chars, soft hyphens
# and directional marks.
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u00ad\u2060\ufffe]")
_WHITESPACE_RE = re.compile(r"\s+")
_TOKEN_STRIP = string.punctuation + "“”‘’«»"


def clean_text(text: str) -> str:
    """
    Sanitise raw field text for embedding.

    Steps:
        1. Unicode NFC normalisation.
        2. Strip non-printable / zero-width characters.
        3. Collapse every whitespace run (newlines included) into one
           space; a field value always renders on a single line.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_query(query: str) -> str:
    """Collapse runs of whitespace and trim the ends."""
    return _WHITESPACE_RE.sub(" ", query).strip()


def query_tokens(query: str) -> list[str]:
    """
    Split a query on whitespace into lower-cased tokens.

    Surrounding punctuation is trimmed (``"Monet?"`` → ``"monet"``,
    ``"artist:"`` → ``"artist"``); tokens that are pure punctuation are
    dropped.  Order is preserved, duplicates are removed.
    """
    seen: dict[str, None] = {}
    for raw in normalize_query(query).lower().split(" "):
        token = raw.strip(_TOKEN_STRIP)
        if token:
            seen.setdefault(token, None)
    return list(seen)


def is_empty_value(value: object) -> bool:
    """``None``, blank strings and empty containers carry no content."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def render_value(value: object) -> str:
    """Render a JSON value as single-line text for a ``key: value`` line."""
    if isinstance(value, str):
        return clean_text(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(render_value(item) for item in value if not is_empty_value(item))
    if isinstance(value, dict):
        return clean_text(json.dumps(value, ensure_ascii=False, separators=(",", ":")))
    return clean_text(str(value))
