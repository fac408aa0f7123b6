"""
Docent - Hybrid Re-ranking
===========================
Lexical post-processing of vector-search candidates.

Pipeline (``HybridReranker.rerank``):
    1. Lexical filter   — drop candidates sharing no token with the query.
    2. Hybrid scoring   — attribute match (+10 exact ``field: value``,
                          +5 substring) plus +1 per long query token found.
    3. Ordering         — lexical score descending, vector distance ascending.
    4. Source diversity — keep at most ``max_per_source`` chunks per source.
    5. Top-K trim.

The weights come from ``settings`` and can be overridden per instance.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from docent.config.settings import settings
from docent.src.core.models import RetrievedMatch
from docent.src.utils.logger import get_logger
from docent.src.utils.text_utils import normalize_query, query_tokens

logger = get_logger(__name__)

# ── Attribute patterns ────────────────────────────────────────────────
# (regex, implied field).  ``None`` as field means "any field" unless the
# pattern captures one itself.
_VALUE_STOP = r"[^?!.,;]+"
# A bare NAME (after ``by`` / ``about``) also ends before a connecting word.
_NAME_BREAKS = ("from", "in", "of", "and", "or", "with", "during", "before", "after", "since", "until", "between", "on", "at", "for", "that", "which", "who", "painted", "made", "created")
_NAME_BREAK_ALT = "|".join(_NAME_BREAKS)
_NAME_STOP = rf"(?:(?!\s+(?:{_NAME_BREAK_ALT})\b)[^?!.,;])+"
_ATTRIBUTE_PATTERNS: list[tuple[re.Pattern[str], str | None]] = [
    (re.compile(rf"(?P<field>[A-Za-z_][\w ]*?)\s*:\s*(?P<value>{_VALUE_STOP})"), None),
    (re.compile(rf"\bby\s+(?P<value>{_NAME_STOP})", re.IGNORECASE), "artist"),
    (re.compile(rf"\babout\s+(?P<value>{_NAME_STOP})", re.IGNORECASE), None),
]

# A field value ends at a separator, a line break, the end of the text, or
# where the next ``key:`` begins (flattened chunks join fields with spaces).
_VALUE_END = r"(?=\s*(?:[,;\n]|$)|\s+[\w-]+\s*:\s)"


@dataclass(frozen=True)
class AttributeQuery:
    field: str | None
    value: str


def extract_attribute(query: str) -> AttributeQuery | None:
    """
    Pull an optional ``field: value`` / ``by NAME`` / ``about NAME`` phrase
    out of *query*.  The first pattern that matches wins.
    """
    normalised = normalize_query(query)
    for pattern, implied_field in _ATTRIBUTE_PATTERNS:
        match = pattern.search(normalised)
        if match is None:
            continue
        value = match.group("value").strip()
        if not value:
            continue
        groups = match.groupdict()
        field = groups.get("field") or implied_field
        if field is not None:
            field = field.strip().split(" ")[-1]
        return AttributeQuery(field=field, value=value)
    return None


class HybridReranker:
    """
    Parameters
    ----------
    exact_boost / substring_boost / token_boost
        Score contributions; default to the ``settings`` values.
    min_token_length
        Tokens must be *longer* than this to earn ``token_boost``.
    max_per_source
        Source-diversity cap; 1 keeps only the best chunk per document.
    """

    __slots__ = ("exact_boost", "substring_boost", "token_boost", "min_token_length", "max_per_source")

    def __init__(self, exact_boost: int | None = None, substring_boost: int | None = None, token_boost: int | None = None, min_token_length: int | None = None, max_per_source: int | None = None) -> None:
        self.exact_boost = settings.EXACT_FIELD_BOOST if exact_boost is None else exact_boost
        self.substring_boost = settings.SUBSTRING_BOOST if substring_boost is None else substring_boost
        self.token_boost = settings.TOKEN_BOOST if token_boost is None else token_boost
        self.min_token_length = settings.MIN_TOKEN_LENGTH if min_token_length is None else min_token_length
        self.max_per_source = settings.MAX_CHUNKS_PER_SOURCE if max_per_source is None else max_per_source


    def rerank(self, query: str, candidates: list[RetrievedMatch], k: int) -> list[RetrievedMatch]:
        tokens = query_tokens(query)
        if not tokens:
            return []

        attribute = extract_attribute(query)
        filtered = [m for m in candidates if self._has_overlap(m.chunk.content.lower(), tokens)]

        for match in filtered:
            match.lexical_score = self.score(match.chunk.content, tokens, attribute)

        ranked = sorted(filtered, key=lambda m: (-m.lexical_score, m.vector_distance))
        diverse = self._dedupe_sources(ranked)

        logger.debug("[RERANK] %d candidate(s) → %d lexical → %d diverse, returning top %d (attribute=%s).", len(candidates), len(filtered), len(diverse), k, attribute)
        return diverse[:k]


    def score(self, content: str, tokens: list[str], attribute: AttributeQuery | None) -> int:
        content_lower = content.lower()
        total = 0

        if attribute is not None:
            if self._exact_field_match(content, attribute):
                total += self.exact_boost
            elif attribute.value.lower() in content_lower:
                total += self.substring_boost

        for token in tokens:
            if len(token) > self.min_token_length and token in content_lower:
                total += self.token_boost
        return total

    # ── helpers ────────────────────────────────────────────────────────

    @staticmethod
    def _has_overlap(content_lower: str, tokens: list[str]) -> bool:
        return any(token in content_lower for token in tokens)


    @staticmethod
    def _exact_field_match(content: str, attribute: AttributeQuery) -> bool:
        field = re.escape(attribute.field) if attribute.field else r"[\w-]+"
        pattern = rf"(?<![\w-]){field}\s*:\s*{re.escape(attribute.value)}{_VALUE_END}"
        return re.search(pattern, content, re.IGNORECASE) is not None


    def _dedupe_sources(self, ranked: list[RetrievedMatch]) -> list[RetrievedMatch]:
        seen: dict[str, int] = {}
        kept: list[RetrievedMatch] = []
        for match in ranked:
            count = seen.get(match.source, 0)
            if count >= self.max_per_source:
                continue
            seen[match.source] = count + 1
            kept.append(match)
        return kept
