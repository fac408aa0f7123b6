"""
Docent - RAG Engine
====================
Turns a question into a cited answer.

Architecture (OOP)
------------------
``AnswerValidator``
    Pluggable degenerate-output detection.  Holds a list of
    ``DegeneratePattern`` (regex + description + cleanup regex) and the
    repetition heuristic.  New patterns are added to the list, the retry
    loop never changes.

``AnswerController``
    Stateless pipeline orchestrator.  Flow:
        1. Retrieve → ``VectorIndex.search`` (empty → fixed answer)
        2. Build prompt → instruction header + labelled contexts + question
        3. Generate → bounded retry loop, temperature raised per attempt
        4. Validate → degenerate patterns + repetition check
        5. Exhausted → fixed apology, sources still attached
        6. Clean up → strip degenerate patterns from the accepted answer
        7. Return answer + one citation per retrieved chunk

Retry loop states
-----------------
``PENDING → GENERATED → VALIDATED``              (success)
``PENDING → GENERATED → PENDING``                (invalid, attempts left)
``PENDING → GENERATED → EXHAUSTED``              (invalid, no attempts left)

Usage:
    from docent.src.core.rag_engine import AnswerController
    controller = AnswerController(index)
    controller.initialize()
    response = controller.answer("Who painted Water Lilies?")
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from enum import Enum

from docent.config.prompt_templates import APOLOGY_ANSWER, CONTEXT_BLOCK_TEMPLATE, DIRECT_PROMPT_TEMPLATE, NO_CONTEXT_ANSWER, RAG_PROMPT_TEMPLATE
from docent.config.settings import MAX_ATTEMPTS_LIMIT, settings
from docent.src.core.models import RagResponse, RetrievedMatch, SourceCitation, validate_question
from docent.src.database.vector_store import VectorIndex
from docent.src.providers.generation import TextGenerator, to_generation_result
from docent.src.utils.logger import get_logger

logger = get_logger(__name__)

_TEMPERATURE_STEP = 0.1


# ══════════════════════════════════════════════════════════════════════
#  ANSWER VALIDATION
# ══════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DegeneratePattern:
    detect: re.Pattern[str]
    description: str
    strip: re.Pattern[str] | None = None

    def cleanup(self, text: str) -> str:
        return (self.strip or self.detect).sub("", text)


DEFAULT_PATTERNS: list[DegeneratePattern] = [
    DegeneratePattern(re.compile(r"^Sold:\s*$", re.MULTILINE), "lone 'Sold:' line"),
    DegeneratePattern(re.compile(r"^\d+\.\s*what kind of", re.IGNORECASE), "enumerated pseudo-question", re.compile(r"^\d+\.\s*what kind of.*$", re.IGNORECASE | re.MULTILINE)),
    DegeneratePattern(re.compile(r"^A:"), "bare 'A:' prefix", re.compile(r"^A:\s*", re.MULTILINE)),
]


class AnswerValidator:
    """
    Decides whether generated text is usable.

    Text is invalid when it is empty, matches any degenerate pattern, or
    is repetitive: more than 3 non-blank lines with fewer distinct lines
    than ``repetition_ratio`` × total.
    """

    __slots__ = ("patterns", "repetition_ratio")

    def __init__(self, patterns: list[DegeneratePattern] | None = None, repetition_ratio: float | None = None) -> None:
        self.patterns = list(DEFAULT_PATTERNS if patterns is None else patterns)
        self.repetition_ratio = settings.REPETITION_RATIO if repetition_ratio is None else repetition_ratio


    def problems(self, text: str) -> list[str]:
        """Descriptions of every rule *text* breaks (empty list = valid)."""
        if not text.strip():
            return ["empty answer"]
        found = [p.description for p in self.patterns if p.detect.search(text)]
        if self.is_repetitive(text):
            found.append("repetitive content")
        return found


    def is_valid(self, text: str) -> bool:
        return not self.problems(text)


    def is_repetitive(self, text: str) -> bool:
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        return len(lines) > 3 and len(set(lines)) < len(lines) * self.repetition_ratio


    def clean(self, text: str) -> str:
        for pattern in self.patterns:
            text = pattern.cleanup(text)
        return text.strip()


# ══════════════════════════════════════════════════════════════════════
#  RETRY LOOP STATE
# ══════════════════════════════════════════════════════════════════════


class AttemptState(str, Enum):
    PENDING = "pending"
    GENERATED = "generated"
    VALIDATED = "validated"
    EXHAUSTED = "exhausted"


@dataclass
class GenerationAttempt:
    attempt_number: int
    temperature: float
    raw_text: str = ""
    is_valid: bool = False


@dataclass
class GenerationOutcome:
    state: AttemptState
    attempts: list[GenerationAttempt]

    @property
    def text(self) -> str | None:
        if self.state is AttemptState.VALIDATED:
            return self.attempts[-1].raw_text
        return None


# ══════════════════════════════════════════════════════════════════════
#  ANSWER CONTROLLER
# ══════════════════════════════════════════════════════════════════════


class AnswerController:
    """
    Orchestrates retrieve → prompt → generate → validate → respond.

    Parameters
    ----------
    index
        An initialised (or to-be-initialised) ``VectorIndex``.
    generator
        Any ``TextGenerator``.  Built from ``settings`` at
        ``initialize()`` when omitted.
    validator
        Optional custom ``AnswerValidator``.
    """

    __slots__ = ("_index", "_generator", "_validator", "max_attempts", "base_temperature", "max_new_tokens", "top_p", "k", "use_rag")

    def __init__(self, index: VectorIndex, generator: TextGenerator | None = None, validator: AnswerValidator | None = None, *, max_attempts: int | None = None, base_temperature: float | None = None, max_new_tokens: int | None = None, top_p: float | None = None, k: int | None = None, use_rag: bool | None = None) -> None:
        self._index = index
        self._generator = generator
        self._validator = validator or AnswerValidator()
        self.max_attempts = settings.MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.base_temperature = settings.LLM_TEMPERATURE if base_temperature is None else base_temperature
        self.max_new_tokens = settings.MAX_NEW_TOKENS if max_new_tokens is None else max_new_tokens
        self.top_p = settings.TOP_P if top_p is None else top_p
        self.k = settings.SEARCH_RESULTS_LIMIT if k is None else k
        self.use_rag = settings.USE_RAG if use_rag is None else use_rag

        if not 1 <= self.max_attempts <= MAX_ATTEMPTS_LIMIT:
            raise ValueError(f"max_attempts must be in [1, {MAX_ATTEMPTS_LIMIT}], got {self.max_attempts}")
        if self.k < 1:
            raise ValueError(f"k must be ≥ 1, got {self.k}")
        if self.max_new_tokens < 1:
            raise ValueError(f"max_new_tokens must be ≥ 1, got {self.max_new_tokens}")

    @property
    def index(self) -> VectorIndex:
        return self._index

    # ── lifecycle ──────────────────────────────────────────────────────

    def initialize(self) -> None:
        """Open the index and build the generator.  Errors propagate."""
        self._index.initialize()
        if self._generator is None:
            from docent.src.providers.generation import build_generator

            self._generator = build_generator(settings)
        logger.info("AnswerController ready (max_attempts=%d, k=%d, use_rag=%s).", self.max_attempts, self.k, self.use_rag)


    def cleanup(self) -> None:
        """Close the index.  Never raises."""
        try:
            self._index.cleanup()
            logger.info("AnswerController cleanup completed.")
        except Exception:
            logger.exception("Error during AnswerController cleanup.")

    # ── public API ─────────────────────────────────────────────────────

    def answer(self, question: str) -> RagResponse:
        """
        Answer *question* from the indexed corpus.

        Raises
        ------
        ValueError
            If *question* is not a non-empty string.
        """
        if not validate_question(question):
            raise ValueError("Question must be a non-empty string.")

        t_start = time.perf_counter()

        if not self.use_rag:
            logger.info("[RAG] Retrieval disabled — answering without context.")
            outcome = self._generate(DIRECT_PROMPT_TEMPLATE.format(question=question.strip()))
            return RagResponse(answer=self._finalise(outcome), sources=[])

        matches = self._index.search(question, self.k)
        if not matches:
            logger.warning("[RAG] No relevant context found for the question.")
            return RagResponse(answer=NO_CONTEXT_ANSWER, sources=[])

        prompt = self.build_prompt(question, matches)
        logger.debug("[RAG] Prompt (%d chars): %s", len(prompt), prompt)

        outcome = self._generate(prompt)
        sources = [SourceCitation(content=m.chunk.content, source=m.source) for m in matches]
        answer = self._finalise(outcome)

        logger.info("[RAG] Answered in %.1fms (%s after %d attempt(s), %d source(s)).", (time.perf_counter() - t_start) * 1000, outcome.state.value, len(outcome.attempts), len(sources))
        return RagResponse(answer=answer, sources=sources)

    # ── prompt ─────────────────────────────────────────────────────────

    @staticmethod
    def build_prompt(question: str, matches: list[RetrievedMatch]) -> str:
        context = "\n\n".join(CONTEXT_BLOCK_TEMPLATE.format(source=m.source, content=m.chunk.content) for m in matches)
        return RAG_PROMPT_TEMPLATE.format(context=context, question=question.strip())

    # ── generation loop ────────────────────────────────────────────────

    def temperature_for(self, attempt_number: int) -> float:
        return round(self.base_temperature + _TEMPERATURE_STEP * (attempt_number - 1), 2)


    def _generate(self, prompt: str) -> GenerationOutcome:
        if self._generator is None:
            raise RuntimeError("Generator is not initialised. Call initialize() first.")

        attempts: list[GenerationAttempt] = []
        state = AttemptState.PENDING

        while state is AttemptState.PENDING:
            attempt = GenerationAttempt(attempt_number=len(attempts) + 1, temperature=self.temperature_for(len(attempts) + 1))
            attempts.append(attempt)

            try:
                raw = self._generator.generate(prompt, max_new_tokens=self.max_new_tokens, temperature=attempt.temperature, top_p=self.top_p, do_sample=True)
                attempt.raw_text = to_generation_result(raw).text
            except Exception:
                logger.exception("[RAG] Attempt %d: generation provider failed.", attempt.attempt_number)
            state = AttemptState.GENERATED

            problems = self._validator.problems(attempt.raw_text)
            attempt.is_valid = not problems

            if attempt.is_valid:
                state = AttemptState.VALIDATED
            elif attempt.attempt_number < self.max_attempts:
                logger.warning("[RAG] Attempt %d invalid (%s): %.100r", attempt.attempt_number, ", ".join(problems), attempt.raw_text)
                state = AttemptState.PENDING
            else:
                logger.warning("[RAG] Attempt %d invalid (%s); attempts exhausted.", attempt.attempt_number, ", ".join(problems))
                state = AttemptState.EXHAUSTED

        return GenerationOutcome(state=state, attempts=attempts)


    def _finalise(self, outcome: GenerationOutcome) -> str:
        if outcome.text is None:
            logger.error("[RAG] Failed to get a valid answer after %d attempt(s).", len(outcome.attempts))
            return APOLOGY_ANSWER
        cleaned = self._validator.clean(outcome.text)
        return cleaned or APOLOGY_ANSWER
