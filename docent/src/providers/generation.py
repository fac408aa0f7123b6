"""
Docent - Generation Providers
==============================
Text-generation backends and the normalisation of their output.

Providers return raw results in whatever shape the backend produces:
the ``transformers`` pipeline yields ``[{"generated_text": ...}, ...]``,
LangChain chat models yield one ``AIMessage``.  ``to_generation_result``
turns those into a ``GenerationResult`` (``SingleGeneration`` or
``BatchGeneration``) and ``GenerationResult.text`` gives the one
canonical string the validity checks run on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from docent.src.utils.logger import get_logger

if TYPE_CHECKING:
    from docent.config.settings import Settings

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  RESULT SHAPES
# ══════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class SingleGeneration:
    value: str

    @property
    def text(self) -> str:
        return self.value.strip()


@dataclass(frozen=True)
class BatchGeneration:
    values: tuple[str, ...]

    @property
    def text(self) -> str:
        """First non-blank candidate; the pipeline returns one per sequence."""
        for value in self.values:
            if value.strip():
                return value.strip()
        return ""


GenerationResult = SingleGeneration | BatchGeneration


def _extract(item: object) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        value = item.get("generated_text") or item.get("text") or ""
        return value if isinstance(value, str) else ""
    content = getattr(item, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        # Multimodal chat content: keep the text parts.
        return "".join(part.get("text", "") if isinstance(part, dict) else str(part) for part in content)
    return ""


def to_generation_result(raw: object) -> GenerationResult:
    """Normalise any provider response into a ``GenerationResult``."""
    if isinstance(raw, (SingleGeneration, BatchGeneration)):
        return raw
    if isinstance(raw, (list, tuple)):
        return BatchGeneration(tuple(_extract(item) for item in raw))
    return SingleGeneration(_extract(raw))


# ══════════════════════════════════════════════════════════════════════
#  PROVIDER PROTOCOL
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class TextGenerator(Protocol):
    """Anything that turns a prompt into generated text."""

    def generate(self, prompt: str, *, max_new_tokens: int, temperature: float, top_p: float, do_sample: bool = True) -> object: ...


class HuggingFaceGenerator:
    """``transformers`` text-generation pipeline (array-of-result shape)."""

    __slots__ = ("_pipeline", "model_name")

    def __init__(self, model_name: str) -> None:
        from transformers import pipeline

        self.model_name = model_name
        self._pipeline = pipeline("text-generation", model=model_name)


    def generate(self, prompt: str, *, max_new_tokens: int, temperature: float, top_p: float, do_sample: bool = True) -> object:
        return self._pipeline(prompt, max_new_tokens=max_new_tokens, temperature=temperature, top_p=top_p, do_sample=do_sample, return_full_text=False)


class GeminiGenerator:
    """Gemini chat model via LangChain (single-object shape)."""

    __slots__ = ("_api_key", "model_name", "_llms")

    def __init__(self, model_name: str, api_key: str) -> None:
        self.model_name = model_name
        self._api_key = api_key
        self._llms: dict[tuple[float, int, float], object] = {}


    def _llm_for(self, temperature: float, max_new_tokens: int, top_p: float) -> object:
        key = (round(temperature, 2), max_new_tokens, top_p)
        if key not in self._llms:
            from langchain_google_genai import ChatGoogleGenerativeAI

            self._llms[key] = ChatGoogleGenerativeAI(model=self.model_name, temperature=temperature, max_output_tokens=max_new_tokens, top_p=top_p, google_api_key=self._api_key)
        return self._llms[key]


    def generate(self, prompt: str, *, max_new_tokens: int, temperature: float, top_p: float, do_sample: bool = True) -> object:
        from langchain_core.messages import HumanMessage

        llm = self._llm_for(temperature if do_sample else 0.0, max_new_tokens, top_p)
        return llm.invoke([HumanMessage(content=prompt)])  # type: ignore[attr-defined]


def build_generator(config: "Settings") -> TextGenerator:
    """Instantiate the configured text-generation backend."""
    logger.info("Initialising generation model: %s (%s)", config.LLM_MODEL, config.LLM_PROVIDER)

    if config.LLM_PROVIDER == "google":
        return GeminiGenerator(config.LLM_MODEL, config.require_google_key())
    return HuggingFaceGenerator(config.LLM_MODEL)
