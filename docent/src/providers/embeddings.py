"""
Docent - Embedding Providers
=============================
Builds the embedding model behind ``VectorIndex``.  Every provider
exposes the LangChain ``Embeddings`` surface (``embed_documents`` /
``embed_query``).

``huggingface`` (default)
    ``sentence-transformers`` model (``all-MiniLM-L6-v2``, 384-dim),
    mean pooled and L2-normalised.
``google``
    ``GoogleGenerativeAIEmbeddings`` from ``langchain-google-genai``.

Any failure while building the model propagates: an index without an
embedder cannot serve, so this is a fatal startup condition.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from docent.src.utils.logger import get_logger

if TYPE_CHECKING:
    from docent.config.settings import Settings

logger = get_logger(__name__)


class SentenceTransformerEmbedder:
    """LangChain-shaped adapter over a ``SentenceTransformer`` model."""

    __slots__ = ("_model", "model_name")

    def __init__(self, model_name: str, device: str = "cpu") -> None:
        from sentence_transformers import SentenceTransformer

        self.model_name = model_name
        self._model = SentenceTransformer(model_name, device=device)


    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        vectors = self._model.encode(texts, normalize_embeddings=True, convert_to_numpy=True, show_progress_bar=False)
        return [v.tolist() for v in vectors]


    def embed_query(self, text: str) -> list[float]:
        return self.embed_documents([text])[0]


    def __repr__(self) -> str:
        return f"SentenceTransformerEmbedder(model='{self.model_name}')"


def build_embedder(config: "Settings") -> object:
    """Instantiate the configured embedding model."""
    logger.info("Initialising embedding model: %s (%s)", config.EMBEDDING_MODEL, config.EMBEDDING_PROVIDER)

    if config.EMBEDDING_PROVIDER == "google":
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        return GoogleGenerativeAIEmbeddings(model=config.EMBEDDING_MODEL, google_api_key=config.require_google_key())

    return SentenceTransformerEmbedder(config.EMBEDDING_MODEL)
