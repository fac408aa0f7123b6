"""
Docent - Centralized Configuration
===================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Providers
---------
Both the embedding and the generation provider default to local
Hugging Face models (``huggingface``).  Selecting ``google`` for either
one switches to Gemini through ``langchain-google-genai`` and makes
``GOOGLE_API_KEY`` mandatory.  The key is checked when the provider is
built, which happens during startup, so a missing key fails before any
document is touched.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr``.  The raw value is never
  exposed in repr, logs, or tracebacks.

Paths
-----
All filesystem paths are ``Path.resolve()``-d at class level so they
work identically on Windows, WSL, and Linux.

Retrieval heuristics
--------------------
The lexical boost weights and the repetition threshold are heuristics
without a derivation behind them.  They are exposed here so they can be
tuned per corpus without touching the ranking code.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Hard ceiling of the generation retry loop.
MAX_ATTEMPTS_LIMIT = 3


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``) and
    has a usable default, so the service starts on a fresh checkout.

    Attributes
    ----------
    ENV : Literal["dev", "prod"]
        Environment mode controlling logging verbosity.
    LOG_LEVEL : str | None
        Explicit log level; overrides the ``ENV`` default when set.
    DOCUMENT_PATH : Path
        Root of the structured-document tree to index.
    LANCEDB_PATH : Path
        On-disk LanceDB directory.
    LANCEDB_TABLE_NAME : str
        Table name inside the LanceDB database.
    EMBEDDING_PROVIDER / LLM_PROVIDER : Literal["huggingface", "google"]
        Backend for the embedding / text-generation models.
    EMBEDDING_DIM : int
        Fixed vector dimension of the index (384 for MiniLM).
    CHUNK_SIZE / CHUNK_OVERLAP : int
        Character bounds handed to the text splitter.
    SEARCH_RESULTS_LIMIT : int
        ``k`` used by the answer pipeline.
    MAX_ATTEMPTS : int
        Upper bound of the generation retry loop, at most
        ``MAX_ATTEMPTS_LIMIT`` (3).
    LLM_TEMPERATURE : float
        Temperature of the first attempt; each retry adds 0.1.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    DOCUMENT_PATH: Path = BASE_DIR / "data" / "documents"
    LANCEDB_PATH: Path = BASE_DIR / "data" / "lancedb"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] | None = None

    # ── API Keys (only needed for the google providers) ────────────────
    GOOGLE_API_KEY: SecretStr | None = None

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_PROVIDER: Literal["huggingface", "google"] = "huggingface"
    EMBEDDING_MODEL: str = "sentence-transformers/all-MiniLM-L6-v2"
    EMBEDDING_DIM: int = 384
    LLM_PROVIDER: Literal["huggingface", "google"] = "huggingface"
    LLM_MODEL: str = "distilgpt2"

    # ── Ingestion Parameters ───────────────────────────────────────────
    CHUNK_SIZE: int = 750
    CHUNK_OVERLAP: int = 75

    # ── LanceDB ────────────────────────────────────────────────────────
    LANCEDB_TABLE_NAME: str = "documents"

    # ── Retrieval ──────────────────────────────────────────────────────
    SEARCH_RESULTS_LIMIT: int = 3
    EXACT_FIELD_BOOST: int = 10
    SUBSTRING_BOOST: int = 5
    TOKEN_BOOST: int = 1
    MIN_TOKEN_LENGTH: int = 3
    MAX_CHUNKS_PER_SOURCE: int = 1

    # ── Generation ─────────────────────────────────────────────────────
    USE_RAG: bool = True
    MAX_ATTEMPTS: int = 3
    LLM_TEMPERATURE: float = 0.5
    MAX_NEW_TOKENS: int = 300
    TOP_P: float = 0.9
    REPETITION_RATIO: float = 0.5

    # ── HTTP ───────────────────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    INDEX_ON_STARTUP: bool = True

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("CHUNK_SIZE")
    @classmethod
    def _chunk_size_positive(cls, v: int) -> int:
        if v < 50:
            raise ValueError(f"CHUNK_SIZE must be ≥ 50, got {v}")
        return v


    @field_validator("MAX_ATTEMPTS")
    @classmethod
    def _attempts_in_range(cls, v: int) -> int:
        if not 1 <= v <= MAX_ATTEMPTS_LIMIT:
            raise ValueError(f"MAX_ATTEMPTS must be in [1, {MAX_ATTEMPTS_LIMIT}], got {v}")
        return v


    @field_validator("SEARCH_RESULTS_LIMIT", "MAX_CHUNKS_PER_SOURCE", "EMBEDDING_DIM")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be ≥ 1, got {v}")
        return v


    @field_validator("REPETITION_RATIO")
    @classmethod
    def _ratio_range(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError(f"REPETITION_RATIO must be in (0, 1], got {v}")
        return v


    @model_validator(mode="after")
    def _overlap_below_size(self) -> "Settings":
        if not 0 <= self.CHUNK_OVERLAP < self.CHUNK_SIZE:
            raise ValueError(f"CHUNK_OVERLAP must be in [0, CHUNK_SIZE), got {self.CHUNK_OVERLAP}")
        return self


    def require_google_key(self) -> str:
        """Return the raw Gemini key or fail loudly when it is missing."""
        if self.GOOGLE_API_KEY is None:
            raise ValueError("GOOGLE_API_KEY is required when a provider is set to 'google'.")
        return self.GOOGLE_API_KEY.get_secret_value()

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Module-level Instance ──────────────────────────────────────────────
# Import this throughout the project:
#     from docent.config.settings import settings
settings = Settings()
