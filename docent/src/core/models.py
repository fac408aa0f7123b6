"""
Docent - Domain Models
=======================
Pydantic models shared by ingestion, retrieval and answering.

``Chunk``
    Unit of embedding and retrieval.  ``vector`` stays empty until the
    ``VectorIndex`` embeds it.
``RetrievedMatch``
    Per-query pairing of a chunk with its vector distance and lexical
    score.  Never persisted.
``RagResponse``
    The outward answer shape: text plus one citation per retrieved chunk.
"""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

# Fixed namespace so regenerated ids are stable across runs.
_CHUNK_NAMESPACE = uuid.UUID("6f1d2c3e-8a47-4b0e-9d55-3c2a7e9b1f04")


class ChunkMetadata(BaseModel):
    source: str
    chunk_index: int = Field(ge=0)


class Chunk(BaseModel):
    id: str
    content: str
    vector: list[float] = Field(default_factory=list)
    metadata: ChunkMetadata

    @classmethod
    def create(cls, content: str, source: str, chunk_index: int) -> "Chunk":
        """Build an un-embedded chunk whose id is derived from its position and text."""
        chunk_id = uuid.uuid5(_CHUNK_NAMESPACE, f"{source}\x00{chunk_index}\x00{content}")
        return cls(id=str(chunk_id), content=content, metadata=ChunkMetadata(source=source, chunk_index=chunk_index))

    @property
    def is_embedded(self) -> bool:
        return bool(self.vector)


class RetrievedMatch(BaseModel):
    chunk: Chunk
    vector_distance: float
    lexical_score: int = 0

    @property
    def source(self) -> str:
        return self.chunk.metadata.source


class SourceCitation(BaseModel):
    content: str
    source: str


class RagResponse(BaseModel):
    answer: str
    sources: list[SourceCitation] = Field(default_factory=list)


class QuestionRequest(BaseModel):
    question: str | None = None


def validate_question(question: object) -> bool:
    """A question is valid when it is a string with visible characters."""
    return isinstance(question, str) and bool(question.strip())
