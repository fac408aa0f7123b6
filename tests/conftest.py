"""
Shared test fixtures for the Docent test suite.

Provides: deterministic fake embedder, scripted fake generator, in-memory
fake index, and a real LanceDB-backed VectorIndex in a temp directory.
Dependencies: pytest, lancedb
"""

import hashlib
import json
from pathlib import Path

import pytest

from docent.src.core.models import Chunk, ChunkMetadata, RetrievedMatch
from docent.src.core.reranker import HybridReranker
from docent.src.database.vector_store import VectorIndex

TEST_DIM = 4


class FakeEmbedder:
    """Deterministic embedder: explicit overrides first, hash-derived vectors otherwise."""

    def __init__(self, overrides=None, dim=TEST_DIM):
        self.overrides = dict(overrides or {})
        self.dim = dim
        self.document_calls = []

    def _vector(self, text):
        if text in self.overrides:
            return list(self.overrides[text])
        digest = hashlib.md5(text.encode("utf-8")).digest()
        return [b / 255.0 for b in digest[: self.dim]]

    def embed_documents(self, texts):
        self.document_calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed_query(self, text):
        return self._vector(text)


class FakeGenerator:
    """Returns scripted responses in order; the last one repeats."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def generate(self, prompt, *, max_new_tokens, temperature, top_p, do_sample=True):
        self.calls.append({"prompt": prompt, "temperature": temperature, "max_new_tokens": max_new_tokens, "top_p": top_p})
        response = self.responses[min(len(self.calls), len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response


class FakeIndex:
    """Stands in for VectorIndex in controller and API tests."""

    def __init__(self, matches=None, error=None):
        self.matches = list(matches or [])
        self.error = error
        self.queries = []
        self.initialized = False
        self.closed = False

    def initialize(self):
        self.initialized = True

    def cleanup(self):
        self.closed = True

    def search(self, query, k=None):
        self.queries.append((query, k))
        if self.error is not None:
            raise self.error
        return list(self.matches)

    def count(self):
        return len(self.matches)


def build_chunk(content, source="a.json", chunk_index=0, chunk_id=None):
    if chunk_id is None:
        return Chunk.create(content=content, source=source, chunk_index=chunk_index)
    return Chunk(id=chunk_id, content=content, metadata=ChunkMetadata(source=source, chunk_index=chunk_index))


def build_match(content, source="a.json", distance=0.5, chunk_index=0):
    return RetrievedMatch(chunk=build_chunk(content, source, chunk_index), vector_distance=distance)


@pytest.fixture
def make_chunk():
    return build_chunk


@pytest.fixture
def make_match():
    return build_match


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def fake_generator_factory():
    return FakeGenerator


@pytest.fixture
def fake_index_factory():
    return FakeIndex


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "lancedb")


@pytest.fixture
def vector_index(fake_embedder, db_path):
    """Initialised VectorIndex over a fresh LanceDB directory; closed on teardown."""
    index = VectorIndex(embedder=fake_embedder, db_path=db_path, table_name="test_documents", dim=TEST_DIM, reranker=HybridReranker(max_per_source=1))
    index.initialize()
    yield index
    index.cleanup()


@pytest.fixture
def write_json(tmp_path: Path):
    """Write a JSON document (or raw text) under ``tmp_path / 'docs'``."""
    root = tmp_path / "docs"
    root.mkdir(exist_ok=True)

    def _write(relative, payload):
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(payload if isinstance(payload, str) else json.dumps(payload), encoding="utf-8")
        return target

    _write.root = root
    return _write
