"""
Test suite for VectorIndex against a real on-disk LanceDB table.

System role: Verification of table bootstrap, idempotent indexing and
fail-soft hybrid search
"""

from unittest.mock import MagicMock

import pyarrow as pa
import pytest

from conftest import TEST_DIM, FakeEmbedder
from docent.src.core.reranker import HybridReranker
from docent.src.database.vector_store import PLACEHOLDER_ID, EmbedderInitError, VectorIndex, build_schema


def _placeholder_row() -> dict:
    return {"id": PLACEHOLDER_ID, "vector": [0.0] * TEST_DIM, "content": "", "source": "", "chunk_index": 0}


class TestLifecycle:
    """Connection, bootstrap and cleanup."""

    def test_new_table_is_empty_after_bootstrap(self, vector_index: VectorIndex) -> None:
        assert vector_index.count() == 0
        assert vector_index.table.count_rows(f"id = '{PLACEHOLDER_ID}'") == 0

    def test_table_uses_fixed_dimension_schema(self, vector_index: VectorIndex) -> None:
        assert vector_index.table.schema.field("vector").type == pa.list_(pa.float32(), TEST_DIM)
        assert build_schema(TEST_DIM).names == ["id", "vector", "content", "source", "chunk_index"]

    def test_reopening_removes_leftover_placeholder(self, vector_index: VectorIndex, fake_embedder, db_path) -> None:
        vector_index.table.add([_placeholder_row()])
        assert vector_index.count() == 1

        reopened = VectorIndex(embedder=fake_embedder, db_path=db_path, table_name="test_documents", dim=TEST_DIM)
        reopened.initialize()

        assert reopened.count() == 0
        reopened.cleanup()

    def test_existing_rows_survive_reopening(self, vector_index: VectorIndex, fake_embedder, db_path, make_chunk) -> None:
        vector_index.index([make_chunk("title: Water Lilies")])

        reopened = VectorIndex(embedder=fake_embedder, db_path=db_path, table_name="test_documents", dim=TEST_DIM)
        reopened.initialize()

        assert reopened.count() == 1
        reopened.cleanup()

    def test_non_embedder_fails_initialisation(self, db_path) -> None:
        index = VectorIndex(embedder=object(), db_path=db_path, table_name="test_documents", dim=TEST_DIM)

        with pytest.raises(EmbedderInitError):
            index.initialize()

    def test_cleanup_closes_handles_once(self, vector_index: VectorIndex) -> None:
        table, db = MagicMock(), MagicMock()
        vector_index.table, vector_index.db = table, db

        vector_index.cleanup()
        vector_index.cleanup()

        table.close.assert_called_once()
        db.close.assert_called_once()
        assert vector_index.table is None and vector_index.db is None

    def test_close_failure_is_logged_not_raised(self, vector_index: VectorIndex) -> None:
        table = MagicMock()
        table.close.side_effect = RuntimeError("already closed")
        vector_index.table = table

        vector_index.cleanup()

        assert vector_index.table is None

    def test_cleanup_is_idempotent(self, vector_index: VectorIndex) -> None:
        vector_index.cleanup()
        vector_index.cleanup()

        assert vector_index.table is None
        assert vector_index.db is None
        assert vector_index.count() == 0

    def test_drop_then_initialize_starts_fresh(self, vector_index: VectorIndex, make_chunk) -> None:
        vector_index.index([make_chunk("title: Haystacks")])

        vector_index.drop()
        vector_index.initialize()

        assert vector_index.count() == 0


class TestIndexing:
    """Embedding and idempotent insertion."""

    def test_indexing_same_chunk_twice_stores_one_row(self, vector_index: VectorIndex, make_chunk) -> None:
        chunk = make_chunk("title: Water Lilies artist: Claude Monet", chunk_id="x")

        vector_index.index([chunk])
        vector_index.index([chunk])

        assert vector_index.count() == 1
        assert vector_index.table.count_rows("id = 'x'") == 1

    def test_returned_chunks_carry_vectors(self, vector_index: VectorIndex, make_chunk) -> None:
        chunk = make_chunk("title: Water Lilies")

        embedded = vector_index.index([chunk])

        assert len(embedded) == 1
        assert embedded[0].id == chunk.id
        assert len(embedded[0].vector) == TEST_DIM
        assert not chunk.is_embedded

    def test_empty_vector_is_skipped(self, db_path, make_chunk) -> None:
        embedder = FakeEmbedder(overrides={"nothing to embed": []})
        index = VectorIndex(embedder=embedder, db_path=db_path, table_name="test_documents", dim=TEST_DIM)
        index.initialize()

        embedded = index.index([make_chunk("nothing to embed"), make_chunk("title: Haystacks")])

        assert [c.content for c in embedded] == ["title: Haystacks"]
        assert index.count() == 1
        index.cleanup()

    def test_wrong_dimension_is_skipped(self, db_path, make_chunk) -> None:
        embedder = FakeEmbedder(overrides={"short vector": [1.0, 2.0]})
        index = VectorIndex(embedder=embedder, db_path=db_path, table_name="test_documents", dim=TEST_DIM)
        index.initialize()

        embedded = index.index([make_chunk("short vector")])

        assert embedded == []
        assert index.count() == 0
        index.cleanup()

    def test_failed_batch_falls_back_to_single_chunks(self, db_path, make_chunk) -> None:
        class SingleOnlyEmbedder(FakeEmbedder):
            def embed_documents(self, texts):
                if len(texts) > 1:
                    raise RuntimeError("batch too large")
                if texts == ["poison"]:
                    raise RuntimeError("cannot embed")
                return super().embed_documents(texts)

        index = VectorIndex(embedder=SingleOnlyEmbedder(), db_path=db_path, table_name="test_documents", dim=TEST_DIM)
        index.initialize()

        embedded = index.index([make_chunk("title: Haystacks"), make_chunk("poison"), make_chunk("title: Water Lilies")])

        assert [c.content for c in embedded] == ["title: Haystacks", "title: Water Lilies"]
        assert index.count() == 2
        index.cleanup()


class TestSearch:
    """Vector retrieval with lexical re-ranking."""

    def test_field_match_ranks_above_closer_prose(self, db_path, make_chunk) -> None:
        field_text = "title: Haystacks artist: Monet year: 1890"
        prose_text = "Monet often painted outdoors near his garden."
        embedder = FakeEmbedder(overrides={field_text: [0.0, 1.0, 0.0, 0.0], prose_text: [1.0, 0.0, 0.0, 0.0], "artist: Monet": [1.0, 0.0, 0.0, 0.0]})
        index = VectorIndex(embedder=embedder, db_path=db_path, table_name="test_documents", dim=TEST_DIM, reranker=HybridReranker(max_per_source=1))
        index.initialize()
        index.index([make_chunk(field_text, source="haystacks.json"), make_chunk(prose_text, source="essay.json")])

        matches = index.search("artist: Monet", k=3)

        assert [m.source for m in matches] == ["haystacks.json", "essay.json"]
        assert matches[0].vector_distance > matches[1].vector_distance
        index.cleanup()

    def test_one_result_per_source(self, vector_index: VectorIndex, make_chunk) -> None:
        vector_index.index([
            make_chunk("Monet water lilies", source="monet.json", chunk_index=0),
            make_chunk("Monet garden", source="monet.json", chunk_index=1),
            make_chunk("Monet haystacks", source="haystacks.json"),
        ])

        matches = vector_index.search("Monet", k=3)

        sources = [m.source for m in matches]
        assert len(sources) == len(set(sources))

    def test_results_are_ordered_by_score_then_distance(self, vector_index: VectorIndex, make_chunk) -> None:
        vector_index.index([make_chunk(f"Monet painting number {i}", source=f"{i}.json") for i in range(5)])

        matches = vector_index.search("Monet painting", k=5)

        keys = [(-m.lexical_score, m.vector_distance) for m in matches]
        assert keys == sorted(keys)

    def test_blank_query_returns_nothing(self, vector_index: VectorIndex) -> None:
        assert vector_index.search("   ") == []

    def test_embedding_failure_returns_empty(self, vector_index: VectorIndex, fake_embedder, make_chunk) -> None:
        vector_index.index([make_chunk("title: Water Lilies")])
        fake_embedder.embed_query = MagicMock(side_effect=RuntimeError("provider down"))

        assert vector_index.search("Water Lilies") == []

    def test_search_before_initialise_returns_empty(self, fake_embedder, db_path) -> None:
        index = VectorIndex(embedder=fake_embedder, db_path=db_path, table_name="test_documents", dim=TEST_DIM)

        assert index.search("Water Lilies") == []

    def test_zero_k_returns_nothing(self, vector_index: VectorIndex, make_chunk) -> None:
        vector_index.index([make_chunk("title: Water Lilies")])

        assert vector_index.search("Water Lilies", k=0) == []
