"""Tests for DocumentIndexer: dedup, batching, failure handling."""
import asyncio

import pytest

from conftest import FailingEmbeddingClient, TrackingEmbeddingClient, unit
from local_rag_memory.embeddings import StaticEmbeddingClient
from local_rag_memory.indexer import DocumentIndexer
from local_rag_memory.persistence import SnapshotStore
from local_rag_memory.store import VectorStore

TWO_SENTENCES = "Alpha one is here. Alpha two is here."


def _many_sentences(n: int) -> str:
    return " ".join(f"Sentence number {i:02d}." for i in range(n))


@pytest.fixture
def store():
    return VectorStore()


class TestIndex:
    @pytest.mark.asyncio
    async def test_creates_document_and_fragments(self, store, tmp_path):
        embedder = StaticEmbeddingClient(default=unit(0.8))
        persistence = SnapshotStore(tmp_path)
        indexer = DocumentIndexer(store, embedder, persistence=persistence, chunk_size=20)

        doc_id = await indexer.index("A", TWO_SENTENCES)

        assert doc_id is not None
        doc = store.find_document(doc_id)
        assert doc.name == "A"
        assert doc.chunk_count == 2
        assert [f.text for f in store.fragments] == ["Alpha one is here.", "Alpha two is here."]
        assert all(f.source_name == "A" and f.document_id == doc_id for f in store.fragments)
        assert persistence.load().documents[0].id == doc_id

    @pytest.mark.asyncio
    async def test_duplicate_name_is_noop_without_embedding(self, store):
        embedder = StaticEmbeddingClient(default=unit(0.8))
        indexer = DocumentIndexer(store, embedder, chunk_size=20)

        first = await indexer.index("D", TWO_SENTENCES)
        calls_after_first = len(embedder.calls)
        fragments_after_first = [f.id for f in store.fragments]

        second = await indexer.index("D", "Completely different content.")

        assert first is not None
        assert second is None
        assert len(embedder.calls) == calls_after_first
        assert [d.name for d in store.documents] == ["D"]
        assert [f.id for f in store.fragments] == fragments_after_first

    @pytest.mark.asyncio
    async def test_concurrent_same_name_indexes_once(self, store):
        embedder = TrackingEmbeddingClient()
        indexer = DocumentIndexer(store, embedder, chunk_size=20)

        results = await asyncio.gather(
            indexer.index("D", TWO_SENTENCES),
            indexer.index("D", TWO_SENTENCES),
        )

        assert sum(r is not None for r in results) == 1
        assert len(store.documents) == 1
        assert len(store) == 2

    @pytest.mark.asyncio
    async def test_failed_segments_are_dropped(self, store):
        embedder = StaticEmbeddingClient(
            vectors={"Alpha one is here.": unit(0.9)},
            strict=True,
        )
        indexer = DocumentIndexer(store, embedder, chunk_size=20)

        doc_id = await indexer.index("A", TWO_SENTENCES)

        assert store.find_document(doc_id).chunk_count == 1
        assert [f.text for f in store.fragments] == ["Alpha one is here."]

    @pytest.mark.asyncio
    async def test_empty_vectors_are_dropped(self, store):
        embedder = StaticEmbeddingClient(default=[])
        indexer = DocumentIndexer(store, embedder, chunk_size=20)

        doc_id = await indexer.index("A", TWO_SENTENCES)

        assert store.find_document(doc_id).chunk_count == 0

    @pytest.mark.asyncio
    async def test_total_failure_yields_zero_fragments_not_error(self, store):
        embedder = FailingEmbeddingClient()
        indexer = DocumentIndexer(store, embedder, chunk_size=20)

        doc_id = await indexer.index("A", TWO_SENTENCES)

        assert doc_id is not None
        assert embedder.calls == 2
        assert store.find_document(doc_id).chunk_count == 0
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_mismatched_dimension_is_dropped(self, store):
        embedder = StaticEmbeddingClient(
            vectors={"Alpha one is here.": unit(0.9), "Alpha two is here.": [1.0, 0.0]},
        )
        indexer = DocumentIndexer(store, embedder, chunk_size=20)

        doc_id = await indexer.index("A", TWO_SENTENCES)

        assert store.find_document(doc_id).chunk_count == 1
        assert store.dimension == 4

    @pytest.mark.asyncio
    async def test_odd_first_vector_does_not_set_dimension(self, store):
        embedder = StaticEmbeddingClient(
            vectors={
                "Odd one.": [1.0, 0.0],
                "Good two.": unit(0.9),
                "Good three.": unit(0.8),
            },
        )
        indexer = DocumentIndexer(store, embedder, chunk_size=5)

        doc_id = await indexer.index("A", "Odd one. Good two. Good three.")

        assert store.dimension == 4
        assert store.find_document(doc_id).chunk_count == 2
        assert [f.text for f in store.fragments] == ["Good two.", "Good three."]

    @pytest.mark.asyncio
    async def test_name_locks_are_released(self, store):
        indexer = DocumentIndexer(store, TrackingEmbeddingClient(), chunk_size=20)

        await asyncio.gather(
            indexer.index("D", TWO_SENTENCES),
            indexer.index("D", TWO_SENTENCES),
            indexer.index("E", TWO_SENTENCES),
        )
        await indexer.index("D", TWO_SENTENCES)

        assert indexer._locks == {}
        assert indexer._lock_users == {}


class TestBatching:
    @pytest.mark.asyncio
    async def test_concurrency_bounded_by_batch_size(self, store):
        embedder = TrackingEmbeddingClient()
        indexer = DocumentIndexer(store, embedder, chunk_size=10, batch_size=6)

        doc_id = await indexer.index("many", _many_sentences(14))

        assert store.find_document(doc_id).chunk_count == 14
        assert embedder.max_in_flight == 6

    @pytest.mark.asyncio
    async def test_batch_settles_before_next_starts(self, store):
        embedder = TrackingEmbeddingClient()
        indexer = DocumentIndexer(store, embedder, chunk_size=10, batch_size=6)

        await indexer.index("many", _many_sentences(14))

        kinds = [kind for kind, _ in embedder.events]
        # batches of 6, 6, 2: all starts of a batch, then all its ends
        assert kinds == ["start"] * 6 + ["end"] * 6 + ["start"] * 6 + ["end"] * 6 + ["start"] * 2 + ["end"] * 2

    @pytest.mark.asyncio
    async def test_fragment_order_follows_segments(self, store):
        embedder = TrackingEmbeddingClient()
        indexer = DocumentIndexer(store, embedder, chunk_size=10, batch_size=4)

        await indexer.index("many", _many_sentences(9))

        assert [f.text for f in store.fragments] == [f"Sentence number {i:02d}." for i in range(9)]

    def test_batch_size_must_be_positive(self, store):
        with pytest.raises(ValueError):
            DocumentIndexer(store, StaticEmbeddingClient(), batch_size=0)


class TestRemove:
    @pytest.mark.asyncio
    async def test_remove_persists(self, store, tmp_path):
        persistence = SnapshotStore(tmp_path)
        indexer = DocumentIndexer(store, StaticEmbeddingClient(default=unit(0.8)), persistence=persistence, chunk_size=20)
        keep = await indexer.index("keep", "Keep this one.")
        drop = await indexer.index("drop", TWO_SENTENCES)

        indexer.remove(drop)

        assert [d.id for d in store.documents] == [keep]
        assert [f.source_name for f in store.fragments] == ["keep"]
        assert [d.id for d in persistence.load().documents] == [keep]

    def test_remove_unknown_id_is_noop(self, store, tmp_path):
        persistence = SnapshotStore(tmp_path)
        indexer = DocumentIndexer(store, StaticEmbeddingClient(), persistence=persistence)
        indexer.remove("missing")
        assert not persistence.path.exists()
