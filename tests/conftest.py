"""Shared pytest fixtures for local_rag_memory tests."""
from __future__ import annotations

import asyncio
from typing import List, Optional

import pytest

from local_rag_memory.embeddings import EmbeddingClient, StaticEmbeddingClient
from local_rag_memory.index import KnowledgeBase
from local_rag_memory.models import Fragment
from local_rag_memory.persistence import SnapshotStore

DIM = 4


def unit(first: float) -> List[float]:
    """Unit vector whose dot product with QUERY_VECTOR is exactly `first`."""
    rest = (1.0 - first * first) ** 0.5
    return [first, rest, 0.0, 0.0]


QUERY_VECTOR = [1.0, 0.0, 0.0, 0.0]


def make_fragment(text: str, first: float, source: str = "doc") -> Fragment:
    return Fragment(text=text, embedding=unit(first), source_name=source)


# -- Embedding clients --

class FailingEmbeddingClient(EmbeddingClient):
    """Raises on every call, like an unreachable provider."""

    def __init__(self):
        self.calls = 0

    async def embed(self, text: str) -> Optional[List[float]]:
        self.calls += 1
        raise ConnectionError("provider unreachable")


class TrackingEmbeddingClient(EmbeddingClient):
    """Returns a fixed vector after yielding to the loop; records concurrency."""

    def __init__(self, vector: Optional[List[float]] = None):
        self.vector = vector or unit(0.9)
        self.in_flight = 0
        self.max_in_flight = 0
        self.events: List[tuple] = []

    async def embed(self, text: str) -> Optional[List[float]]:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.events.append(("start", text))
        await asyncio.sleep(0.001)
        self.events.append(("end", text))
        self.in_flight -= 1
        return list(self.vector)


# -- Fixtures --

@pytest.fixture
def static_embedder():
    return StaticEmbeddingClient(vectors={"query": QUERY_VECTOR})


@pytest.fixture
def snapshot_store(tmp_path):
    return SnapshotStore(tmp_path / "index")


@pytest.fixture
def make_kb(snapshot_store):
    """Build a KnowledgeBase on the shared snapshot slot with small chunks."""

    def _make(embedder: EmbeddingClient, **kwargs) -> KnowledgeBase:
        kwargs.setdefault("chunk_size", 20)
        return KnowledgeBase(embedder, persistence=snapshot_store, **kwargs)

    return _make
