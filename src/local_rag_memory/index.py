from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from .bootstrap import ensure_system_knowledge, load_system_knowledge
from .chunker import DEFAULT_CHUNK_SIZE
from .config import AppConfig, load_config
from .embeddings import EmbeddingClient, build_embedding_client
from .indexer import DEFAULT_BATCH_SIZE, DocumentIndexer
from .models import Document, Fragment, RetrievalResult
from .persistence import SnapshotStore
from .retrieval import DEFAULT_SIMILARITY_THRESHOLD, DEFAULT_TOP_K, RetrievalEngine
from .store import VectorStore

logger = logging.getLogger(__name__)


class KnowledgeBase:
    """
    The retrieval engine and everything it owns.

    Construction hydrates the store from the snapshot slot (if any).
    Call `init()` once before first use to make sure the system knowledge
    document is indexed.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        persistence: Optional[SnapshotStore] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        batch_size: int = DEFAULT_BATCH_SIZE,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        system_knowledge: Optional[str] = None,
    ) -> None:
        self.persistence = persistence
        snapshot = persistence.load() if persistence is not None else None
        self.store = VectorStore(snapshot)
        self.indexer = DocumentIndexer(
            self.store,
            embedder,
            persistence=persistence,
            chunk_size=chunk_size,
            batch_size=batch_size,
        )
        self.retriever = RetrievalEngine(self.store, embedder, threshold=threshold)
        self.system_knowledge = system_knowledge

    @classmethod
    def from_config(
        cls, cfg: AppConfig, embedder: Optional[EmbeddingClient] = None
    ) -> "KnowledgeBase":
        if embedder is None:
            embedder = build_embedding_client(cfg)
        persistence = SnapshotStore(
            cfg.index_dir_resolved,
            key=cfg.snapshot_key,
            max_chars=cfg.max_snapshot_chars,
        )
        return cls(
            embedder,
            persistence=persistence,
            chunk_size=cfg.chunk_size,
            batch_size=cfg.embed_batch_size,
            threshold=cfg.similarity_threshold,
            system_knowledge=load_system_knowledge(cfg),
        )

    async def init(self) -> None:
        if self.system_knowledge is None:
            self.store.initialized = True
            return
        await ensure_system_knowledge(self, self.system_knowledge)

    async def index_document(self, name: str, content: str) -> Optional[str]:
        return await self.indexer.index(name, content)

    def remove_document(self, doc_id: str) -> None:
        self.indexer.remove(doc_id)

    async def retrieve(self, query: str, top_k: int = DEFAULT_TOP_K) -> RetrievalResult:
        return await self.retriever.retrieve(query, top_k)

    async def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> List[Fragment]:
        return await self.retriever.search(query, top_k)

    def list_documents(self) -> List[Document]:
        return self.store.documents

    def clear(self) -> None:
        """Empty the index, delete the snapshot and reset initialization."""
        self.store.clear()
        if self.persistence is not None:
            self.persistence.delete()
        logger.info("Index cleared.")


def load_index(cfg: AppConfig | None = None, embedder: Optional[EmbeddingClient] = None) -> KnowledgeBase:
    if cfg is None:
        cfg = load_config()
    return KnowledgeBase.from_config(cfg, embedder=embedder)


def build_index(cfg: AppConfig | None = None) -> KnowledgeBase:
    """Index every supported file under `cfg.data_dir` and return the knowledge base."""
    from .ingest import ingest_directory

    if cfg is None:
        cfg = load_config()

    kb = load_index(cfg)

    async def _run() -> None:
        await kb.init()
        await ingest_directory(kb, cfg.data_dir_resolved)

    asyncio.run(_run())
    return kb


def search(
    query: str,
    cfg: AppConfig | None = None,
    top_k: int | None = None,
) -> RetrievalResult:
    if cfg is None:
        cfg = load_config()
    if top_k is None:
        top_k = cfg.top_k

    kb = load_index(cfg)

    async def _run() -> RetrievalResult:
        await kb.init()
        return await kb.retrieve(query, top_k)

    return asyncio.run(_run())


__all__ = ["KnowledgeBase", "build_index", "load_index", "search"]
