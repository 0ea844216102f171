from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Dict, List, Optional

from .chunker import DEFAULT_CHUNK_SIZE, chunk_text
from .embeddings import EmbeddingClient
from .models import Document, Fragment, new_id
from .persistence import SnapshotStore
from .store import VectorStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 6


class DocumentIndexer:
    """
    Chunk, embed and store one document at a time.

    Indexing is idempotent by document name. Segments are embedded in
    batches of `batch_size` concurrent calls; a segment whose embedding
    fails is dropped rather than failing the document.
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingClient,
        persistence: Optional[SnapshotStore] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.store = store
        self.embedder = embedder
        self.persistence = persistence
        self.chunk_size = chunk_size
        self.batch_size = batch_size
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    async def index(self, name: str, content: str) -> Optional[str]:
        """Index `content` under `name`. Returns the new document id, or None if `name` exists."""
        lock = self._locks.setdefault(name, asyncio.Lock())
        self._lock_users[name] = self._lock_users.get(name, 0) + 1
        try:
            async with lock:
                return await self._index_locked(name, content)
        finally:
            self._lock_users[name] -= 1
            if self._lock_users[name] == 0:
                del self._lock_users[name]
                del self._locks[name]

    async def _index_locked(self, name: str, content: str) -> Optional[str]:
        if self.store.find_document_by_name(name) is not None:
            logger.info("Document %s already indexed. Skipping.", name)
            return None

        doc_id = new_id()
        segments = chunk_text(content, self.chunk_size)

        fragments: List[Fragment] = []
        for start in range(0, len(segments), self.batch_size):
            batch = segments[start:start + self.batch_size]
            results = await asyncio.gather(
                *(self._embed_segment(name, doc_id, text) for text in batch)
            )
            fragments.extend(f for f in results if f is not None)

        fragments = self._check_dimension(name, fragments)
        document = Document(id=doc_id, name=name, chunk_count=len(fragments))
        self.store.append(document, fragments)
        self._persist()

        logger.info(
            "Indexed %s: %d/%d segments embedded.", name, len(fragments), len(segments)
        )
        return doc_id

    async def _embed_segment(self, name: str, doc_id: str, text: str) -> Optional[Fragment]:
        try:
            vector = await self.embedder.embed(text)
        except Exception as e:
            logger.warning("Chunk embedding failed for %s: %s", name, e)
            return None
        if not vector:
            logger.warning("Chunk embedding for %s returned no vector.", name)
            return None
        return Fragment(text=text, embedding=list(vector), source_name=name, document_id=doc_id)

    def _check_dimension(self, name: str, fragments: List[Fragment]) -> List[Fragment]:
        dim = self.store.dimension
        if dim is None and fragments:
            # One odd vector from the provider must not decide for the rest.
            dim = Counter(len(f.embedding) for f in fragments).most_common(1)[0][0]
        kept = [f for f in fragments if len(f.embedding) == dim]
        if len(kept) != len(fragments):
            logger.warning(
                "Dropped %d fragments of %s with dimension != %s.",
                len(fragments) - len(kept),
                name,
                dim,
            )
        return kept

    def remove(self, doc_id: str) -> None:
        """Remove a document and its fragments. Unknown ids are ignored."""
        doc = self.store.remove_document(doc_id)
        if doc is None:
            return
        self._persist()
        logger.info("Removed %s.", doc.name)

    def _persist(self) -> None:
        if self.persistence is not None:
            self.persistence.save(self.store.snapshot())


__all__ = ["DEFAULT_BATCH_SIZE", "DocumentIndexer"]
