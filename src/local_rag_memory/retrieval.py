from __future__ import annotations

import logging
from typing import List

import numpy as np

from .embeddings import EmbeddingClient
from .models import Fragment, RetrievalResult, ScoredFragment
from .store import VectorStore

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
DEFAULT_SIMILARITY_THRESHOLD = 0.45


class RetrievalEngine:
    """
    Rank stored fragments against a query.

    Retrieval fails open: an empty index or a failed query embedding gives an
    empty result, never an exception.
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingClient,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.threshold = threshold

    async def retrieve(self, query: str, top_k: int = DEFAULT_TOP_K) -> RetrievalResult:
        if top_k < 1:
            raise ValueError("top_k must be >= 1")

        if len(self.store) == 0:
            return RetrievalResult(status="empty_index")

        try:
            query_vector = await self.embedder.embed(query)
        except Exception:
            logger.exception("Query embedding failed")
            return RetrievalResult(status="embedding_failed")

        if not query_vector or len(query_vector) != self.store.dimension:
            logger.warning("Query embedding missing or of the wrong dimension.")
            return RetrievalResult(status="embedding_failed")

        fragments = self.store.fragments
        scores = self.store.score_all(query_vector)
        # Stable sort keeps storage order among equal scores.
        order = np.argsort(-scores, kind="stable")

        hits: List[ScoredFragment] = []
        for idx in order:
            s = float(scores[idx])
            if s <= self.threshold:
                # Scores are descending; nothing further can pass.
                break
            hits.append(ScoredFragment(fragment=fragments[idx], score=s))
            if len(hits) == top_k:
                break

        logger.debug("Retrieved %d fragments for query: %s", len(hits), query[:80])
        return RetrievalResult(hits=hits, status="ok" if hits else "no_match")

    async def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> List[Fragment]:
        result = await self.retrieve(query, top_k)
        return result.fragments


__all__ = ["DEFAULT_SIMILARITY_THRESHOLD", "DEFAULT_TOP_K", "RetrievalEngine"]
