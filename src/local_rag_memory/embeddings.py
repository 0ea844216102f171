"""
Embedding clients.

The core only needs `await client.embed(text)` returning one unit-length
vector, or `None` when the provider has nothing to give. Clients may also
raise; callers treat both as a failed unit of work.
"""

from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from .config import AppConfig

logger = logging.getLogger(__name__)


class EmbeddingClient(ABC):
    """One call embeds one text into one fixed-dimension vector."""

    @abstractmethod
    async def embed(self, text: str) -> Optional[List[float]]:
        ...


class SentenceTransformerEmbeddingClient(EmbeddingClient):
    """
    Local embeddings via sentence-transformers.

    Vectors are L2-normalized by the model so dot product equals cosine
    similarity. Encoding runs in a worker thread to keep the event loop free.
    """

    def __init__(self, model_name: str) -> None:
        from sentence_transformers import SentenceTransformer

        logger.info("Loading embedding model: %s", model_name)
        self.model_name = model_name
        self._model = SentenceTransformer(model_name)

    def _encode(self, text: str) -> List[float]:
        vector = self._model.encode(
            [text], convert_to_numpy=True, normalize_embeddings=True
        )[0]
        return vector.astype("float32").tolist()

    async def embed(self, text: str) -> Optional[List[float]]:
        return await asyncio.to_thread(self._encode, text)


class OpenAIEmbeddingClient(EmbeddingClient):
    """Remote embeddings via the OpenAI embeddings endpoint (unit-length vectors)."""

    def __init__(self, model: str, client=None) -> None:
        if client is None:
            from openai import AsyncOpenAI

            api_key = os.environ.get("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY is not set. Put it in a .env file or environment variable.")
            client = AsyncOpenAI(api_key=api_key)

        self.model = model
        self._client = client

    async def embed(self, text: str) -> Optional[List[float]]:
        response = await self._client.embeddings.create(model=self.model, input=text)
        if not response.data:
            return None
        return list(response.data[0].embedding)


class StaticEmbeddingClient(EmbeddingClient):
    """
    Lookup-table client: returns the vector registered for an exact text.

    Unknown texts yield `None` (or raise, with `strict=True`). Useful for
    tests and for replaying precomputed embeddings offline. `calls` records
    every text requested, in order.
    """

    def __init__(
        self,
        vectors: Optional[Dict[str, Sequence[float]]] = None,
        default: Optional[Sequence[float]] = None,
        strict: bool = False,
    ) -> None:
        self.vectors: Dict[str, List[float]] = {
            k: list(v) for k, v in (vectors or {}).items()
        }
        self.default = list(default) if default is not None else None
        self.strict = strict
        self.calls: List[str] = []

    async def embed(self, text: str) -> Optional[List[float]]:
        self.calls.append(text)
        if text in self.vectors:
            return self.vectors[text]
        if self.strict:
            raise KeyError(f"No embedding registered for text: {text[:60]!r}")
        return self.default


def build_embedding_client(cfg: AppConfig) -> EmbeddingClient:
    """Factory: pick the embedding adapter named by `cfg.embedding_backend`."""
    if cfg.embedding_backend == "sentence-transformers":
        return SentenceTransformerEmbeddingClient(cfg.embedding_model_name)
    if cfg.embedding_backend == "openai":
        return OpenAIEmbeddingClient(cfg.openai_embedding_model)
    raise ValueError(f"Unknown embedding backend: {cfg.embedding_backend!r}")


__all__ = [
    "EmbeddingClient",
    "OpenAIEmbeddingClient",
    "SentenceTransformerEmbeddingClient",
    "StaticEmbeddingClient",
    "build_embedding_client",
]
