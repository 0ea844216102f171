from __future__ import annotations

import time
import uuid
from typing import List, Literal

from pydantic import BaseModel, Field


def new_id() -> str:
    return uuid.uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)


class Document(BaseModel):
    """An indexed document. `name` is the natural key used for dedup and removal."""

    id: str = Field(default_factory=new_id)
    name: str
    created_at: int = Field(default_factory=now_ms)
    chunk_count: int = 0


class Fragment(BaseModel):
    """One embedded chunk of a document's text."""

    id: str = Field(default_factory=new_id)
    text: str
    embedding: List[float]
    source_name: str
    document_id: str = ""


class IndexSnapshot(BaseModel):
    """The full persisted index: every fragment and every document."""

    fragments: List[Fragment] = Field(default_factory=list)
    documents: List[Document] = Field(default_factory=list)


class ScoredFragment(BaseModel):
    fragment: Fragment
    score: float


RetrievalStatus = Literal["ok", "empty_index", "embedding_failed", "no_match"]


class RetrievalResult(BaseModel):
    """
    Outcome of a retrieval.

    An empty `hits` list is a normal result, not a failure: `status` says
    why nothing came back.
    """

    hits: List[ScoredFragment] = Field(default_factory=list)
    status: RetrievalStatus = "ok"

    @property
    def fragments(self) -> List[Fragment]:
        return [h.fragment for h in self.hits]

    @property
    def grounded(self) -> bool:
        return bool(self.hits)


__all__ = [
    "Document",
    "Fragment",
    "IndexSnapshot",
    "RetrievalResult",
    "RetrievalStatus",
    "ScoredFragment",
]
