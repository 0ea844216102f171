from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

import numpy as np

from .models import Document, Fragment, IndexSnapshot


def score(query_vector: Sequence[float], fragment: Fragment) -> float:
    """Raw dot product. Equals cosine similarity only for unit-length vectors."""
    return float(np.dot(np.asarray(query_vector, dtype=np.float64),
                        np.asarray(fragment.embedding, dtype=np.float64)))


class VectorStore:
    """
    In-memory index of fragments and documents.

    Fragments and documents keep insertion order. The embedding matrix is
    rebuilt lazily after any mutation.
    """

    def __init__(self, snapshot: Optional[IndexSnapshot] = None) -> None:
        self._fragments: List[Fragment] = []
        self._documents: List[Document] = []
        self._matrix: Optional[np.ndarray] = None
        self.initialized = False
        if snapshot is not None:
            self.restore(snapshot)

    @property
    def fragments(self) -> List[Fragment]:
        return list(self._fragments)

    @property
    def documents(self) -> List[Document]:
        return list(self._documents)

    def __len__(self) -> int:
        return len(self._fragments)

    @property
    def dimension(self) -> Optional[int]:
        """Embedding dimensionality shared by all fragments, or None when empty."""
        if not self._fragments:
            return None
        return len(self._fragments[0].embedding)

    def find_document(self, doc_id: str) -> Optional[Document]:
        return next((d for d in self._documents if d.id == doc_id), None)

    def find_document_by_name(self, name: str) -> Optional[Document]:
        return next((d for d in self._documents if d.name == name), None)

    def append(self, document: Document, fragments: Iterable[Fragment]) -> None:
        self._fragments.extend(fragments)
        self._documents.append(document)
        self._matrix = None

    def remove_document(self, doc_id: str) -> Optional[Document]:
        """Drop a document and every fragment carrying its name. Returns the removed document."""
        doc = self.find_document(doc_id)
        if doc is None:
            return None
        self._documents = [d for d in self._documents if d.id != doc_id]
        self._fragments = [f for f in self._fragments if f.source_name != doc.name]
        self._matrix = None
        return doc

    def clear(self) -> None:
        self._fragments = []
        self._documents = []
        self._matrix = None
        self.initialized = False

    def snapshot(self) -> IndexSnapshot:
        return IndexSnapshot(fragments=list(self._fragments), documents=list(self._documents))

    def restore(self, snapshot: IndexSnapshot) -> None:
        self._fragments = list(snapshot.fragments)
        self._documents = list(snapshot.documents)
        self._matrix = None

    def score_all(self, query_vector: Sequence[float]) -> np.ndarray:
        """Dot product of the query against every fragment, in storage order."""
        if not self._fragments:
            return np.empty(0, dtype=np.float64)
        if self._matrix is None:
            self._matrix = np.asarray(
                [f.embedding for f in self._fragments], dtype=np.float64
            )
        return self._matrix @ np.asarray(query_vector, dtype=np.float64)


__all__ = ["VectorStore", "score"]
