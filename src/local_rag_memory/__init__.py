"""
Local RAG Memory.

Retrieval engine that grounds an assistant in locally indexed documents:
sentence-aware chunking, batched embedding, an in-memory vector index with
thresholded similarity search, and a durable JSON snapshot.
"""

__all__ = [
    "bootstrap",
    "chunker",
    "config",
    "embeddings",
    "index",
    "indexer",
    "ingest",
    "models",
    "persistence",
    "query",
    "retrieval",
    "store",
]
