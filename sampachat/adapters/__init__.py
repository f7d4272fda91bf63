"""
Adapters - External service integrations.

Storage, vector index and embedding model are wrapped here to isolate the
search domain from third-party changes.
"""

from .embeddings import SentenceTransformerEmbedder
from .faiss import FAISSIndex
from .sqlite import SQLiteRepository

__all__ = [
    "SQLiteRepository",
    "FAISSIndex",
    "SentenceTransformerEmbedder",
]
