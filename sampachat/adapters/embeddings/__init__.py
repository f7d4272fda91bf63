"""
Embeddings Adapter - Sentence transformer text encoder.
"""

from .encoder import SentenceTransformerEmbedder

__all__ = ["SentenceTransformerEmbedder"]
