"""
Sentence Transformer Embedder - Text to vector for the semantic pass.

The model is loaded lazily on first use and every encode call runs in a
worker thread so the event loop is never blocked.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import numpy as np
from sentence_transformers import SentenceTransformer

from sampachat.config.errors import EmbeddingError

logger = logging.getLogger(__name__)

__all__ = ["SentenceTransformerEmbedder"]


class SentenceTransformerEmbedder:
    """
    Embedder backed by a sentence-transformers model.

    Example:
        >>> embedder = SentenceTransformerEmbedder("all-MiniLM-L6-v2")
        >>> vector = await embedder.embed("transporte público")
    """

    def __init__(self, model_name: str = "sentence-transformers/all-MiniLM-L6-v2") -> None:
        self.model_name = model_name
        self._model: SentenceTransformer | None = None
        self._lock = asyncio.Lock()

    async def _get_model(self) -> SentenceTransformer:
        async with self._lock:
            if self._model is None:
                logger.info("Loading embedding model: %s", self.model_name)
                try:
                    self._model = await asyncio.to_thread(SentenceTransformer, self.model_name)
                except Exception as e:
                    raise EmbeddingError(
                        f"Failed to load embedding model: {e}",
                        {"model": self.model_name},
                    ) from e
        return self._model

    async def embed(self, text: str) -> np.ndarray:
        """
        Embed a single text.

        Returns:
            float32 vector of the model's dimension

        Raises:
            EmbeddingError: Model failed to load or encode
        """
        vectors = await self.embed_many([text])
        return vectors[0]

    async def embed_many(self, texts: Sequence[str], batch_size: int = 64) -> np.ndarray:
        """Embed a batch of texts into an (n, dimension) array."""
        model = await self._get_model()
        try:
            vectors = await asyncio.to_thread(
                model.encode,
                list(texts),
                batch_size=batch_size,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception as e:
            raise EmbeddingError(f"Embedding failed: {e}", {"model": self.model_name}) from e
        return np.asarray(vectors, dtype="float32")

    @property
    def dimension(self) -> int | None:
        """Model dimension once loaded."""
        if self._model is None:
            return None
        return self._model.get_sentence_embedding_dimension()
