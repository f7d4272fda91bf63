"""
FAISS Index - Vector similarity search over proposal embeddings.

Features:
- Async-compatible operations
- Vectors keyed by proposal id (IndexIDMap2)
- Search restricted to an allowed id set minus excluded ids
- Index persistence
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import faiss
import numpy as np

logger = logging.getLogger(__name__)

__all__ = ["FAISSIndex"]


class FAISSIndex:
    """
    FAISS cosine-similarity index keyed by proposal id.

    Example:
        >>> index = FAISSIndex(dimension=384)
        >>> await index.add_vectors([10, 11], embeddings)
        >>> hits = await index.search(query_embedding, allowed_ids=[10, 11])
    """

    def __init__(self, dimension: int = 384) -> None:
        """
        Initialize FAISS index.

        Args:
            dimension: Vector dimension (384 for MiniLM, 768 for MPNet)
        """
        self.dimension = dimension
        self._index: faiss.IndexIDMap2 | None = None

    def _create_index(self) -> faiss.IndexIDMap2:
        return faiss.IndexIDMap2(faiss.IndexFlatIP(self.dimension))

    async def initialize(self) -> None:
        """Initialize empty index."""
        self._index = self._create_index()
        logger.info("FAISS index initialized: dimension=%d", self.dimension)

    def _prepare(self, vectors: np.ndarray) -> np.ndarray:
        if vectors.ndim == 1:
            vectors = vectors.reshape(1, -1)
        vectors = np.ascontiguousarray(vectors.astype("float32"))
        # Normalize for inner product (cosine similarity)
        faiss.normalize_L2(vectors)
        return vectors

    async def add_vectors(self, ids: Sequence[int], vectors: np.ndarray) -> None:
        """
        Add or replace vectors for the given proposal ids.

        Args:
            ids: Proposal ids, one per row
            vectors: numpy array of shape (n, dimension)
        """
        if self._index is None:
            await self.initialize()
        assert self._index is not None  # Guaranteed by initialize()

        if len(ids) != len(vectors):
            raise ValueError(f"Got {len(ids)} ids for {len(vectors)} vectors")
        if not len(ids):
            return

        id_array = np.asarray(ids, dtype="int64")
        await self.remove(id_array.tolist())
        await asyncio.to_thread(self._index.add_with_ids, self._prepare(vectors), id_array)

        logger.debug("Added %d vectors to index", len(id_array))

    async def remove(self, ids: Iterable[int]) -> int:
        """Remove vectors by proposal id; returns how many were removed."""
        if self._index is None:
            return 0
        id_array = np.asarray(list(ids), dtype="int64")
        if not len(id_array):
            return 0
        return int(await asyncio.to_thread(self._index.remove_ids, id_array))

    async def search(
        self,
        query_vector: np.ndarray,
        k: int = 10,
        allowed_ids: Iterable[int] | None = None,
        excluded_ids: Iterable[int] = (),
    ) -> list[tuple[int, float]]:
        """
        Search for similar vectors.

        Args:
            query_vector: Query vector of shape (dimension,) or (1, dimension)
            k: Number of results
            allowed_ids: Restrict hits to these ids; all ids when None
            excluded_ids: Never return these ids

        Returns:
            (proposal id, score) pairs, most similar first
        """
        if self._index is None or self._index.ntotal == 0 or k <= 0:
            return []

        allowed = set(allowed_ids) if allowed_ids is not None else None
        excluded = set(excluded_ids)

        # Restriction happens after scoring, so scan the whole index
        scores, indices = await asyncio.to_thread(
            self._index.search, self._prepare(query_vector), self._index.ntotal
        )

        results = []
        for score, idx in zip(scores[0], indices[0]):
            proposal_id = int(idx)
            if proposal_id < 0 or proposal_id in excluded:
                continue
            if allowed is not None and proposal_id not in allowed:
                continue
            results.append((proposal_id, float(score)))
            if len(results) >= k:
                break

        return results

    async def save(self, path: str | Path) -> None:
        """
        Save index to disk.

        Args:
            path: Directory to save index
        """
        if self._index is None:
            await self.initialize()

        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)

        index_path = path / "faiss_index.bin"
        await asyncio.to_thread(faiss.write_index, self._index, str(index_path))

        metadata_path = path / "metadata.json"
        await asyncio.to_thread(self._write_json, metadata_path, {"dimension": self.dimension})

        logger.info("Index saved to %s (%d vectors)", path, self.size)

    @staticmethod
    def _write_json(path: Path, data: dict[str, Any]) -> None:
        """Write JSON file (sync helper for to_thread)."""
        with open(path, "w") as f:
            json.dump(data, f)

    async def load(self, path: str | Path) -> None:
        """
        Load index from disk.

        Args:
            path: Directory containing saved index
        """
        path = Path(path)

        index_path = path / "faiss_index.bin"
        self._index = await asyncio.to_thread(faiss.read_index, str(index_path))

        metadata_path = path / "metadata.json"
        data = await asyncio.to_thread(self._read_json, metadata_path)
        self.dimension = data["dimension"]

        logger.info("Index loaded from %s (%d vectors)", path, self.size)

    @staticmethod
    def _read_json(path: Path) -> dict[str, Any]:
        """Read JSON file (sync helper for to_thread)."""
        with open(path) as f:
            result: dict[str, Any] = json.load(f)
            return result

    @staticmethod
    def exists(path: str | Path) -> bool:
        return (Path(path) / "faiss_index.bin").exists()

    @property
    def size(self) -> int:
        """Get number of vectors in index."""
        return self._index.ntotal if self._index else 0
