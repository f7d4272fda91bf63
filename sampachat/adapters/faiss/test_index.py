"""Tests for FAISS Index."""

from pathlib import Path

import numpy as np
import pytest

from .index import FAISSIndex


@pytest.fixture
async def index() -> FAISSIndex:
    """Create an index with three orthogonal-ish vectors."""
    index = FAISSIndex(dimension=3)
    await index.add_vectors(
        [10, 20, 30],
        np.array([[1, 0, 0], [0.8, 0.2, 0], [0, 0, 1]], dtype="float32"),
    )
    return index


async def test_search_orders_by_similarity(index: FAISSIndex):
    hits = await index.search(np.array([1, 0, 0]), k=3)

    assert [pid for pid, _ in hits] == [10, 20, 30]
    assert hits[0][1] == pytest.approx(1.0, abs=1e-5)


async def test_search_respects_allowed_and_excluded(index: FAISSIndex):
    """Test restriction to allowed ids minus excluded ids."""
    hits = await index.search(np.array([1, 0, 0]), k=5, allowed_ids=[10, 30], excluded_ids=[10])
    assert [pid for pid, _ in hits] == [30]


async def test_search_limits_k(index: FAISSIndex):
    hits = await index.search(np.array([1, 0, 0]), k=1)
    assert [pid for pid, _ in hits] == [10]


async def test_empty_index_returns_nothing():
    assert await FAISSIndex(dimension=3).search(np.array([1, 0, 0])) == []


async def test_add_vectors_replaces_existing_id(index: FAISSIndex):
    await index.add_vectors([30], np.array([[1, 0, 0]], dtype="float32"))

    assert index.size == 3
    hits = await index.search(np.array([1, 0, 0]), k=1, excluded_ids=[10])
    assert hits[0][0] == 30


async def test_add_vectors_length_mismatch(index: FAISSIndex):
    with pytest.raises(ValueError):
        await index.add_vectors([1, 2], np.zeros((1, 3), dtype="float32"))


async def test_save_and_load(index: FAISSIndex, tmp_path: Path):
    """Test index persistence keeps ids and dimension."""
    await index.save(tmp_path / "faiss")
    assert FAISSIndex.exists(tmp_path / "faiss")

    loaded = FAISSIndex()
    await loaded.load(tmp_path / "faiss")

    assert loaded.dimension == 3
    assert loaded.size == 3
    hits = await loaded.search(np.array([0, 0, 1]), k=1)
    assert hits[0][0] == 30
