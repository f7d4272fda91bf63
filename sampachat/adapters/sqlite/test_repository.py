"""Tests for SQLite Repository."""

import sqlite3
from pathlib import Path
from unittest.mock import AsyncMock

import numpy as np
import pytest

from sampachat.adapters.faiss import FAISSIndex
from sampachat.domains.search.contracts import Datastore
from sampachat.domains.search.models import ProposalType, StructuredFilter

from .repository import SQLiteRepository


@pytest.fixture
async def repo(tmp_path: Path):
    """Create a test repository with temporary database."""
    db_path = tmp_path / "test.db"
    repo = SQLiteRepository(db_path)
    await repo.initialize()
    yield repo
    await repo.close()


@pytest.fixture
async def seeded(repo: SQLiteRepository) -> dict[str, int]:
    """Insert a small set of proposals and return their ids by label."""
    return {
        "saude": await repo.upsert_proposal(
            "PL", 123, 2020, "Ver. Ricardo Nunes (MDB)", "Dispõe sobre saúde nas escolas", "Saúde|Educação"
        ),
        "mobilidade": await repo.upsert_proposal(
            "PL", 680, 2025, "Keit Lima (PSOL)", "Plano de mobilidade urbana", "Transporte"
        ),
        "decreto": await repo.upsert_proposal(
            "PDL", 12, 2021, "Executivo - Ricardo Nunes", "Concede título de cidadão", None
        ),
        "resolucao": await repo.upsert_proposal(
            ProposalType.PR, 7, 2019, None, "Altera o regimento_interno 100%", None
        ),
    }


async def test_initialize_creates_tables(repo: SQLiteRepository):
    """Test that initialize creates the proposals table."""
    conn = await repo._get_connection()
    cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    tables = {row[0] for row in await cursor.fetchall()}

    assert "proposals" in tables


def test_repository_satisfies_datastore_contract(tmp_path: Path):
    assert isinstance(SQLiteRepository(tmp_path / "x.db"), Datastore)


async def test_upsert_and_get_proposal(repo: SQLiteRepository, seeded: dict[str, int]):
    """Test inserting, updating and retrieving a proposal."""
    proposal = await repo.get_proposal(seeded["saude"])
    assert proposal is not None
    assert proposal.type == ProposalType.PL
    assert proposal.number == 123
    assert proposal.keyword_text == "Saúde Educação"

    same_id = await repo.upsert_proposal("PL", 123, 2020, summary="Nova ementa")
    assert same_id == seeded["saude"]
    updated = await repo.get_proposal(same_id)
    assert updated.summary == "Nova ementa"
    assert await repo.count() == 4
    assert await repo.get_proposal(9999) is None


async def test_filter_ids_structured_fields(repo: SQLiteRepository, seeded: dict[str, int]):
    """Test type, number and years are ANDed."""
    assert await repo.filter_ids(StructuredFilter(type=ProposalType.PL)) == [
        seeded["mobilidade"],
        seeded["saude"],
    ]
    assert await repo.filter_ids(StructuredFilter(type=ProposalType.PL, years=(2020,))) == [
        seeded["saude"]
    ]
    assert await repo.filter_ids(StructuredFilter(number=12, years=(2020,))) == []
    assert len(await repo.filter_ids(StructuredFilter())) == 4


async def test_filter_ids_authors_are_ored(repo: SQLiteRepository, seeded: dict[str, int]):
    """Test author names match as accent-insensitive substrings, ORed."""
    ids = await repo.filter_ids(StructuredFilter(authors=("Ver. Ricardo Nunes", "(psol)")))
    assert sorted(ids) == sorted([seeded["saude"], seeded["mobilidade"]])

    ids = await repo.filter_ids(StructuredFilter(authors=("RICARDO NUNES",)))
    assert sorted(ids) == sorted([seeded["saude"], seeded["decreto"]])


async def test_exact_match_within_ids(repo: SQLiteRepository, seeded: dict[str, int]):
    """Test substring probe across summary, keywords and author."""
    all_ids = list(seeded.values())

    results = await repo.exact_match(all_ids, ["educacao", "urbana"])
    assert {p.id for p in results} == {seeded["saude"], seeded["mobilidade"]}

    results = await repo.exact_match([seeded["saude"]], ["urbana"])
    assert results == []

    results = await repo.exact_match(all_ids, ["keit"])
    assert [p.id for p in results] == [seeded["mobilidade"]]


async def test_exact_match_escapes_wildcards(repo: SQLiteRepository, seeded: dict[str, int]):
    all_ids = list(seeded.values())
    assert [p.id for p in await repo.exact_match(all_ids, ["100%"])] == [seeded["resolucao"]]
    assert [p.id for p in await repo.exact_match(all_ids, ["s_o"])] == []


async def test_by_ids_orders_and_pages(repo: SQLiteRepository, seeded: dict[str, int]):
    """Test datastore paging is ordered by year desc, number desc."""
    ids = list(seeded.values())

    first = await repo.by_ids(ids, offset=0, limit=2)
    second = await repo.by_ids(ids, offset=2, limit=2)

    assert [p.year for p in first + second] == [2025, 2021, 2020, 2019]
    assert await repo.by_ids(ids, offset=10, limit=2) == []
    assert await repo.by_ids([], offset=0, limit=2) == []


async def test_distinct_authors(repo: SQLiteRepository, seeded: dict[str, int]):
    assert await repo.distinct_authors() == [
        "Executivo - Ricardo Nunes",
        "Keit Lima (PSOL)",
        "Ver. Ricardo Nunes (MDB)",
    ]


async def test_vector_match_uses_index(tmp_path: Path):
    """Test vector matches respect the id restriction and exclusions."""
    index = FAISSIndex(dimension=4)
    repo = SQLiteRepository(tmp_path / "vec.db", vector_index=index)
    await repo.initialize()
    try:
        a = await repo.upsert_proposal("PL", 1, 2020, summary="a")
        b = await repo.upsert_proposal("PL", 2, 2020, summary="b")
        c = await repo.upsert_proposal("PL", 3, 2020, summary="c")
        await index.add_vectors(
            [a, b, c],
            np.array([[1, 0, 0, 0], [0.9, 0.1, 0, 0], [0, 1, 0, 0]], dtype="float32"),
        )
        query = np.array([1, 0, 0, 0], dtype="float32")

        results = await repo.vector_match([a, b, c], [a], query, limit=2)
        assert [p.id for p in results] == [b, c]

        results = await repo.vector_match([c], [], query, limit=5)
        assert [p.id for p in results] == [c]
    finally:
        await repo.close()


async def test_vector_match_without_index(repo: SQLiteRepository):
    assert await repo.vector_match([1], [], np.zeros(4), limit=5) == []


async def test_filter_ids_retries_locked_database(repo: SQLiteRepository):
    """Test transient operational errors are retried."""
    conn = await repo._get_connection()
    real_execute = conn.execute
    failing = AsyncMock(side_effect=[sqlite3.OperationalError("database is locked")])

    calls = {"n": 0}

    async def flaky_execute(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            return await failing(*args, **kwargs)
        return await real_execute(*args, **kwargs)

    conn.execute = flaky_execute
    try:
        assert await repo.filter_ids(StructuredFilter()) == []
    finally:
        conn.execute = real_execute
    assert calls["n"] == 2
