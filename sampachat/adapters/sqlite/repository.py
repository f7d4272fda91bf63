"""
SQLite Repository - Proposal storage and the search Datastore.

Features:
- Async operations via aiosqlite
- Diacritic-free search columns for case/accent-insensitive LIKE probes
- Identifier sets passed as JSON through json_each
- Vector matches delegated to a FAISS index keyed by proposal id
- Retries on transient "database is locked" errors
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosqlite
import numpy as np
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sampachat.config.errors import StorageError
from sampachat.domains.search.models import Proposal, ProposalType, StructuredFilter
from sampachat.domains.search.normalizer import normalize

if TYPE_CHECKING:
    from sampachat.adapters.faiss import FAISSIndex

logger = logging.getLogger(__name__)

__all__ = ["SQLiteRepository"]

_ORDER_BY_RECENCY = "ORDER BY year DESC, number DESC"

_retry_transient = retry(
    retry=retry_if_exception_type(sqlite3.OperationalError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    reraise=True,
)


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _ids_param(ids: Sequence[int]) -> str:
    return json.dumps([int(i) for i in ids])


def _search_text(summary: str | None, keywords: str | None, author: str | None) -> str:
    keyword_text = (keywords or "").replace("|", " ")
    return normalize(f"{summary or ''} {keyword_text} {author or ''}")


def _row_to_proposal(row: aiosqlite.Row) -> Proposal:
    return Proposal(
        id=row["id"],
        type=ProposalType(row["type"]),
        number=row["number"],
        year=row["year"],
        author=row["author"],
        summary=row["summary"],
        keywords=row["keywords"],
    )


class SQLiteRepository:
    """
    SQLite repository for legislative proposals.

    Example:
        >>> repo = SQLiteRepository("data/sampachat.db")
        >>> await repo.initialize()
        >>> proposal_id = await repo.upsert_proposal("PL", 680, 2025, summary="...")
        >>> ids = await repo.filter_ids(StructuredFilter(years=(2025,)))
    """

    def __init__(self, db_path: str | Path, vector_index: FAISSIndex | None = None) -> None:
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database file
            vector_index: FAISS index used by vector_match
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.vector_index = vector_index
        self._connection: aiosqlite.Connection | None = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            try:
                self._connection = await aiosqlite.connect(str(self.db_path))
            except sqlite3.Error as e:
                raise StorageError(
                    f"Cannot open database: {e}", {"db_path": str(self.db_path)}
                ) from e
            self._connection.row_factory = aiosqlite.Row
        return self._connection

    async def initialize(self) -> None:
        """Initialize database schema."""
        conn = await self._get_connection()

        await conn.executescript("""
            CREATE TABLE IF NOT EXISTS proposals (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                type TEXT NOT NULL,
                number INTEGER NOT NULL,
                year INTEGER NOT NULL,
                author TEXT,
                summary TEXT,
                keywords TEXT,
                -- Lowercase, diacritic-free copies for LIKE probes
                author_search TEXT,
                search_text TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (type, number, year)
            );

            CREATE INDEX IF NOT EXISTS idx_proposals_year ON proposals(year);
            CREATE INDEX IF NOT EXISTS idx_proposals_type ON proposals(type);
            CREATE INDEX IF NOT EXISTS idx_proposals_number ON proposals(number);
        """)

        await conn.commit()
        logger.info("Database initialized: %s", self.db_path)

    async def upsert_proposal(
        self,
        type: ProposalType | str,
        number: int,
        year: int,
        author: str | None = None,
        summary: str | None = None,
        keywords: str | None = None,
    ) -> int:
        """
        Insert a proposal or update the one with the same type/number/year.

        Returns:
            Proposal ID
        """
        conn = await self._get_connection()
        type_code = ProposalType(type).value

        await conn.execute(
            """
            INSERT INTO proposals
            (type, number, year, author, summary, keywords, author_search, search_text)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (type, number, year) DO UPDATE SET
                author = excluded.author,
                summary = excluded.summary,
                keywords = excluded.keywords,
                author_search = excluded.author_search,
                search_text = excluded.search_text,
                updated_at = CURRENT_TIMESTAMP
            """,
            (
                type_code,
                number,
                year,
                author,
                summary,
                keywords,
                normalize(author),
                _search_text(summary, keywords, author),
            ),
        )
        await conn.commit()

        cursor = await conn.execute(
            "SELECT id FROM proposals WHERE type = ? AND number = ? AND year = ?",
            (type_code, number, year),
        )
        row = await cursor.fetchone()
        return int(row["id"])

    async def get_proposal(self, proposal_id: int) -> Proposal | None:
        """Get proposal by ID."""
        conn = await self._get_connection()

        cursor = await conn.execute("SELECT * FROM proposals WHERE id = ?", (proposal_id,))
        row = await cursor.fetchone()

        if row:
            return _row_to_proposal(row)
        return None

    async def all_proposals(self) -> list[Proposal]:
        """Every stored proposal, newest first."""
        conn = await self._get_connection()
        cursor = await conn.execute(f"SELECT * FROM proposals {_ORDER_BY_RECENCY}")
        rows = await cursor.fetchall()
        return [_row_to_proposal(row) for row in rows]

    @_retry_transient
    async def filter_ids(self, search_filter: StructuredFilter) -> list[int]:
        """
        Identifiers matching the structured filter.

        Type, number and years are ANDed; authors are ORed as substring
        matches against the normalized author column.
        """
        clauses: list[str] = []
        params: list[Any] = []

        if search_filter.type is not None:
            clauses.append("type = ?")
            params.append(search_filter.type.value)
        if search_filter.number is not None:
            clauses.append("number = ?")
            params.append(search_filter.number)
        if search_filter.years:
            clauses.append(f"year IN ({', '.join('?' for _ in search_filter.years)})")
            params.extend(search_filter.years)
        if search_filter.authors:
            clauses.append(
                "(" + " OR ".join("author_search LIKE ? ESCAPE '\\'" for _ in search_filter.authors) + ")"
            )
            params.extend(_like_pattern(normalize(a)) for a in search_filter.authors)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        conn = await self._get_connection()
        cursor = await conn.execute(f"SELECT id FROM proposals {where} {_ORDER_BY_RECENCY}", params)
        rows = await cursor.fetchall()
        return [row["id"] for row in rows]

    @_retry_transient
    async def exact_match(self, ids: Sequence[int], terms: Sequence[str]) -> list[Proposal]:
        """Proposals within ``ids`` whose search text contains any term."""
        if not ids or not terms:
            return []

        probes = " OR ".join("search_text LIKE ? ESCAPE '\\'" for _ in terms)
        params = [_ids_param(ids), *(_like_pattern(normalize(t)) for t in terms)]

        conn = await self._get_connection()
        cursor = await conn.execute(
            f"""
            SELECT * FROM proposals
            WHERE id IN (SELECT value FROM json_each(?)) AND ({probes})
            {_ORDER_BY_RECENCY}
            """,
            params,
        )
        rows = await cursor.fetchall()
        return [_row_to_proposal(row) for row in rows]

    async def vector_match(
        self,
        ids: Sequence[int],
        exclude_ids: Sequence[int],
        vector: np.ndarray,
        limit: int,
    ) -> list[Proposal]:
        """Nearest neighbours from the FAISS index, most similar first."""
        if self.vector_index is None or limit <= 0:
            return []

        hits = await self.vector_index.search(
            vector, k=limit, allowed_ids=ids, excluded_ids=exclude_ids
        )
        if not hits:
            return []

        proposals = {p.id: p for p in await self._fetch([pid for pid, _ in hits])}
        return [proposals[pid] for pid, _ in hits if pid in proposals]

    @_retry_transient
    async def by_ids(self, ids: Sequence[int], offset: int, limit: int) -> list[Proposal]:
        """Page of proposals within ``ids`` ordered by year desc, number desc."""
        if not ids:
            return []
        conn = await self._get_connection()
        cursor = await conn.execute(
            f"""
            SELECT * FROM proposals
            WHERE id IN (SELECT value FROM json_each(?))
            {_ORDER_BY_RECENCY}
            LIMIT ? OFFSET ?
            """,
            (_ids_param(ids), limit, offset),
        )
        rows = await cursor.fetchall()
        return [_row_to_proposal(row) for row in rows]

    @_retry_transient
    async def _fetch(self, ids: Sequence[int]) -> list[Proposal]:
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT * FROM proposals WHERE id IN (SELECT value FROM json_each(?))",
            (_ids_param(ids),),
        )
        rows = await cursor.fetchall()
        return [_row_to_proposal(row) for row in rows]

    @_retry_transient
    async def distinct_authors(self) -> list[str]:
        """Every distinct non-empty author string."""
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT DISTINCT author FROM proposals WHERE author IS NOT NULL AND author != '' "
            "ORDER BY author"
        )
        rows = await cursor.fetchall()
        return [row["author"] for row in rows]

    async def count(self) -> int:
        """Get total proposal count."""
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT COUNT(*) FROM proposals")
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
