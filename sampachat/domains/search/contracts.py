"""
Search Contracts - Interfaces for search domain collaborators.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import numpy as np

from .models import Proposal, SearchQuery, SearchResponse, StructuredFilter


@runtime_checkable
class Datastore(Protocol):
    """Contract for proposal storage used by the retriever."""

    async def filter_ids(self, search_filter: StructuredFilter) -> list[int]:
        """Identifiers matching type/number/years (AND) and authors (OR)."""
        ...

    async def exact_match(self, ids: Sequence[int], terms: Sequence[str]) -> list[Proposal]:
        """Proposals within ``ids`` whose text contains any of ``terms``."""
        ...

    async def vector_match(
        self,
        ids: Sequence[int],
        exclude_ids: Sequence[int],
        vector: np.ndarray,
        limit: int,
    ) -> list[Proposal]:
        """Nearest neighbours of ``vector`` within ``ids`` minus ``exclude_ids``."""
        ...

    async def by_ids(self, ids: Sequence[int], offset: int, limit: int) -> list[Proposal]:
        """Proposals within ``ids`` ordered by year desc, number desc."""
        ...

    async def distinct_authors(self) -> list[str]:
        """Every distinct author string in storage."""
        ...


@runtime_checkable
class Embedder(Protocol):
    """Contract for text embedding models."""

    async def embed(self, text: str) -> np.ndarray:
        """Embed text into a fixed-length vector."""
        ...


@runtime_checkable
class SearchEngine(Protocol):
    """Contract for search implementations."""

    async def search(self, query: SearchQuery) -> SearchResponse:
        """Execute search and return a page of results."""
        ...
