"""
Hybrid Retriever - Exact substring pass plus vector similarity pass.

Resolves structured filters to an identifier set, then fills the result
quota first with lexical matches and tops it up with nearest neighbours of
the semantic text, never returning the same proposal twice.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Sequence
from typing import TypeVar

from sampachat.config.errors import CollaboratorError

from .contracts import Datastore, Embedder
from .models import Candidate, Proposal, Provenance, RetrievalResult, StructuredFilter
from .normalizer import normalize
from .vocabulary import Vocabulary

logger = logging.getLogger(__name__)

__all__ = ["HybridRetriever", "query_terms"]

T = TypeVar("T")


def query_terms(search_filter: StructuredFilter, vocabulary: Vocabulary) -> list[str]:
    """
    Normalized terms used for the exact pass and for ranking.

    Semantic text tokens longer than one character that are not stopwords,
    then each quoted phrase whole and split into its own tokens.
    """
    terms: list[str] = []

    def add(term: str) -> None:
        if len(term) > 1 and term not in vocabulary.stopwords and term not in terms:
            terms.append(term)

    for token in normalize(search_filter.semantic_text).split():
        add(token)
    for phrase in search_filter.exact_phrases:
        normalized = " ".join(normalize(phrase).split())
        if normalized and normalized not in terms:
            terms.append(normalized)
        for token in normalized.split():
            add(token)
    return terms


def _match_text(proposal: Proposal) -> str:
    return normalize(f"{proposal.summary or ''} {proposal.keyword_text} {proposal.author or ''}")


def _by_recency(proposal: Proposal) -> tuple[int, int]:
    return (-proposal.year, -proposal.number)


class HybridRetriever:
    """
    Retrieve candidates for a structured filter.

    Every collaborator failure is raised as :class:`CollaboratorError`; the
    retriever never retries and never returns partial results.
    """

    def __init__(
        self,
        datastore: Datastore,
        embedder: Embedder,
        vocabulary: Vocabulary | None = None,
        max_results: int = 1000,
    ) -> None:
        """
        Initialize retriever.

        Args:
            datastore: Filter, substring and vector queries over proposals
            embedder: Embeds the semantic text for the vector pass
            vocabulary: Stopwords used when deriving query terms
            max_results: Cap on exact + semantic candidates per request
        """
        self._datastore = datastore
        self._embedder = embedder
        self._vocabulary = vocabulary or Vocabulary()
        self._max_results = max_results

    @property
    def max_results(self) -> int:
        return self._max_results

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except CollaboratorError:
            raise
        except Exception as e:
            raise CollaboratorError(
                f"{operation} failed: {e}",
                details={"operation": operation, "error_type": type(e).__name__},
            ) from e

    async def resolve_ids(self, search_filter: StructuredFilter) -> list[int]:
        """Identifiers satisfying the non-semantic filter fields."""
        return await self._call("filter_ids", self._datastore.filter_ids(search_filter))

    async def fetch_page(self, ids: Sequence[int], page: int, size: int) -> list[Candidate]:
        """Filter-only shortcut: a Datastore-ordered page of records."""
        proposals = await self._call(
            "by_ids", self._datastore.by_ids(ids, offset=page * size, limit=size)
        )
        return [Candidate(proposal=p, provenance=Provenance.EXACT) for p in proposals]

    async def exact_pass(self, ids: Sequence[int], terms: Sequence[str]) -> list[Candidate]:
        """Substring matches within ``ids``, re-checked locally, newest first."""
        if not terms:
            return []
        proposals = await self._call("exact_match", self._datastore.exact_match(ids, terms))

        verified = []
        for proposal in proposals:
            text = _match_text(proposal)
            if any(term in text for term in terms):
                verified.append(proposal)
        if len(verified) < len(proposals):
            logger.debug("Discarded %d coarse exact matches", len(proposals) - len(verified))

        verified.sort(key=_by_recency)
        return [Candidate(proposal=p, provenance=Provenance.EXACT) for p in verified]

    async def semantic_pass(
        self,
        ids: Sequence[int],
        semantic_text: str,
        exclude_ids: Sequence[int],
        limit: int,
    ) -> list[Candidate]:
        """Nearest neighbours of the semantic text within ``ids``."""
        if limit <= 0 or not semantic_text.strip():
            return []
        if set(ids) <= set(exclude_ids):
            return []

        vector = await self._call("embed", self._embedder.embed(semantic_text))
        proposals = await self._call(
            "vector_match",
            self._datastore.vector_match(ids, exclude_ids, vector, limit),
        )
        excluded = set(exclude_ids)
        return [
            Candidate(proposal=p, provenance=Provenance.SEMANTIC)
            for p in proposals[:limit]
            if p.id not in excluded
        ]

    async def retrieve(self, search_filter: StructuredFilter, page: int, size: int) -> RetrievalResult:
        """
        Run the full retrieval for one request.

        Args:
            search_filter: Filter after exclusions were reincorporated
            page: Zero-based page, used only by the filter-only shortcut
            size: Page size, used only by the filter-only shortcut

        Returns:
            Candidates tagged with provenance plus their counts
        """
        ids = await self.resolve_ids(search_filter)
        if not ids:
            logger.info("No proposals match the structured filters")
            return RetrievalResult()

        if not search_filter.semantic_text.strip():
            candidates = await self.fetch_page(ids, page, size)
            return RetrievalResult(
                candidates=candidates,
                total_count=len(ids),
                exact_count=len(ids),
                paged=True,
            )

        terms = query_terms(search_filter, self._vocabulary)
        exact = await self.exact_pass(ids, terms)

        semantic: list[Candidate] = []
        if len(exact) < self._max_results:
            semantic = await self.semantic_pass(
                ids,
                search_filter.semantic_text,
                [c.proposal.id for c in exact],
                self._max_results - len(exact),
            )

        logger.info(
            "Retrieved %d exact and %d semantic candidates from %d filtered ids",
            len(exact),
            len(semantic),
            len(ids),
        )
        return RetrievalResult(
            candidates=exact + semantic,
            query_terms=terms,
            total_count=len(exact) + len(semantic),
            exact_count=len(exact),
            semantic_count=len(semantic),
        )
