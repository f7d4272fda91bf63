"""
Hybrid Search Engine - Query interpretation, retrieval and ranking.

Pipeline:
- Structured filter extraction (type, number, years, authors, phrases)
- Exclusion reincorporation into the semantic text
- Exact substring pass + vector similarity pass
- Provenance-first ranking and exact-phrase filtering
- Pagination and highlight terms
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Sequence
from typing import TypeVar

from sampachat.config.errors import CollaboratorError, SearchError

from .contracts import Datastore, Embedder
from .exclusions import applied_filters, reincorporate_exclusions
from .extractor import StructuredFilterExtractor
from .lexicon import LexiconCatalog
from .links import to_view
from .models import Candidate, Proposal, SearchQuery, SearchResponse, StructuredFilter
from .pagination import has_more, highlight_terms, paginate
from .ranker import apply_exact_phrase_filter, rank_candidates
from .retriever import HybridRetriever, query_terms
from .vocabulary import Vocabulary

logger = logging.getLogger(__name__)

__all__ = ["HybridSearchEngine"]

T = TypeVar("T")


class HybridSearchEngine:
    """
    Hybrid search over legislative proposals.

    Search failures never reach the caller: any collaborator error or
    timeout is logged and answered with an empty response.

    Example:
        >>> engine = HybridSearchEngine(repository, embedder, catalog)
        >>> response = await engine.search(SearchQuery(query="PL 680/2025"))
    """

    def __init__(
        self,
        datastore: Datastore,
        embedder: Embedder,
        catalog: LexiconCatalog | None = None,
        vocabulary: Vocabulary | None = None,
        max_results: int = 1000,
        timeout_seconds: float | None = None,
        current_year: int | None = None,
    ) -> None:
        """
        Initialize hybrid search engine.

        Args:
            datastore: Proposal storage
            embedder: Text embedding model
            catalog: Known authors and parties, loaded at startup
            vocabulary: Stopwords and thematic terms
            max_results: Cap on candidates retrieved per request
            timeout_seconds: Request-scoped timeout for collaborator calls
            current_year: Fixed year for "últimos N anos"; defaults to today
        """
        self._vocabulary = vocabulary or Vocabulary()
        self._catalog = catalog or LexiconCatalog.empty()
        self._extractor = StructuredFilterExtractor(
            self._catalog, self._vocabulary, current_year=current_year
        )
        self._retriever = HybridRetriever(datastore, embedder, self._vocabulary, max_results)
        self._timeout = timeout_seconds

    @property
    def catalog(self) -> LexiconCatalog:
        return self._catalog

    def interpret(self, query: SearchQuery) -> StructuredFilter:
        """Extract filters from the raw query and apply the exclusions."""
        search_filter = self._extractor.extract(query.query)
        return reincorporate_exclusions(search_filter, query.excluded_filters)

    async def search(self, query: SearchQuery) -> SearchResponse:
        """
        Execute hybrid search.

        Args:
            query: Raw query text, page, size and excluded facet values

        Returns:
            One page of ranked results with applied filters and highlights
        """
        if not query.query.strip():
            return self._empty(query)

        try:
            return await asyncio.wait_for(self._search(query), timeout=self._timeout)
        except TimeoutError:
            logger.exception("Search timed out after %ss: query='%s'", self._timeout, query.query[:50])
        except SearchError:
            logger.exception("Search failed: query='%s'", query.query[:50])
        return self._empty(query)

    async def _search(self, query: SearchQuery) -> SearchResponse:
        search_filter = self.interpret(query)
        result = await self._retriever.retrieve(search_filter, query.page, query.size)

        if result.paged:
            proposals = [c.proposal for c in result.candidates]
            total = result.total_count
        else:
            proposals, total = self._rank_page(query, search_filter, result.candidates, result.query_terms)

        response = self._respond(query, search_filter, proposals, total)
        logger.info(
            "Search: query='%s' -> %d of %d results (exact=%d, semantic=%d)",
            query.query[:50],
            len(response.results),
            total,
            result.exact_count,
            result.semantic_count,
        )
        return response

    async def stream(self, query: SearchQuery) -> AsyncIterator[SearchResponse]:
        """
        Yield a provisional page from the exact pass, then the complete page.

        The provisional frame has ``result_type="exact"``. Filter-only and
        blank queries yield the complete frame only; a failure at any point
        yields a single empty complete frame. The request timeout covers the
        whole stream, not each step.
        """
        if not query.query.strip():
            yield self._empty(query)
            return

        deadline = self._deadline()
        try:
            search_filter = self.interpret(query)
            ids = await self._bounded(self._retriever.resolve_ids(search_filter), deadline)
            if not ids:
                yield self._respond(query, search_filter, [], 0)
                return

            if not search_filter.semantic_text.strip():
                candidates = await self._bounded(
                    self._retriever.fetch_page(ids, query.page, query.size), deadline
                )
                yield self._respond(query, search_filter, [c.proposal for c in candidates], len(ids))
                return

            terms = query_terms(search_filter, self._vocabulary)
            exact = await self._bounded(self._retriever.exact_pass(ids, terms), deadline)
        except SearchError:
            logger.exception("Streaming search failed: query='%s'", query.query[:50])
            yield self._empty(query)
            return

        proposals, total = self._rank_page(query, search_filter, exact, terms)
        yield self._respond(query, search_filter, proposals, total, result_type="exact")

        try:
            semantic: list[Candidate] = []
            cap = self._retriever.max_results
            if len(exact) < cap:
                semantic = await self._bounded(
                    self._retriever.semantic_pass(
                        ids,
                        search_filter.semantic_text,
                        [c.proposal.id for c in exact],
                        cap - len(exact),
                    ),
                    deadline,
                )
        except SearchError:
            logger.exception("Streaming semantic pass failed: query='%s'", query.query[:50])
            yield self._empty(query)
            return

        proposals, total = self._rank_page(query, search_filter, exact + semantic, terms)
        yield self._respond(query, search_filter, proposals, total)

    def _deadline(self) -> float | None:
        if self._timeout is None:
            return None
        return asyncio.get_running_loop().time() + self._timeout

    async def _bounded(self, awaitable: Awaitable[T], deadline: float | None) -> T:
        # Every step of one stream shares the same deadline
        try:
            async with asyncio.timeout_at(deadline):
                return await awaitable
        except TimeoutError as e:
            raise CollaboratorError(
                f"Search exceeded {self._timeout}s", timed_out=True
            ) from e

    def _rank_page(
        self,
        query: SearchQuery,
        search_filter: StructuredFilter,
        candidates: list[Candidate],
        terms: Sequence[str],
    ) -> tuple[list[Proposal], int]:
        ranked = rank_candidates(candidates, terms)
        ranked = apply_exact_phrase_filter(ranked, search_filter.exact_phrases)
        page = paginate(ranked, query.page, query.size)
        return [r.proposal for r in page], len(ranked)

    def _respond(
        self,
        query: SearchQuery,
        search_filter: StructuredFilter,
        proposals: list[Proposal],
        total: int,
        result_type: str = "complete",
    ) -> SearchResponse:
        return SearchResponse(
            results=[to_view(p) for p in proposals],
            applied_filters=applied_filters(search_filter),
            page=query.page,
            page_size=query.size,
            total_count=total,
            has_more=has_more(query.page, query.size, total),
            highlight_terms=highlight_terms(query.query, search_filter.exact_phrases, self._vocabulary),
            result_type=result_type,
        )

    def _empty(self, query: SearchQuery) -> SearchResponse:
        return SearchResponse(page=query.page, page_size=query.size)
