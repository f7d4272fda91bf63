"""
Tests for search domain models, the hybrid retriever and the search engine.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import numpy as np
import pytest

from sampachat.config.errors import CollaboratorError, ErrorCode

from .hybrid_search import HybridSearchEngine
from .lexicon import LexiconCatalog
from .models import Proposal, ProposalType, Provenance, SearchQuery, StructuredFilter
from .retriever import HybridRetriever, query_terms
from .vocabulary import Vocabulary


def make_proposal(
    id: int,
    summary: str,
    year: int = 2020,
    number: int | None = None,
    author: str | None = None,
) -> Proposal:
    return Proposal(
        id=id,
        type=ProposalType.PL,
        number=number or id,
        year=year,
        author=author,
        summary=summary,
    )


# --- SearchQuery Tests ---


def test_search_query_defaults() -> None:
    """Test SearchQuery with minimal fields."""
    query = SearchQuery(query="saude")
    assert query.page == 0
    assert query.size == 20
    assert query.excluded_filters == {}


def test_search_query_validation() -> None:
    """Test page must be >= 0 and size >= 1."""
    with pytest.raises(ValueError):
        SearchQuery(query="x", page=-1)
    with pytest.raises(ValueError):
        SearchQuery(query="x", size=0)


def test_structured_filter_number_bounds() -> None:
    with pytest.raises(ValueError):
        StructuredFilter(number=1501)
    assert StructuredFilter(number=1500).number == 1500


def test_search_query_is_immutable() -> None:
    """Test SearchQuery is frozen/immutable."""
    query = SearchQuery(query="test")
    with pytest.raises(Exception):
        query.query = "changed"  # type: ignore


# --- Fixtures ---


@pytest.fixture
def mock_datastore() -> AsyncMock:
    """Create a mock datastore with two exact and one semantic match."""
    mock = AsyncMock()
    mock.filter_ids.return_value = [1, 2, 3, 4]
    mock.exact_match.return_value = [
        make_proposal(1, "Programa de saúde nas escolas", year=2019),
        make_proposal(2, "Saúde da mulher e saúde mental", year=2021),
    ]
    mock.vector_match.return_value = [
        make_proposal(3, "Atendimento hospitalar", year=2024),
    ]
    mock.by_ids.return_value = [make_proposal(4, "Denomina logradouro", year=2022)]
    mock.distinct_authors.return_value = ["Keit Lima (PSOL)"]
    return mock


@pytest.fixture
def mock_embedder() -> AsyncMock:
    """Create a mock embedder."""
    mock = AsyncMock()
    mock.embed.return_value = np.array([0.1, 0.2, 0.3] * 128, dtype=np.float32)
    return mock


@pytest.fixture
def search_engine(mock_datastore: AsyncMock, mock_embedder: AsyncMock) -> HybridSearchEngine:
    """Create a HybridSearchEngine with mocked dependencies."""
    return HybridSearchEngine(
        datastore=mock_datastore,
        embedder=mock_embedder,
        catalog=LexiconCatalog.from_authors(["Keit Lima (PSOL)"]),
        current_year=2025,
    )


# --- HybridRetriever Tests ---


def test_query_terms_from_text_and_phrases() -> None:
    """Test terms skip stopwords and include phrases whole and split."""
    search_filter = StructuredFilter(
        semantic_text="Saúde de mulher a mulher",
        exact_phrases=("Violência Doméstica",),
    )
    assert query_terms(search_filter, Vocabulary()) == [
        "saude",
        "mulher",
        "violencia domestica",
        "violencia",
        "domestica",
    ]


async def test_retrieve_exact_then_semantic(
    mock_datastore: AsyncMock, mock_embedder: AsyncMock
) -> None:
    """Test the semantic pass excludes exact ids and fills the remaining quota."""
    retriever = HybridRetriever(mock_datastore, mock_embedder, max_results=10)

    result = await retriever.retrieve(StructuredFilter(semantic_text="saude"), 0, 20)

    assert [c.proposal.id for c in result.candidates] == [2, 1, 3]
    assert [c.provenance for c in result.candidates] == [
        Provenance.EXACT,
        Provenance.EXACT,
        Provenance.SEMANTIC,
    ]
    assert (result.exact_count, result.semantic_count, result.total_count) == (2, 1, 3)
    mock_embedder.embed.assert_awaited_once_with("saude")
    ids, exclude_ids, _, limit = mock_datastore.vector_match.call_args.args
    assert ids == [1, 2, 3, 4]
    assert sorted(exclude_ids) == [1, 2]
    assert limit == 8


async def test_retrieve_discards_false_positive_exact_matches(
    mock_datastore: AsyncMock, mock_embedder: AsyncMock
) -> None:
    """Test exact matches are re-validated locally."""
    mock_datastore.exact_match.return_value = [
        make_proposal(1, "Saúde pública"),
        make_proposal(2, "Sem relação"),
    ]
    retriever = HybridRetriever(mock_datastore, mock_embedder)

    exact = await retriever.exact_pass([1, 2], ["saude"])

    assert [c.proposal.id for c in exact] == [1]


async def test_retrieve_skips_semantic_when_quota_full(
    mock_datastore: AsyncMock, mock_embedder: AsyncMock
) -> None:
    retriever = HybridRetriever(mock_datastore, mock_embedder, max_results=2)

    result = await retriever.retrieve(StructuredFilter(semantic_text="saude"), 0, 20)

    assert result.semantic_count == 0
    mock_embedder.embed.assert_not_called()
    mock_datastore.vector_match.assert_not_called()


async def test_retrieve_no_ids_is_terminal(
    mock_datastore: AsyncMock, mock_embedder: AsyncMock
) -> None:
    mock_datastore.filter_ids.return_value = []
    retriever = HybridRetriever(mock_datastore, mock_embedder)

    result = await retriever.retrieve(StructuredFilter(semantic_text="saude"), 0, 20)

    assert result.candidates == []
    assert result.total_count == 0
    mock_datastore.exact_match.assert_not_called()


async def test_retrieve_filter_only_uses_datastore_paging(
    mock_datastore: AsyncMock, mock_embedder: AsyncMock
) -> None:
    """Test blank semantic text fetches a page by id in datastore order."""
    retriever = HybridRetriever(mock_datastore, mock_embedder)

    result = await retriever.retrieve(StructuredFilter(type=ProposalType.PL), 2, 5)

    assert result.paged is True
    assert result.total_count == 4
    mock_datastore.by_ids.assert_awaited_once_with([1, 2, 3, 4], offset=10, limit=5)
    mock_datastore.exact_match.assert_not_called()


async def test_retrieve_wraps_collaborator_failure(
    mock_datastore: AsyncMock, mock_embedder: AsyncMock
) -> None:
    mock_embedder.embed.side_effect = RuntimeError("model not loaded")
    retriever = HybridRetriever(mock_datastore, mock_embedder)

    with pytest.raises(CollaboratorError) as exc_info:
        await retriever.retrieve(StructuredFilter(semantic_text="saude"), 0, 20)

    assert exc_info.value.code == ErrorCode.SEARCH_COLLABORATOR_FAILED
    assert exc_info.value.details["operation"] == "embed"
    assert isinstance(exc_info.value.__cause__, RuntimeError)


# --- HybridSearchEngine Tests ---


async def test_search_empty_query(search_engine: HybridSearchEngine, mock_datastore: AsyncMock) -> None:
    """Test blank query returns an empty response without touching storage."""
    response = await search_engine.search(SearchQuery(query=""))

    assert response.total_count == 0
    assert response.results == []
    assert response.highlight_terms == []
    mock_datastore.filter_ids.assert_not_called()


async def test_search_basic(search_engine: HybridSearchEngine) -> None:
    """Test ranked results with links and highlights."""
    response = await search_engine.search(SearchQuery(query="saúde"))

    assert [r.id for r in response.results] == [2, 1, 3]
    assert response.total_count == 3
    assert response.has_more is False
    assert response.highlight_terms == ["saúde"]
    assert response.applied_filters == {}
    assert response.result_type == "complete"
    assert response.results[0].link_pdf.endswith("PL0002-2021.pdf")


async def test_search_structured_filters(
    search_engine: HybridSearchEngine, mock_datastore: AsyncMock
) -> None:
    """Test "PL 123 de 2020 saude" applies type, number and year."""
    response = await search_engine.search(SearchQuery(query="PL 123 de 2020 saude"))

    assert response.applied_filters == {"Tipo": ["PL"], "Número": ["123"], "Ano": ["2020"]}
    search_filter = mock_datastore.filter_ids.call_args.args[0]
    assert search_filter.type == ProposalType.PL
    assert search_filter.number == 123
    assert search_filter.years == (2020,)
    assert "saude" in search_filter.semantic_text


async def test_search_filter_only(search_engine: HybridSearchEngine, mock_datastore: AsyncMock) -> None:
    """Test a purely structural query pages through the filtered ids."""
    response = await search_engine.search(SearchQuery(query="PL 2022", size=1))

    assert [r.id for r in response.results] == [4]
    assert response.total_count == 4
    assert response.has_more is True
    mock_datastore.exact_match.assert_not_called()


async def test_search_page_beyond_end(search_engine: HybridSearchEngine) -> None:
    """Test an out-of-range page is empty but keeps the total."""
    response = await search_engine.search(SearchQuery(query="saude", page=5, size=2))

    assert response.results == []
    assert response.total_count == 3
    assert response.has_more is False


async def test_search_page_size_respected(search_engine: HybridSearchEngine) -> None:
    response = await search_engine.search(SearchQuery(query="saude", size=2))
    assert len(response.results) == 2
    assert response.has_more is True


async def test_search_exact_phrase(
    search_engine: HybridSearchEngine, mock_datastore: AsyncMock
) -> None:
    """Test every returned proposal contains the quoted phrase."""
    mock_datastore.exact_match.return_value = [
        make_proposal(1, "Plano de Mobilidade Urbana"),
        make_proposal(2, "Mobilidade na zona urbana"),
    ]
    mock_datastore.vector_match.return_value = [make_proposal(3, "Ciclovias")]

    response = await search_engine.search(SearchQuery(query='"mobilidade urbana"'))

    assert [r.id for r in response.results] == [1]
    assert response.total_count == 1
    assert "mobilidade urbana" in response.highlight_terms


async def test_search_author_filter(
    search_engine: HybridSearchEngine, mock_datastore: AsyncMock
) -> None:
    response = await search_engine.search(SearchQuery(query="keit lima saude"))

    assert response.applied_filters == {"Autor": ["Keit Lima"]}
    assert mock_datastore.filter_ids.call_args.args[0].authors == ("Keit Lima",)


async def test_search_excluded_filter_reincorporated(
    search_engine: HybridSearchEngine, mock_datastore: AsyncMock
) -> None:
    """Test an excluded facet is dropped from filters but kept as text."""
    baseline = await search_engine.search(SearchQuery(query="keit lima saude"))
    response = await search_engine.search(
        SearchQuery(query="keit lima saude", excluded_filters={"Autor": ["Keit Lima"]})
    )

    search_filter = mock_datastore.filter_ids.call_args.args[0]
    assert search_filter.authors == ()
    assert search_filter.semantic_text == "saude lima"
    assert response.applied_filters == {}
    assert response.total_count >= baseline.total_count


async def test_search_no_matching_ids_keeps_filters(
    search_engine: HybridSearchEngine, mock_datastore: AsyncMock
) -> None:
    mock_datastore.filter_ids.return_value = []

    response = await search_engine.search(SearchQuery(query="PL 999 saude"))

    assert response.total_count == 0
    assert response.results == []
    assert response.applied_filters["Número"] == ["999"]


async def test_search_collaborator_failure_returns_empty(
    search_engine: HybridSearchEngine, mock_datastore: AsyncMock
) -> None:
    """Test storage failures never reach the caller."""
    mock_datastore.filter_ids.side_effect = RuntimeError("database is locked")

    response = await search_engine.search(SearchQuery(query="PL 123 saude", page=1))

    assert response.total_count == 0
    assert response.results == []
    assert response.highlight_terms == []
    assert response.applied_filters == {}
    assert response.page == 1


async def test_search_timeout_returns_empty(
    mock_datastore: AsyncMock, mock_embedder: AsyncMock
) -> None:
    """Test a slow collaborator is cut off by the request timeout."""

    async def slow_embed(text: str) -> np.ndarray:
        await asyncio.sleep(5)
        return np.zeros(3)

    mock_embedder.embed.side_effect = slow_embed
    engine = HybridSearchEngine(mock_datastore, mock_embedder, timeout_seconds=0.05)

    response = await engine.search(SearchQuery(query="saude"))

    assert response.total_count == 0
    assert response.results == []


# --- Streaming Tests ---


async def test_stream_yields_exact_then_complete(search_engine: HybridSearchEngine) -> None:
    frames = [frame async for frame in search_engine.stream(SearchQuery(query="saude"))]

    assert [f.result_type for f in frames] == ["exact", "complete"]
    assert [r.id for r in frames[0].results] == [2, 1]
    assert [r.id for r in frames[1].results] == [2, 1, 3]


async def test_stream_filter_only_single_frame(search_engine: HybridSearchEngine) -> None:
    frames = [frame async for frame in search_engine.stream(SearchQuery(query="PL 2022"))]

    assert len(frames) == 1
    assert frames[0].result_type == "complete"
    assert frames[0].total_count == 4


async def test_stream_semantic_failure_ends_with_empty_frame(
    search_engine: HybridSearchEngine, mock_embedder: AsyncMock
) -> None:
    mock_embedder.embed.side_effect = RuntimeError("model not loaded")

    frames = [frame async for frame in search_engine.stream(SearchQuery(query="saude"))]

    assert [f.result_type for f in frames] == ["exact", "complete"]
    assert frames[-1].total_count == 0


async def test_stream_blank_query(search_engine: HybridSearchEngine) -> None:
    frames = [frame async for frame in search_engine.stream(SearchQuery(query="  "))]
    assert len(frames) == 1
    assert frames[0].total_count == 0


async def test_stream_timeout_covers_whole_stream(
    mock_datastore: AsyncMock, mock_embedder: AsyncMock
) -> None:
    """Test two steps that each fit the timeout still exceed it together."""
    exact = mock_datastore.exact_match.return_value
    vector = mock_embedder.embed.return_value

    async def slow_exact_match(ids, terms):
        await asyncio.sleep(0.12)
        return exact

    async def slow_embed(text: str) -> np.ndarray:
        await asyncio.sleep(0.12)
        return vector

    mock_datastore.exact_match.side_effect = slow_exact_match
    mock_embedder.embed.side_effect = slow_embed
    engine = HybridSearchEngine(mock_datastore, mock_embedder, timeout_seconds=0.2)

    frames = [frame async for frame in engine.stream(SearchQuery(query="saude"))]

    assert [f.result_type for f in frames] == ["exact", "complete"]
    assert frames[0].total_count == 2
    assert frames[-1].total_count == 0
    mock_datastore.vector_match.assert_not_called()
