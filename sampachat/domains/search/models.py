"""
Search Models - Data types for search domain.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

FACET_AUTHOR = "Autor"
FACET_YEAR = "Ano"
FACET_TYPE = "Tipo"
FACET_NUMBER = "Número"

FACETS = (FACET_AUTHOR, FACET_YEAR, FACET_TYPE, FACET_NUMBER)


class ProposalType(str, Enum):
    """Legislative proposal types of the São Paulo city council."""

    PL = "PL"  # Projeto de Lei
    PDL = "PDL"  # Projeto de Decreto Legislativo
    PLO = "PLO"  # Projeto de Lei Orgânica
    PR = "PR"  # Projeto de Resolução

    @property
    def matter_code(self) -> int:
        """SPLegis "matéria legislativa" code."""
        return _MATTER_CODES[self]


_MATTER_CODES = {
    ProposalType.PL: 1,
    ProposalType.PDL: 2,
    ProposalType.PLO: 3,
    ProposalType.PR: 4,
}


class Provenance(str, Enum):
    """Which retrieval pass produced a candidate."""

    EXACT = "exact"
    SEMANTIC = "semantic"


class Proposal(BaseModel):
    """A legislative bill record as stored by the Datastore."""

    id: int
    type: ProposalType
    number: int
    year: int
    author: str | None = None
    summary: str | None = None  # ementa
    keywords: str | None = None  # palavras-chave, pipe-separated

    model_config = {"frozen": True}

    @property
    def keyword_text(self) -> str:
        return (self.keywords or "").replace("|", " ")


class StructuredFilter(BaseModel):
    """Filters parsed from a free-form query plus the residual semantic text."""

    type: ProposalType | None = None
    number: int | None = Field(default=None, ge=1, le=1500)
    years: tuple[int, ...] = ()
    authors: tuple[str, ...] = ()
    exact_phrases: tuple[str, ...] = ()
    semantic_text: str = ""

    model_config = {"frozen": True}

    @property
    def has_structure(self) -> bool:
        return bool(self.type or self.number or self.years or self.authors)


class Candidate(BaseModel):
    """A proposal returned by one of the retrieval passes."""

    proposal: Proposal
    provenance: Provenance

    model_config = {"frozen": True}


class RankedResult(BaseModel):
    """Candidate with the term statistics used for ordering."""

    candidate: Candidate
    unique_term_hits: int = 0
    total_term_occurrences: int = 0

    model_config = {"frozen": True}

    @property
    def proposal(self) -> Proposal:
        return self.candidate.proposal


class RetrievalResult(BaseModel):
    """Output of the retriever for one request."""

    candidates: list[Candidate] = Field(default_factory=list)
    query_terms: list[str] = Field(default_factory=list)
    total_count: int = 0
    exact_count: int = 0
    semantic_count: int = 0
    # Filter-only searches are already ordered and paginated by the Datastore
    paged: bool = False


class SearchQuery(BaseModel):
    """Search request."""

    query: str = ""
    page: int = Field(default=0, ge=0)
    size: int = Field(default=20, ge=1)
    excluded_filters: dict[str, list[str]] = Field(default_factory=dict)

    model_config = {"frozen": True}


class ProposalView(BaseModel):
    """Proposal as returned to clients, with external links."""

    id: int
    type: ProposalType
    number: int
    year: int
    author: str | None = None
    summary: str | None = None
    keywords: str | None = None
    link_splegis: str
    link_portal: str
    link_pdf: str


class SearchResponse(BaseModel):
    """Paginated search result."""

    results: list[ProposalView] = Field(default_factory=list)
    applied_filters: dict[str, list[str]] = Field(default_factory=dict)
    page: int = 0
    page_size: int = 20
    total_count: int = 0
    has_more: bool = False
    highlight_terms: list[str] = Field(default_factory=list)
    result_type: str = "complete"  # "exact" for the provisional streamed frame
