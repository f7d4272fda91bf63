"""
Search Domain - Hybrid search over legislative proposals.

This domain handles:
- Query interpretation (type, number, years, authors, quoted phrases)
- Facet exclusions fed back into the semantic text
- Exact substring + vector similarity retrieval
- Provenance-first ranking, pagination and highlight terms
"""

from .contracts import Datastore, Embedder, SearchEngine
from .extractor import StructuredFilterExtractor
from .hybrid_search import HybridSearchEngine
from .lexicon import LexiconCatalog
from .models import (
    Candidate,
    Proposal,
    ProposalType,
    ProposalView,
    Provenance,
    RankedResult,
    SearchQuery,
    SearchResponse,
    StructuredFilter,
)
from .normalizer import normalize
from .retriever import HybridRetriever
from .vocabulary import Vocabulary

__all__ = [
    "Datastore",
    "Embedder",
    "SearchEngine",
    "StructuredFilterExtractor",
    "HybridRetriever",
    "HybridSearchEngine",
    "LexiconCatalog",
    "Vocabulary",
    "normalize",
    "Candidate",
    "Proposal",
    "ProposalType",
    "ProposalView",
    "Provenance",
    "RankedResult",
    "SearchQuery",
    "SearchResponse",
    "StructuredFilter",
]
