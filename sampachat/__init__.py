"""
SampaChat - Hybrid search over São Paulo city council legislative proposals.

Example:
    >>> from sampachat.domains.search import HybridSearchEngine, SearchQuery
    >>> engine = HybridSearchEngine(repository, embedder, catalog)
    >>> response = await engine.search(SearchQuery(query="PL 680/2025"))
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
