"""
API Dependencies - Dependency injection for FastAPI routes.

Provides singleton instances of storage, embedding and search objects.
The search engine is built once at startup, after the lexicon catalog is
loaded, and shared read-only by every request.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from sampachat.adapters.embeddings import SentenceTransformerEmbedder
from sampachat.adapters.faiss import FAISSIndex
from sampachat.adapters.sqlite import SQLiteRepository
from sampachat.config import ErrorCode, SearchError, get_settings
from sampachat.domains.search import HybridSearchEngine, LexiconCatalog, Vocabulary

logger = logging.getLogger(__name__)

_engine: HybridSearchEngine | None = None


@lru_cache
def get_faiss_index() -> FAISSIndex:
    """Get FAISS index singleton."""
    settings = get_settings()
    return FAISSIndex(dimension=settings.embedding_dimension)


@lru_cache
def get_sqlite_repository() -> SQLiteRepository:
    """Get SQLite repository singleton."""
    settings = get_settings()
    return SQLiteRepository(settings.db_path, vector_index=get_faiss_index())


@lru_cache
def get_embedder() -> SentenceTransformerEmbedder:
    """Get embedder singleton."""
    settings = get_settings()
    return SentenceTransformerEmbedder(settings.embedding_model)


def build_search_engine(catalog: LexiconCatalog) -> HybridSearchEngine:
    """Create a search engine wired to the configured adapters."""
    settings = get_settings()
    return HybridSearchEngine(
        datastore=get_sqlite_repository(),
        embedder=get_embedder(),
        catalog=catalog,
        vocabulary=Vocabulary.create(settings.thematic_terms),
        max_results=settings.max_results,
        timeout_seconds=settings.collaborator_timeout_seconds,
    )


def get_search_engine() -> HybridSearchEngine:
    """Get the search engine built by init_services."""
    if _engine is None:
        raise SearchError(
            "Search engine not initialized",
            code=ErrorCode.SEARCH_INDEX_UNAVAILABLE,
        )
    return _engine


async def init_services() -> None:
    """
    Initialize services on startup.

    This should be called from the FastAPI lifespan handler.
    """
    global _engine
    settings = get_settings()

    # Initialize SQLite
    repo = get_sqlite_repository()
    await repo.initialize()

    # Load FAISS index when one has been built
    index = get_faiss_index()
    if FAISSIndex.exists(settings.faiss_index_path):
        await index.load(settings.faiss_index_path)
    else:
        logger.warning(
            "No FAISS index at %s; semantic pass disabled until `sampachat reindex`",
            settings.faiss_index_path,
        )

    catalog = await LexiconCatalog.load(repo)
    _engine = build_search_engine(catalog)


async def cleanup_services() -> None:
    """Cleanup services on shutdown."""
    global _engine
    repo = get_sqlite_repository()
    await repo.close()
    _engine = None
