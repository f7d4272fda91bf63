"""
FastAPI Main Application - Unified API entry point.

Run with: uvicorn sampachat.interfaces.api.main:app --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sampachat import __version__
from sampachat.config import get_settings

from .deps import cleanup_services, init_services
from .middleware import ErrorHandlerMiddleware, RequestContextMiddleware
from .routes import config, health, search

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info("Starting SampaChat API...")
    logger.info("  Database: %s", settings.db_path)
    logger.info("  Embedding model: %s", settings.embedding_model)

    # Initialize resources (SQLite, FAISS, lexicon catalog, engine)
    await init_services()
    logger.info("  Services initialized")

    yield

    logger.info("Shutting down SampaChat API...")
    await cleanup_services()


def create_app() -> FastAPI:
    """Create FastAPI application."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="SampaChat API",
        description="Hybrid search over São Paulo city council legislative proposals",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters - first added = innermost)
    # 1. Error handling (catch exceptions from routes)
    app.add_middleware(ErrorHandlerMiddleware)

    # 2. Request ID and latency
    app.add_middleware(RequestContextMiddleware)

    # 3. CORS (framework middleware)
    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8000",
    ]
    if settings.api_debug:
        allowed_origins.append("http://localhost:*")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(config.router, tags=["Config"])
    app.include_router(search.router, prefix="/api/search", tags=["Search"])

    return app


# Create app instance
app = create_app()
