"""
Search Routes - Proposal search endpoints.

- GET /api/search: one page of ranked results
- GET /api/search/stream: server-sent events, exact-pass frame first
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from sampachat.config import get_settings
from sampachat.domains.search import HybridSearchEngine, SearchQuery, SearchResponse
from sampachat.interfaces.api.deps import get_search_engine
from sampachat.interfaces.api.middleware import EVENT_STREAM, format_event

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_excluded_filters(raw: str | None) -> dict[str, list[str]]:
    """
    Parse the ``excludedFilters`` JSON object.

    Malformed input is logged and ignored so a bad chip state never blocks
    a search.
    """
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed excludedFilters: %s", raw[:200])
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring excludedFilters that is not an object: %s", raw[:200])
        return {}

    excluded: dict[str, list[str]] = {}
    for facet, values in data.items():
        if isinstance(values, str):
            values = [values]
        if isinstance(values, list):
            excluded[str(facet)] = [str(v) for v in values if v is not None]
    return excluded


def build_query(q: str, page: int, size: int | None, excluded_filters: str | None) -> SearchQuery:
    settings = get_settings()
    page_size = min(size or settings.default_page_size, settings.max_page_size)
    return SearchQuery(
        query=q,
        page=page,
        size=page_size,
        excluded_filters=parse_excluded_filters(excluded_filters),
    )


@router.get("", response_model=SearchResponse)
async def search(
    q: str = Query("", description="Free-form query"),
    page: int = Query(0, ge=0),
    size: int | None = Query(None, ge=1),
    excluded_filters: str | None = Query(None, alias="excludedFilters"),
    engine: HybridSearchEngine = Depends(get_search_engine),
) -> SearchResponse:
    """
    Search legislative proposals.

    - **q**: e.g. "PL 680/2025", "mobilidade urbana 2023", "projetos do PSOL"
    - **page**: Zero-based page
    - **size**: Page size (capped by settings)
    - **excludedFilters**: JSON object of facet -> values to drop, e.g. {"Autor": ["Keit Lima"]}
    """
    return await engine.search(build_query(q, page, size, excluded_filters))


@router.get("/stream")
async def search_stream(
    q: str = Query("", description="Free-form query"),
    page: int = Query(0, ge=0),
    size: int | None = Query(None, ge=1),
    excluded_filters: str | None = Query(None, alias="excludedFilters"),
    engine: HybridSearchEngine = Depends(get_search_engine),
) -> StreamingResponse:
    """
    Stream results as SSE: a provisional exact frame, then the complete one.

    The first frame is computed before the response starts, so a failure
    raised there still reaches the error middleware.
    """
    frames = engine.stream(build_query(q, page, size, excluded_filters))
    first = await anext(frames)

    async def events() -> AsyncIterator[str]:
        yield format_event(first)
        async for frame in frames:
            yield format_event(frame)

    return StreamingResponse(events(), media_type=EVENT_STREAM)
