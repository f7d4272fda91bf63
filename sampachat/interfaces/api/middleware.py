"""
API Middleware - Request context and error contract.

- Every response carries ``X-Request-ID`` and ``X-Response-Time-Ms``
- Search collaborator failures on the event stream become an empty frame,
  matching what ``HybridSearchEngine`` returns for the plain endpoint
- Any other SampaChatError becomes a JSON error body with a mapped status
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from sampachat.config import get_settings
from sampachat.config.errors import CollaboratorError, ErrorCode, SampaChatError
from sampachat.domains.search import SearchResponse

logger = logging.getLogger(__name__)

__all__ = ["ErrorHandlerMiddleware", "RequestContextMiddleware", "format_event"]

EVENT_STREAM = "text/event-stream"

_STATUS_BY_CODE = {
    ErrorCode.SEARCH_INVALID_QUERY: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.SEARCH_INDEX_UNAVAILABLE: 503,
    ErrorCode.EMBEDDING_UNAVAILABLE: 503,
    ErrorCode.STORAGE_CONNECTION_FAILED: 503,
    ErrorCode.SEARCH_COLLABORATOR_FAILED: 502,
    ErrorCode.EMBEDDING_FAILED: 502,
    ErrorCode.SEARCH_TIMEOUT: 504,
}


def format_event(frame: SearchResponse) -> str:
    """Render one search frame as a server-sent event."""
    return f"event: {frame.result_type}\ndata: {frame.model_dump_json()}\n\n"


def _int_param(request: Request, name: str, default: int) -> int:
    try:
        return max(int(request.query_params.get(name, default)), 0)
    except ValueError:
        return default


def _empty_frame(request: Request) -> SearchResponse:
    settings = get_settings()
    size = _int_param(request, "size", 0) or settings.default_page_size
    return SearchResponse(
        page=_int_param(request, "page", 0),
        page_size=min(size, settings.max_page_size),
    )


def _is_event_stream(request: Request) -> bool:
    return request.url.path.endswith("/stream") or EVENT_STREAM in request.headers.get("accept", "")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ID and log its latency."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.2f}"
        logger.info(
            "%s %s q=%r status=%d latency_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            request.query_params.get("q", "")[:50],
            response.status_code,
            duration_ms,
            request_id,
        )
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Apply the search error contract to anything a route lets escape."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = getattr(request.state, "request_id", "unknown")
        try:
            return await call_next(request)
        except CollaboratorError as e:
            if not _is_event_stream(request):
                return _error_response(e, request_id)
            logger.error(
                "Stream collaborator failure: %s request_id=%s details=%s",
                e.message,
                request_id,
                e.details,
            )
            return Response(format_event(_empty_frame(request)), media_type=EVENT_STREAM)
        except SampaChatError as e:
            return _error_response(e, request_id)
        except Exception:
            logger.exception("Unhandled error request_id=%s", request_id)
            return JSONResponse(
                status_code=500,
                content={
                    "error": {
                        "code": ErrorCode.INTERNAL_ERROR.value,
                        "message": "Internal server error",
                        "details": {},
                    },
                    "request_id": request_id,
                },
            )


def _error_response(error: SampaChatError, request_id: str) -> JSONResponse:
    logger.error(
        "%s: %s request_id=%s details=%s",
        error.code.value,
        error.message,
        request_id,
        error.details,
    )
    return JSONResponse(
        status_code=_STATUS_BY_CODE.get(error.code, 500),
        content={"error": error.to_dict(), "request_id": request_id},
    )
