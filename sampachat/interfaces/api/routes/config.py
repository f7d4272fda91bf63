"""
Config Routes - Search limits the web client reads at startup.
"""

from fastapi import APIRouter

from sampachat.config import get_settings

router = APIRouter()


@router.get("/api/config")
async def client_config() -> dict[str, int]:
    """Page size defaults and the retrieval cap."""
    settings = get_settings()
    return {
        "defaultPageSize": settings.default_page_size,
        "maxPageSize": settings.max_page_size,
        "maxResultsLimit": settings.max_results,
    }
