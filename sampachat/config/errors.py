"""
Error Taxonomy - Consistent error codes across the application.

Usage:
    from sampachat.config.errors import ErrorCode, SampaChatError

    raise SampaChatError(ErrorCode.STORAGE_READ_FAILED, "proposals table missing")
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error responses."""

    # Search errors
    SEARCH_INVALID_QUERY = "SEARCH_INVALID_QUERY"
    SEARCH_INDEX_UNAVAILABLE = "SEARCH_INDEX_UNAVAILABLE"
    SEARCH_COLLABORATOR_FAILED = "SEARCH_COLLABORATOR_FAILED"
    SEARCH_TIMEOUT = "SEARCH_TIMEOUT"

    # Embedding errors
    EMBEDDING_UNAVAILABLE = "EMBEDDING_UNAVAILABLE"
    EMBEDDING_FAILED = "EMBEDDING_FAILED"

    # Storage errors
    STORAGE_CONNECTION_FAILED = "STORAGE_CONNECTION_FAILED"
    STORAGE_READ_FAILED = "STORAGE_READ_FAILED"
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"


class SampaChatError(Exception):
    """Base exception with error code support."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


# Domain-specific exceptions for cleaner imports
class SearchError(SampaChatError):
    """Search domain errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.SEARCH_INVALID_QUERY,
    ) -> None:
        super().__init__(code, message, details)


class CollaboratorError(SearchError):
    """A Datastore or Embedder call failed or timed out during a search."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        timed_out: bool = False,
    ) -> None:
        code = ErrorCode.SEARCH_TIMEOUT if timed_out else ErrorCode.SEARCH_COLLABORATOR_FAILED
        super().__init__(message, details, code=code)
        self.timed_out = timed_out


class EmbeddingError(SampaChatError):
    """Embedding model errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.EMBEDDING_FAILED, message, details)


class StorageError(SampaChatError):
    """Storage/database errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.STORAGE_CONNECTION_FAILED, message, details)
