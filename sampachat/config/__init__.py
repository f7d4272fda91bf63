"""
Configuration - Application settings and error taxonomy.
"""

from .errors import (
    CollaboratorError,
    EmbeddingError,
    ErrorCode,
    SampaChatError,
    SearchError,
    StorageError,
)
from .settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Errors
    "ErrorCode",
    "SampaChatError",
    "SearchError",
    "CollaboratorError",
    "EmbeddingError",
    "StorageError",
]
