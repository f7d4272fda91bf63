"""
SQLite Adapter - Proposal storage.
"""

from .repository import SQLiteRepository

__all__ = ["SQLiteRepository"]
