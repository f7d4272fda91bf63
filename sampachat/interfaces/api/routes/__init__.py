"""
API Routes.
"""

from . import config, health, search

__all__ = ["config", "health", "search"]
