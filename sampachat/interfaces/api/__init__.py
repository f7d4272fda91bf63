"""
API Interface - FastAPI REST API for proposal search.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
