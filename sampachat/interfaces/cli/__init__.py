"""
CLI Interface - Command-line tools for SampaChat.

Provides commands for:
- Proposal search
- FAISS index rebuild
- System management
"""

from .main import app, main

__all__ = ["app", "main"]
