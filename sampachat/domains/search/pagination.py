"""
Pagination and highlight term extraction.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from .vocabulary import Vocabulary

__all__ = ["has_more", "highlight_terms", "paginate"]

T = TypeVar("T")


def paginate(items: Sequence[T], page: int, size: int) -> list[T]:
    """Slice ``items`` to the zero-based ``page``; empty past the end."""
    start = page * size
    if start >= len(items):
        return []
    return list(items[start : start + size])


def has_more(page: int, size: int, total: int) -> bool:
    return (page + 1) * size < total


def highlight_terms(
    raw_query: str,
    exact_phrases: Sequence[str],
    vocabulary: Vocabulary,
) -> list[str]:
    """
    Terms the UI should highlight in result text.

    Raw query tokens first, then quoted phrases, skipping one-character
    tokens and stopwords. Order of first appearance is kept.
    """
    terms: list[str] = []
    for token in (raw_query or "").split():
        token = token.strip('"')
        if len(token) > 1 and not vocabulary.is_stopword(token) and token not in terms:
            terms.append(token)
    for phrase in exact_phrases:
        phrase = phrase.strip()
        if len(phrase) > 1 and not vocabulary.is_stopword(phrase) and phrase not in terms:
            terms.append(phrase)
    return terms
