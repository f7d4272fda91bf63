"""
Text normalization for case- and accent-insensitive comparison.
"""

from __future__ import annotations

import re
import string
import unicodedata

__all__ = ["normalize", "collapse_whitespace", "word_key"]

_WHITESPACE = re.compile(r"\s+")
_EDGE_PUNCTUATION = string.punctuation + "“”‘’«»–—…"


def normalize(text: str | None) -> str:
    """Lowercase and strip combining diacritical marks.

    Idempotent: ``normalize(normalize(x)) == normalize(x)``.

    Example:
        >>> normalize("Saúde PÚBLICA")
        'saude publica'
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and trim."""
    return _WHITESPACE.sub(" ", text).strip()


def word_key(token: str) -> str:
    """Normalized form of a single token without surrounding punctuation."""
    return normalize(token).strip(_EDGE_PUNCTUATION)
