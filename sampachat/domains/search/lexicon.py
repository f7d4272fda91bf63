"""
Lexicon Catalog - Known author names and party codes.

Built once at startup from the Datastore and shared read-only by every
request. A refresh builds a new catalog; an existing one is never mutated.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .contracts import Datastore

logger = logging.getLogger(__name__)

__all__ = ["LexiconCatalog"]

_PARTY_PATTERN = re.compile(r"\((.*?)\)")


@dataclass(frozen=True)
class LexiconCatalog:
    """
    Immutable set of author display names and derived party codes.

    Example:
        >>> catalog = LexiconCatalog.from_authors(["Keit Lima (PSOL)"])
        >>> sorted(catalog.parties)
        ['psol']
    """

    authors: frozenset[str] = field(default_factory=frozenset)
    parties: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_authors(cls, authors: Iterable[str]) -> LexiconCatalog:
        """Build a catalog from raw "Name (PARTY)" strings."""
        names = frozenset(a.strip() for a in authors if a and a.strip())
        parties = set()
        for name in names:
            match = _PARTY_PATTERN.search(name)
            if match and match.group(1).strip():
                parties.add(match.group(1).strip().lower())
        return cls(authors=names, parties=frozenset(parties))

    @classmethod
    def empty(cls) -> LexiconCatalog:
        return cls()

    @classmethod
    async def load(cls, datastore: Datastore) -> LexiconCatalog:
        """
        Load the catalog from the Datastore's distinct-author listing.

        Never raises: a failing Datastore leaves the catalog empty, which
        turns author and party extraction into a no-op.
        """
        try:
            authors = await datastore.distinct_authors()
        except Exception:
            logger.exception("Failed to load author catalog; author extraction disabled")
            return cls.empty()

        catalog = cls.from_authors(authors)
        logger.info(
            "Lexicon catalog loaded: %d authors, %d parties",
            len(catalog.authors),
            len(catalog.parties),
        )
        return catalog

    def sorted_authors(self) -> list[str]:
        """Authors in a stable order so extraction is deterministic."""
        return sorted(self.authors)

    def sorted_parties(self) -> list[str]:
        return sorted(self.parties)
