"""
Facet exclusions - Return user-removed filters to the semantic text.

When a user dismisses an applied filter chip ("Autor: Keit Lima"), the value
is not dropped: it is appended to the semantic text so it still biases
retrieval, only no longer as a hard constraint.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence

from .models import (
    FACET_AUTHOR,
    FACET_NUMBER,
    FACET_TYPE,
    FACET_YEAR,
    StructuredFilter,
)
from .normalizer import collapse_whitespace, normalize

logger = logging.getLogger(__name__)

__all__ = ["applied_filters", "display_author", "reincorporate_exclusions"]

_PARENS = re.compile(r"\s*\((.*?)\)")


def display_author(author: str) -> str:
    """
    Author as shown in applied filters.

    Party-only entries ("(psol)") become the bare code in upper case; any
    "(PARTY)" suffix on a person's name is dropped.
    """
    stripped = author.strip()
    if stripped.startswith("(") and stripped.endswith(")"):
        return stripped[1:-1].strip().upper()
    return _PARENS.sub("", stripped).strip()


def _author_excluded(author: str, excluded: set[str]) -> bool:
    return normalize(author) in excluded or normalize(display_author(author)) in excluded


def reincorporate_exclusions(
    search_filter: StructuredFilter,
    excluded_filters: Mapping[str, Sequence[str]] | None,
) -> StructuredFilter:
    """
    Remove excluded facet values from the filter, feeding them back as text.

    Args:
        search_filter: Output of the extractor
        excluded_filters: Facet name -> values the user removed

    Returns:
        New filter; the input is left untouched
    """
    if not excluded_filters:
        return search_filter

    def wanted(facet: str) -> set[str]:
        return {normalize(v.strip()) for v in excluded_filters.get(facet, ()) if v}

    extra: list[str] = []
    authors = list(search_filter.authors)
    years = list(search_filter.years)
    proposal_type = search_filter.type
    number = search_filter.number

    excluded_authors = wanted(FACET_AUTHOR)
    if excluded_authors:
        kept = []
        for author in authors:
            if _author_excluded(author, excluded_authors):
                # Surname keeps most of the signal without re-triggering extraction
                extra.append(display_author(author).split()[-1].lower())
            else:
                kept.append(author)
        authors = kept

    excluded_years = wanted(FACET_YEAR)
    if excluded_years:
        extra.extend(str(y) for y in years if str(y) in excluded_years)
        years = [y for y in years if str(y) not in excluded_years]

    if proposal_type is not None and normalize(proposal_type.value) in wanted(FACET_TYPE):
        extra.append(proposal_type.value.lower())
        proposal_type = None

    if number is not None and str(number) in wanted(FACET_NUMBER):
        extra.append(str(number))
        number = None

    if not extra:
        return search_filter

    logger.debug("Reincorporated excluded facet values: %s", extra)
    return search_filter.model_copy(
        update={
            "type": proposal_type,
            "number": number,
            "years": tuple(years),
            "authors": tuple(authors),
            "semantic_text": collapse_whitespace(f"{search_filter.semantic_text} {' '.join(extra)}"),
        }
    )


def applied_filters(search_filter: StructuredFilter) -> dict[str, list[str]]:
    """Facet name -> display values; only non-empty facets are present."""
    facets: dict[str, list[str]] = {}
    if search_filter.authors:
        facets[FACET_AUTHOR] = list(dict.fromkeys(display_author(a) for a in search_filter.authors))
    if search_filter.years:
        facets[FACET_YEAR] = [str(y) for y in search_filter.years]
    if search_filter.type is not None:
        facets[FACET_TYPE] = [search_filter.type.value]
    if search_filter.number is not None:
        facets[FACET_NUMBER] = [str(search_filter.number)]
    return facets
