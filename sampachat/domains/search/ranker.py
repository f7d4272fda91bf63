"""
Result Ranker - Orders merged candidates by provenance and term coverage.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .models import Candidate, Proposal, Provenance, RankedResult
from .normalizer import normalize

__all__ = [
    "apply_exact_phrase_filter",
    "rank_candidates",
    "term_statistics",
]


def term_statistics(text: str, terms: Sequence[str]) -> tuple[int, int]:
    """
    Count distinct terms present and their total non-overlapping occurrences.

    Both ``text`` and ``terms`` are expected to be normalized already.
    """
    unique = 0
    total = 0
    for term in terms:
        if not term:
            continue
        count = text.count(term)
        if count:
            unique += 1
            total += count
    return unique, total


def _ranking_text(proposal: Proposal) -> str:
    return normalize(f"{proposal.summary or ''} {proposal.keyword_text}")


def rank_candidates(candidates: Iterable[Candidate], terms: Sequence[str]) -> list[RankedResult]:
    """
    Sort candidates into their final order.

    Exact-pass candidates always precede semantic ones; within a provenance
    more distinct term hits wins, then more occurrences, then newer year,
    then higher number.
    """
    ranked = []
    for candidate in candidates:
        unique, total = term_statistics(_ranking_text(candidate.proposal), terms)
        ranked.append(
            RankedResult(candidate=candidate, unique_term_hits=unique, total_term_occurrences=total)
        )

    ranked.sort(
        key=lambda r: (
            r.candidate.provenance is not Provenance.EXACT,
            -r.unique_term_hits,
            -r.total_term_occurrences,
            -r.proposal.year,
            -r.proposal.number,
        )
    )
    return ranked


def _phrase_text(proposal: Proposal) -> str:
    return normalize(
        " ".join(
            [
                proposal.summary or "",
                proposal.keywords or "",
                proposal.author or "",
                str(proposal.number),
                str(proposal.year),
                proposal.type.value,
            ]
        )
    )


def apply_exact_phrase_filter(
    results: list[RankedResult],
    phrases: Sequence[str],
) -> list[RankedResult]:
    """Keep only results containing every quoted phrase; order is preserved."""
    needles = [normalize(p) for p in phrases if p and p.strip()]
    if not needles:
        return results
    return [r for r in results if all(n in _phrase_text(r.proposal) for n in needles)]
