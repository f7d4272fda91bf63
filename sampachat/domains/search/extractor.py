"""
Structured Filter Extractor - Turns a free-form Portuguese query into filters.

Each stage is a pure function returning ``(extracted, remaining_text)``; the
extractor threads the remaining text through the stages in a fixed order so
later stages never see text an earlier stage consumed:

1. quoted phrases (quote marks removed, content kept for later stages)
2. type + number (+ year), e.g. "PL 680/2025"
3. standalone type, e.g. "projetos de resolução"
4. year ranges, e.g. "entre 2015 e 2018", "2015-2018"
5. standalone years and "últimos N anos"
6. standalone proposal number
7. party codes known to the lexicon
8. author names known to the lexicon (full name first, then single tokens)
"""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Sequence
from datetime import date

from .lexicon import LexiconCatalog
from .models import ProposalType, StructuredFilter
from .normalizer import collapse_whitespace, word_key
from .vocabulary import AUTHOR_PREFIXES, TYPE_ALIASES, Vocabulary

logger = logging.getLogger(__name__)

__all__ = [
    "StructuredFilterExtractor",
    "extract_authors",
    "extract_number",
    "extract_parties",
    "extract_quoted_phrases",
    "extract_type",
    "extract_type_and_number",
    "extract_year_range",
    "extract_years",
]

MIN_YEAR = 1990
MAX_STANDALONE_YEAR = 2029
MIN_NUMBER = 1
MAX_NUMBER = 1500


def _alias_pattern() -> str:
    # Longest first so "projetos de lei orgânica" wins over "projetos de lei"
    aliases = sorted(TYPE_ALIASES, key=len, reverse=True)
    return "|".join(r"\s+".join(re.escape(word) for word in alias.split()) for alias in aliases)


_ALIASES = _alias_pattern()
_QUOTE_PATTERN = re.compile(r'"([^"]*)"')
_LONE_HYPHEN_PATTERN = re.compile(r"\s-\s")
_TYPE_NUMBER_PATTERN = re.compile(
    rf"\b({_ALIASES})\s*(\d{{1,4}})(?:\s*[/-]\s*(\d{{4}})|\s+(\d{{4}}))?\b"
)
_TYPE_PATTERN = re.compile(rf"\b({_ALIASES})\b")
_YEAR_RANGE_PATTERN = re.compile(
    r"\b(?:entre(?:\s+os\s+anos(?:\s+de)?)?\s+(\d{4})\s+e\s+(\d{4})"
    r"|de\s+(\d{4})\s+a\s+(\d{4})"
    r"|(\d{4})\s+a\s+(\d{4})"
    r"|(\d{4})-(\d{4}))\b"
)
_YEAR_PATTERN = re.compile(r"\b((?:199|20[0-2])\d)\b")
_RECENT_YEARS_PATTERN = re.compile(r"\b[úu]ltimos\s+(\d{1,3})\s+anos\b")
_NUMBER_PATTERN = re.compile(r"\b(\d{1,4})\b")
_PARTY_SUFFIX_PATTERN = re.compile(r"\s*\(.*\)")


def _cut(text: str, start: int, end: int) -> str:
    return f"{text[:start]} {text[end:]}"


def _resolve_alias(alias: str) -> ProposalType:
    return TYPE_ALIASES[" ".join(alias.split())]


# --- Regex stages ---


def extract_quoted_phrases(query: str) -> tuple[list[str], str]:
    """Collect ``"..."`` spans and drop the quote marks from the query."""
    phrases = []
    for match in _QUOTE_PATTERN.finditer(query):
        phrase = match.group(1).strip()
        if phrase and phrase not in phrases:
            phrases.append(phrase)
    return phrases, query.replace('"', " ")


def extract_type_and_number(
    text: str,
    min_year: int = MIN_YEAR,
    max_year: int = MAX_STANDALONE_YEAR,
) -> tuple[tuple[ProposalType, int, int | None] | None, str]:
    """Match "<type> <number>[/-<year>| <year>]" as a single unit."""
    for match in _TYPE_NUMBER_PATTERN.finditer(text):
        number = int(match.group(2))
        if not MIN_NUMBER <= number <= MAX_NUMBER:
            continue

        proposal_type = _resolve_alias(match.group(1))
        year_text = match.group(3) or match.group(4)
        if year_text is None:
            return (proposal_type, number, None), _cut(text, match.start(), match.end())

        year = int(year_text)
        if min_year <= year <= max_year:
            return (proposal_type, number, year), _cut(text, match.start(), match.end())
        # Out-of-range trailing digits stay in the text as noise
        return (proposal_type, number, None), _cut(text, match.start(), match.end(2))
    return None, text


def extract_type(text: str) -> tuple[ProposalType | None, str]:
    """Match the first proposal type alias as a whole word."""
    match = _TYPE_PATTERN.search(text)
    if not match:
        return None, text
    return _resolve_alias(match.group(1)), _cut(text, match.start(), match.end())


def extract_year_range(
    text: str,
    min_year: int = MIN_YEAR,
    max_year: int = MAX_STANDALONE_YEAR,
) -> tuple[list[int], str]:
    """Expand the first valid year range into every year it covers."""
    for match in _YEAR_RANGE_PATTERN.finditer(text):
        bounds = [int(g) for g in match.groups() if g is not None]
        first, last = min(bounds), max(bounds)
        if min_year <= first and last <= max_year:
            return list(range(first, last + 1)), _cut(text, match.start(), match.end())
    return [], text


def extract_years(
    text: str,
    current_year: int,
    min_year: int = MIN_YEAR,
) -> tuple[list[int], str]:
    """Collect every standalone year plus "últimos N anos"."""
    years: list[int] = []
    for match in _YEAR_PATTERN.finditer(text):
        year = int(match.group(1))
        if year >= min_year and year not in years:
            years.append(year)
    text = _YEAR_PATTERN.sub(" ", text)

    match = _RECENT_YEARS_PATTERN.search(text)
    if match:
        span = min(int(match.group(1)), current_year - min_year + 1)
        for offset in range(span):
            if current_year - offset not in years:
                years.append(current_year - offset)
        text = _cut(text, match.start(), match.end())
    return years, text


def extract_number(text: str) -> tuple[int | None, str]:
    """Take the first whole number within the valid proposal number range."""
    for match in _NUMBER_PATTERN.finditer(text):
        number = int(match.group(1))
        if MIN_NUMBER <= number <= MAX_NUMBER:
            return number, _cut(text, match.start(), match.end())
    return None, text


# --- Token stages ---


class _Words:
    """Whitespace tokens of a text alongside their normalized keys."""

    def __init__(self, text: str) -> None:
        self.words = text.split()
        self.keys = [word_key(w) for w in self.words]

    def key_set(self) -> set[str]:
        return {k for k in self.keys if k}

    def _phrase_positions(self, phrase: Sequence[str]) -> list[int]:
        # Punctuation-only tokens do not break a phrase
        indexed = [(i, k) for i, k in enumerate(self.keys) if k]
        size = len(phrase)
        hits: list[int] = []
        pos = 0
        while size and pos + size <= len(indexed):
            if [k for _, k in indexed[pos : pos + size]] == list(phrase):
                hits.extend(i for i, _ in indexed[pos : pos + size])
                pos += size
            else:
                pos += 1
        return hits

    def contains_phrase(self, phrase: Sequence[str]) -> bool:
        return bool(self._phrase_positions(phrase))

    def without_phrase(self, phrase: Sequence[str]) -> str:
        drop = set(self._phrase_positions(phrase))
        return " ".join(w for i, w in enumerate(self.words) if i not in drop)

    def without_keys(self, keys: set[str]) -> str:
        return " ".join(w for w, k in zip(self.words, self.keys) if k not in keys)


def _name_keys(name: str) -> list[str]:
    return [k for k in (word_key(w) for w in name.split()) if k]


def _clean_author_name(raw: str) -> str:
    """Drop the "(PARTY)" suffix: "Keit Lima (PSOL)" -> "Keit Lima"."""
    return _PARTY_SUFFIX_PATTERN.sub("", raw).strip()


def _strip_prefixes(name: str) -> str:
    for prefix in AUTHOR_PREFIXES:
        if name.startswith(prefix):
            return name[len(prefix) :].strip()
    return name


def extract_parties(text: str, parties: Sequence[str]) -> tuple[list[str], str]:
    """Match known party codes as standalone words; returns "(code)" entries."""
    found: list[str] = []
    for party in parties:
        keys = _name_keys(party)
        words = _Words(text)
        if keys and words.contains_phrase(keys):
            found.append(f"({party})")
            text = words.without_phrase(keys)
    return found, text


def extract_authors(
    text: str,
    authors: Sequence[str],
    vocabulary: Vocabulary,
) -> tuple[list[str], str]:
    """
    Resolve author names against the catalog.

    Full multi-word names are tried first and every co-referring entry is
    kept ("Ver. X" and "Executivo - X"). Only when no full name matches are
    single name tokens tried, skipping short words, stopwords and thematic
    terms present in the query.
    """
    words = _Words(text)
    query_keys = words.key_set()
    if not query_keys:
        return [], text

    entries = []
    for raw in authors:
        clean = _clean_author_name(raw)
        if clean:
            entries.append((clean, _name_keys(_strip_prefixes(clean))))

    found: list[str] = []
    matched_names: list[list[str]] = []
    for clean, keys in entries:
        if len(keys) > 1 and words.contains_phrase(keys):
            if clean not in found:
                found.append(clean)
            matched_names.append(keys)

    if found:
        text = words.without_keys({k for keys in matched_names for k in keys})
        logger.debug("Authors matched by full name: %s", found)
        return found, text

    marked: set[str] = set()
    for clean, keys in entries:
        if clean in found:
            continue
        for token in keys:
            if len(token) <= 2 or token in vocabulary.stopwords:
                continue
            if token in vocabulary.thematic_terms and token in query_keys:
                continue
            if token in query_keys:
                found.append(clean)
                marked.add(token)
                # Other authors may share this token, so keep scanning
                break

    if marked:
        text = words.without_keys(marked)
        logger.debug("Authors matched by name token %s: %s", sorted(marked), found)
    return found, text


# --- Pipeline ---


class StructuredFilterExtractor:
    """
    Decompose a free-form query into structured filters and semantic text.

    Example:
        >>> extractor = StructuredFilterExtractor(LexiconCatalog.empty())
        >>> f = extractor.extract("PL 680/2025 mobilidade")
        >>> (f.type, f.number, f.years, f.semantic_text)
        (<ProposalType.PL: 'PL'>, 680, (2025,), 'mobilidade')
    """

    def __init__(
        self,
        catalog: LexiconCatalog,
        vocabulary: Vocabulary | None = None,
        current_year: int | None = None,
        min_year: int = MIN_YEAR,
    ) -> None:
        """
        Initialize extractor.

        Args:
            catalog: Known authors and parties
            vocabulary: Stopwords and thematic terms
            current_year: Fixed "today" year; defaults to the system clock
            min_year: Oldest year accepted as a filter value
        """
        self._catalog = catalog
        self._authors = catalog.sorted_authors()
        self._parties = catalog.sorted_parties()
        self._vocabulary = vocabulary or Vocabulary()
        self._current_year = current_year
        self._min_year = min_year

    @property
    def catalog(self) -> LexiconCatalog:
        return self._catalog

    @property
    def current_year(self) -> int:
        return self._current_year or date.today().year

    def extract(self, query: str | None) -> StructuredFilter:
        """Run every extraction stage over ``query``."""
        trimmed = (query or "").strip()
        if len(trimmed) <= 1:
            return StructuredFilter(semantic_text=trimmed)

        phrases, text = extract_quoted_phrases(trimmed)
        text = unicodedata.normalize("NFC", text)
        # "Executivo - Nome" must not be split around a lone hyphen
        text = f" {_LONE_HYPHEN_PATTERN.sub(' ', text).lower()} "

        combined, text = extract_type_and_number(
            text, self._min_year, max(self.current_year + 1, MAX_STANDALONE_YEAR)
        )
        proposal_type, number, years = None, None, []
        if combined:
            proposal_type, number, year = combined
            if year is not None:
                years.append(year)

        if proposal_type is None:
            proposal_type, text = extract_type(text)

        range_years, text = extract_year_range(text, self._min_year)
        years.extend(y for y in range_years if y not in years)

        if not range_years:
            standalone, text = extract_years(text, self.current_year, self._min_year)
            years.extend(y for y in standalone if y not in years)

        if number is None:
            number, text = extract_number(text)

        parties, text = extract_parties(text, self._parties)
        authors, text = extract_authors(text, self._authors, self._vocabulary)

        result = StructuredFilter(
            type=proposal_type,
            number=number,
            years=tuple(years),
            authors=tuple(dict.fromkeys(parties + authors)),
            exact_phrases=tuple(phrases),
            semantic_text=collapse_whitespace(text),
        )
        logger.debug("Extracted filter from %r: %s", trimmed, result)
        return result
