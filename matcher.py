"""Catalog matcher: resolves a candidate to an existing entry of its source.

Tier A is an exact ``(normalized_title, source_id)`` lookup. Tier B scores
every existing entry of the source with a handful of string heuristics, for
sources whose rendered titles drift between passes (added subtitles, dropped
leading articles, punctuation changes).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable

from models import CatalogEntry, MatchResult, NormalizedCandidate

LOGGER = logging.getLogger(__name__)

SCORE_THRESHOLD = 20
MIN_FUZZY_KEY_LENGTH = 5

_MIN_COMMON_PREFIX = 20
_MIN_COMMON_PREFIX_RATIO = 0.7

_STOPWORDS: frozenset[str] = frozenset({
    "the", "of", "and", "in", "on", "at", "for", "to", "a",
})


def significant_words(title: str) -> set[str]:
    """Whitespace tokens longer than two characters that are not stopwords."""
    return {
        word
        for word in title.split()
        if len(word) > 2 and word not in _STOPWORDS
    }


def _prefix_containment_score(a: str, b: str) -> float | None:
    # A prefix is also a substring, so containment covers both the
    # near-equal-length prefix case and the literal substring case.
    if a in b or b in a:
        return 2.0 * min(len(a), len(b))
    return None


def _word_overlap_scores(a: str, b: str) -> list[float]:
    words_a = significant_words(a)
    words_b = significant_words(b)
    shared = len(words_a & words_b)
    unique = len(words_a ^ words_b)

    scores: list[float] = []
    if shared >= 3 and unique <= shared:
        scores.append(10.0 * shared - 2.0 * unique)
    if len(words_a) <= 3 and len(words_b) <= 3 and shared >= 2 and unique <= 1:
        scores.append(25.0 - 5.0 * unique)
    return scores


def _common_prefix_score(a: str, b: str) -> float | None:
    prefix = 0
    for char_a, char_b in zip(a, b):
        if char_a != char_b:
            break
        prefix += 1

    if prefix <= _MIN_COMMON_PREFIX:
        return None
    if prefix / len(a) <= _MIN_COMMON_PREFIX_RATIO or prefix / len(b) <= _MIN_COMMON_PREFIX_RATIO:
        return None
    return float(prefix - 2 * abs(len(a) - len(b)))


def score_titles(candidate_title: str, existing_title: str) -> float:
    """Return the best heuristic score for two normalized titles (0 if none apply)."""
    if not candidate_title or not existing_title:
        return 0.0

    scores: list[float] = []
    containment = _prefix_containment_score(candidate_title, existing_title)
    if containment is not None:
        scores.append(containment)
    scores.extend(_word_overlap_scores(candidate_title, existing_title))
    common = _common_prefix_score(candidate_title, existing_title)
    if common is not None:
        scores.append(common)
    return max(scores, default=0.0)


class CatalogMatcher:
    """Matches candidates against a fixed slice of existing catalog entries.

    Entries are grouped by source, so a candidate is only ever compared with
    entries carrying the same ``source_id``. With ``fuzzy=False`` only Tier A
    runs.
    """

    def __init__(self, existing: Iterable[CatalogEntry], fuzzy: bool = True) -> None:
        self._fuzzy = fuzzy
        self._index: dict[tuple[str, str], CatalogEntry] = {}
        self._by_source: dict[str, list[CatalogEntry]] = {}
        for entry in existing:
            if entry.key in self._index:
                LOGGER.warning(
                    "Matcher: duplicate catalog key title=%r source=%s ids=%s,%s",
                    entry.normalized_title,
                    entry.source_id,
                    self._index[entry.key].entry_id,
                    entry.entry_id,
                )
                continue
            self._index[entry.key] = entry
            self._by_source.setdefault(entry.source_id, []).append(entry)

    def match(self, candidate: NormalizedCandidate) -> MatchResult:
        exact = self._index.get((candidate.normalized_title, candidate.source_id))
        if exact is not None:
            return MatchResult(candidate=candidate, matched_entry=exact, score=math.inf)
        if not self._fuzzy:
            return MatchResult(candidate=candidate, matched_entry=None, score=0.0)

        best: CatalogEntry | None = None
        best_score = 0.0
        for entry in self._by_source.get(candidate.source_id, []):
            if len(entry.normalized_title) < MIN_FUZZY_KEY_LENGTH:
                continue
            score = score_titles(candidate.normalized_title, entry.normalized_title)
            if score < SCORE_THRESHOLD:
                continue
            if best is None or score > best_score or (
                score == best_score and _tie_key(entry) < _tie_key(best)
            ):
                best, best_score = entry, score

        if best is None:
            return MatchResult(candidate=candidate, matched_entry=None, score=0.0)

        LOGGER.debug(
            "Matcher: fuzzy match %r -> %r score=%s",
            candidate.normalized_title,
            best.normalized_title,
            best_score,
        )
        return MatchResult(candidate=candidate, matched_entry=best, score=best_score)


def _tie_key(entry: CatalogEntry) -> tuple[str, str]:
    return (entry.normalized_title, str(entry.entry_id))
