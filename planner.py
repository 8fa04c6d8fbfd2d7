"""Reconciliation planner: decides insert / update / unchanged per candidate.

No I/O happens here; the planner works on in-memory candidates and catalog
entries and returns a Plan for the batch writer.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

from chapters import parse_chapter_number
from matcher import CatalogMatcher
from models import CatalogEntry, EntryUpdate, NormalizedCandidate, Plan, RawCandidate
from normalizer import decode_entities, normalize


def normalize_candidate(raw: RawCandidate) -> NormalizedCandidate:
    """Derive the comparison key and chapter number from a scraped candidate."""
    return NormalizedCandidate(
        title=decode_entities(raw.title).strip(),
        normalized_title=normalize(raw.title),
        chapter_label=raw.chapter_label.strip(),
        chapter_number=parse_chapter_number(raw.chapter_label),
        url=raw.url,
        source_id=raw.source_id,
    )


def plan(
    candidates: Iterable[NormalizedCandidate],
    existing: Iterable[CatalogEntry],
    now: datetime | None = None,
    fuzzy: bool = True,
) -> Plan:
    """Build the write plan for one source pass.

    An update is planned only when the candidate's chapter number is strictly
    greater than the recorded one. Equal or lower numbers are unchanged even if
    the url differs, so recorded progress never moves backwards. When several
    candidates resolve to the same entry, the highest chapter wins and the
    entry gets at most one update.

    ``fuzzy=False`` restricts matching to exact keys.
    """
    timestamp = now or datetime.now(UTC)
    matcher = CatalogMatcher(existing, fuzzy=fuzzy)
    result = Plan()
    best: dict[tuple[str, str], tuple[CatalogEntry, NormalizedCandidate]] = {}

    for candidate in candidates:
        match = matcher.match(candidate)
        entry = match.matched_entry

        if entry is None:
            result.inserts.append(
                CatalogEntry(
                    entry_id=None,
                    display_title=candidate.title,
                    source_title=candidate.title,
                    normalized_title=candidate.normalized_title,
                    source_id=candidate.source_id,
                    chapter_label=candidate.chapter_label,
                    url=candidate.url,
                    updated_at=timestamp,
                )
            )
            continue

        seen = best.get(entry.key)
        if seen is None or candidate.chapter_number > seen[1].chapter_number:
            best[entry.key] = (entry, candidate)

    for entry, candidate in best.values():
        if candidate.chapter_number > parse_chapter_number(entry.chapter_label):
            result.updates.append(
                EntryUpdate(
                    entry_id=entry.entry_id,
                    new_chapter_label=candidate.chapter_label,
                    new_url=candidate.url,
                    updated_at=timestamp,
                    title=entry.display_title,
                    old_chapter_label=entry.chapter_label,
                )
            )
        else:
            result.unchanged.append(entry)

    return result
