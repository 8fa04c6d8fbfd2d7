"""Shared typed models for the catalog sync."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class RawCandidate:
    """One (title, chapter label, url) tuple as scraped from a source listing."""

    title: str
    chapter_label: str
    url: str
    source_id: str


@dataclass(frozen=True, slots=True)
class NormalizedCandidate:
    """Candidate with its comparison key and parsed chapter progress."""

    title: str
    normalized_title: str
    chapter_label: str
    chapter_number: float
    url: str
    source_id: str


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """Persisted record for one title from one source.

    ``entry_id`` is ``None`` for an entry that is planned but not yet inserted.
    """

    entry_id: int | str | None
    display_title: str
    source_title: str
    normalized_title: str
    source_id: str
    chapter_label: str
    url: str
    updated_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.normalized_title, self.source_id)


@dataclass(frozen=True, slots=True)
class MatchResult:
    candidate: NormalizedCandidate
    matched_entry: CatalogEntry | None
    score: float


@dataclass(frozen=True, slots=True)
class EntryUpdate:
    """Planned chapter advance for an existing entry."""

    entry_id: int | str
    new_chapter_label: str
    new_url: str
    updated_at: datetime
    title: str
    old_chapter_label: str


@dataclass(slots=True)
class Plan:
    inserts: list[CatalogEntry] = field(default_factory=list)
    updates: list[EntryUpdate] = field(default_factory=list)
    unchanged: list[CatalogEntry] = field(default_factory=list)

    @property
    def unchanged_ids(self) -> list[int | str | None]:
        return [entry.entry_id for entry in self.unchanged]


@dataclass(slots=True)
class WriteSummary:
    """Outcome of applying a plan; failures are collected, never raised."""

    inserted: list[CatalogEntry] = field(default_factory=list)
    updated: list[EntryUpdate] = field(default_factory=list)
    failed: list[dict[str, str]] = field(default_factory=list)


@dataclass(slots=True)
class PassReport:
    """Result of one extract -> plan -> write pass for a single source."""

    source_id: str
    success: bool
    count: int = 0
    plan: Plan | None = None
    writes: WriteSummary | None = None
    error: str | None = None
    dry_run: bool = False

    def to_response(self) -> dict[str, Any]:
        """Render the pass as the JSON body returned by the scrape endpoints.

        With ``dry_run`` the planned changes are reported, otherwise only the
        writes that succeeded.
        """
        if not self.success:
            return {"success": False, "error": self.error or "unknown error"}

        plan = self.plan or Plan()
        if self.dry_run or self.writes is None:
            inserted = plan.inserts
            updated = plan.updates
            failures: list[dict[str, str]] = []
        else:
            inserted = self.writes.inserted
            updated = self.writes.updated
            failures = self.writes.failed

        details = {
            "inserted": [
                {"title": entry.display_title, "chapter": entry.chapter_label}
                for entry in inserted
            ],
            "updated": [
                {
                    "title": update.title,
                    "oldChapter": update.old_chapter_label,
                    "newChapter": update.new_chapter_label,
                }
                for update in updated
            ],
            "unchanged": [
                {"title": entry.display_title, "chapter": entry.chapter_label}
                for entry in plan.unchanged
            ],
        }
        return {
            "success": True,
            "count": self.count,
            "dryRun": self.dry_run,
            "changes": {name: len(items) for name, items in details.items()},
            "details": details,
            "failures": failures,
        }
