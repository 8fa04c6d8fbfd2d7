"""One sync pass for a single source: fetch, extract, plan, write, summarize."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from batch_writer import apply_plan
from catalog_store import CatalogStore
from errors import ParseError, SyncError
from models import PassReport
from planner import normalize_candidate, plan
from source_feed import fetch_payload
from sources import SourceAdapter, SourceId, get_source

PASS_ALREADY_RUNNING = "pass already running"

LOGGER = logging.getLogger(__name__)

# At most one in-flight pass per source; the matcher and planner are not
# safe against two passes over the same catalog slice.
_SOURCE_LOCKS: dict[SourceId, threading.Lock] = {source_id: threading.Lock() for source_id in SourceId}


def run_source_pass(
    source_id: SourceId | str,
    store: CatalogStore,
    dry_run: bool = False,
    fetch: Callable[[SourceAdapter], Any] | None = None,
) -> PassReport:
    """Run one pass for a source and return its report.

    Fetch, parse and catalog-query failures end the pass with
    ``success=False``; individual write failures are listed in the report.
    """
    adapter = get_source(source_id)
    lock = _SOURCE_LOCKS[adapter.source_id]
    if not lock.acquire(blocking=False):
        LOGGER.warning("Pass skipped: source=%s already has a pass in flight", adapter.source_id.value)
        return PassReport(source_id=adapter.source_id.value, success=False, error=PASS_ALREADY_RUNNING)

    try:
        return _run_locked(adapter, store, dry_run, fetch)
    finally:
        lock.release()


def _run_locked(
    adapter: SourceAdapter,
    store: CatalogStore,
    dry_run: bool,
    fetch: Callable[[SourceAdapter], Any] | None,
) -> PassReport:
    source = adapter.source_id.value
    fetch = fetch or fetch_payload

    try:
        payload = fetch(adapter)
        raw_candidates = adapter.extract(payload)
        if not raw_candidates:
            raise ParseError(f"{adapter.display_name}: no titles found in listing")

        candidates = [normalize_candidate(raw) for raw in raw_candidates]
        titles = None if adapter.fuzzy_titles else {c.normalized_title for c in candidates}
        existing = store.query_by_keys(titles, {source})
    except SyncError as exc:
        LOGGER.warning("Pass aborted: source=%s error=%s", source, exc)
        return PassReport(source_id=source, success=False, error=str(exc), dry_run=dry_run)

    pass_plan = plan(candidates, existing, fuzzy=adapter.fuzzy_titles)
    LOGGER.info(
        "Plan: source=%s candidates=%s existing=%s inserts=%s updates=%s unchanged=%s",
        source,
        len(candidates),
        len(existing),
        len(pass_plan.inserts),
        len(pass_plan.updates),
        len(pass_plan.unchanged),
    )

    if dry_run:
        for entry in pass_plan.inserts:
            LOGGER.info("[dry-run] Would insert %r at %s", entry.display_title, entry.chapter_label)
        for update in pass_plan.updates:
            LOGGER.info(
                "[dry-run] Would update %r: %s -> %s",
                update.title,
                update.old_chapter_label,
                update.new_chapter_label,
            )
        return PassReport(
            source_id=source,
            success=True,
            count=len(candidates),
            plan=pass_plan,
            dry_run=True,
        )

    writes = apply_plan(store, pass_plan)
    LOGGER.info(
        "Pass complete: source=%s count=%s inserted=%s updated=%s unchanged=%s failed=%s",
        source,
        len(candidates),
        len(writes.inserted),
        len(writes.updated),
        len(pass_plan.unchanged),
        len(writes.failed),
    )
    return PassReport(
        source_id=source,
        success=True,
        count=len(candidates),
        plan=pass_plan,
        writes=writes,
    )
