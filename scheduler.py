"""Scheduled trigger: fans out one pass per source and logs each outcome."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from catalog_store import CatalogStore
from pipeline import run_source_pass
from sources import SOURCES, SourceId

LOGGER = logging.getLogger(__name__)


def run_scheduled_passes(
    store: CatalogStore,
    source_ids: Iterable[SourceId] | None = None,
    dry_run: bool = False,
) -> dict[str, dict[str, Any]]:
    """Run every selected source concurrently and return their responses.

    Best effort: a failure in one source is logged and reported for that
    source only; this function never raises.
    """
    # Repeats collapse to one pass per source.
    selected = list(dict.fromkeys(source_ids)) if source_ids is not None else list(SOURCES)
    if not selected:
        return {}

    results: dict[str, dict[str, Any]] = {}
    with ThreadPoolExecutor(max_workers=len(selected), thread_name_prefix="sync") as pool:
        futures = {
            source_id: pool.submit(run_source_pass, source_id, store, dry_run)
            for source_id in selected
        }
        for source_id, future in futures.items():
            try:
                report = future.result()
            except Exception as exc:  # broad by design to keep the other sources running
                LOGGER.exception("Scheduled pass crashed: source=%s", source_id.value)
                results[source_id.value] = {"success": False, "error": str(exc)}
                continue

            response = report.to_response()
            results[source_id.value] = response
            if report.success:
                LOGGER.info(
                    "Scheduled pass ok: source=%s count=%s changes=%s",
                    source_id.value,
                    report.count,
                    response["changes"],
                )
            else:
                LOGGER.error("Scheduled pass failed: source=%s error=%s", source_id.value, report.error)

    return results


def run_forever(
    store: CatalogStore,
    interval_minutes: float,
    source_ids: Iterable[SourceId] | None = None,
    dry_run: bool = False,
) -> None:
    """Trigger a fan-out every ``interval_minutes`` until interrupted."""
    selected = list(source_ids) if source_ids is not None else None
    interval_seconds = max(interval_minutes, 0) * 60
    while True:
        started = time.monotonic()
        results = run_scheduled_passes(store, selected, dry_run=dry_run)
        ok = sum(1 for result in results.values() if result.get("success"))
        LOGGER.info("Scheduled run complete: sources=%s ok=%s failed=%s", len(results), ok, len(results) - ok)
        time.sleep(max(interval_seconds - (time.monotonic() - started), 0))
