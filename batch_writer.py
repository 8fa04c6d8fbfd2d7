"""Applies a reconciliation plan to the catalog store."""

from __future__ import annotations

import logging
import os

from catalog_store import CatalogStore
from errors import StoreError
from models import Plan, WriteSummary

DEFAULT_INSERT_BATCH_SIZE = 10

LOGGER = logging.getLogger(__name__)


def apply_plan(store: CatalogStore, plan: Plan, batch_size: int | None = None) -> WriteSummary:
    """Write inserts in batches and updates one at a time.

    A failed insert batch is retried record by record. Every StoreError is
    recorded in the returned summary instead of aborting the remaining writes.
    """
    size = batch_size or int(os.getenv("INSERT_BATCH_SIZE", str(DEFAULT_INSERT_BATCH_SIZE)))
    summary = WriteSummary()

    for start in range(0, len(plan.inserts), size):
        batch = plan.inserts[start:start + size]
        try:
            summary.inserted.extend(store.insert_batch(batch))
            continue
        except StoreError as exc:
            LOGGER.warning(
                "Insert batch %s failed (%s records), retrying individually: %s",
                start // size + 1,
                len(batch),
                exc,
            )

        for record in batch:
            try:
                summary.inserted.extend(store.insert_batch([record]))
            except StoreError as exc:
                LOGGER.error("Insert failed for title=%r: %s", record.display_title, exc)
                summary.failed.append({
                    "operation": "insert",
                    "title": record.display_title,
                    "error": str(exc),
                })

    for update in plan.updates:
        try:
            store.update_one(
                update.entry_id,
                {
                    "chapter_label": update.new_chapter_label,
                    "url": update.new_url,
                    "updated_at": update.updated_at,
                },
            )
        except StoreError as exc:
            LOGGER.error("Update failed for id=%s title=%r: %s", update.entry_id, update.title, exc)
            summary.failed.append({
                "operation": "update",
                "title": update.title,
                "error": str(exc),
            })
            continue
        summary.updated.append(update)
        LOGGER.info(
            "Updated %r: %s -> %s",
            update.title,
            update.old_chapter_label,
            update.new_chapter_label,
        )

    LOGGER.info(
        "Writes complete: inserted=%s/%s updated=%s/%s failed=%s",
        len(summary.inserted),
        len(plan.inserts),
        len(summary.updated),
        len(plan.updates),
        len(summary.failed),
    )
    return summary
