"""CLI entrypoint for the chapter catalog sync."""

from __future__ import annotations

import argparse
import json
import logging
import os

from dotenv import load_dotenv

from catalog_store import build_store
from scheduler import run_forever, run_scheduled_passes
from sources import SourceId


def parse_args() -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Sync latest-chapter listings into the catalog")
    parser.add_argument(
        "--source",
        action="append",
        choices=[source_id.value for source_id in SourceId],
        help="Source to sync (repeatable). Defaults to every registered source.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only log the planned inserts and updates, without catalog writes",
    )
    parser.add_argument(
        "--interval-minutes",
        type=float,
        default=None,
        help=(
            "Keep running and trigger passes every N minutes. "
            "Pass 0 to use SCHEDULE_INTERVAL_MINUTES (default 60)."
        ),
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Start the HTTP API (API_HOST / API_PORT) instead of running passes",
    )
    return parser.parse_args()


def main() -> None:
    """Initialize config and run passes, the scheduler loop, or the API."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args()

    if args.serve:
        import uvicorn  # noqa: PLC0415

        from api import create_app  # noqa: PLC0415

        uvicorn.run(
            create_app(),
            host=os.getenv("API_HOST", "0.0.0.0"),
            port=int(os.getenv("API_PORT", "8000")),
        )
        return

    store = build_store()
    source_ids = [SourceId(value) for value in args.source] if args.source else None

    if args.interval_minutes is not None:
        interval = args.interval_minutes or float(os.getenv("SCHEDULE_INTERVAL_MINUTES", "60"))
        logging.info("Scheduler started: interval_minutes=%s", interval)
        run_forever(store, interval, source_ids, dry_run=args.dry_run)
        return

    results = run_scheduled_passes(store, source_ids, dry_run=args.dry_run)
    print(json.dumps(results, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
