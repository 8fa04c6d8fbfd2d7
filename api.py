"""HTTP surface: one scrape endpoint per source plus an on-demand fan-out."""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog_store import CatalogStore, build_store
from pipeline import PASS_ALREADY_RUNNING, run_source_pass
from scheduler import run_scheduled_passes
from sources import SOURCES, SourceId

LOGGER = logging.getLogger(__name__)


def create_app(store: CatalogStore | None = None) -> FastAPI:
    """Build the API around a catalog store (built from env when omitted)."""
    catalog = store if store is not None else build_store()
    app = FastAPI(title="Chapter Catalog Sync", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[os.getenv("CORS_ALLOW_ORIGIN", "*")],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.get("/")
    def home() -> dict[str, str]:
        return {"msg": "Server up and running"}

    def scrape_endpoint(source_id: SourceId):
        def scrape() -> JSONResponse:
            report = run_source_pass(source_id, catalog)
            if report.success:
                status = 200
            elif report.error == PASS_ALREADY_RUNNING:
                status = 409
            else:
                status = 500
            if status != 200:
                LOGGER.warning("Scrape request failed: source=%s status=%s error=%s", source_id.value, status, report.error)
            return JSONResponse(report.to_response(), status_code=status)

        scrape.__name__ = f"scrape_{source_id.value}"
        return scrape

    for source_id in SOURCES:
        app.add_api_route(
            f"/api/scrape-{source_id.value}",
            scrape_endpoint(source_id),
            methods=["GET", "POST"],
            summary=f"Run a sync pass for {SOURCES[source_id].display_name}",
        )

    @app.api_route("/api/scrape-all", methods=["GET", "POST"])
    def scrape_all() -> dict[str, dict]:
        return run_scheduled_passes(catalog)

    return app
