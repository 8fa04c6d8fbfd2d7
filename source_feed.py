"""Fetches a source's listing page or API payload."""

from __future__ import annotations

import logging
import os
from typing import Any

import requests

from errors import FetchError, ParseError
from sources import SourceAdapter

DEFAULT_TIMEOUT_SECONDS = 20
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)
_ACCEPT = {
    "html": "text/html,application/xhtml+xml,application/xml",
    "json": "application/json",
}

LOGGER = logging.getLogger(__name__)


def fetch_payload(adapter: SourceAdapter, timeout: int | None = None) -> Any:
    """Fetch one source feed: HTML text, or decoded JSON for API sources.

    There is no retry here; a failed fetch aborts this source's pass and the
    next scheduled pass starts over.
    """
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": _ACCEPT.get(adapter.payload_kind, "*/*"),
        "Referer": f"{adapter.site_url}/",
    }
    try:
        response = requests.get(
            adapter.feed_url,
            headers=headers,
            timeout=timeout or int(os.getenv("FETCH_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))),
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        raise FetchError(f"Failed to fetch {adapter.display_name}: {exc}") from exc

    LOGGER.info(
        "Fetched %s: status=%s bytes=%s",
        adapter.display_name,
        response.status_code,
        len(response.content),
    )

    if adapter.payload_kind == "json":
        try:
            return response.json()
        except ValueError as exc:
            raise ParseError(f"{adapter.display_name}: response is not valid JSON") from exc
    return response.text
