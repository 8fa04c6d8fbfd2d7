"""Catalog persistence: an in-memory store and a Supabase (PostgREST) store."""

from __future__ import annotations

import itertools
import logging
import os
import threading
from collections.abc import Iterable
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any, Protocol

import requests

from errors import StoreError
from models import CatalogEntry

REQUEST_TIMEOUT_SECONDS = 30
# PostgREST filters travel in the query string; keep each `in.(...)` list short.
QUERY_CHUNK_SIZE = 50
QUERY_PAGE_SIZE = 1000

LOGGER = logging.getLogger(__name__)

# CatalogEntry field -> column in the Supabase `manhwas` table.
_COLUMNS = {
    "entry_id": "id",
    "display_title": "title",
    "source_title": "website_title",
    "normalized_title": "normalizedtitle",
    "source_id": "website",
    "chapter_label": "chapters",
    "url": "url",
    "updated_at": "updated_at",
}
_UPDATABLE_FIELDS = frozenset({"chapter_label", "url", "updated_at"})


class CatalogStore(Protocol):
    def query_by_keys(
        self,
        normalized_titles: set[str] | None,
        source_ids: set[str],
    ) -> list[CatalogEntry]:
        """Entries of the given sources; all of them when titles is None."""

    def insert_batch(self, records: list[CatalogEntry]) -> list[CatalogEntry]:
        """Insert records and return them with their assigned ids."""

    def update_one(self, entry_id: int | str, fields: dict[str, Any]) -> None:
        """Set chapter_label / url / updated_at on one entry."""


class InMemoryCatalogStore:
    """Thread-safe dict-backed store enforcing the (normalized_title, source_id) key."""

    def __init__(self, entries: Iterable[CatalogEntry] = ()) -> None:
        self._lock = threading.Lock()
        self._entries: dict[int | str, CatalogEntry] = {}
        self._ids = itertools.count(1)
        entries = list(entries)
        if entries:
            self.insert_batch(entries)

    def all(self) -> list[CatalogEntry]:
        with self._lock:
            return list(self._entries.values())

    def query_by_keys(
        self,
        normalized_titles: set[str] | None,
        source_ids: set[str],
    ) -> list[CatalogEntry]:
        with self._lock:
            return [
                entry
                for entry in self._entries.values()
                if entry.source_id in source_ids
                and (normalized_titles is None or entry.normalized_title in normalized_titles)
            ]

    def insert_batch(self, records: list[CatalogEntry]) -> list[CatalogEntry]:
        with self._lock:
            taken = {entry.key for entry in self._entries.values()}
            for record in records:
                if record.key in taken:
                    raise StoreError(
                        f"duplicate key (normalized_title={record.normalized_title!r}, "
                        f"source_id={record.source_id!r})"
                    )
                if record.entry_id is not None and record.entry_id in self._entries:
                    raise StoreError(f"duplicate id {record.entry_id!r}")
                taken.add(record.key)

            inserted: list[CatalogEntry] = []
            for record in records:
                entry_id = record.entry_id
                while entry_id is None or (record.entry_id is None and entry_id in self._entries):
                    entry_id = next(self._ids)
                entry = replace(record, entry_id=entry_id)
                self._entries[entry_id] = entry
                inserted.append(entry)
            return inserted

    def update_one(self, entry_id: int | str, fields: dict[str, Any]) -> None:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise StoreError(f"fields not updatable: {sorted(unknown)}")
        with self._lock:
            if entry_id not in self._entries:
                raise StoreError(f"no catalog entry with id={entry_id}")
            self._entries[entry_id] = replace(self._entries[entry_id], **fields)


class SupabaseCatalogStore:
    """Catalog table accessed through Supabase's PostgREST endpoint."""

    def __init__(self, url: str, service_key: str, table: str = "manhwas") -> None:
        self._base_url = f"{url.rstrip('/')}/rest/v1/{table}"
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }

    def query_by_keys(
        self,
        normalized_titles: set[str] | None,
        source_ids: set[str],
    ) -> list[CatalogEntry]:
        source_filter = f"in.({_in_list(source_ids)})"
        if normalized_titles is None:
            return self._query_all(source_filter)

        titles = sorted(normalized_titles)
        entries: list[CatalogEntry] = []
        for start in range(0, len(titles), QUERY_CHUNK_SIZE):
            chunk = titles[start:start + QUERY_CHUNK_SIZE]
            rows = self._request(
                "GET",
                params={
                    "select": "*",
                    "website": source_filter,
                    "normalizedtitle": f"in.({_in_list(chunk)})",
                },
            )
            entries.extend(_row_to_entry(row) for row in rows)
        return entries

    def _query_all(self, source_filter: str) -> list[CatalogEntry]:
        # PostgREST truncates at the server's max-rows without an error, so
        # page by offset until an empty page comes back.
        entries: list[CatalogEntry] = []
        while True:
            rows = self._request(
                "GET",
                params={
                    "select": "*",
                    "website": source_filter,
                    "order": "id.asc",
                    "limit": str(QUERY_PAGE_SIZE),
                    "offset": str(len(entries)),
                },
            )
            if not rows:
                return entries
            entries.extend(_row_to_entry(row) for row in rows)

    def insert_batch(self, records: list[CatalogEntry]) -> list[CatalogEntry]:
        rows = self._request(
            "POST",
            json_payload=[_entry_to_row(record) for record in records],
            prefer="return=representation",
        )
        return [_row_to_entry(row) for row in rows]

    def update_one(self, entry_id: int | str, fields: dict[str, Any]) -> None:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise StoreError(f"fields not updatable: {sorted(unknown)}")
        payload = {_COLUMNS[name]: _to_column_value(value) for name, value in fields.items()}
        self._request(
            "PATCH",
            params={"id": f"eq.{entry_id}"},
            json_payload=payload,
            prefer="return=minimal",
        )

    def _request(
        self,
        method: str,
        *,
        params: dict[str, str] | None = None,
        json_payload: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = dict(self._headers)
        if prefer:
            headers["Prefer"] = prefer
        try:
            response = requests.request(
                method=method,
                url=self._base_url,
                headers=headers,
                params=params,
                json=json_payload,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            detail = ""
            if isinstance(exc, requests.HTTPError) and exc.response is not None:
                detail = exc.response.text
            raise StoreError(f"Supabase {method} failed: {exc} {detail}".strip()) from exc

        if not response.content:
            return []
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError(f"Supabase {method} returned non-JSON body") from exc


def build_store() -> CatalogStore:
    """Create the store selected by CATALOG_BACKEND (memory or supabase)."""
    supabase_url = os.getenv("SUPABASE_URL")
    backend = os.getenv("CATALOG_BACKEND", "supabase" if supabase_url else "memory").lower()

    if backend == "memory":
        LOGGER.info("Catalog backend: in-memory (entries are lost on exit)")
        return InMemoryCatalogStore()
    if backend != "supabase":
        raise RuntimeError(f"Unknown CATALOG_BACKEND: {backend}")

    service_key = os.getenv("SUPABASE_SERVICE_KEY")
    if not supabase_url:
        raise RuntimeError("SUPABASE_URL environment variable is required")
    if not service_key:
        raise RuntimeError("SUPABASE_SERVICE_KEY environment variable is required")
    table = os.getenv("SUPABASE_TABLE", "manhwas")
    LOGGER.info("Catalog backend: supabase table=%s", table)
    return SupabaseCatalogStore(supabase_url, service_key, table=table)


def _in_list(values: Iterable[str]) -> str:
    """Render values for a PostgREST `in.(...)` filter, quoting each one."""
    quoted = []
    for value in values:
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        quoted.append(f'"{escaped}"')
    return ",".join(quoted)


def _entry_to_row(entry: CatalogEntry) -> dict[str, Any]:
    row = {
        column: _to_column_value(getattr(entry, name))
        for name, column in _COLUMNS.items()
        if name != "entry_id"
    }
    if entry.entry_id is not None:
        row["id"] = entry.entry_id
    return row


def _row_to_entry(row: dict[str, Any]) -> CatalogEntry:
    return CatalogEntry(
        entry_id=row.get("id"),
        display_title=row.get("title") or "",
        source_title=row.get("website_title") or "",
        normalized_title=row.get("normalizedtitle") or "",
        source_id=row.get("website") or "",
        chapter_label=row.get("chapters") or "",
        url=row.get("url") or "",
        updated_at=_parse_datetime(row.get("updated_at")),
    )


def _to_column_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _parse_datetime(raw: Any) -> datetime | None:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed
