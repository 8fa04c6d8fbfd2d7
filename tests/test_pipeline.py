"""Pass-level tests: fetch stub -> extract -> plan -> write against the in-memory store."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

import pipeline
from catalog_store import InMemoryCatalogStore
from chapters import parse_chapter_number
from errors import FetchError, StoreError
from models import CatalogEntry
from pipeline import PASS_ALREADY_RUNNING, run_source_pass
from sources import SourceId


def _flame_payload(chapter: int) -> list[dict]:
    return [{"label": "Omniscient Reader's Viewpoint", "id": 7, "chapter_count": chapter}]


def _fetch(payload):
    return lambda adapter: payload


def test_end_to_end_insert_then_unchanged_then_update() -> None:
    store = InMemoryCatalogStore()

    first = run_source_pass(SourceId.FLAMECOMICS, store, fetch=_fetch(_flame_payload(5)))
    assert first.success
    assert len(first.plan.inserts) == 1
    assert parse_chapter_number(first.plan.inserts[0].chapter_label) == 5
    assert first.to_response()["changes"] == {"inserted": 1, "updated": 0, "unchanged": 0}

    second = run_source_pass(SourceId.FLAMECOMICS, store, fetch=_fetch(_flame_payload(5)))
    assert second.to_response()["changes"] == {"inserted": 0, "updated": 0, "unchanged": 1}

    third = run_source_pass(SourceId.FLAMECOMICS, store, fetch=_fetch(_flame_payload(6)))
    response = third.to_response()
    assert response["changes"] == {"inserted": 0, "updated": 1, "unchanged": 0}
    assert response["details"]["updated"] == [
        {"title": "Omniscient Reader's Viewpoint", "oldChapter": "Chapter 5", "newChapter": "Chapter 6"},
    ]

    entries = store.all()
    assert len(entries) == 1
    assert entries[0].chapter_label == "Chapter 6"


def test_second_identical_pass_is_a_no_op() -> None:
    store = InMemoryCatalogStore()
    payload = [
        {"label": "Nano Machine", "id": 1, "chapter_count": 210},
        {"label": "Tower of God", "id": 2, "chapter_count": 600},
    ]

    run_source_pass(SourceId.FLAMECOMICS, store, fetch=_fetch(payload))
    again = run_source_pass(SourceId.FLAMECOMICS, store, fetch=_fetch(payload))

    assert again.plan.inserts == []
    assert again.plan.updates == []
    assert len(again.plan.unchanged) == 2


def test_fuzzy_source_matches_drifted_title() -> None:
    store = InMemoryCatalogStore([
        CatalogEntry(
            entry_id=1,
            display_title="The Beginning After the End",
            source_title="The Beginning After the End",
            normalized_title="the beginning after the end",
            source_id="asura",
            chapter_label="Chapter 175",
            url="https://asuracomic.net/series/tbate/chapter/175",
        )
    ])
    html = """
    <a href="series/tbate-xyz">
      <span class="block">Beginning After the End</span>
      <span class="text-[13px]">Chapter 176</span>
    </a>
    """

    report = run_source_pass(SourceId.ASURA, store, fetch=_fetch(html))

    assert report.plan.inserts == []
    assert len(report.writes.updated) == 1
    assert store.all()[0].chapter_label == "Chapter 176"
    assert store.all()[0].url == "https://asuracomic.net/series/tbate-xyz/chapter/176"


def test_exact_key_source_inserts_title_containing_another() -> None:
    store = InMemoryCatalogStore()
    run_source_pass(SourceId.FLAMECOMICS, store, fetch=_fetch([{"label": "Nano Machine", "id": 1, "chapter_count": 209}]))
    payload = [
        {"label": "Nano Machine", "id": 1, "chapter_count": 210},
        {"label": "Nano Machine Side Story", "id": 2, "chapter_count": 5},
    ]

    report = run_source_pass(SourceId.FLAMECOMICS, store, fetch=_fetch(payload))
    again = run_source_pass(SourceId.FLAMECOMICS, store, fetch=_fetch(payload))

    assert [entry.display_title for entry in report.plan.inserts] == ["Nano Machine Side Story"]
    assert len(report.plan.updates) == 1
    assert again.plan.inserts == [] and again.plan.updates == []
    chapters = {entry.display_title: entry.chapter_label for entry in store.all()}
    assert chapters == {"Nano Machine": "Chapter 210", "Nano Machine Side Story": "Chapter 5"}


def test_sources_never_touch_each_other() -> None:
    store = InMemoryCatalogStore()
    payload = {"posts": [{"postTitle": "Nano Machine", "slug": "nano-machine", "chapters": [{"number": 3}]}]}

    run_source_pass(SourceId.FLAMECOMICS, store, fetch=_fetch([{"label": "Nano Machine", "id": 1, "chapter_count": 9}]))
    run_source_pass(SourceId.HIVECOMIC, store, fetch=_fetch(payload))

    chapters = {entry.source_id: entry.chapter_label for entry in store.all()}
    assert chapters == {"flamecomics": "Chapter 9", "hivecomic": "Chapter 3"}


def test_fetch_error_aborts_pass() -> None:
    def failing_fetch(adapter):
        raise FetchError("Failed to fetch Flame Comics: 503")

    report = run_source_pass(SourceId.FLAMECOMICS, InMemoryCatalogStore(), fetch=failing_fetch)

    assert report.success is False
    assert report.to_response() == {"success": False, "error": "Failed to fetch Flame Comics: 503"}


def test_empty_listing_is_a_parse_failure() -> None:
    report = run_source_pass(SourceId.FLAMECOMICS, InMemoryCatalogStore(), fetch=_fetch([]))

    assert report.success is False
    assert "no titles found" in report.error


def test_catalog_query_failure_aborts_pass() -> None:
    store = MagicMock()
    store.query_by_keys.side_effect = StoreError("connection refused")

    report = run_source_pass(SourceId.FLAMECOMICS, store, fetch=_fetch(_flame_payload(5)))

    assert report.success is False
    assert report.error == "connection refused"
    store.insert_batch.assert_not_called()


def test_write_failures_are_reported_not_raised() -> None:
    store = InMemoryCatalogStore()
    store.update_one = MagicMock(side_effect=StoreError("row locked"))
    run_source_pass(SourceId.FLAMECOMICS, store, fetch=_fetch(_flame_payload(5)))

    report = run_source_pass(SourceId.FLAMECOMICS, store, fetch=_fetch(_flame_payload(6)))
    response = report.to_response()

    assert response["success"] is True
    assert response["changes"]["updated"] == 0
    assert response["failures"] == [
        {"operation": "update", "title": "Omniscient Reader's Viewpoint", "error": "row locked"},
    ]


def test_dry_run_plans_without_writing() -> None:
    store = InMemoryCatalogStore()

    report = run_source_pass(SourceId.FLAMECOMICS, store, dry_run=True, fetch=_fetch(_flame_payload(5)))

    assert report.success
    assert report.to_response()["changes"]["inserted"] == 1
    assert report.to_response()["dryRun"] is True
    assert store.all() == []


def test_overlapping_pass_for_same_source_is_rejected() -> None:
    lock = pipeline._SOURCE_LOCKS[SourceId.FLAMECOMICS]
    lock.acquire()
    try:
        report = run_source_pass(SourceId.FLAMECOMICS, InMemoryCatalogStore(), fetch=_fetch(_flame_payload(5)))
    finally:
        lock.release()

    assert report.success is False
    assert report.error == PASS_ALREADY_RUNNING


def test_unknown_source_raises_key_error() -> None:
    with pytest.raises(KeyError):
        run_source_pass("nowhere", InMemoryCatalogStore(), fetch=_fetch([]))
