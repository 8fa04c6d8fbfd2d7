"""Extraction tests for every registered source adapter."""

from __future__ import annotations

import pytest

from errors import ParseError
from models import RawCandidate
from sources import SOURCES, SourceId, get_source

ASURA_HTML = """
<div class="grid">
  <a href="series/solo-leveling-abc123">
    <span class="block text-[13.3px] font-bold">Solo Leveling</span>
    <span class="text-[13px] text-[#999]">Chapter <!-- -->200</span>
  </a>
  <a href="series/broken-card">
    <span class="block">No Chapter Here</span>
  </a>
  <a href="series/orv-99/">
    <span class="block">Omniscient Reader&#039;s Viewpoint</span>
    <span class="text-[13px]">Chapter 5.5</span>
  </a>
</div>
"""

QUANTUM_HTML = """
<div class="flex flex-row overflow-hidden relative bg-[#101010] rounded">
  <p class="text-[15px] lg:text-lg">Reincarnated Sword</p>
  <a href="/series/reincarnated-sword/chapter-45">
    <span class="text-[9px] lg:text-[11px]">Chapter 45 new</span>
  </a>
</div>
<div class="flex flex-row overflow-hidden relative bg-[#101010]">
  <p class="text-[15px]">URL Only</p>
  <a href="/series/url-only/chapter-12"><span class="other">x</span></a>
</div>
<div class="flex flex-row overflow-hidden relative bg-white">
  <p class="text-[15px]">Not A Card</p>
  <a href="/series/not-a-card/chapter-1"><span class="text-[9px]">Chapter 1</span></a>
</div>
"""

REAPER_HTML = """
<div class="flex flex-col flex-grow h-full">
  <h5>The Max Level Hero</h5>
  <a class="text-foreground" href="/series/max-level-hero/chapter-80">
    <span>Chapter 80</span><span>2h ago</span>
  </a>
</div>
<div class="flex flex-col flex-grow h-full"><h5>Missing Link</h5></div>
"""

RIZZ_HTML = """
<div class="utao styletwo">
  <h4>Regressor's Life</h4>
  <ul class="Manhwa">
    <li><a href="https://rizzfables.com/chapter/regressor-41">Chapter 41</a></li>
    <li><a href="https://rizzfables.com/chapter/regressor-40">Chapter 40</a></li>
  </ul>
</div>
<div class="utao styletwo"><h4>No Chapters</h4></div>
"""


def test_registry_has_one_adapter_per_source() -> None:
    assert set(SOURCES) == set(SourceId)
    for source_id, adapter in SOURCES.items():
        assert adapter.source_id == source_id
        assert adapter.payload_kind in {"html", "json"}


def test_get_source_accepts_string_ids() -> None:
    assert get_source("asura") is SOURCES[SourceId.ASURA]
    with pytest.raises(KeyError):
        get_source("unknown-site")


def test_asura_extracts_cards_and_builds_chapter_urls() -> None:
    candidates = get_source(SourceId.ASURA).extract(ASURA_HTML)

    assert candidates == [
        RawCandidate(
            title="Solo Leveling",
            chapter_label="Chapter 200",
            url="https://asuracomic.net/series/solo-leveling-abc123/chapter/200",
            source_id="asura",
        ),
        RawCandidate(
            title="Omniscient Reader's Viewpoint",
            chapter_label="Chapter 5.5",
            url="https://asuracomic.net/series/orv-99/chapter/5.5",
            source_id="asura",
        ),
    ]


def test_asura_falls_back_to_raw_text() -> None:
    html = '<div><span class="x">Tower of God</span><p>Chapter 600</p></div>'
    candidates = get_source(SourceId.ASURA).extract(html)

    assert len(candidates) == 1
    assert candidates[0].title == "Tower of God"
    assert candidates[0].chapter_label == "Chapter 600"
    assert candidates[0].url == "https://asuracomic.net/series/tower-of-god/chapter/600"


def test_flamecomics_extracts_series_and_skips_bad_records() -> None:
    payload = [
        {"label": "Omniscient Reader", "id": 12, "chapter_count": "250"},
        {"label": "", "id": 13, "chapter_count": 10},
        {"label": "No Chapters", "id": 14, "chapter_count": 0},
        {"label": "Bad Count", "id": 15, "chapter_count": "many"},
        "junk",
    ]
    candidates = get_source(SourceId.FLAMECOMICS).extract(payload)

    assert candidates == [
        RawCandidate(
            title="Omniscient Reader",
            chapter_label="Chapter 250",
            url="https://flamecomics.xyz/series/12",
            source_id="flamecomics",
        )
    ]


def test_flamecomics_keeps_fractional_chapter_count() -> None:
    payload = [
        {"label": "Nano Machine", "id": 3, "chapter_count": 12.5},
        {"label": "Infinite", "id": 4, "chapter_count": "nan"},
    ]
    candidates = get_source(SourceId.FLAMECOMICS).extract(payload)

    assert [candidate.chapter_label for candidate in candidates] == ["Chapter 12.5"]


def test_hivecomic_uses_latest_chapter() -> None:
    payload = {
        "posts": [
            {"postTitle": "Nano Machine", "slug": "nano-machine", "chapters": [{"number": 210}, {"number": 209}]},
            {"postTitle": "No Chapters", "slug": "no-chapters", "chapters": []},
            {"postTitle": "Bad Number", "slug": "bad-number", "chapters": [{"number": None}]},
            {"postTitle": "Half", "slug": "half", "chapters": [{"number": "12.5"}]},
        ]
    }
    candidates = get_source(SourceId.HIVECOMIC).extract(payload)

    assert [(c.title, c.chapter_label, c.url) for c in candidates] == [
        ("Nano Machine", "Chapter 210", "https://hivecomic.com/series/nano-machine/chapter-210"),
        ("Half", "Chapter 12.5", "https://hivecomic.com/series/half/chapter-12.5"),
    ]


def test_quantum_extracts_cards_with_url_fallback() -> None:
    candidates = get_source(SourceId.QUANTUM).extract(QUANTUM_HTML)

    assert [(c.title, c.chapter_label, c.url) for c in candidates] == [
        ("Reincarnated Sword", "Chapter 45", "https://quantumscans.org/series/reincarnated-sword/chapter-45"),
        ("URL Only", "Chapter 12", "https://quantumscans.org/series/url-only/chapter-12"),
    ]


def test_reaperscans_extracts_first_chapter_link() -> None:
    candidates = get_source(SourceId.REAPERSCANS).extract(REAPER_HTML)

    assert [(c.title, c.chapter_label, c.url) for c in candidates] == [
        ("The Max Level Hero", "Chapter 80", "https://reaperscans.com/series/max-level-hero/chapter-80"),
    ]


def test_rizzfables_keeps_absolute_urls() -> None:
    candidates = get_source(SourceId.RIZZFABLES).extract(RIZZ_HTML)

    assert [(c.title, c.chapter_label, c.url) for c in candidates] == [
        ("Regressor's Life", "Chapter 41", "https://rizzfables.com/chapter/regressor-41"),
    ]


@pytest.mark.parametrize("source_id, payload", [
    (SourceId.FLAMECOMICS, {"series": []}),
    (SourceId.HIVECOMIC, []),
    (SourceId.HIVECOMIC, {"posts": None}),
    (SourceId.ASURA, {"not": "html"}),
    (SourceId.QUANTUM, None),
])
def test_wrong_payload_shape_raises_parse_error(source_id: SourceId, payload) -> None:
    with pytest.raises(ParseError):
        get_source(source_id).extract(payload)


@pytest.mark.parametrize("source_id", [SourceId.QUANTUM, SourceId.REAPERSCANS, SourceId.RIZZFABLES])
def test_html_without_cards_yields_nothing(source_id: SourceId) -> None:
    assert get_source(source_id).extract("<html><body><p>Maintenance</p></body></html>") == []
