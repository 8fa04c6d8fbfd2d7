"""Source registry: one adapter per comic-aggregator site.

Each adapter turns a fetched payload (HTML text or decoded JSON) into a list
of RawCandidate. Malformed cards or records are skipped; a ParseError is only
raised when the payload as a whole has the wrong shape.
"""

from __future__ import annotations

import enum
import logging
import math
import re
from typing import Any

from bs4 import BeautifulSoup, Tag

from chapters import format_chapter_label, format_chapter_number, parse_chapter_number
from errors import ParseError
from models import RawCandidate

LOGGER = logging.getLogger(__name__)


class SourceId(str, enum.Enum):
    ASURA = "asura"
    FLAMECOMICS = "flamecomics"
    HIVECOMIC = "hivecomic"
    QUANTUM = "quantum"
    REAPERSCANS = "reaperscans"
    RIZZFABLES = "rizzfables"


class SourceAdapter:
    """Fetch location and extraction rules for one source."""

    source_id: SourceId
    display_name: str
    site_url: str
    feed_url: str
    payload_kind: str = "html"
    # Sources whose rendered titles drift between passes need the whole
    # catalog slice for fuzzy matching, not just exact key hits.
    fuzzy_titles: bool = False

    def extract(self, payload: Any) -> list[RawCandidate]:
        raise NotImplementedError

    def _candidate(self, title: str, chapter_label: str, url: str) -> RawCandidate:
        return RawCandidate(
            title=title,
            chapter_label=chapter_label,
            url=url,
            source_id=self.source_id.value,
        )

    def _soup(self, payload: Any) -> BeautifulSoup:
        if not isinstance(payload, str):
            raise ParseError(f"{self.display_name}: expected an HTML document")
        return BeautifulSoup(payload, "html.parser")


class AsuraAdapter(SourceAdapter):
    source_id = SourceId.ASURA
    display_name = "Asura Scans"
    site_url = "https://asuracomic.net"
    feed_url = "https://asuracomic.net/series"
    fuzzy_titles = True

    _FALLBACK_RE = re.compile(r"<span[^>]*>([^<]+)</span>[\s\S]*?Chapter\s+(\d+)")

    def extract(self, payload: Any) -> list[RawCandidate]:
        soup = self._soup(payload)
        candidates: list[RawCandidate] = []

        for card in soup.select('a[href^="series/"]'):
            title_tag = card.find("span", class_="block")
            title = title_tag.get_text(strip=True) if title_tag else ""
            chapter_text = " ".join(
                span.get_text(" ", strip=True)
                for span in card.find_all("span", class_="text-[13px]")
            )
            number = parse_chapter_number(chapter_text)
            if not title or number <= 0:
                continue
            series_url = f"{self.site_url}/{card['href']}".rstrip("/")
            candidates.append(
                self._candidate(
                    title,
                    format_chapter_label(number),
                    f"{series_url}/chapter/{format_chapter_number(number)}",
                )
            )

        if candidates:
            return candidates

        # Card markup not found: fall back to pairing any span text with the
        # next "Chapter N" in the raw document.
        LOGGER.warning("%s: no series cards found, using raw-text fallback", self.display_name)
        for match in self._FALLBACK_RE.finditer(payload):
            title = match.group(1).strip()
            number = match.group(2)
            slug = re.sub(r"\s+", "-", title.lower())
            candidates.append(
                self._candidate(
                    title,
                    format_chapter_label(number),
                    f"{self.site_url}/series/{slug}/chapter/{format_chapter_number(number)}",
                )
            )
        return candidates


class FlameComicsAdapter(SourceAdapter):
    source_id = SourceId.FLAMECOMICS
    display_name = "Flame Comics"
    site_url = "https://flamecomics.xyz"
    feed_url = "https://flamecomics.xyz/api/series"
    payload_kind = "json"

    def extract(self, payload: Any) -> list[RawCandidate]:
        if not isinstance(payload, list):
            raise ParseError(f"{self.display_name}: expected a list of series")

        candidates: list[RawCandidate] = []
        for series in payload:
            if not isinstance(series, dict):
                continue
            title = _as_str(series.get("label"))
            series_id = series.get("id")
            chapter_count = _as_number(series.get("chapter_count"))
            if not title or series_id in (None, "") or chapter_count is None or chapter_count <= 0:
                continue
            candidates.append(
                self._candidate(
                    title,
                    format_chapter_label(chapter_count),
                    f"{self.site_url}/series/{series_id}",
                )
            )
        return candidates


class HiveComicAdapter(SourceAdapter):
    source_id = SourceId.HIVECOMIC
    display_name = "Hive Comic"
    site_url = "https://hivecomic.com"
    feed_url = "https://hivecomic.com/api/query?page=1&perPage=18"
    payload_kind = "json"

    def extract(self, payload: Any) -> list[RawCandidate]:
        posts = payload.get("posts") if isinstance(payload, dict) else None
        if not isinstance(posts, list):
            raise ParseError(f"{self.display_name}: missing posts array")

        candidates: list[RawCandidate] = []
        for post in posts:
            if not isinstance(post, dict):
                continue
            title = _as_str(post.get("postTitle"))
            slug = _as_str(post.get("slug"))
            chapters = post.get("chapters")
            if not title or not slug or not isinstance(chapters, list) or not chapters:
                continue
            # Listing returns the newest chapter first.
            latest = chapters[0] if isinstance(chapters[0], dict) else {}
            try:
                value = float(latest.get("number"))
            except (TypeError, ValueError):
                continue
            if value <= 0:
                continue
            number = format_chapter_number(value)
            candidates.append(
                self._candidate(
                    title,
                    f"Chapter {number}",
                    f"{self.site_url}/series/{slug}/chapter-{number}",
                )
            )
        return candidates


class QuantumAdapter(SourceAdapter):
    source_id = SourceId.QUANTUM
    display_name = "Quantum Scans"
    site_url = "https://quantumscans.org"
    feed_url = "https://quantumscans.org/latest"

    _URL_CHAPTER_RE = re.compile(r"chapter-(\d+)", re.IGNORECASE)

    def extract(self, payload: Any) -> list[RawCandidate]:
        soup = self._soup(payload)
        candidates: list[RawCandidate] = []

        for card in soup.select("div.flex.flex-row.overflow-hidden.relative"):
            if "bg-[#101010]" not in card.get("class", []):
                continue
            title_tag = card.find("p", class_="text-[15px]")
            title = title_tag.get_text(strip=True) if title_tag else ""
            link = card.select_one('a[href^="/series/"][href*="/chapter-"]')
            href = link.get("href") if isinstance(link, Tag) else None
            if not title or not href:
                continue

            chapter_label = ""
            label_tag = link.find("span", class_="text-[9px]")
            if label_tag:
                chapter_label = " ".join(label_tag.get_text(" ", strip=True).split()[:2])
            if not chapter_label:
                url_match = self._URL_CHAPTER_RE.search(href)
                if url_match:
                    chapter_label = format_chapter_label(url_match.group(1))
            if not chapter_label:
                continue
            candidates.append(self._candidate(title, chapter_label, f"{self.site_url}{href}"))
        return candidates


class ReaperScansAdapter(SourceAdapter):
    source_id = SourceId.REAPERSCANS
    display_name = "Reaper Scans"
    site_url = "https://reaperscans.com"
    feed_url = "https://reaperscans.com/latest/comics"

    def extract(self, payload: Any) -> list[RawCandidate]:
        soup = self._soup(payload)
        candidates: list[RawCandidate] = []

        for card in soup.select(".flex.flex-col.flex-grow.h-full"):
            title_tag = card.find("h5")
            link = card.select_one("a.text-foreground")
            if title_tag is None or link is None:
                continue
            title = title_tag.get_text(strip=True)
            label_tag = link.find("span")
            chapter_label = label_tag.get_text(strip=True) if label_tag else ""
            href = link.get("href")
            if title and chapter_label and href:
                candidates.append(self._candidate(title, chapter_label, f"{self.site_url}{href}"))
        return candidates


class RizzFablesAdapter(SourceAdapter):
    source_id = SourceId.RIZZFABLES
    display_name = "Rizz Fables"
    site_url = "https://rizzfables.com"
    feed_url = "https://rizzfables.com/"

    def extract(self, payload: Any) -> list[RawCandidate]:
        soup = self._soup(payload)
        candidates: list[RawCandidate] = []

        for card in soup.select(".utao.styletwo"):
            title_tag = card.find("h4")
            link = card.select_one(".Manhwa li a")
            if title_tag is None or link is None:
                continue
            title = title_tag.get_text(strip=True)
            chapter_label = link.get_text(" ", strip=True)
            href = link.get("href")
            # Links on this site are already absolute.
            if title and chapter_label and href:
                candidates.append(self._candidate(title, chapter_label, href))
        return candidates


SOURCES: dict[SourceId, SourceAdapter] = {
    adapter.source_id: adapter
    for adapter in (
        AsuraAdapter(),
        FlameComicsAdapter(),
        HiveComicAdapter(),
        QuantumAdapter(),
        ReaperScansAdapter(),
        RizzFablesAdapter(),
    )
}


def get_source(source_id: SourceId | str) -> SourceAdapter:
    """Look up an adapter by enum member or its string value."""
    try:
        return SOURCES[SourceId(source_id)]
    except ValueError as exc:
        raise KeyError(f"Unknown source: {source_id}") from exc


def _as_str(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None


def _as_number(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None
