"""Chapter label parsing."""

from __future__ import annotations

import re

# Some listings render "Chapter <!-- -->42" from client-side templates.
_CHAPTER_RE = re.compile(
    r"\b(?:chapter|ch\.)\s*(?:<!--\s*-->\s*)*(\d+(?:\.\d+)?)",
    re.IGNORECASE,
)

UNKNOWN_CHAPTER = 0.0


def parse_chapter_number(label: str | None) -> float:
    """Extract the first "Chapter N" / "Ch. N" number from a label.

    Returns 0.0 when nothing matches. Callers treat 0 as "no information",
    not as a real chapter zero.
    """
    if not label:
        return UNKNOWN_CHAPTER
    match = _CHAPTER_RE.search(label)
    if match is None:
        return UNKNOWN_CHAPTER
    return float(match.group(1))


def format_chapter_number(number: float | int | str) -> str:
    """12.0 -> "12", 12.5 -> "12.5"."""
    value = float(number)
    return str(int(value)) if value.is_integer() else str(value)


def format_chapter_label(number: float | int | str) -> str:
    """Render a bare chapter number as a label, e.g. 12 -> "Chapter 12"."""
    return f"Chapter {format_chapter_number(number)}"
