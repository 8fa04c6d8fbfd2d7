"""Title normalization: turns a scraped title into its catalog comparison key."""

from __future__ import annotations

import html
import re
import unicodedata

_NON_WORD_RE = re.compile(r"[^\w\s]|_")
_WHITESPACE_RE = re.compile(r"\s+")


def decode_entities(raw: str | None) -> str:
    """Decode HTML character entities (&amp;, &#039;, &#x2019; ...)."""
    return html.unescape(raw or "")


def normalize(raw: str | None) -> str:
    """Return the comparison key for a title.

    Steps: decode entities, lowercase, NFD-decompose and drop combining marks,
    drop anything that is not a letter, digit or whitespace, collapse
    whitespace, trim. The result is stable under a second application, so the
    stored key and the lookup key always agree.
    """
    text = decode_entities(raw).lower()
    text = unicodedata.normalize("NFD", text)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = _NON_WORD_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()
