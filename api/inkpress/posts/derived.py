"""Fields computed from a post's title and content at write time."""

import math
import re
from datetime import datetime

from inkpress.utils.timestamps import utcnow


EXCERPT_LENGTH = 200
WORDS_PER_MINUTE = 200

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9 ]")
_SPACES = re.compile(r" +")
_MARKDOWN_MARKERS = re.compile(r"[#*`_~]")


def slugify(text: str, fallback: str = "untitled") -> str:
    """Derive a URL-safe slug.

    >>> slugify("Test Post Title")
    'test-post-title'
    >>> slugify("  Hello,   World! ")
    'hello-world'
    """
    slug = _NON_SLUG_CHARS.sub("", text.lower())
    slug = _SPACES.sub("-", slug.strip())
    return slug or fallback


def derive_excerpt(content: str) -> str:
    """First 200 characters of the content without markdown markers, plus '...'."""
    plain = _MARKDOWN_MARKERS.sub("", content).strip()
    return plain[:EXCERPT_LENGTH] + "..."


def count_words(content: str) -> int:
    return len(content.split())


def reading_time(content: str) -> int:
    """Minutes to read at 200 words per minute, never less than 1."""
    return max(1, math.ceil(count_words(content) / WORDS_PER_MINUTE))


def stamp_published_at(
    status: str,
    published_at: datetime | None,
    now: datetime | None = None,
) -> datetime | None:
    """Return the publish timestamp after a save with ``status``.

    The first save in published state stamps the time; later saves keep it.
    """
    if status == "published" and published_at is None:
        return now or utcnow()
    return published_at
