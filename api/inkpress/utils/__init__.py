"""Utility modules for the Inkpress API."""

from inkpress.utils.magic_bytes import check_image_content, detect_image_type
from inkpress.utils.timestamps import from_iso, to_iso, utcnow


__all__ = [
    "check_image_content",
    "detect_image_type",
    "from_iso",
    "to_iso",
    "utcnow",
]
