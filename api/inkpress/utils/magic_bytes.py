"""Magic bytes detection for uploaded images.

The declared Content-Type of an upload is only trusted when the leading
bytes of the file agree with it.
"""

from typing import NamedTuple


MIN_BYTES_FOR_DETECTION = 4
WEBP_HEADER_LENGTH = 12


class MagicSignature(NamedTuple):
    bytes_pattern: bytes
    mime_type: str


# Reference: https://en.wikipedia.org/wiki/List_of_file_signatures
IMAGE_SIGNATURES: list[MagicSignature] = [
    MagicSignature(b"\xff\xd8\xff", "image/jpeg"),
    MagicSignature(b"\x89PNG\r\n\x1a\n", "image/png"),
    MagicSignature(b"GIF87a", "image/gif"),
    MagicSignature(b"GIF89a", "image/gif"),
    MagicSignature(b"BM", "image/bmp"),
    MagicSignature(b"II*\x00", "image/tiff"),
    MagicSignature(b"MM\x00*", "image/tiff"),
]

# Aliases browsers send for the same format
MIME_ALIASES = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
    "image/x-png": "image/png",
}


def normalize_mime(content_type: str | None) -> str:
    """Lower-case, drop parameters such as charset, resolve aliases."""
    base = (content_type or "").split(";")[0].strip().lower()
    return MIME_ALIASES.get(base, base)


def detect_image_type(data: bytes) -> str | None:
    """Detect an image MIME type from the first bytes of a file.

    Args:
        data: At least the first 12 bytes of the file.

    Returns:
        Detected MIME type or None if the content is not a known image.
    """
    if len(data) < MIN_BYTES_FOR_DETECTION:
        return None

    # RIFF container with WEBP at offset 8
    if data[:4] == b"RIFF":
        if len(data) >= WEBP_HEADER_LENGTH and data[8:12] == b"WEBP":
            return "image/webp"
        return None

    for sig in IMAGE_SIGNATURES:
        if data.startswith(sig.bytes_pattern):
            return sig.mime_type
    return None


def check_image_content(
    data: bytes,
    declared_type: str | None,
    allowed_types: frozenset[str],
) -> tuple[bool, str | None, str | None]:
    """Check declared type and file content against the allow list.

    Returns:
        Tuple of (is_valid, detected_type, error_message).
    """
    declared = normalize_mime(declared_type)
    if not declared.startswith("image/"):
        return (False, None, "Only image files are allowed")
    if declared not in allowed_types:
        return (
            False,
            None,
            f"File type '{declared}' is not allowed. "
            f"Allowed: {', '.join(sorted(allowed_types))}",
        )

    detected = detect_image_type(data)
    if detected is None:
        return (False, None, "Unable to detect image type from content")
    if detected != declared:
        return (
            False,
            detected,
            f"Content-Type mismatch: declared '{declared}', detected '{detected}'",
        )
    return (True, detected, None)
