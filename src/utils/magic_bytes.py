"""Magic bytes detection for image and video uploads.

Checks the actual file content against the declared Content-Type so a file
renamed to ``.png`` is not accepted as an image.
"""

from typing import NamedTuple


MIN_BYTES_FOR_DETECTION = 4
WEBP_HEADER_LENGTH = 12
FTYP_HEADER_LENGTH = 12


class MagicSignature(NamedTuple):
    """Magic bytes signature for a file type."""

    bytes_pattern: bytes
    mime_type: str


# Reference: https://en.wikipedia.org/wiki/List_of_file_signatures
MAGIC_SIGNATURES: tuple[MagicSignature, ...] = (
    MagicSignature(b"\xff\xd8\xff", "image/jpeg"),
    MagicSignature(b"\x89PNG\r\n\x1a\n", "image/png"),
    MagicSignature(b"GIF87a", "image/gif"),
    MagicSignature(b"GIF89a", "image/gif"),
    MagicSignature(b"BM", "image/bmp"),
    MagicSignature(b"\x1a\x45\xdf\xa3", "video/webm"),
)


def detect_content_type(data: bytes) -> str | None:
    """Detect an image or video MIME type from the first bytes of a file."""
    if len(data) < MIN_BYTES_FOR_DETECTION:
        return None

    # WebP is RIFF....WEBP
    if data[:4] == b"RIFF":
        if len(data) >= WEBP_HEADER_LENGTH and data[8:12] == b"WEBP":
            return "image/webp"
        return None

    # ISO base media (MP4/MOV): size box then "ftyp" and the major brand
    if len(data) >= FTYP_HEADER_LENGTH and data[4:8] == b"ftyp":
        return "video/quicktime" if data[8:12] == b"qt  " else "video/mp4"

    for sig in MAGIC_SIGNATURES:
        if data.startswith(sig.bytes_pattern):
            return sig.mime_type

    return None


def validate_content_type(
    data: bytes,
    declared_type: str | None,
    *,
    allowed_types: frozenset[str] | None = None,
) -> tuple[bool, str | None, str | None]:
    """Validate file content against its declared Content-Type.

    The detected type must be in ``allowed_types`` (when given) and belong to
    the same media class as the declared type. ``image/png`` declared for JPEG
    bytes is accepted; ``image/png`` declared for a PDF is not.

    Returns:
        Tuple of (is_valid, detected_type, error_message).
    """
    detected_type = detect_content_type(data)
    if detected_type is None:
        return (False, None, "Unable to detect file type from content")

    if allowed_types is not None and detected_type not in allowed_types:
        return (
            False,
            detected_type,
            f"File type '{detected_type}' is not allowed. "
            f"Allowed: {', '.join(sorted(allowed_types))}",
        )

    if not declared_type:
        return (True, detected_type, None)

    declared_class = declared_type.split(";")[0].strip().lower().split("/")[0]
    detected_class = detected_type.split("/")[0]
    if declared_class != detected_class:
        return (
            False,
            detected_type,
            f"Media class mismatch: declared '{declared_class}', "
            f"detected '{detected_class}'",
        )

    return (True, detected_type, None)
