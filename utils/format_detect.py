from enum import Enum

from exceptions import UnsupportedFormatError


class ImageFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"
    WEBP = "webp"


# MIME type mapping
MIME_TYPES = {
    ImageFormat.JPEG: "image/jpeg",
    ImageFormat.PNG: "image/png",
    ImageFormat.GIF: "image/gif",
    ImageFormat.WEBP: "image/webp",
}

# Preferred file extension when writing a format
EXTENSIONS = {
    ImageFormat.JPEG: "jpg",
    ImageFormat.PNG: "png",
    ImageFormat.GIF: "gif",
    ImageFormat.WEBP: "webp",
}

# Extensions accepted by the strict upload variant
ALLOWED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp"})


def detect_format(data: bytes) -> ImageFormat:
    """Detect image format from magic bytes.

    Never trusts file extensions or Content-Type headers.

    Args:
        data: Raw image bytes (at least first 12 bytes needed for WebP).

    Returns:
        ImageFormat enum value.

    Raises:
        UnsupportedFormatError: If no known format matches.
    """
    if len(data) < 3:
        raise UnsupportedFormatError("File too small to identify format")

    # JPEG: \xFF\xD8\xFF
    if data[:3] == b"\xff\xd8\xff":
        return ImageFormat.JPEG

    # PNG: \x89PNG
    if data[:4] == b"\x89PNG":
        return ImageFormat.PNG

    # GIF: "GIF" (GIF87a / GIF89a)
    if data[:3] == b"GIF":
        return ImageFormat.GIF

    # WebP: RIFF container with WEBP fourcc at offset 8
    if data[:4] == b"RIFF" and len(data) >= 12 and data[8:12] == b"WEBP":
        return ImageFormat.WEBP

    raise UnsupportedFormatError(
        "Invalid image format",
        detected_bytes=data[:16].hex(),
    )


def extension_of(filename: str | None) -> str:
    """Lower-cased extension without the dot, or "" when there is none."""
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def stored_extension(filename: str | None, data: bytes, default: str = "jpg") -> str:
    """Extension to store an unmodified upload under.

    The client's extension is kept only when it is an allowed image
    extension; anything else (".html", ".svg", none) is replaced by the
    extension of the format detected from the bytes.
    """
    ext = extension_of(filename)
    if ext in ALLOWED_EXTENSIONS:
        return ext
    try:
        return EXTENSIONS[detect_format(data)]
    except UnsupportedFormatError:
        return default


def mime_type_for(label: str) -> str:
    """MIME type for a format label or extension ("jpg" included)."""
    label = label.lower()
    if label == "jpg":
        label = "jpeg"
    try:
        return MIME_TYPES[ImageFormat(label)]
    except ValueError:
        return "application/octet-stream"
