from enum import Enum


class ImageFormat(str, Enum):
    """Output formats the service can encode."""

    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    AVIF = "avif"


# Accepted client spellings -> canonical format
FORMAT_ALIASES = {
    "jpeg": ImageFormat.JPEG,
    "jpg": ImageFormat.JPEG,
    "png": ImageFormat.PNG,
    "webp": ImageFormat.WEBP,
    "avif": ImageFormat.AVIF,
}

MIME_TYPES = {
    ImageFormat.JPEG: "image/jpeg",
    ImageFormat.PNG: "image/png",
    ImageFormat.WEBP: "image/webp",
    ImageFormat.AVIF: "image/avif",
}

_SIZE_UNITS = ("Bytes", "KB", "MB")


def extension_for(fmt: ImageFormat) -> str:
    """File extension used for stored artifacts (jpg is always stored as .jpeg)."""
    return fmt.value


def format_file_size(num_bytes: int) -> str:
    """Human-readable size, e.g. 1536 -> "1.5 KB", -200 -> "-200 Bytes"."""
    if num_bytes == 0:
        return "0 Bytes"
    sign = "-" if num_bytes < 0 else ""
    magnitude = abs(num_bytes)
    exponent = 0
    while exponent < len(_SIZE_UNITS) - 1 and magnitude >= 1024 ** (exponent + 1):
        exponent += 1
    value = magnitude / (1024**exponent)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{sign}{text} {_SIZE_UNITS[exponent]}"
