import math
import re
from typing import Optional

from schemas import CompressionParams, ResizeMode
from utils.formats import FORMAT_ALIASES, ImageFormat

DEFAULT_QUALITY = 80
MIN_QUALITY = 10
MAX_QUALITY = 100

# Leading integer; more than 18 significant digits saturates at PARSE_LIMIT
_LEADING_INT = re.compile(r"^\s*([+-]?)0*(\d+)")
PARSE_LIMIT = 10**18
_FALSE_STRINGS = {"false", "0", "no", "off"}


def parse_int(value) -> Optional[int]:
    """Parse the leading integer of a form value ("55.7" -> 55, "abc" -> None)."""
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    match = _LEADING_INT.match(str(value))
    if not match:
        return None
    sign, digits = match.groups()
    number = PARSE_LIMIT if len(digits) > 18 else int(digits)
    return -number if sign == "-" else number


def resolve_quality(value) -> int:
    quality = parse_int(value) or DEFAULT_QUALITY  # 0 falls back to the default too
    return max(MIN_QUALITY, min(MAX_QUALITY, quality))


def resolve_format(value) -> ImageFormat:
    if not isinstance(value, str):
        return ImageFormat.JPEG
    return FORMAT_ALIASES.get(value.strip().lower(), ImageFormat.JPEG)


def resolve_dimension(value) -> Optional[int]:
    parsed = parse_int(value)
    if parsed is None or parsed < 1:
        return None
    return parsed


def resolve_resize_mode(value) -> ResizeMode:
    if value is None:
        return ResizeMode.INSIDE
    if isinstance(value, bool):
        return ResizeMode.INSIDE if value else ResizeMode.FILL
    if str(value).strip().lower() in _FALSE_STRINGS:
        return ResizeMode.FILL
    return ResizeMode.INSIDE


def resolve_params(
    quality=None,
    format=None,
    width=None,
    height=None,
    maintain_aspect_ratio=None,
) -> CompressionParams:
    """Normalize raw client options into safe compression parameters.

    Never raises: every input is coerced to a valid value.
    """
    return CompressionParams(
        quality=resolve_quality(quality),
        format=resolve_format(format),
        width=resolve_dimension(width),
        height=resolve_dimension(height),
        resize_mode=resolve_resize_mode(maintain_aspect_ratio),
    )
