import io
from typing import Optional

from PIL import Image, UnidentifiedImageError

from exceptions import DecodeError
from schemas import ResizeMode


def decode_image(data: bytes) -> Image.Image:
    """Decode raw bytes into a fully loaded Pillow image.

    Multi-frame inputs (GIF, APNG, animated WebP) are reduced to their
    first frame.

    Raises:
        DecodeError: If the bytes are not a decodable image.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Unable to decode image: {e}")
    except (OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Corrupt or truncated image: {e}")
    return img


def target_size(
    source: tuple[int, int],
    width: Optional[int],
    height: Optional[int],
    mode: ResizeMode,
) -> tuple[int, int]:
    """Compute output dimensions for a resize request.

    Never returns a size larger than the source on either axis.

    INSIDE: uniform scale so the image fits within the requested box;
    a missing axis does not constrain. FILL: each requested axis is used
    as-is (clamped to the source); a missing axis keeps the source size.
    """
    src_w, src_h = source
    if width is None and height is None:
        return src_w, src_h

    if mode == ResizeMode.FILL:
        new_w = min(width, src_w) if width is not None else src_w
        new_h = min(height, src_h) if height is not None else src_h
        return max(1, new_w), max(1, new_h)

    scales = [1.0]
    if width is not None:
        scales.append(width / src_w)
    if height is not None:
        scales.append(height / src_h)
    scale = min(scales)
    if scale >= 1.0:
        return src_w, src_h
    new_w = min(src_w, max(1, round(src_w * scale)))
    new_h = min(src_h, max(1, round(src_h * scale)))
    return new_w, new_h


def resize_image(
    img: Image.Image,
    width: Optional[int],
    height: Optional[int],
    mode: ResizeMode,
) -> Image.Image:
    """Resize per target_size(); returns the input unchanged if no resize is needed."""
    size = target_size(img.size, width, height, mode)
    if size == img.size:
        return img
    if img.mode == "P":
        img = img.convert("RGBA" if "transparency" in img.info else "RGB")
    return img.resize(size, Image.Resampling.LANCZOS)
