import math

from encoders.base import BaseEncoder
from utils.formats import ImageFormat


def png_compress_level(quality: int) -> int:
    """Map quality (10-100) onto zlib level (0-9), inverted.

    PNG is lossless, so "quality" only trades CPU time for size:
    low quality -> level 9 (smallest, slowest), 100 -> level 0.
    """
    level = math.floor(9 - quality / 11.11)
    return max(0, min(9, level))


class PngEncoder(BaseEncoder):
    format = ImageFormat.PNG
    pillow_format = "PNG"
    supported_modes = ("RGB", "RGBA", "L", "LA", "P", "1", "I;16")

    def save_options(self, quality: int) -> dict:
        return {
            "format": self.pillow_format,
            # optimize=True would override compress_level with 9
            "compress_level": png_compress_level(quality),
        }
