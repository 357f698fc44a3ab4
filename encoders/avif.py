from PIL import Image

from encoders.base import BaseEncoder
from utils.formats import ImageFormat


class AvifEncoder(BaseEncoder):
    """AVIF via libavif (AV1 encoder).

    Uses pillow-avif-plugin to register the AVIF codec with Pillow.
    """

    format = ImageFormat.AVIF
    pillow_format = "AVIF"
    supported_modes = ("RGB", "RGBA")

    def encode(self, img: Image.Image, quality: int) -> bytes:
        import pillow_avif  # noqa: F401  registers AVIF plugin

        return super().encode(img, quality)

    def save_options(self, quality: int) -> dict:
        return {
            "format": self.pillow_format,
            "quality": quality,
            "speed": 6,  # 0=slowest/best, 10=fastest
        }
