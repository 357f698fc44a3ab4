from PIL import Image

from encoders.base import BaseEncoder
from utils.formats import ImageFormat


class JpegEncoder(BaseEncoder):
    """Baseline JPEG via Pillow with Huffman table optimization.

    JPEG has no alpha channel: transparent sources are flattened onto black.
    """

    format = ImageFormat.JPEG
    pillow_format = "JPEG"
    supported_modes = ("RGB", "L")

    def save_options(self, quality: int) -> dict:
        return {"format": self.pillow_format, "quality": quality, "optimize": True}

    def _prepare(self, img: Image.Image) -> Image.Image:
        if img.mode in self.supported_modes:
            return img
        if img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info:
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (0, 0, 0))
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background
        return img.convert("RGB")
