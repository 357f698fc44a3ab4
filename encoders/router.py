from encoders.avif import AvifEncoder
from encoders.base import BaseEncoder
from encoders.jpeg import JpegEncoder
from encoders.png import PngEncoder
from encoders.webp import WebpEncoder
from utils.formats import ImageFormat

# Encoder registry, initialized once at import time
ENCODERS: dict[ImageFormat, BaseEncoder] = {
    ImageFormat.JPEG: JpegEncoder(),
    ImageFormat.PNG: PngEncoder(),
    ImageFormat.WEBP: WebpEncoder(),
    ImageFormat.AVIF: AvifEncoder(),
}


def get_encoder(fmt: ImageFormat) -> BaseEncoder:
    return ENCODERS[fmt]


def check_codecs() -> dict[str, bool]:
    """Report which output formats the installed imaging stack can write."""
    from PIL import features

    results = {
        "jpeg": bool(features.check("jpg")),
        "png": bool(features.check("zlib")),
        "webp": bool(features.check("webp")),
    }
    try:
        import pillow_avif  # noqa: F401

        results["avif"] = True
    except ImportError:
        results["avif"] = False
    return results
