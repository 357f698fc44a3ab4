import io
from abc import ABC, abstractmethod

from PIL import Image

from utils.formats import ImageFormat


class BaseEncoder(ABC):
    """Abstract base for format-specific encoders.

    Encoders are synchronous and CPU-bound; the pipeline runs them in a
    worker thread behind the compression gate.
    """

    format: ImageFormat
    pillow_format: str

    # Modes the target format can store without conversion
    supported_modes: tuple[str, ...] = ("RGB", "RGBA", "L")

    def encode(self, img: Image.Image, quality: int) -> bytes:
        """Encode a decoded image at the resolved quality (10-100).

        Args:
            img: Decoded (and possibly resized) image.
            quality: Resolved quality.

        Returns:
            Encoded bytes.
        """
        output = io.BytesIO()
        self._prepare(img).save(output, **self.save_options(quality))
        return output.getvalue()

    @abstractmethod
    def save_options(self, quality: int) -> dict:
        """Pillow save() keyword arguments for this format."""

    def _prepare(self, img: Image.Image) -> Image.Image:
        """Convert to a mode the target format can store."""
        if img.mode in self.supported_modes:
            return img
        has_alpha = img.mode in ("LA", "PA", "RGBa", "La") or "transparency" in img.info
        if has_alpha and "RGBA" in self.supported_modes:
            return img.convert("RGBA")
        return img.convert("RGB")
