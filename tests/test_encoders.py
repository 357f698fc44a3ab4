"""Tests for the per-format encoders."""

import io

import pytest
from PIL import Image

from encoders.jpeg import JpegEncoder
from encoders.png import PngEncoder, png_compress_level
from encoders.router import ENCODERS, check_codecs, get_encoder
from encoders.webp import WebpEncoder
from utils.formats import ImageFormat


def _gradient(size=(64, 48), mode="RGB"):
    img = Image.new("RGB", size)
    px = img.load()
    for x in range(size[0]):
        for y in range(size[1]):
            px[x, y] = (x * 4 % 256, y * 5 % 256, (x + y) % 256)
    return img.convert(mode) if mode != "RGB" else img


@pytest.mark.parametrize(
    "quality, level",
    [(10, 8), (11, 8), (12, 7), (50, 4), (80, 1), (99, 0), (100, 0)],
)
def test_png_compress_level_mapping(quality, level):
    assert png_compress_level(quality) == level


def test_png_compress_level_within_zlib_range():
    for quality in range(10, 101):
        assert 0 <= png_compress_level(quality) <= 9


def test_registry_covers_every_format():
    assert set(ENCODERS) == set(ImageFormat)
    assert isinstance(get_encoder(ImageFormat.JPEG), JpegEncoder)


def test_jpeg_encode():
    data = JpegEncoder().encode(_gradient(), 75)
    assert data[:2] == b"\xff\xd8"
    assert Image.open(io.BytesIO(data)).size == (64, 48)


def test_jpeg_lower_quality_is_smaller():
    img = _gradient((128, 128))
    low = JpegEncoder().encode(img, 20)
    high = JpegEncoder().encode(img, 95)
    assert len(low) < len(high)


def test_jpeg_flattens_alpha():
    img = Image.new("RGBA", (16, 16), (255, 0, 0, 0))
    out = Image.open(io.BytesIO(JpegEncoder().encode(img, 90)))
    assert out.mode == "RGB"
    r, g, b = out.getpixel((8, 8))
    assert r < 20 and g < 20 and b < 20


def test_jpeg_palette_input():
    data = JpegEncoder().encode(_gradient(mode="P"), 80)
    assert Image.open(io.BytesIO(data)).format == "JPEG"


def test_png_encode_keeps_alpha():
    img = Image.new("RGBA", (20, 20), (0, 128, 255, 100))
    out = Image.open(io.BytesIO(PngEncoder().encode(img, 80)))
    assert out.format == "PNG"
    assert out.mode == "RGBA"


def test_png_is_lossless_at_any_quality():
    img = _gradient()
    for quality in (10, 100):
        out = Image.open(io.BytesIO(PngEncoder().encode(img, quality))).convert("RGB")
        assert out.tobytes() == img.tobytes()


def test_webp_encode():
    out = Image.open(io.BytesIO(WebpEncoder().encode(_gradient(), 70)))
    assert out.format == "WEBP"
    assert out.size == (64, 48)


def test_webp_grayscale_converted():
    data = WebpEncoder().encode(_gradient(mode="L"), 70)
    assert Image.open(io.BytesIO(data)).format == "WEBP"


def test_avif_encode():
    pytest.importorskip("pillow_avif")
    data = get_encoder(ImageFormat.AVIF).encode(_gradient(), 60)
    assert b"ftyp" in data[:32]


def test_check_codecs_reports_core_formats():
    codecs = check_codecs()
    assert set(codecs) == {"jpeg", "png", "webp", "avif"}
    assert codecs["jpeg"] is True
    assert codecs["png"] is True
