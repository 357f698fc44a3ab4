import asyncio
from dataclasses import dataclass
from typing import Optional

from encoders.router import get_encoder
from exceptions import CompressionError, ImgpressError
from schemas import CompressionParams, CompressionResult, DimensionPair, Dimensions
from security.auth import Identity
from storage.artifacts import LocalArtifactStore
from storage.repository import NewCompression, Storage
from utils.concurrency import CompressionGate
from utils.formats import extension_for, format_file_size
from utils.imaging import decode_image, resize_image
from utils.logging import get_logger

logger = get_logger("pipeline")


def compression_ratio(original_size: int, compressed_size: int) -> float:
    """Percent saved, two decimals. Negative when the output grew."""
    if original_size <= 0:
        return 0.0
    return round((original_size - compressed_size) / original_size * 100, 2)


@dataclass
class Transcoded:
    data: bytes
    original_size: tuple[int, int]
    compressed_size: tuple[int, int]


def transcode(data: bytes, params: CompressionParams) -> Transcoded:
    """Decode -> optional resize -> encode. CPU-bound; run in a worker thread.

    Raises:
        DecodeError: Input is not a decodable image.
        CompressionError: The encoder failed.
    """
    img = decode_image(data)
    original_dims = img.size

    if params.resize_requested:
        img = resize_image(img, params.width, params.height, params.resize_mode)

    encoder = get_encoder(params.format)
    try:
        encoded = encoder.encode(img, params.quality)
    except ImgpressError:
        raise
    except Exception as e:
        raise CompressionError(f"Compression failed: {e}", format=params.format.value)

    return Transcoded(data=encoded, original_size=original_dims, compressed_size=img.size)


class CompressionPipeline:
    """Runs one compression request end to end.

    1. Decode, resize, encode (in a worker thread, behind the gate)
    2. Compute savings and ratio
    3. Write the artifact (last step that can fail before a response)
    4. Record history + bump counters when the caller is authenticated
    """

    def __init__(self, artifacts: LocalArtifactStore, storage: Storage, gate: CompressionGate):
        self.artifacts = artifacts
        self.storage = storage
        self.gate = gate

    async def compress(
        self,
        data: bytes,
        original_size: int,
        params: CompressionParams,
        identity: Optional[Identity] = None,
        original_filename: Optional[str] = None,
    ) -> CompressionResult:
        async with self.gate:
            result = await asyncio.to_thread(transcode, data, params)

        compressed_size = len(result.data)
        savings = original_size - compressed_size
        ratio = compression_ratio(original_size, compressed_size)

        filename = await self.artifacts.save(result.data, extension_for(params.format))
        download_url = self.artifacts.url_for(filename)

        record_id = None
        if identity is not None and self.storage.available:
            entry = NewCompression(
                user_id=identity.user_id,
                original_filename=original_filename,
                compressed_filename=filename,
                original_size=original_size,
                compressed_size=compressed_size,
                compression_ratio=ratio,
                format=params.format.value,
                quality=params.quality,
                original_width=result.original_size[0],
                original_height=result.original_size[1],
                compressed_width=result.compressed_size[0],
                compressed_height=result.compressed_size[1],
                download_url=download_url,
            )
            record = await asyncio.to_thread(self.storage.add_compression, entry)
            record_id = record.id

        logger.info(
            "Compression complete",
            extra={
                "context": {
                    "format": params.format.value,
                    "quality": params.quality,
                    "original_size": original_size,
                    "compressed_size": compressed_size,
                    "ratio": ratio,
                    "recorded": record_id is not None,
                }
            },
        )

        return CompressionResult(
            file_name=filename,
            original_size=original_size,
            compressed_size=compressed_size,
            compression_ratio=ratio,
            savings=format_file_size(savings),
            savings_bytes=savings,
            download_url=download_url,
            format=params.format.value,
            quality=params.quality,
            dimensions=DimensionPair(
                original=Dimensions(width=result.original_size[0], height=result.original_size[1]),
                compressed=Dimensions(
                    width=result.compressed_size[0], height=result.compressed_size[1]
                ),
            ),
            record_id=record_id,
        )
