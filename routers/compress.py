from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from compression.params import resolve_params
from compression.pipeline import CompressionPipeline
from exceptions import ValidationError
from schemas import CompressionResult
from security.auth import Identity, optional_user
from security.file_validation import check_upload_size, validate_upload
from security.rate_limiter import COMPRESSION_POLICY, RateLimit

router = APIRouter(tags=["compression"])


def get_pipeline(request: Request) -> CompressionPipeline:
    return request.app.state.pipeline


@router.post(
    "/compress",
    response_model=CompressionResult,
    dependencies=[Depends(RateLimit(COMPRESSION_POLICY))],
)
async def compress(
    request: Request,
    image: Optional[UploadFile] = File(None),
    quality: Optional[str] = Form(None),
    output_format: Optional[str] = Form(None, alias="format"),
    width: Optional[str] = Form(None),
    height: Optional[str] = Form(None),
    maintain_aspect_ratio: Optional[str] = Form(None, alias="maintainAspectRatio"),
    identity: Optional[Identity] = Depends(optional_user),
    pipeline: CompressionPipeline = Depends(get_pipeline),
):
    """Compress an uploaded image.

    Anonymous callers get the result only; authenticated callers also get
    a history record and updated counters.
    """
    if image is None:
        raise ValidationError("No image file provided")

    max_bytes = request.app.state.settings.max_file_size_bytes
    check_upload_size(image.size, max_bytes)
    data = await image.read()
    validate_upload(data, image.content_type, max_bytes)

    params = resolve_params(
        quality=quality,
        format=output_format,
        width=width,
        height=height,
        maintain_aspect_ratio=maintain_aspect_ratio,
    )

    return await pipeline.compress(
        data,
        original_size=len(data),
        params=params,
        identity=identity,
        original_filename=image.filename,
    )
