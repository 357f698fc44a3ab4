from typing import Optional

from exceptions import FileTooLargeError, ValidationError


def check_upload_size(size: Optional[int], max_bytes: int) -> None:
    """Reject oversized uploads before reading or decoding them.

    Raises:
        FileTooLargeError: If size exceeds the configured limit.
    """
    if size is not None and size > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise FileTooLargeError(
            f"File size must be less than {limit_mb}MB",
            file_size=size,
            limit=max_bytes,
        )


def validate_upload(data: bytes, content_type: Optional[str], max_bytes: int) -> None:
    """Validate an uploaded image's declared type and size.

    Only the declared type is checked here; the pipeline's decoder is the
    authority on whether the bytes are really an image.

    Raises:
        ValidationError: Empty upload or non-image content type.
        FileTooLargeError: If the upload exceeds max_bytes.
    """
    if not (content_type or "").lower().startswith("image/"):
        raise ValidationError("Only image files are allowed")
    check_upload_size(len(data), max_bytes)
    if not data:
        raise ValidationError("Uploaded file is empty")
