class ImgpressError(Exception):
    """Base exception for all imgpress errors."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str, **kwargs):
        self.message = message
        self.details = kwargs
        super().__init__(message)


class ValidationError(ImgpressError):
    """Bad or missing input."""

    status_code = 400
    error_code = "validation_error"


class FileTooLargeError(ValidationError):
    """Upload exceeds maximum allowed size."""

    error_code = "file_too_large"


class ConflictError(ImgpressError):
    """Username or email already registered."""

    status_code = 400
    error_code = "conflict"


class AuthError(ImgpressError):
    """Login failed (unknown email or wrong password)."""

    status_code = 401
    error_code = "invalid_credentials"


class UnauthorizedError(ImgpressError):
    """Bearer token missing."""

    status_code = 401
    error_code = "unauthorized"


class ForbiddenError(ImgpressError):
    """Token invalid/expired, or caller lacks the required role."""

    status_code = 403
    error_code = "forbidden"


class NotFoundError(ImgpressError):
    status_code = 404
    error_code = "not_found"


class RateLimitError(ImgpressError):
    """Rate limit exceeded."""

    status_code = 429
    error_code = "rate_limit_exceeded"


class DecodeError(ImgpressError):
    """Upload is not a decodable image."""

    status_code = 500
    error_code = "decode_failed"


class CompressionError(ImgpressError):
    """Encoder failed while producing the output image."""

    status_code = 500
    error_code = "compression_failed"


class InternalError(ImgpressError):
    """Catch-all for unexpected failures."""

    status_code = 500
    error_code = "internal_error"


class FeatureUnavailableError(ImgpressError):
    """Feature needs a collaborator (database, signing secret) that is not configured."""

    status_code = 503
    error_code = "feature_unavailable"


class BackpressureError(ImgpressError):
    """Compression queue is full."""

    status_code = 503
    error_code = "service_overloaded"
