import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from exceptions import ImgpressError, InternalError
from utils.logging import get_logger, request_id_var

logger = get_logger("middleware")


def error_response(exc: ImgpressError) -> JSONResponse:
    """Render an ImgpressError in the standard error shape."""
    headers = {}
    retry_after = exc.details.get("retry_after")
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.error_code,
            "message": exc.message,
            **exc.details,
        },
        headers=headers,
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Request ID plus last-resort error mapping.

    Order of operations per request:
    1. Inject request ID (UUID)
    2. Process request (auth and rate limits run as route dependencies)
    3. Map anything that escaped the exception handlers to a 500 JSON body
    4. Add X-Request-ID to response
    """

    async def dispatch(self, request: Request, call_next):
        # 1. Request ID
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        try:
            # 2. Process request
            response = await call_next(request)

        except ImgpressError as exc:
            response = error_response(exc)

        except Exception as exc:
            # 3. Unexpected failure: full detail in logs, generic message to clients
            logger.exception(
                "Unhandled error",
                extra={"context": {"method": request.method, "path": request.url.path}},
            )
            settings = request.app.state.settings
            message = str(exc) if settings.is_development else "Something went wrong"
            response = error_response(InternalError(message))

        finally:
            request_id_var.reset(token)

        # 4. Request ID header
        response.headers["X-Request-ID"] = request_id
        return response
