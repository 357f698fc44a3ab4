import asyncio
import threading
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from compression.pipeline import CompressionPipeline
from config import VERSION, Settings, settings
from exceptions import ImgpressError, NotFoundError, ValidationError
from middleware import RequestContextMiddleware, error_response
from routers import admin, auth, compress, health, history
from security.auth import TokenService
from security.passwords import PasswordHasher
from security.rate_limiter import build_policies, create_rate_limiter
from services.accounts import AccountService
from services.history import HistoryService
from storage.artifacts import URL_PREFIX, LocalArtifactStore
from storage.repository import create_storage
from utils.concurrency import CompressionGate
from utils.logging import get_logger, setup_logging

logger = get_logger("main")


def _log_loop_exception(loop, context):
    """Keep serving when a background task fails outside any request."""
    logger.error(
        f"Unhandled asyncio error: {context.get('message')}",
        exc_info=context.get("exception"),
    )


def _log_thread_exception(args):
    logger.error(
        f"Uncaught exception in thread {args.thread.name if args.thread else '?'}",
        exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: logging, hooks, schema, uploads dir. Shutdown: close connections, restore hooks."""
    # --- Startup ---
    state = app.state
    setup_logging(state.settings.log_level)

    loop = asyncio.get_running_loop()
    previous_loop_handler = loop.get_exception_handler()
    previous_thread_hook = threading.excepthook
    loop.set_exception_handler(_log_loop_exception)
    threading.excepthook = _log_thread_exception

    state.artifacts.ensure_root()
    if state.storage.available:
        try:
            await asyncio.to_thread(state.storage.init_schema)
        except SQLAlchemyError:
            # Keep serving anonymous compressions; /health reports the outage
            logger.exception("Database initialization failed")

    if not state.tokens.enabled:
        logger.warning("JWT_SECRET is not set; authentication is disabled")

    logger.info(
        "imgpress started",
        extra={
            "context": {
                "uploads_dir": str(state.artifacts.root),
                "database": state.storage.available,
                "frontend": str(state.frontend_dir) if state.frontend_dir else None,
            }
        },
    )

    yield

    # --- Shutdown ---
    await state.rate_limiter.close()
    state.storage.close()
    threading.excepthook = previous_thread_hook
    loop.set_exception_handler(previous_loop_handler)
    logger.info("imgpress shutting down")


def find_frontend_dir(app_settings: Settings) -> Optional[Path]:
    """First existing client build directory, if any."""
    candidates = []
    if app_settings.frontend_dist_dir:
        candidates.append(Path(app_settings.frontend_dist_dir))
    candidates += [
        Path.cwd() / "frontend" / "dist",
        Path.cwd() / "dist",
        Path(__file__).resolve().parent / "frontend" / "dist",
    ]
    for candidate in candidates:
        if (candidate / "index.html").is_file():
            return candidate.resolve()
    return None


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build an application instance with its own storage, limiter and gate."""
    app_settings = app_settings or settings

    app = FastAPI(
        title="imgpress",
        description="Image Compression Service",
        version=VERSION,
        lifespan=lifespan,
    )

    # --- Per-instance state ---
    state = app.state
    state.settings = app_settings
    state.started_at = time.monotonic()
    state.storage = create_storage(app_settings.database_url)
    state.artifacts = LocalArtifactStore(app_settings.uploads_dir)
    state.tokens = TokenService(
        app_settings.jwt_secret,
        app_settings.token_ttl_seconds,
        app_settings.jwt_algorithm,
    )
    state.rate_limiter = create_rate_limiter(app_settings.redis_url)
    state.rate_policies = build_policies(app_settings)
    state.gate = CompressionGate(
        app_settings.compression_semaphore_size,
        app_settings.max_queue_depth,
    )
    state.pipeline = CompressionPipeline(state.artifacts, state.storage, state.gate)
    state.accounts = AccountService(
        state.storage,
        PasswordHasher(app_settings.bcrypt_rounds),
        state.tokens,
    )
    state.history = HistoryService(state.storage, state.artifacts)
    state.frontend_dir = find_frontend_dir(app_settings)

    # CORS middleware
    origins = [o.strip() for o in app_settings.allowed_origins.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )

    # Request ID + last-resort error mapping
    app.add_middleware(RequestContextMiddleware)

    @app.exception_handler(ImgpressError)
    async def imgpress_error_handler(request: Request, exc: ImgpressError):
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request: {field} {first.get('msg', '')}".strip()
        return error_response(ValidationError(message))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": "not_found" if exc.status_code == 404 else "http_error",
                "message": str(exc.detail),
            },
            headers=getattr(exc, "headers", None),
        )

    # API routers
    for module in (auth, compress, history, admin, health):
        app.include_router(module.router, prefix="/api")

    @app.api_route(
        "/api/{path:path}",
        methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        include_in_schema=False,
    )
    async def api_not_found(path: str):
        raise NotFoundError("API endpoint not found")

    # Compressed artifacts
    app.mount(
        URL_PREFIX,
        StaticFiles(directory=str(state.artifacts.root), check_dir=False),
        name="uploads",
    )

    # Client bundle with SPA fallback
    @app.get("/{full_path:path}", include_in_schema=False)
    async def serve_client(full_path: str, request: Request):
        frontend_dir: Optional[Path] = request.app.state.frontend_dir
        if frontend_dir is None:
            raise NotFoundError("Not found")
        candidate = (frontend_dir / full_path).resolve()
        if full_path and candidate.is_file() and frontend_dir in candidate.parents:
            return FileResponse(candidate)
        return FileResponse(frontend_dir / "index.html")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())
