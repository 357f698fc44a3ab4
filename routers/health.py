import asyncio
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from config import VERSION
from encoders.router import check_codecs
from schemas import HealthResponse, InfoResponse

router = APIRouter(tags=["service"])

FEATURES = [
    "JWT Authentication",
    "User Registration & Login",
    "Compression History",
    "User Statistics",
    "Multiple Format Support",
    "Rate Limiting",
]


async def database_status(storage) -> str:
    if not storage.available:
        return "Disabled"
    connected = await asyncio.to_thread(storage.ping)
    return "Connected" if connected else "Disconnected"


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    state = request.app.state
    database = await database_status(state.storage)
    codecs = check_codecs()
    healthy = database != "Disconnected" and all(codecs.values())
    return HealthResponse(
        status="ok" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        uptime=round(time.monotonic() - state.started_at, 3),
        database=database,
        codecs=codecs,
        version=VERSION,
    )


@router.get("/info", response_model=InfoResponse)
async def info(request: Request):
    max_mb = request.app.state.settings.max_file_size_mb
    return InfoResponse(
        name="Image Compressor API",
        version=VERSION,
        features=FEATURES,
        max_file_size=f"{max_mb}MB",
        supported_formats=["JPEG", "PNG", "WebP", "AVIF"],
    )
