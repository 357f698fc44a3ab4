from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from utils.formats import ImageFormat


class CamelModel(BaseModel):
    """Wire model: snake_case in Python, camelCase in JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Compression parameters ---


class ResizeMode(str, Enum):
    INSIDE = "inside"  # fit within bounds, keep aspect ratio, never upscale
    FILL = "fill"  # exact bounds, may distort, never upscale


class CompressionParams(BaseModel):
    """Normalized compression options (see compression.params.resolve_params)."""

    quality: int = Field(default=80, ge=10, le=100)
    format: ImageFormat = ImageFormat.JPEG
    width: Optional[int] = Field(default=None, ge=1)
    height: Optional[int] = Field(default=None, ge=1)
    resize_mode: ResizeMode = ResizeMode.INSIDE

    @property
    def resize_requested(self) -> bool:
        return self.width is not None or self.height is not None


class Dimensions(CamelModel):
    width: int
    height: int


class DimensionPair(CamelModel):
    original: Dimensions
    compressed: Dimensions


class CompressionResult(CamelModel):
    """POST /api/compress response."""

    success: bool = True
    file_name: str
    original_size: int
    compressed_size: int
    compression_ratio: float
    savings: str
    savings_bytes: int
    download_url: str
    format: str
    quality: int
    dimensions: DimensionPair
    record_id: Optional[int] = None


# --- Auth ---


class RegisterRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    username: Optional[str] = None


class UserCounters(CamelModel):
    """Running counters kept on the user row."""

    total_compressions: int = 0
    total_size_saved: int = 0
    last_compression: Optional[datetime] = None


class PublicUser(CamelModel):
    id: int
    username: str
    email: str
    role: str


class UserProfile(PublicUser):
    compression_stats: UserCounters
    created_at: datetime


class AuthResponse(CamelModel):
    success: bool = True
    message: str
    token: str
    user: PublicUser


class LoginResponse(AuthResponse):
    user: UserProfile


class ProfileResponse(CamelModel):
    success: bool = True
    user: UserProfile


class ProfileUpdateResponse(CamelModel):
    success: bool = True
    message: str = "Profile updated successfully"
    user: PublicUser


# --- History ---


class HistoryItem(CamelModel):
    id: int
    original_filename: Optional[str] = None
    compressed_filename: str
    original_size: int
    compressed_size: int
    compression_ratio: float
    format: str
    quality: int
    dimensions: DimensionPair
    download_url: str
    created_at: datetime

    @classmethod
    def from_record(cls, record) -> "HistoryItem":
        return cls(
            id=record.id,
            original_filename=record.original_filename,
            compressed_filename=record.compressed_filename,
            original_size=record.original_size,
            compressed_size=record.compressed_size,
            compression_ratio=record.compression_ratio,
            format=record.format,
            quality=record.quality,
            dimensions=DimensionPair(
                original=Dimensions(
                    width=record.original_width, height=record.original_height
                ),
                compressed=Dimensions(
                    width=record.compressed_width, height=record.compressed_height
                ),
            ),
            download_url=record.download_url,
            created_at=record.created_at,
        )


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int
    sort_by: str
    sort_order: str


class HistoryResponse(CamelModel):
    success: bool = True
    history: list[HistoryItem]
    pagination: Pagination


class CompressionStats(CamelModel):
    total_compressions: int = 0
    total_original_size: int = 0
    total_compressed_size: int = 0
    avg_compression_ratio: float = 0.0
    total_size_saved: int = 0
    formats: list[str] = Field(default_factory=list)
    user_stats: UserCounters = Field(default_factory=UserCounters)


class StatsResponse(CamelModel):
    success: bool = True
    stats: CompressionStats


class StorageTotals(CamelModel):
    total_storage_used: int = 0
    total_space_saved: int = 0


class AdminStats(CamelModel):
    total_users: int
    total_compressions: int
    storage: StorageTotals


class AdminStatsResponse(CamelModel):
    success: bool = True
    stats: AdminStats


class MessageResponse(CamelModel):
    success: bool = True
    message: str


# --- Service ---


class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = False
    error: str
    message: str


class HealthResponse(BaseModel):
    """GET /api/health response."""

    status: str = "ok"
    message: str = "Image compressor API is running"
    timestamp: datetime
    uptime: float
    database: str
    codecs: dict[str, bool]
    version: str


class InfoResponse(CamelModel):
    """GET /api/info response."""

    name: str
    version: str
    features: list[str]
    max_file_size: str
    supported_formats: list[str]
