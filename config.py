import os
import re

from pydantic_settings import BaseSettings

VERSION = "2.0.0"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str) -> int:
    """Parse a duration like "7d", "12h", "30m" or "3600" into seconds."""
    match = _DURATION_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit.lower()]


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # --- Server ---
    port: int = 3001
    app_env: str = "production"
    allowed_origins: str = "*"

    # --- Persistence ---
    database_url: str = ""  # Empty = run without history/auth features

    # --- Auth ---
    jwt_secret: str = ""
    jwt_expires_in: str = "7d"
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = 0  # Computed in model_post_init
    bcrypt_rounds: int = 12

    # --- Rate Limiting ---
    redis_url: str = ""
    rate_limit_window_ms: int = 15 * 60 * 1000
    rate_limit_max_requests: int = 100
    auth_rate_limit_window_ms: int = 15 * 60 * 1000
    auth_rate_limit_max_requests: int = 10

    # --- File Limits ---
    max_file_size_mb: int = 10
    max_file_size_bytes: int = 0  # Computed in model_post_init

    # --- Artifacts / Client ---
    uploads_dir: str = "uploads"
    frontend_dist_dir: str = ""

    # --- Concurrency ---
    compression_semaphore_size: int = 0  # 0 = use CPU count
    max_queue_depth: int = 0  # 0 = 2 * semaphore size

    # --- Logging ---
    log_level: str = "INFO"

    model_config = {"env_prefix": "", "case_sensitive": False}

    def model_post_init(self, __context) -> None:
        if self.max_file_size_bytes == 0:
            self.max_file_size_bytes = self.max_file_size_mb * 1024 * 1024
        if self.token_ttl_seconds == 0:
            self.token_ttl_seconds = parse_duration(self.jwt_expires_in)
        if self.compression_semaphore_size == 0:
            self.compression_semaphore_size = os.cpu_count() or 4
        if self.max_queue_depth == 0:
            self.max_queue_depth = 2 * self.compression_semaphore_size

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() == "development"


settings = Settings()
