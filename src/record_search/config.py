"""Centralized configuration for record-search using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    Every variable is read with the ``RECORD_SEARCH_`` prefix, e.g.
    ``RECORD_SEARCH_DEFAULT_PAGE_SIZE=20``.
    """

    model_config = SettingsConfigDict(
        env_prefix="RECORD_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Search defaults
    default_page_size: int = Field(default=100, ge=1, description="Page size used when a search names none")
    bm25_k1: float = Field(default=1.2, ge=0.0, description="BM25 term frequency saturation")
    bm25_b: float = Field(default=0.75, ge=0.0, le=1.0, description="BM25 document length normalization")

    # Store settings
    flush_threshold: int = Field(
        default=10000,
        ge=1,
        description="Pending documents that trigger an automatic flush outside a transaction",
    )
    sqlite_cache_size_kb: int = Field(default=-65536, description="PRAGMA cache_size (negative means KiB)")
    sqlite_mmap_size_bytes: int = Field(default=134217728, ge=0, description="PRAGMA mmap_size")
    sqlite_busy_timeout_ms: int = Field(default=30000, ge=0, description="PRAGMA busy_timeout")

    # Observability
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=False, description="Emit structured JSON logs")
    tracing_enabled: bool = Field(default=False, description="Install an OpenTelemetry SDK tracer provider")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return normalized


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
