"""Environment-based configuration for FaceLens."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    No prefix is applied: MAX_IMAGE_SIZE, MIN_CONFIDENCE and friends are read
    under their plain names.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = Field(default=8080, ge=1, le=65535)
    request_timeout: float = Field(default=30.0, gt=0)
    download_timeout: float = Field(default=30.0, gt=0)
    idle_timeout: int = Field(default=120, ge=1)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Input limits
    max_image_size: int = Field(default=5_242_880, ge=1)
    max_width: int = Field(default=2000, ge=1)
    max_height: int = Field(default=2000, ge=1)

    # Rate limiting (requests per second per client, 0 disables)
    rate_limit: float = Field(default=100.0, ge=0)
    rate_burst: int = Field(default=10, ge=1)

    # Cascade classifier tuning
    min_size: int = Field(default=25, ge=1)
    max_size: int = Field(default=1000, ge=1)
    shift_factor: float = Field(default=0.2, gt=0, le=1)
    scale_factor: float = Field(default=1.1, gt=1)
    iou_threshold: float = Field(default=0.6, ge=0, le=1)
    min_confidence: float = 12.0

    # Classifier model (None = OpenCV's bundled frontal face cascade)
    cascade_path: str | None = None
    min_neighbors: int = Field(default=3, ge=0)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Browser access (JSON list, e.g. CORS_ORIGINS='["https://app.example.com"]')
    cors_origins: list[str] = ["*"]


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
