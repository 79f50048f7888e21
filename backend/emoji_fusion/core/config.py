"""Configuration management using pydantic-settings."""
from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # GCP settings (required)
    gcp_project_id: str

    # Image generation models are served from the global endpoint.
    vertex_ai_location: str = "global"
    fusion_model: str = "gemini-2.0-flash-preview-image-generation"
    request_timeout_ms: Optional[int] = None

    # Fusion workflow
    daily_fusion_limit: int = 3
    max_image_bytes: int = 4 * 1024 * 1024
    usage_store: Literal["memory", "firestore"] = "memory"
    usage_collection: str = "fusion_usage"

    # Application settings
    app_name: str = "emoji-fusion"

    # Server settings
    backend_host: str = "localhost"
    backend_port: int = 8000
    frontend_port: int = 3000


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
