"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings

# ===========================================
# Product Branding
# ===========================================
PRODUCT_NAME = "Segment Studio"
PRODUCT_TAGLINE = "Describe your customers. Segment Studio finds them."
PRODUCT_VERSION = "1.0.0"
PRODUCT_DESCRIPTION = "Build customer segments from nested rules and size their audience."


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///./segment_studio.db"
    database_echo: bool = False  # Log SQL statements

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = Field(8000, ge=1, le=65535)

    # OpenAI (natural-language segment generation)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    # Audience calculation
    audience_workers: int = 1  # 1 = evaluate sequentially
    audience_chunk_size: int = 500

    # Background refresh of saved segment sizes
    audience_refresh_seconds: int = 900

    # Rate limit for the AI endpoint (slowapi syntax)
    ai_rate_limit: str = "10/minute"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
