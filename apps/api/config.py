"""
Application configuration using Pydantic Settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Key-value store
    STORE_BACKEND: Literal["redis", "memory"] = "redis"
    REDIS_URL: str = "redis://localhost:6379"
    STORE_KEY_PREFIX: str = "converzio_"
    # Re-raise store failures instead of returning empty defaults
    STRICT_STORE_ERRORS: bool = False

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:8081", "http://127.0.0.1:8081"]

    # Share links
    SHARE_BASE_URL: str = "https://converzio.app"
    QR_CODE_SERVICE_URL: str = "https://api.qrserver.com/v1/create-qr-code/"
    QR_CODE_SIZE: str = "300x300"

    # Account backend (login/register/profile/photo avatars)
    BACKEND_API_URL: str = "http://localhost:3001"
    BACKEND_TIMEOUT_SECONDS: float = 15.0

    # HeyGen avatar API
    HEYGEN_API_KEY: str = ""
    HEYGEN_BASE_URL: str = "https://api.heygen.com/v2"
    HEYGEN_TIMEOUT_SECONDS: float = 60.0

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()


def require_heygen_api_key() -> str:
    """Return configured HeyGen API key or raise a configuration error."""
    api_key = (settings.HEYGEN_API_KEY or "").strip()
    if not api_key:
        raise ValueError("HEYGEN_API_KEY is not configured")
    return api_key
