"""Configuration settings for the apiflow service."""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from APIFLOW_* environment variables or .env"""

    model_config = SettingsConfigDict(
        env_prefix="APIFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    app_name: str = "Workflow Engine API"
    app_version: str = "1.0.0"
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"
    allowed_origins: List[str] = ["*"]

    # Auth step
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 360

    # Password hashing for dbInsert / userLogin
    bcrypt_rounds: int = 10

    # Email step
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from: str = "no-reply@localhost"
    smtp_timeout: float = 30

    # Collections served by the in-memory document store
    collections: List[str] = ["users"]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
