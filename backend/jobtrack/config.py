"""
Configuration Management
Pydantic Settings, read from JOBTRACK_* environment variables or .env
"""
from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tracker settings"""

    model_config = SettingsConfigDict(
        env_prefix="JOBTRACK_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Job Application Tracker"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = Field(default="development")

    # Record store
    STORE_BACKEND: Literal["json", "sql"] = "json"
    DATA_DIR: str = "./data"
    DATABASE_URL: str = "sqlite:///./jobtrack.db"

    # Client
    API_BASE_URL: str = "http://localhost:8000"
    API_TIMEOUT_SECONDS: float = 10.0

    # Server
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # CORS
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"])

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_JSON_FORMAT: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
