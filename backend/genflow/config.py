"""Application configuration using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """GenFlow orchestrator settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "GenFlow"
    DEBUG: bool = False
    USE_MOCK_API: bool = True

    # --- Database (MySQL 8.0+) ---
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "genflow"
    DATABASE_URL_OVERRIDE: str = ""
    AUTO_CREATE_TABLES: bool = False

    @property
    def DATABASE_URL(self) -> str:
        """Async MySQL connection string using asyncmy driver."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        encoded_password = quote_plus(self.DB_PASSWORD)
        return (
            f"mysql+asyncmy://{self.DB_USER}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            "?charset=utf8mb4"
        )

    # --- Redis (provider rate budget) ---
    REDIS_URL: str = "redis://localhost:6379/0"
    RATE_BUDGET_BACKEND: str = "memory"  # memory | redis

    # --- Media Volume ---
    MEDIA_VOLUME: str = "media_volume"
    MEDIA_BASE_URL: str = "/media"

    # --- Outbound HTTP ---
    HTTP_TIMEOUT_SECONDS: float = 60.0

    # --- OpenAI (DALL-E 3) ---
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"

    # --- Google AI (Imagen) ---
    GOOGLE_AI_API_KEY: str = ""
    GOOGLE_AI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"

    # --- Replicate ---
    REPLICATE_API_KEY: str = ""
    REPLICATE_BASE_URL: str = "https://api.replicate.com/v1"

    # --- Runway ---
    RUNWAY_API_KEY: str = ""
    RUNWAY_BASE_URL: str = "https://api.runwayml.com/v1"

    # --- Pika ---
    PIKA_API_KEY: str = ""
    PIKA_BASE_URL: str = "https://api.pika.art/v1"

    # --- Job polling policy ---
    MIN_POLL_INTERVAL_SECONDS: float = 5.0
    JOB_TIMEOUT_SECONDS: float = 300.0
    MAX_POLL_RETRIES: int = 3
    POLL_LEASE_SECONDS: float = 150.0
    POLL_LEASE_WAIT_STEP_SECONDS: float = 0.25

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
