# app/core/config.py
from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings, loaded from environment variables and/or .env file.
    """

    # Environment settings
    APP_NAME: str = "SEO Audit Report Engine"
    APP_ENV: str = "development"

    CORS_ALLOW_ORIGINS: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Comma-delimited list of allowed origins",
    )

    # Database settings. DATABASE_URL wins when set; otherwise Postgres parts
    # are used, and SQLite when POSTGRES_SERVER is empty.
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "seo_reports"
    POSTGRES_SERVER: str = ""
    POSTGRES_PORT: int = 5432
    SQLITE_PATH: str = "./seo_reports.db"

    # Redis / Celery settings
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/0"
    CELERY_TASK_ALWAYS_EAGER: bool = False

    # Narrative generation (AI augmentation)
    OPENAI_API_KEY: str = Field(default="", repr=False)
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_MAX_TOKENS: int = 1500
    LLM_TIMEOUT_SECONDS: float = 60.0

    # Enhancement jobs
    JOB_API_BASE_URL: str = "http://localhost:8000/api/v1"
    ENHANCEMENT_POLL_INTERVAL_SECONDS: float = 2.0
    ENHANCEMENT_JOB_TTL_DAYS: int = 7
    ENHANCEMENT_FALLBACK_ON_ERROR: bool = False
    JOB_HTTP_TIMEOUT_SECONDS: float = 10.0

    # Report defaults
    DEFAULT_THEME_PRESET: str = "default"

    # Observability settings
    SENTRY_DSN: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    @property
    def database_url(self) -> str:
        """Construct the database URL from individual components."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if not self.POSTGRES_SERVER:
            return f"sqlite:///{self.SQLITE_PATH}"
        return f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local", "test")

    @field_validator("CORS_ALLOW_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, value: str | List[str]) -> List[str]:
        """Allow comma-separated strings for origins env var."""
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("ENHANCEMENT_POLL_INTERVAL_SECONDS")
    @classmethod
    def _positive_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("ENHANCEMENT_POLL_INTERVAL_SECONDS must be positive")
        return value

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


settings = Settings()
