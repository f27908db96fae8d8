"""Application Configuration - environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache): single instance per process
    - Presence of DATABASE_URL is never validated here (the Connection Cache reports it)

Design Decisions:
    - Platform signals (VERCEL, AWS_LAMBDA_FUNCTION_NAME) are plain settings so the
      Environment Resolver stays a pure function of Settings
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gymdesk.core.domain_types import ExecutionMode


DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:5174",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Environment
    app_env: str = "development"
    execution_mode: ExecutionMode = ExecutionMode.AUTO
    vercel: str | None = None
    aws_lambda_function_name: str | None = None

    # Storage
    storage_path: str | None = None

    # Database
    database_url: str | None = None
    development_database_url: str = "sqlite+aiosqlite:///./gymdesk.db"
    database_pool_size: int = 5
    database_max_overflow: int = 10
    db_connect_timeout_seconds: float = 10.0

    @field_validator("database_url", "development_database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str | None) -> str | None:
        """Hosts provide postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            if v.startswith("postgres://"):
                return v.replace("postgres://", "postgresql+asyncpg://", 1)
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Listener (persistent mode only)
    host: str = "0.0.0.0"
    port: int = 5000

    # API
    cors_origins: list[str] = DEFAULT_CORS_ORIGINS
    max_body_bytes: int = 50 * 1024 * 1024

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"
    log_to_file: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
