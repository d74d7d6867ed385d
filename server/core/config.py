"""Environment-driven configuration with Pydantic v2."""

from typing import List, Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from constants import (
    BACKOFF_UNIT_MS,
    BATCH_SIZE,
    DEFAULT_SCHEDULE_TIMEZONE,
    MAX_RETRIES,
)


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="0.0.0.0", env="HOST")
    port: int = Field(default=3010, env="PORT", ge=1024, le=65535)
    debug: bool = Field(default=False, env="DEBUG")
    workers: int = Field(default=1, env="WORKERS", ge=1, le=8)
    cors_origins: List[str] = Field(default=["*"], env="CORS_ORIGINS")

    # Database Configuration
    database_url: str = Field(default="sqlite+aiosqlite:///./data/prospecting.db", env="DATABASE_URL")
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")
    database_pool_size: int = Field(default=20, env="DATABASE_POOL_SIZE", ge=5, le=100)
    database_max_overflow: int = Field(default=30, env="DATABASE_MAX_OVERFLOW", ge=10, le=100)

    # Workflow Engine
    workflow_batch_size: int = Field(default=BATCH_SIZE, env="WORKFLOW_BATCH_SIZE", ge=1, le=1000)
    workflow_max_retries: int = Field(default=MAX_RETRIES, env="WORKFLOW_MAX_RETRIES", ge=1, le=10)
    workflow_backoff_unit_ms: int = Field(default=BACKOFF_UNIT_MS, env="WORKFLOW_BACKOFF_UNIT_MS", ge=0)
    workflow_batch_concurrency: int = Field(default=1, env="WORKFLOW_BATCH_CONCURRENCY", ge=1, le=50)
    workflow_claim_ttl_seconds: int = Field(default=300, env="WORKFLOW_CLAIM_TTL_SECONDS", ge=10)
    default_schedule_timezone: str = Field(default=DEFAULT_SCHEDULE_TIMEZONE, env="DEFAULT_SCHEDULE_TIMEZONE")

    # Outbound pacing (seconds between sends of the same execution)
    send_delay_min_seconds: int = Field(default=10, env="SEND_DELAY_MIN_SECONDS", ge=0)
    send_delay_max_seconds: int = Field(default=50, env="SEND_DELAY_MAX_SECONDS", ge=0)

    # Email suppression
    suppression_bounce_threshold: int = Field(default=3, env="SUPPRESSION_BOUNCE_THRESHOLD", ge=1)

    # Scheduler
    scheduler_enabled: bool = Field(default=True, env="SCHEDULER_ENABLED")
    batch_interval_seconds: int = Field(default=60, env="BATCH_INTERVAL_SECONDS", ge=5)

    # Messaging providers
    resend_api_url: str = Field(default="https://api.resend.com", env="RESEND_API_URL")
    unipile_base_url: Optional[str] = Field(default=None, env="UNIPILE_BASE_URL")
    unipile_api_key: Optional[str] = Field(default=None, env="UNIPILE_API_KEY")
    provider_timeout_seconds: float = Field(default=30.0, env="PROVIDER_TIMEOUT_SECONDS", ge=1.0, le=300.0)

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: Literal["json", "console"] = Field(default="json", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for SQLite."""
        if v and v.startswith("sqlite"):
            if ":///" in v:
                db_path = v.split("///")[1]
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @model_validator(mode="after")
    def validate_send_delay_window(self):
        if self.send_delay_min_seconds > self.send_delay_max_seconds:
            raise ValueError("send_delay_min_seconds must not exceed send_delay_max_seconds")
        return self

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def unipile_configured(self) -> bool:
        """Unipile needs both a base URL and an API key."""
        return bool(self.unipile_base_url and self.unipile_api_key)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
        "env_nested_delimiter": "__",
    }
