from typing import Literal

from fastapi import Depends
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="syncq", description="Application name")
    version: str = Field(default="0.3.0", description="Application version")
    environment: str = Field(default="development", description="Environment")
    debug: bool = Field(default=True, description="Debug mode")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )

    # Server
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./syncq.db",
        description="Database connection URL",
    )
    db_echo: bool = Field(default=False, description="Echo SQL statements")
    db_busy_timeout_s: float = Field(
        default=30.0, gt=0, description="Seconds to wait on a locked SQLite database"
    )

    # Worker
    job_poll_interval_ms: int = Field(
        default=1000, ge=1, description="Sleep between empty queue polls"
    )
    job_backoff_base_ms: int = Field(
        default=1000, ge=1, description="Base delay for exponential retry backoff"
    )
    job_max_backoff_ms: int | None = Field(
        default=None, ge=1, description="Upper bound on a single retry delay"
    )
    job_backoff_jitter: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Random +/- fraction applied to delays"
    )
    job_timeout_s: float | None = Field(
        default=None, gt=0, description="Per-job executor timeout"
    )
    job_default_max_retries: int = Field(
        default=3, ge=0, description="maxRetries used when a caller gives none"
    )

    # Scheduler
    scheduler_enabled: bool = Field(default=True, description="Run recurring sync timers")
    scheduler_run_on_start: bool = Field(
        default=True, description="Fire every timer once when the scheduler starts"
    )
    project_sync_interval_s: float = Field(default=30 * 60, gt=0)
    space_sync_interval_s: float = Field(default=60 * 60, gt=0)
    cache_cleanup_interval_s: float = Field(default=24 * 60 * 60, gt=0)
    search_index_interval_s: float = Field(default=15 * 60, gt=0)
    cache_cleanup_older_than_days: int = Field(default=30, ge=0)
    sync_project_keys: list[str] = Field(
        default_factory=list, description="Issue tracker projects synced on a timer"
    )
    sync_space_keys: list[str] = Field(
        default_factory=list, description="Wiki spaces synced on a timer"
    )

    # Integrations
    collaborators_factory: str | None = Field(
        default=None,
        description="'module:callable' returning the Collaborators used by handlers",
    )

    def model_post_init(self, __context) -> None:
        """Validate settings after initialization."""
        if (
            self.job_max_backoff_ms is not None
            and self.job_max_backoff_ms < self.job_backoff_base_ms
        ):
            raise ValueError(
                f"JOB_MAX_BACKOFF_MS={self.job_max_backoff_ms} is below "
                f"JOB_BACKOFF_BASE_MS={self.job_backoff_base_ms}"
            )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Dependency injection function for settings."""
    return settings


# Convenience type alias for dependency injection
SettingsDep = Depends(get_settings)
