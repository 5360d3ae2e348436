"""Configuration models for the MTP document catalog."""

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseModel):
    """Configuration for the SQLite row store."""

    path: str = Field(
        default=":memory:", description="Path to the SQLite database file or ':memory:'"
    )
    timeout: float = Field(
        default=10.0, gt=0.0, le=300.0, description="Seconds to wait on a locked database"
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("database path cannot be empty")
        return v


class SyncConfig(BaseModel):
    """Retry policy applied by callers driving synchronization cycles."""

    max_retries: int = Field(
        default=3, ge=0, le=10, description="Retries for a failed batch or close"
    )
    base_delay: float = Field(default=0.5, ge=0.0, description="Initial retry delay in seconds")
    max_delay: float = Field(default=10.0, ge=0.0, description="Maximum retry delay in seconds")


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        description="If True, output JSON logs. If False, use console format.",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional path to log file. If None, logs only to stdout.",
    )


class AppConfig(BaseSettings):
    """Main application configuration.

    This class uses pydantic-settings to load configuration from environment
    variables with the MTP_CATALOG_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="MTP_CATALOG_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
