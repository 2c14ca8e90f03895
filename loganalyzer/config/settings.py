import os
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from loganalyzer import __version__
from loganalyzer.services.handlers.constants import AnalysisType
from loganalyzer.services.logparser.constants import LOG_FORMATS

APP_NAME = "nginx-log-analyzer"


def _default_config_dir() -> Path:
    return Path.home() / ".config" / APP_NAME


class AnalyzerSettings(BaseSettings):
    """What to analyze and how to report it."""

    model_config = SettingsConfigDict(env_prefix="ANALYZER_", env_file=".env", extra="ignore", frozen=True)

    analysis_type: AnalysisType = Field(default=AnalysisType.PV_UV, description="Analysis type (0-7)")
    limit: int = Field(default=15, ge=1, description="Maximum number of report lines")
    limit_second: int = Field(default=15, ge=1, description="Secondary limit for the locations report")
    percentile: float = Field(default=95.0, gt=0, le=100, description="Percentile for the percentile time report")
    since: datetime | None = Field(default=None, description="Inclusive lower time bound (RFC 3339)")
    until: datetime | None = Field(default=None, description="Exclusive upper time bound (RFC 3339)")
    log_format: Literal["combined", "json", "auto"] = Field(
        default="combined",
        description=f"Log grammar, one of {', '.join(LOG_FORMATS)}",
    )

    @field_validator("since", "until")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        """Naive bounds are taken as UTC so they compare with log timestamps."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def validate_time_window(self) -> "AnalyzerSettings":
        """Ensure the time window is not empty."""
        if self.since and self.until and self.since >= self.until:
            raise ValueError(f"Start time {self.since.isoformat()} must be before end time {self.until.isoformat()}")
        return self

    @property
    def has_time_window(self) -> bool:
        return self.since is not None or self.until is not None


class GeoIPSettings(BaseSettings):
    """GeoIP database configuration settings."""

    model_config = SettingsConfigDict(env_prefix="GEOIP_", env_file=".env", extra="ignore", frozen=True)

    config_dir: Path = Field(
        default_factory=_default_config_dir,
        description="Configuration directory holding the MaxMind database",
    )
    db_file: str = Field(default="City.mmdb", description="GeoIP2/GeoLite2 City database file name")
    cache_size: int = Field(default=1000, ge=1, description="Capacity of the IP location LRU cache")
    validate_db_path: bool = Field(
        default=False,
        description="Validate that the GeoIP database file exists when settings load",
    )

    @property
    def db_path(self) -> Path:
        """Full path to the database file."""
        return self.config_dir.expanduser() / self.db_file

    @model_validator(mode="after")
    def validate_geoip_db_exists(self) -> "GeoIPSettings":
        """Ensure GeoIP database file exists if validation is enabled."""
        if self.validate_db_path and not self.db_path.exists():
            raise ValueError(f"GeoIP database file not found: {self.db_path}")
        return self


class PipelineSettings(BaseSettings):
    """Worker pool configuration."""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_", env_file=".env", extra="ignore", frozen=True)

    workers: int = Field(
        default_factory=lambda: os.cpu_count() or 4,
        ge=1,
        description="Number of concurrent parse workers",
    )
    queue_size: int = Field(
        default=10_000,
        ge=1,
        description="Maximum number of lines waiting for a worker",
    )
    skip_failed_sources: bool = Field(
        default=False,
        description="Log and skip unreadable log files instead of aborting the run",
    )


class LoggingSettings(BaseSettings):
    """Diagnostic logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_", env_file=".env", extra="ignore", frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Logging level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log record format",
    )

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections into one immutable value that is
    built once at startup and handed to the parser, pipeline and handler
    constructors.

    Configuration precedence (highest to lowest):
    1. Command line flags (via ``with_overrides``)
    2. Environment variables
    3. .env file
    4. Default values

    Example .env file:
        ANALYZER_ANALYSIS_TYPE=4
        ANALYZER_LOG_FORMAT=json
        GEOIP_CONFIG_DIR=/etc/nginx-log-analyzer
        PIPELINE_WORKERS=8
        LOG_LEVEL=INFO
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    name: str = Field(default=APP_NAME, description="Application name")
    version: str = Field(default=__version__, description="Application version")

    analyzer: AnalyzerSettings = Field(default_factory=AnalyzerSettings)
    geoip: GeoIPSettings = Field(default_factory=GeoIPSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def with_overrides(self, **sections: dict[str, Any]) -> "Settings":
        """Return a new Settings with some section fields replaced.

        Values are re-validated, so ``with_overrides(analyzer={"limit": 0})``
        raises like a bad environment variable would. ``None`` values are
        ignored.
        """
        updates: dict[str, Any] = {}
        for section, values in sections.items():
            current: BaseSettings = getattr(self, section)
            merged = current.model_dump() | {k: v for k, v in values.items() if v is not None}
            updates[section] = type(current).model_validate(merged)
        return self.model_copy(update=updates)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    This function is cached to ensure we only parse configuration once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
