import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from iisgeolocate import __version__
from iisgeolocate.services.logparser.constants import (
    ALLOWED_GEOIP_LOCALES,
    BAD_DATA_FILENAME,
    DEFAULT_FLUSH_INTERVAL,
    DEFAULT_IP_FIELD,
    DEFAULT_LOG_EXTENSION,
    GEOIP_DB_FILENAMES,
    UNIQUE_IPS_FILENAME,
)
from iisgeolocate.services.logparser.chunker import DEFAULT_STAGING_MAX_BYTES


def application_dir() -> Path:
    """Directory holding the running executable/script."""
    return Path(sys.argv[0]).resolve().parent


class GeoIPSettings(BaseSettings):
    """GeoIP database configuration settings."""

    model_config = SettingsConfigDict(env_prefix="GEOIP_", env_file=".env", extra="ignore")

    db_dir: Path = Field(
        default_factory=application_dir,
        description="Directory probed for the GeoIP2/GeoLite2 database files",
    )
    db_path: Path | None = Field(
        default=None,
        description="Explicit database file. Overrides probing of db_dir when set",
    )
    db_filenames: list[str] = Field(
        default=list(GEOIP_DB_FILENAMES),
        description="Database file names probed in db_dir, most preferred first",
    )
    locales: list[str] = Field(
        default=["en"],
        description="List of GeoIP locales to use",
    )
    validate_locales: bool = Field(
        default=True,
        description="Validate that the specified GeoIP locales are supported"
    )

    @model_validator(mode="after")
    def validate_geoip_locales(self) -> "GeoIPSettings":
        """Ensure GeoIP locales are valid if validation is enabled."""
        if self.validate_locales:
            invalid_locales = [loc for loc in self.locales if loc not in ALLOWED_GEOIP_LOCALES]
            if invalid_locales:
                raise ValueError(f"Invalid GeoIP locales: {invalid_locales}. Allowed locales are: {ALLOWED_GEOIP_LOCALES}")
        return self

    def candidate_paths(self) -> list[Path]:
        """Database paths to try, in order of preference."""
        if self.db_path is not None:
            return [self.db_path]
        return [self.db_dir / name for name in self.db_filenames]


class PipelineSettings(BaseSettings):
    """Batch enrichment configuration settings."""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_", env_file=".env", extra="ignore")

    input_dir: Path | None = Field(
        default=None,
        description="Directory recursively searched for IIS logs",
    )
    output_dir: Path | None = Field(
        default=None,
        description="Directory enriched CSV files are written to",
    )
    suppress_bad_lines: bool = Field(
        default=False,
        description="Do not show malformed rows on the console. They are still written to the bad data file.",
    )
    no_updated_logs: bool = Field(
        default=False,
        description="Do not write enriched CSV files, only the unique IP summary.",
    )
    log_extension: str = Field(default=DEFAULT_LOG_EXTENSION, description="Extension of log files to process")
    ip_field: str = Field(default=DEFAULT_IP_FIELD, description="Column holding the client IP address")
    flush_interval: int = Field(
        default=DEFAULT_FLUSH_INTERVAL,
        gt=0,
        description="Flush enriched output every N rows.",
    )
    skip_reserved_ranges: bool = Field(
        default=False,
        description="Also skip geolocation for every non-public address (172.16/12, multicast, reserved).",
    )
    staging_max_bytes: int = Field(
        default=DEFAULT_STAGING_MAX_BYTES,
        gt=0,
        description="Bytes of chunk data kept in memory before spilling to a temporary file.",
    )
    bad_data_filename: str = Field(default=BAD_DATA_FILENAME, description="Malformed row file name")
    unique_ips_filename: str = Field(default=UNIQUE_IPS_FILENAME, description="Unique IP summary file name")

    @field_validator("log_extension")
    @classmethod
    def validate_log_extension(cls, value: str) -> str:
        """Ensure the extension carries its leading dot."""
        value = value.strip()
        if not value:
            raise ValueError("log_extension must not be empty")
        return value if value.startswith(".") else f".{value}"


class Settings(BaseSettings):
    """Main application settings.

    Configuration precedence (highest to lowest):
    1. Command line options
    2. Environment variables
    3. .env file
    4. Default values

    Example .env file:
        APP_LOG_LEVEL=DEBUG
        GEOIP_DB_DIR=/opt/geoip
        PIPELINE_SUPPRESS_BAD_LINES=true
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    name: str = Field(default="iisgeolocate", description="Application name")
    version: str = Field(default=__version__, description="Application version")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    geoip: GeoIPSettings = Field(default_factory=GeoIPSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    This function is cached to ensure we only parse configuration once.
    """
    return Settings()
