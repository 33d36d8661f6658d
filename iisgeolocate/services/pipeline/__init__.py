"""Batch pipeline over a directory of IIS logs."""
from .exceptions import (
    ConfigurationError,
    GeoDatabaseNotFoundError,
    InputDirectoryNotFoundError,
    NoLogFilesFoundError,
    StartupError,
)
from .service import PipelineService, discover_log_files, locate_geoip_database, run_pipeline

__all__ = [
    "ConfigurationError",
    "GeoDatabaseNotFoundError",
    "InputDirectoryNotFoundError",
    "NoLogFilesFoundError",
    "PipelineService",
    "StartupError",
    "discover_log_files",
    "locate_geoip_database",
    "run_pipeline",
]
