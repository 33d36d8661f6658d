"""Configuration module for iisgeolocate."""

from iisgeolocate.config.logging_config import configure_logging
from iisgeolocate.config.settings import (
    GeoIPSettings,
    PipelineSettings,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "GeoIPSettings",
    "PipelineSettings",
    "configure_logging",
]
