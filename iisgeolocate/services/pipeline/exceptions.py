"""Conditions that stop a run before any log is processed."""


class StartupError(Exception):
    """Base class for fatal startup conditions."""


class ConfigurationError(StartupError):
    """A required setting is missing."""


class InputDirectoryNotFoundError(StartupError):
    """The log directory does not exist."""


class GeoDatabaseNotFoundError(StartupError):
    """None of the GeoIP database candidates exist or can be opened."""


class NoLogFilesFoundError(StartupError):
    """The log directory holds no file with the expected extension."""
