"""File-level conditions that make a log file unprocessable."""
from __future__ import annotations


class LogFileSkipped(Exception):
    """Base class for structural problems that skip one log file."""

    reason = "log file skipped"

    def __init__(self, name: str, detail: str | None = None) -> None:
        self.name = name
        self.detail = detail
        message = f"{name}: {self.reason}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class EmptyLogFileError(LogFileSkipped):
    reason = "file is empty"


class NotW3CLogError(LogFileSkipped):
    reason = "first line does not start with '#', does not appear to be an IIS log"


class UnsupportedSoftwareError(LogFileSkipped):
    reason = "does not appear to be an IIS related file"


class MissingSchemaError(LogFileSkipped):
    reason = "data row found before any #Fields: declaration"
