"""Schemas for parsed log data - pure data, no I/O."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .constants import NOT_AVAILABLE


class LineKind(str, Enum):
    """Classification of a single raw log line."""

    COMMENT_META = "comment_meta"
    FIELDS_DECLARATION = "fields_declaration"
    DATA_ROW = "data_row"
    BLANK = "blank"


class LookupStatus(str, Enum):
    """Outcome of an external geo lookup."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class GeoLookupResult:
    """City/country for an address, sanitized for space-delimited output."""

    city: str = NOT_AVAILABLE
    country: str = NOT_AVAILABLE
    status: LookupStatus = LookupStatus.NOT_FOUND

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND


NOT_AVAILABLE_RESULT = GeoLookupResult()


@dataclass(frozen=True)
class UniqueIpEntry:
    """One successfully geolocated address. City/country are unsanitized."""

    ip_address: str
    city: str
    country: str


@dataclass
class ChunkStats:
    """Row counters for one processed chunk."""

    rows: int = 0
    written: int = 0
    bad: int = 0
    local: int = 0
    resolved: int = 0


@dataclass
class FileSummary:
    """Outcome for one input log file."""

    path: Path
    chunks: list[ChunkStats] = field(default_factory=list)
    outputs: list[Path] = field(default_factory=list)
    skipped_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None

    @property
    def rows(self) -> int:
        return sum(c.rows for c in self.chunks)

    @property
    def bad_rows(self) -> int:
        return sum(c.bad for c in self.chunks)


@dataclass
class RunSummary:
    """Totals for a whole pipeline run."""

    files: list[FileSummary] = field(default_factory=list)
    unique_ips: int = 0
    unique_ips_path: Path | None = None
    bad_data_path: Path | None = None

    @property
    def processed_files(self) -> int:
        return sum(1 for f in self.files if not f.skipped)

    @property
    def skipped_files(self) -> int:
        return sum(1 for f in self.files if f.skipped)

    @property
    def total_rows(self) -> int:
        return sum(f.rows for f in self.files)

    @property
    def total_bad_rows(self) -> int:
        return sum(f.bad_rows for f in self.files)
