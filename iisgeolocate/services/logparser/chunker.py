"""Splits a raw IIS log file into chunks that share one #Fields: schema.

IIS appends a fresh header block every time the service restarts or the
logging configuration changes, so a single file can contain several
differently shaped runs of data. Each run becomes a :class:`Chunk`.
"""
from __future__ import annotations

import logging
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import TextIO

from .constants import (
    COMMENT_PREFIX,
    FIELDS_PREFIX,
    GEO_COLUMNS,
    SOFTWARE_PREFIX,
    UNSUPPORTED_SOFTWARE,
)
from .exceptions import (
    EmptyLogFileError,
    MissingSchemaError,
    NotW3CLogError,
    UnsupportedSoftwareError,
)
from .schemas import LineKind

logger = logging.getLogger(__name__)

DEFAULT_STAGING_MAX_BYTES = 32 * 1024 * 1024


def normalize_column_names(text: str) -> str:
    """Normalize a W3C column list so each name is a usable identifier.

    ``c-ip cs(User-Agent)`` becomes ``c_ip cs(User_Agent)``. Runs of
    whitespace collapse to a single space.
    """
    return " ".join(text.replace("-", "_").split())


def classify_line(line: str) -> LineKind:
    """Classify a raw line (without its line terminator)."""
    if not line.strip():
        return LineKind.BLANK
    if line.startswith(FIELDS_PREFIX):
        return LineKind.FIELDS_DECLARATION
    if line.startswith(COMMENT_PREFIX):
        return LineKind.COMMENT_META
    return LineKind.DATA_ROW


class Chunk:
    """A contiguous run of data rows sharing one normalized schema.

    Lines are staged in a spooled temporary file so that a multi-gigabyte
    log never has to sit in memory. The first staged line is a synthetic
    header: the schema columns followed by the derived geo columns.
    """

    def __init__(self, schema: str, *, max_bytes: int = DEFAULT_STAGING_MAX_BYTES) -> None:
        self.schema = schema
        self.columns: list[str] = schema.split(" ") if schema else []
        self.row_count = 0
        self._staging = tempfile.SpooledTemporaryFile(
            max_size=max_bytes, mode="w+", encoding="utf-8", newline=""
        )
        self._staging.write(" ".join([*self.columns, *GEO_COLUMNS]) + "\n")

    @property
    def header(self) -> list[str]:
        return [*self.columns, *GEO_COLUMNS]

    @property
    def closed(self) -> bool:
        return self._staging.closed

    def append(self, line: str) -> None:
        """Stage one raw data row verbatim."""
        self._staging.write(line + "\n")
        self.row_count += 1

    def lines(self) -> Iterator[str]:
        """Yield every staged line, synthetic header first."""
        self._staging.flush()
        self._staging.seek(0)
        for line in self._staging:
            yield line.rstrip("\n")

    def close(self) -> None:
        self._staging.close()

    def __len__(self) -> int:
        return self.row_count + 1

    def __enter__(self) -> "Chunk":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Chunk(schema={self.schema!r}, rows={self.row_count})"


class HeaderAwareChunker:
    """Reads a W3C extended log line by line and groups data rows by schema.

    Identical consecutive ``#Fields:`` lines are coalesced into the current
    chunk; any differing declaration starts a new one.
    """

    def __init__(
        self,
        *,
        staging_max_bytes: int = DEFAULT_STAGING_MAX_BYTES,
        unsupported_software: tuple[str, ...] = UNSUPPORTED_SOFTWARE,
    ) -> None:
        self.staging_max_bytes = staging_max_bytes
        self.unsupported_software = unsupported_software

    def split_file(self, path: Path) -> list[Chunk]:
        """Open ``path`` and split it into chunks."""
        with open(path, "r", encoding="utf-8-sig", errors="replace") as f:
            return self.split(f, name=str(path))

    def split(self, stream: TextIO, name: str = "<stream>") -> list[Chunk]:
        """Split an open text stream into ordered chunks.

        Raises:
            LogFileSkipped: a subclass describing why the file cannot be used.
                Any chunk created before the failure is closed first.
        """
        first = stream.readline()
        if first == "":
            raise EmptyLogFileError(name)
        if not first.startswith(COMMENT_PREFIX):
            raise NotW3CLogError(name)

        chunks: list[Chunk] = []
        try:
            self._consume(first, stream, name, chunks)
        except BaseException:
            for chunk in chunks:
                chunk.close()
            raise
        return chunks

    def _consume(self, first: str, stream: TextIO, name: str, chunks: list[Chunk]) -> None:
        current: Chunk | None = None
        lineno = 0

        for lineno, raw in enumerate(_prepend(first, stream), start=1):
            line = raw.rstrip("\r\n")
            kind = classify_line(line)

            if kind is LineKind.BLANK:
                continue

            if kind is LineKind.COMMENT_META:
                if current is None and line.startswith(SOFTWARE_PREFIX):
                    self._check_software(line, name)
                continue

            if kind is LineKind.FIELDS_DECLARATION:
                schema = normalize_column_names(line[len(FIELDS_PREFIX):])
                if current is not None and schema == current.schema:
                    # IIS re-emits the same header after restarts
                    continue
                current = Chunk(schema, max_bytes=self.staging_max_bytes)
                chunks.append(current)
                logger.debug("%s: new schema at line %d: %s", name, lineno, schema)
                continue

            if current is None:
                raise MissingSchemaError(name, f"line {lineno}")
            current.append(line)

    def _check_software(self, line: str, name: str) -> None:
        software = line[len(SOFTWARE_PREFIX):].strip()
        for product in self.unsupported_software:
            if software.startswith(product):
                raise UnsupportedSoftwareError(name, software)


def _prepend(first: str, stream: TextIO) -> Iterator[str]:
    yield first
    yield from stream
