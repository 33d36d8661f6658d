"""Parses one chunk's rows, enriches them with geo data and streams them out."""
from __future__ import annotations

import csv
import logging
from typing import TYPE_CHECKING, Any, TextIO

from .addresses import AddressClassifier
from .chunker import Chunk, normalize_column_names
from .constants import DEFAULT_FLUSH_INTERVAL, DEFAULT_IP_FIELD, NOT_AVAILABLE
from .schemas import ChunkStats

if TYPE_CHECKING:
    from iisgeolocate.services.geo.resolver import GeoResolver


logger = logging.getLogger(__name__)


class W3CDialect(csv.Dialect):
    """Space-delimited rows with optional double-quoted fields."""

    delimiter = " "
    quotechar = '"'
    doublequote = True
    skipinitialspace = False
    lineterminator = "\n"
    quoting = csv.QUOTE_MINIMAL
    strict = True


def parse_row(line: str) -> list[str]:
    """Split a raw data row into fields.

    Raises:
        csv.Error: if the quoting is malformed.
    """
    return next(csv.reader((line,), dialect=W3CDialect), [])


class ChunkRecordProcessor:
    """Enriches every row of a chunk with ``GeoCity``/``GeoCountry``.

    Rows whose field count does not match the schema are written verbatim to
    the bad-data sink and dropped. Local addresses get ``NA``/``NA`` without
    touching the resolver.
    """

    def __init__(
        self,
        resolver: "GeoResolver",
        bad_sink: TextIO,
        *,
        ip_field: str = DEFAULT_IP_FIELD,
        suppress_bad_lines: bool = False,
        flush_interval: int = DEFAULT_FLUSH_INTERVAL,
        classifier: AddressClassifier | None = None,
    ) -> None:
        """
        Args:
            resolver: Shared, memoizing geo resolver.
            bad_sink: Text stream collecting malformed raw rows.
            ip_field: Client address column, raw (``c-ip``) or normalized (``c_ip``).
            suppress_bad_lines: If True, do not log a warning per malformed row.
            flush_interval: Flush the output every this many written rows.
            classifier: Local/remote address policy. Defaults to the textual rule.
        """
        if flush_interval <= 0:
            raise ValueError("flush_interval must be positive")
        self.resolver = resolver
        self.bad_sink = bad_sink
        self.ip_field = normalize_column_names(ip_field)
        self.suppress_bad_lines = suppress_bad_lines
        self.flush_interval = flush_interval
        self.classifier = classifier or AddressClassifier()

    def process(self, chunk: Chunk, output: TextIO | None = None) -> ChunkStats:
        """Process every row of ``chunk``, writing CSV to ``output`` if given.

        The chunk's synthetic header is written as the first output row, so a
        chunk without data still produces a header-only file.
        """
        stats = ChunkStats()
        lines = chunk.lines()
        header_line = next(lines, None)
        if header_line is None:
            return stats

        header = header_line.split(" ")
        expected = len(chunk.columns)
        ip_index = self._ip_index(chunk)

        writer: Any = csv.writer(output) if output is not None else None
        if writer is not None:
            writer.writerow(header)

        for line in lines:
            stats.rows += 1
            fields = self._parse(line, expected)
            if fields is None:
                stats.bad += 1
                continue

            if ip_index is None:
                city, country = NOT_AVAILABLE, NOT_AVAILABLE
            else:
                ip = fields[ip_index]
                if self.classifier.is_local(ip):
                    stats.local += 1
                    city, country = NOT_AVAILABLE, NOT_AVAILABLE
                else:
                    result = self.resolver.resolve(ip)
                    if result.found:
                        stats.resolved += 1
                    city, country = result.city, result.country

            if writer is None:
                continue
            writer.writerow([*fields, city, country])
            stats.written += 1
            if stats.written % self.flush_interval == 0:
                output.flush()

        if output is not None:
            output.flush()
        self.bad_sink.flush()
        return stats

    def _ip_index(self, chunk: Chunk) -> int | None:
        try:
            return chunk.columns.index(self.ip_field)
        except ValueError:
            logger.warning(
                "Column %s not in schema '%s'. Rows will not be geolocated.",
                self.ip_field,
                chunk.schema,
            )
            return None

    def _parse(self, line: str, expected: int) -> list[str] | None:
        """Return the row's fields, or None after recording it as bad data."""
        try:
            fields = parse_row(line)
        except csv.Error as e:
            logger.debug("CSV error on row %r: %s", line, e)
            fields = None
        if fields is not None and len(fields) == expected:
            return fields

        self.bad_sink.write(line + "\n")
        if not self.suppress_bad_lines:
            logger.warning("Bad data found! Ignoring!!! Row: '%s'", line.strip())
        return None
