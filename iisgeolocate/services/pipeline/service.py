"""Batch pipeline - drives chunking, enrichment and the unique-IP summary.

This service orchestrates:
- Startup checks (input directory, GeoIP database, log discovery)
- Per-file chunking via HeaderAwareChunker
- Per-chunk enrichment via ChunkRecordProcessor
- The end-of-run dump of the UniqueIpRegistry

Files and chunks are processed strictly one after another.
"""
from __future__ import annotations

import csv
import logging
from collections.abc import Callable, Sequence
from contextlib import ExitStack
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from iisgeolocate.services.geo.registry import UniqueIpRegistry
from iisgeolocate.services.geo.resolver import GeoResolver, create_reader
from iisgeolocate.services.logparser.addresses import AddressClassifier
from iisgeolocate.services.logparser.chunker import Chunk, HeaderAwareChunker
from iisgeolocate.services.logparser.constants import (
    BAD_DATA_FILENAME,
    DEFAULT_FLUSH_INTERVAL,
    DEFAULT_IP_FIELD,
    OUTPUT_TIMESTAMP_FORMAT,
    UNIQUE_IPS_FILENAME,
)
from iisgeolocate.services.logparser.exceptions import LogFileSkipped
from iisgeolocate.services.logparser.processor import ChunkRecordProcessor
from iisgeolocate.services.logparser.schemas import ChunkStats, FileSummary, RunSummary

from .exceptions import (
    ConfigurationError,
    GeoDatabaseNotFoundError,
    InputDirectoryNotFoundError,
    NoLogFilesFoundError,
)

if TYPE_CHECKING:
    from geoip2.database import Reader

    from iisgeolocate.config.settings import Settings


logger = logging.getLogger(__name__)

UNIQUE_IP_HEADER = ["IpAddress", "City", "Country"]


def locate_geoip_database(candidates: Sequence[Path]) -> Path:
    """Return the first existing database file from ``candidates``.

    Raises:
        GeoDatabaseNotFoundError: if none of them exist.
    """
    for index, path in enumerate(candidates):
        if path.is_file():
            if index == 0 and len(candidates) > 1:
                logger.info("Found %s, so using that vs lite...", path.name)
            else:
                logger.info("Using GeoIP database %s", path)
            return path
    names = " or ".join(p.name for p in candidates)
    raise GeoDatabaseNotFoundError(f"{names} missing! Cannot continue")


def discover_log_files(root: Path, extension: str) -> list[Path]:
    """Recursively find files under ``root`` ending in ``extension`` (case-insensitive)."""
    extension = extension.lower()
    return sorted(
        p for p in root.rglob("*") if p.is_file() and p.suffix.lower() == extension
    )


class PipelineService:
    """Runs chunking and enrichment over a list of log files.

    Example:
        registry = UniqueIpRegistry()
        service = PipelineService(
            resolver=GeoResolver(reader, registry),
            registry=registry,
            output_dir=Path("out"),
        )
        summary = service.run(log_files)
    """

    def __init__(
        self,
        resolver: GeoResolver,
        registry: UniqueIpRegistry,
        output_dir: Path,
        *,
        chunker: HeaderAwareChunker | None = None,
        classifier: AddressClassifier | None = None,
        ip_field: str = DEFAULT_IP_FIELD,
        suppress_bad_lines: bool = False,
        write_enriched: bool = True,
        flush_interval: int = DEFAULT_FLUSH_INTERVAL,
        bad_data_filename: str = BAD_DATA_FILENAME,
        unique_ips_filename: str = UNIQUE_IPS_FILENAME,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the pipeline service.

        Args:
            resolver: Shared memoizing geo resolver.
            registry: Registry the resolver records successful lookups into.
            output_dir: Existing directory for all output files.
            chunker: Chunker instance. Defaults to a new HeaderAwareChunker.
            classifier: Local/remote address policy.
            ip_field: Column holding the client address.
            suppress_bad_lines: Do not warn on the console for each malformed row.
            write_enriched: If False, rows are still resolved but no chunk CSV is written.
            flush_interval: Rows written between output flushes.
            bad_data_filename: Name of the malformed row file in output_dir.
            unique_ips_filename: Name of the unique IP summary in output_dir.
            clock: Returns the current time. Used for output file names.
        """
        self.resolver = resolver
        self.registry = registry
        self.output_dir = output_dir
        self.chunker = chunker or HeaderAwareChunker()
        self.classifier = classifier or AddressClassifier()
        self.ip_field = ip_field
        self.suppress_bad_lines = suppress_bad_lines
        self.write_enriched = write_enriched
        self.flush_interval = flush_interval
        self.bad_data_path = output_dir / bad_data_filename
        self.unique_ips_path = output_dir / unique_ips_filename
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._claimed_outputs: set[Path] = set()

    def run(self, files: Sequence[Path]) -> RunSummary:
        """Process every file in order, then write the unique IP summary."""
        summary = RunSummary(bad_data_path=self.bad_data_path)

        logger.info(
            "All malformed data rows will be IGNORED but written to %s. REVIEW THIS!",
            self.bad_data_path,
        )
        with open(self.bad_data_path, "w", encoding="utf-8", newline="") as bad_sink:
            processor = ChunkRecordProcessor(
                self.resolver,
                bad_sink,
                ip_field=self.ip_field,
                suppress_bad_lines=self.suppress_bad_lines,
                flush_interval=self.flush_interval,
                classifier=self.classifier,
            )
            for path in files:
                summary.files.append(self.process_file(path, processor))

        summary.unique_ips = len(self.registry)
        summary.unique_ips_path = self.write_unique_ips()
        return summary

    def process_file(self, path: Path, processor: ChunkRecordProcessor) -> FileSummary:
        """Chunk one file and enrich each chunk. Structural problems skip the file."""
        logger.info("Opening %s", path)
        file_summary = FileSummary(path=path)

        try:
            chunks = self.chunker.split_file(path)
        except LogFileSkipped as e:
            logger.warning("\t%s. Skipping...", e)
            file_summary.skipped_reason = e.reason
            return file_summary
        except OSError as e:
            logger.error("\tUnable to read %s: %s. Skipping...", path, e)
            file_summary.skipped_reason = str(e)
            return file_summary

        timestamp = self._clock().strftime(OUTPUT_TIMESTAMP_FORMAT)
        logger.info(
            "\tLog chunks found in %s: %d. Processing chunks...", path, len(chunks)
        )

        with ExitStack() as stack:
            for chunk in chunks:
                stack.enter_context(chunk)

            for counter, chunk in enumerate(chunks, start=1):
                logger.info("\tFound %d rows in chunk %d", chunk.row_count, counter)
                output_path = self._output_path(f"{timestamp}_{path.stem}_Chunk{counter}")
                try:
                    stats = self._process_chunk(chunk, processor, output_path)
                except OSError as e:
                    logger.error("\tChunk %d of %s failed: %s", counter, path, e)
                    continue
                finally:
                    chunk.close()

                file_summary.chunks.append(stats)
                if self.write_enriched:
                    file_summary.outputs.append(output_path)
                logger.info(
                    "\tChunk %d: %d rows written, %d bad rows, %d local addresses",
                    counter,
                    stats.written,
                    stats.bad,
                    stats.local,
                )

        return file_summary

    def _output_path(self, base_name: str) -> Path:
        """Claim an unused ``<base_name>.csv``, suffixing ``_2``, ``_3``... on collision."""
        candidate = self.output_dir / f"{base_name}.csv"
        suffix = 1
        while candidate in self._claimed_outputs or candidate.exists():
            suffix += 1
            candidate = self.output_dir / f"{base_name}_{suffix}.csv"
        self._claimed_outputs.add(candidate)
        return candidate

    def _process_chunk(
        self, chunk: Chunk, processor: ChunkRecordProcessor, output_path: Path
    ) -> ChunkStats:
        if not self.write_enriched:
            return processor.process(chunk)
        with open(output_path, "w", encoding="utf-8", newline="") as output:
            return processor.process(chunk, output)

    def write_unique_ips(self) -> Path | None:
        """Write the registry to the summary CSV. Returns None if it is empty."""
        if len(self.registry) == 0:
            logger.info("No unique, geolocated IPs found!")
            return None

        logger.info("Saving %d unique IPs to %s", len(self.registry), self.unique_ips_path)
        with open(self.unique_ips_path, "w", encoding="utf-8", newline="") as f:
            _write_unique_ips(f, self.registry)
        return self.unique_ips_path


def _write_unique_ips(stream: TextIO, registry: UniqueIpRegistry) -> None:
    writer = csv.writer(stream)
    writer.writerow(UNIQUE_IP_HEADER)
    for entry in registry:
        writer.writerow([entry.ip_address, entry.city, entry.country])


def run_pipeline(
    settings: "Settings",
    reader_factory: Callable[[Path, list[str]], "Reader | None"] = create_reader,
) -> RunSummary:
    """Validate the environment, open the GeoIP database and run the pipeline.

    Nothing is written to the output directory unless every startup check
    passes.

    Raises:
        StartupError: a subclass describing the fatal condition.
    """
    cfg = settings.pipeline
    if cfg.input_dir is None or cfg.output_dir is None:
        raise ConfigurationError("Both -d and --csv are required")

    input_dir = cfg.input_dir.expanduser().resolve()
    output_dir = cfg.output_dir.expanduser().resolve()

    if not input_dir.is_dir():
        raise InputDirectoryNotFoundError(f"{input_dir} does not exist")

    db_path = locate_geoip_database(settings.geoip.candidate_paths())

    files = discover_log_files(input_dir, cfg.log_extension)
    if not files:
        raise NoLogFilesFoundError(f"No files ending in {cfg.log_extension} found")
    logger.info("Found %d log files", len(files))

    reader = reader_factory(db_path, settings.geoip.locales)
    if reader is None:
        raise GeoDatabaseNotFoundError(f"Unable to open GeoIP database {db_path}")

    try:
        output_dir.mkdir(parents=True, exist_ok=True)

        logger.info(
            "NOTE: multicast, private, or reserved addresses will be SKIPPED "
            "(including IPv6 that starts with %s)",
            "fe80",
        )
        if cfg.skip_reserved_ranges:
            logger.warning(
                "Skipping every non-public address range, not only loopback, 10.x and 192.168.x"
            )

        registry = UniqueIpRegistry()
        resolver = GeoResolver(reader, registry)
        service = PipelineService(
            resolver=resolver,
            registry=registry,
            output_dir=output_dir,
            chunker=HeaderAwareChunker(staging_max_bytes=cfg.staging_max_bytes),
            classifier=AddressClassifier(cfg.skip_reserved_ranges),
            ip_field=cfg.ip_field,
            suppress_bad_lines=cfg.suppress_bad_lines,
            write_enriched=not cfg.no_updated_logs,
            flush_interval=cfg.flush_interval,
            bad_data_filename=cfg.bad_data_filename,
            unique_ips_filename=cfg.unique_ips_filename,
        )
        summary = service.run(files)
    finally:
        reader.close()

    logger.debug(
        "GeoIP lookups issued: %d, cached addresses: %d",
        resolver.lookups,
        resolver.cache_size,
    )
    return summary
