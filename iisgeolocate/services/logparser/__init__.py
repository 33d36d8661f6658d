"""Log parser module - chunking and row enrichment for W3C extended logs."""
from .chunker import Chunk, HeaderAwareChunker, normalize_column_names
from .processor import ChunkRecordProcessor
from .schemas import ChunkStats, FileSummary, GeoLookupResult, LookupStatus, RunSummary, UniqueIpEntry

__all__ = [
    "Chunk",
    "ChunkRecordProcessor",
    "ChunkStats",
    "FileSummary",
    "GeoLookupResult",
    "HeaderAwareChunker",
    "LookupStatus",
    "RunSummary",
    "UniqueIpEntry",
    "normalize_column_names",
]
