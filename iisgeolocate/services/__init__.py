"""Services layer - log chunking, geo enrichment and the batch pipeline."""
from .logparser import ChunkRecordProcessor, HeaderAwareChunker
from .geo import GeoResolver, UniqueIpRegistry
from .pipeline import PipelineService, run_pipeline

__all__ = [
    "ChunkRecordProcessor",
    "GeoResolver",
    "HeaderAwareChunker",
    "PipelineService",
    "UniqueIpRegistry",
    "run_pipeline",
]
