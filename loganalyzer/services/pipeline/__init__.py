"""Analysis pipeline - sources, time window and worker pool."""
from .service import Pipeline, PipelineStats, TimeWindow
from .sources import LineSource, is_gzip

__all__ = ["Pipeline", "PipelineStats", "TimeWindow", "LineSource", "is_gzip"]
