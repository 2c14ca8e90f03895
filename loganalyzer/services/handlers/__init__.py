"""Aggregation handlers selected by analysis type."""
from .base import Handler, rank
from .constants import AnalysisType
from .factory import create_handler
from .fields import CountingHandler, PvUvHandler, StatusHandler
from .latency import AverageTimeHandler, PercentileTimeHandler, percentile
from .locations import LocationHandler

__all__ = [
    "Handler",
    "rank",
    "AnalysisType",
    "create_handler",
    "CountingHandler",
    "PvUvHandler",
    "StatusHandler",
    "AverageTimeHandler",
    "PercentileTimeHandler",
    "percentile",
    "LocationHandler",
]
