from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from loganalyzer.exceptions import ConfigurationError
from loganalyzer.services.geo.resolver import GeoResolver
from .base import Handler
from .constants import AnalysisType, COUNTED_FIELDS
from .fields import CountingHandler, PvUvHandler, StatusHandler
from .latency import AverageTimeHandler, PercentileTimeHandler
from .locations import LocationHandler

if TYPE_CHECKING:
    from loganalyzer.config.settings import Settings

logger = logging.getLogger(__name__)


def create_handler(settings: "Settings", resolver: GeoResolver | None = None) -> Handler:
    """Create the handler for the configured analysis type.

    Args:
        settings: Application settings.
        resolver: GeoIP resolver for the locations report. Opened from
            ``settings.geoip.db_path`` when not given.
    """
    try:
        analysis_type = AnalysisType(settings.analyzer.analysis_type)
    except ValueError as e:
        raise ConfigurationError(f"Unsupported analysis type: {settings.analyzer.analysis_type}") from e
    logger.debug("Analysis type: %s", analysis_type.name)

    if analysis_type == AnalysisType.PV_UV:
        return PvUvHandler()
    if analysis_type in COUNTED_FIELDS:
        return CountingHandler(COUNTED_FIELDS[analysis_type])
    if analysis_type == AnalysisType.VISITED_LOCATIONS:
        return LocationHandler(
            resolver or GeoResolver.open(settings.geoip.db_path),
            limit_second=settings.analyzer.limit_second,
            cache_size=settings.geoip.cache_size,
        )
    if analysis_type == AnalysisType.RESPONSE_STATUS:
        return StatusHandler()
    if analysis_type == AnalysisType.AVERAGE_TIME_URIS:
        return AverageTimeHandler()
    return PercentileTimeHandler(settings.analyzer.percentile)
