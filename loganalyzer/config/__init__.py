"""Configuration module for the log analyzer."""

from loganalyzer.config.settings import (
    AnalyzerSettings,
    GeoIPSettings,
    LoggingSettings,
    PipelineSettings,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "AnalyzerSettings",
    "GeoIPSettings",
    "LoggingSettings",
    "PipelineSettings",
]
