"""Logging configuration."""
from __future__ import annotations

import logging.config

from loganalyzer.config.settings import LoggingSettings


def configure_logging(settings: LoggingSettings) -> None:
    """Send diagnostics to stderr so stdout only carries the report."""
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"standard": {"format": settings.format}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "stream": "ext://sys.stderr",
                }
            },
            "root": {"level": settings.level, "handlers": ["console"]},
        }
    )
