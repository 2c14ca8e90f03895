"""Command line entry point."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from pydantic import ValidationError

from loganalyzer import __version__
from loganalyzer.config.log import configure_logging
from loganalyzer.config.settings import APP_NAME, Settings, get_settings
from loganalyzer.exceptions import AnalyzerError, ConfigurationError
from loganalyzer.services.handlers import AnalysisType, create_handler
from loganalyzer.services.logparser import create_parser
from loganalyzer.services.logparser.constants import LOG_FORMATS
from loganalyzer.services.pipeline import Pipeline, PipelineStats

logger = logging.getLogger(__name__)

ANALYSIS_TYPES_HELP = ", ".join(f"{t.value}={t.name.lower()}" for t in AnalysisType)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Analyze nginx access logs (plain or .gz).",
    )
    parser.add_argument("files", nargs="*", metavar="FILE", help="access log files")
    parser.add_argument("-v", "--version", action="store_true", help="show current version")
    parser.add_argument("-d", "--config-dir", type=Path, help="configuration directory holding City.mmdb")
    parser.add_argument("-t", "--type", dest="analysis_type", type=int, help=f"analysis type ({ANALYSIS_TYPES_HELP})")
    parser.add_argument("-n", "--limit", type=int, help="limit the output lines number")
    parser.add_argument("-n2", "--limit-second", type=int, help="limit the secondary output lines number in '-t 4' mode")
    parser.add_argument("-p", "--percentile", type=float, help="percentile value in '-t 7' mode")
    parser.add_argument("-ta", "--since", help="analysis start time (RFC 3339), e.g. '2021-11-01T00:00:00+08:00'")
    parser.add_argument("-tb", "--until", help="analysis end time (RFC 3339), e.g. '2021-11-02T00:00:00+08:00'")
    parser.add_argument("-lf", "--log-format", choices=LOG_FORMATS, help="nginx log format")
    parser.add_argument("-w", "--workers", type=int, help="number of concurrent parse workers")
    parser.add_argument(
        "--skip-failed-sources",
        action="store_true",
        default=None,
        help="skip unreadable log files instead of aborting",
    )
    parser.add_argument("--log-level", help="diagnostic log level (DEBUG, INFO, WARNING, ...)")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Build the run settings: environment first, command line flags on top.

    Raises:
        ConfigurationError: A setting has an invalid value.
    """
    try:
        return get_settings().with_overrides(
            analyzer={
                "analysis_type": args.analysis_type,
                "limit": args.limit,
                "limit_second": args.limit_second,
                "percentile": args.percentile,
                "since": args.since,
                "until": args.until,
                "log_format": args.log_format,
            },
            geoip={"config_dir": args.config_dir},
            pipeline={"workers": args.workers, "skip_failed_sources": args.skip_failed_sources},
            logging={"level": args.log_level},
        )
    except ValidationError as e:
        errors = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
        raise ConfigurationError(f"Invalid configuration: {errors}") from e


async def run(settings: Settings, files: Sequence[Path | str], stream: TextIO | None = None) -> PipelineStats:
    """Analyze files and write the report to stream."""
    parser = create_parser(settings.analyzer.log_format)
    handler = create_handler(settings)
    try:
        pipeline = Pipeline.from_settings(settings, parser, handler)
        return await pipeline.analyze(files, settings.analyzer.limit, stream)
    finally:
        handler.close()


def main(argv: Sequence[str] | None = None) -> int:
    arg_parser = build_arg_parser()
    args = arg_parser.parse_args(argv)
    if args.version:
        print(f"{APP_NAME} {__version__}")
        return 0
    if not args.files:
        arg_parser.error("at least one log file is required")

    try:
        settings = load_settings(args)
        configure_logging(settings.logging)
        logger.debug("Settings: %s", settings)
        asyncio.run(run(settings, args.files))
    except AnalyzerError as e:
        logger.debug("Run failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0
