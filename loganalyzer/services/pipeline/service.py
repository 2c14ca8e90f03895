"""Analysis pipeline - streams log lines through parser, filter and handler.

This service orchestrates:
- Reading lines from every source via LineSource (plain or gzip)
- Parsing each line with the configured LogParser
- Dropping records outside the [since, until) time window
- Feeding surviving records to the Handler
- Rendering the handler report once everything has drained

Lines are fed through a bounded queue to a fixed pool of worker tasks, so a
slow handler applies backpressure to the readers instead of piling up
pending work.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from loganalyzer.exceptions import LenientParseError, SourceError
from loganalyzer.services.logparser.logparser import LogParser, parse_time
from loganalyzer.services.logparser.schemas import LogRecord
from loganalyzer.services.handlers.base import Handler
from .sources import LineSource

if TYPE_CHECKING:
    from loganalyzer.config.settings import Settings


logger = logging.getLogger(__name__)


@dataclass
class PipelineStats:
    """Counters for one pipeline run."""

    sources: int = 0
    total_lines: int = 0
    parsed_lines: int = 0
    skipped_lines: int = 0
    filtered_lines: int = 0
    failed_sources: list[str] = field(default_factory=list)
    elapsed: float = 0.0


@dataclass(frozen=True)
class TimeWindow:
    """Half-open ``[since, until)`` window over record timestamps.

    Either bound may be None. Timestamps are only parsed when a bound is set.
    """

    since: datetime | None = None
    until: datetime | None = None

    @property
    def unbounded(self) -> bool:
        return self.since is None and self.until is None

    def __contains__(self, timestamp: datetime) -> bool:
        if self.since is not None and timestamp < self.since:
            return False
        if self.until is not None and timestamp >= self.until:
            return False
        return True

    def accepts(self, record: LogRecord) -> bool:
        """Return True if the record falls inside the window.

        Raises:
            StrictParseError: The record's time_local cannot be parsed.
        """
        if self.unbounded:
            return True
        return parse_time(record.time_local) in self


class Pipeline:
    """Drives sources through the parser and time filter into a handler.

    Example:
        pipeline = Pipeline(parser, handler, workers=8)
        stats = await pipeline.analyze(["access.log", "access.log.1.gz"], limit=15)
    """

    def __init__(
        self,
        parser: LogParser,
        handler: Handler,
        *,
        window: TimeWindow | None = None,
        workers: int = 4,
        queue_size: int = 10_000,
        skip_failed_sources: bool = False,
    ) -> None:
        """Initialize the pipeline.

        Args:
            parser: Parser for the configured log format.
            handler: Handler receiving every record inside the window.
            window: Time window filter. Defaults to no filtering.
            workers: Number of concurrent parse workers.
            queue_size: Maximum number of lines waiting for a worker.
            skip_failed_sources: Log and skip unreadable sources instead of aborting.
        """
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")
        if queue_size < 1:
            raise ValueError(f"queue_size must be at least 1, got {queue_size}")
        self.parser = parser
        self.handler = handler
        self.window = window or TimeWindow()
        self.workers = workers
        self.queue_size = queue_size
        self.skip_failed_sources = skip_failed_sources

    @classmethod
    def from_settings(cls, settings: "Settings", parser: LogParser, handler: Handler) -> "Pipeline":
        """Build a pipeline from application settings."""
        return cls(
            parser,
            handler,
            window=TimeWindow(since=settings.analyzer.since, until=settings.analyzer.until),
            workers=settings.pipeline.workers,
            queue_size=settings.pipeline.queue_size,
            skip_failed_sources=settings.pipeline.skip_failed_sources,
        )

    async def analyze(
        self, sources: Iterable[Path | str], limit: int, stream: TextIO | None = None
    ) -> PipelineStats:
        """Run the pipeline and write the handler report.

        The report is only written once every line of every source has been
        processed; nothing is written if the run fails.
        """
        stats = await self.run(sources)
        self.handler.output(limit, stream)
        return stats

    async def run(self, sources: Iterable[Path | str]) -> PipelineStats:
        """Feed every line of every source to the handler.

        Returns once all lines have been processed. The first error raised by
        a reader or a worker cancels the rest of the run and is re-raised.
        """
        start = time.monotonic()
        stats = PipelineStats()
        queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=self.queue_size)

        producer = asyncio.create_task(self._produce(list(sources), queue, stats), name="line-producer")
        workers = [
            asyncio.create_task(self._consume(queue, stats), name=f"parse-worker-{i}")
            for i in range(self.workers)
        ]
        tasks = [producer, *workers]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                if not task.cancelled() and (exc := task.exception()):
                    raise exc
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        stats.elapsed = time.monotonic() - start
        self._log_summary(stats)
        return stats

    async def _produce(self, sources: list[Path | str], queue: asyncio.Queue[bytes | None], stats: PipelineStats) -> None:
        """Read all sources into the queue, then tell every worker to stop."""
        for source in sources:
            line_source = LineSource(source)
            stats.sources += 1
            try:
                async for line in line_source.lines():
                    stats.total_lines += 1
                    await queue.put(line)
            except SourceError as e:
                if not self.skip_failed_sources:
                    raise
                logger.error("Skipping log file: %s", e)
                stats.failed_sources.append(str(source))

        for _ in range(self.workers):
            await queue.put(None)

    async def _consume(self, queue: asyncio.Queue[bytes | None], stats: PipelineStats) -> None:
        while (line := await queue.get()) is not None:
            await self.process_line(line, stats)

    async def process_line(self, line: bytes, stats: PipelineStats) -> None:
        """Parse, filter and hand over one line."""
        try:
            record = self.parser.parse(line)
        except LenientParseError:
            logger.debug("Skipping unmatched line: %r", line.rstrip(b"\r\n"))
            stats.skipped_lines += 1
            return
        stats.parsed_lines += 1

        if not self.window.accepts(record):
            stats.filtered_lines += 1
            return
        await self.handler.input(record)

    def _log_summary(self, stats: PipelineStats) -> None:
        logger.info(
            "Processed %d lines from %d sources in %.2fs (parsed: %d | skipped: %d | filtered: %d | handled: %d)",
            stats.total_lines,
            stats.sources,
            stats.elapsed,
            stats.parsed_lines,
            stats.skipped_lines,
            stats.filtered_lines,
            self.handler.records,
        )
        if stats.skipped_lines:
            logger.warning("%d lines did not match any known log format", stats.skipped_lines)
        if stats.failed_sources:
            logger.warning("Skipped %d unreadable log files: %s", len(stats.failed_sources), ", ".join(stats.failed_sources))
