"""Common machinery for aggregation handlers.

A handler receives every record that survives parsing and filtering through
``input`` and renders its report once, through ``output``, after the
pipeline has drained. ``input`` is called from many worker tasks at once, so
every handler mutates its state only while holding its own lock, and all
updates are order independent (counts, sums, appended samples).
"""
from __future__ import annotations

import asyncio
import logging
import sys
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import TextIO, TypeVar

from loganalyzer.exceptions import HandlerError
from loganalyzer.services.logparser.schemas import LogRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


def rank(items: Iterable[T], key: Callable[[T], float], limit: int | None = None) -> list[T]:
    """Sort items by descending key, keeping the first seen item first on ties.

    ``sorted`` is stable and ``reverse=True`` preserves that stability, so
    items that compare equal stay in insertion order.
    """
    ranked = sorted(items, key=key, reverse=True)
    return ranked if limit is None else ranked[:limit]


class Handler(ABC):
    """Stateful aggregator over log records."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._reported = False

        # Statistics
        self.records: int = 0

    async def input(self, record: LogRecord) -> None:
        """Fold one record into the aggregate state."""
        await self.locked(self.update, record)

    async def locked(self, apply: Callable[..., None], *args: object) -> None:
        """Run apply(*args) as one update, holding the handler lock."""
        async with self._lock:
            self._ensure_open()
            self.records += 1
            apply(*args)

    @abstractmethod
    def update(self, record: LogRecord) -> None:
        """Apply a record to the state. Called with the lock held."""

    @abstractmethod
    def report(self, limit: int) -> list[str]:
        """Render the report lines."""

    def output(self, limit: int, stream: TextIO | None = None) -> None:
        """Write the report to stream (stdout by default).

        Raises:
            HandlerError: The report was already written.
        """
        self._ensure_open()
        self._reported = True
        stream = stream or sys.stdout
        try:
            for line in self.report(limit):
                print(line, file=stream)
        finally:
            self.close()

    def close(self) -> None:
        """Release external resources held by the handler."""

    def _ensure_open(self) -> None:
        if self._reported:
            raise HandlerError(f"{type(self).__name__} already produced its report")
