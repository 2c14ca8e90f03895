"""Hit counting handlers: PV/UV, most visited fields, response status."""
from __future__ import annotations

from operator import attrgetter

from loganalyzer.services.logparser.schemas import LogRecord
from .base import Handler, rank


class PvUvHandler(Handler):
    """Counts page views and unique visitor addresses."""

    def __init__(self) -> None:
        super().__init__()
        self.pv: int = 0
        self.visitors: set[str] = set()

    @property
    def uv(self) -> int:
        return len(self.visitors)

    def update(self, record: LogRecord) -> None:
        self.pv += 1
        self.visitors.add(record.remote_addr)

    def report(self, limit: int) -> list[str]:
        return [f"PV: {self.pv}", f"UV: {self.uv}"]


class CountingHandler(Handler):
    """Counts hits per value of one record field.

    Example:
        handler = CountingHandler("http_user_agent")
        await handler.input(record)
        handler.output(limit=10)
    """

    def __init__(self, field: str) -> None:
        if field not in LogRecord.__dataclass_fields__:
            raise ValueError(f"LogRecord has no field {field!r}")
        super().__init__()
        self.field = field
        self._get = attrgetter(field)
        self.counts: dict[str, int] = {}

    def update(self, record: LogRecord) -> None:
        key = self._get(record)
        self.counts[key] = self.counts.get(key, 0) + 1

    def report(self, limit: int) -> list[str]:
        return [
            f'"{key}" hits: {count}'
            for key, count in rank(self.counts.items(), key=lambda item: item[1], limit=limit)
        ]


class StatusHandler(Handler):
    """Counts responses per HTTP status code."""

    def __init__(self) -> None:
        super().__init__()
        self.counts: dict[int, int] = {}

    def update(self, record: LogRecord) -> None:
        self.counts[record.status] = self.counts.get(record.status, 0) + 1

    def report(self, limit: int) -> list[str]:
        return [
            f'"{status}" hits: {count}'
            for status, count in rank(self.counts.items(), key=lambda item: item[1], limit=limit)
        ]
