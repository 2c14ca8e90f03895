"""Request time handlers: average and percentile per URI."""
from __future__ import annotations

import math
from dataclasses import dataclass, field

from loganalyzer.services.logparser.schemas import LogRecord
from .base import Handler, rank


def percentile(samples: list[float], pct: float) -> float:
    """Nearest-rank percentile: the value at rank ceil(pct/100 * n) of the sorted samples."""
    if not samples:
        raise ValueError("percentile of an empty sample list")
    if not 0 < pct <= 100:
        raise ValueError(f"percentile must be in (0, 100], got {pct}")
    ordered = sorted(samples)
    index = max(math.ceil(pct / 100 * len(ordered)), 1) - 1
    return ordered[index]


@dataclass
class TimeStats:
    """Running request time statistics for one URI."""

    hits: int = 0
    total: float = 0.0
    maximum: float = 0.0
    samples: list[float] = field(default_factory=list)

    @property
    def average(self) -> float:
        return self.total / self.hits if self.hits else 0.0


class AverageTimeHandler(Handler):
    """Ranks URIs by their average request time."""

    def __init__(self) -> None:
        super().__init__()
        self.stats: dict[str, TimeStats] = {}

    def update(self, record: LogRecord) -> None:
        stats = self.stats.setdefault(record.request_uri, TimeStats())
        stats.hits += 1
        stats.total += record.request_time
        stats.maximum = max(stats.maximum, record.request_time)

    def report(self, limit: int) -> list[str]:
        ranked = rank(self.stats.items(), key=lambda item: item[1].average, limit=limit)
        return [
            f'"{uri}" avg: {stats.average:.3f}s max: {stats.maximum:.3f}s hits: {stats.hits}'
            for uri, stats in ranked
        ]


class PercentileTimeHandler(Handler):
    """Ranks URIs by a request time percentile.

    Samples are kept per URI during ingestion and the percentile is only
    computed when the report is rendered.
    """

    def __init__(self, pct: float = 95.0) -> None:
        if not 0 < pct <= 100:
            raise ValueError(f"percentile must be in (0, 100], got {pct}")
        super().__init__()
        self.pct = pct
        self.stats: dict[str, TimeStats] = {}

    @property
    def label(self) -> str:
        return f"p{self.pct:g}"

    def update(self, record: LogRecord) -> None:
        stats = self.stats.setdefault(record.request_uri, TimeStats())
        stats.hits += 1
        stats.samples.append(record.request_time)

    def report(self, limit: int) -> list[str]:
        values = {uri: percentile(stats.samples, self.pct) for uri, stats in self.stats.items()}
        ranked = rank(values.items(), key=lambda item: item[1], limit=limit)
        return [f'"{uri}" {self.label}: {value:.3f}s hits: {self.stats[uri].hits}' for uri, value in ranked]
