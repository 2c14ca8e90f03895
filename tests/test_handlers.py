import asyncio
import io

import pytest

from loganalyzer.config import Settings
from loganalyzer.exceptions import HandlerError
from loganalyzer.services.handlers import (
    AnalysisType,
    AverageTimeHandler,
    CountingHandler,
    Handler,
    LocationHandler,
    PercentileTimeHandler,
    PvUvHandler,
    StatusHandler,
    create_handler,
    percentile,
    rank,
)
from loganalyzer.services.logparser import CombinedParser, LogRecord
from conftest import COCCOC_USER_AGENT, COMBINED_LINE


def record(**fields) -> LogRecord:
    return LogRecord(**fields)


@pytest.mark.asyncio
async def test_user_agent_report_end_to_end(capsys) -> None:
    """A parsed combined line shows up in the user agent report."""
    handler = CountingHandler("http_user_agent")

    await handler.input(CombinedParser().parse(COMBINED_LINE))
    handler.output(limit=1)

    assert capsys.readouterr().out == f'"{COCCOC_USER_AGENT}" hits: 1\n'


@pytest.mark.asyncio
async def test_counting_handler_no_lost_updates() -> None:
    """T concurrent tasks each adding the same key M times count T*M."""
    tasks, per_task = 50, 200
    handler = CountingHandler("remote_addr")
    item = record(remote_addr="1.2.3.4")

    async def feed() -> None:
        for _ in range(per_task):
            await handler.input(item)
            await asyncio.sleep(0)

    await asyncio.gather(*(feed() for _ in range(tasks)))

    assert handler.counts == {"1.2.3.4": tasks * per_task}
    assert handler.records == tasks * per_task


@pytest.mark.asyncio
async def test_counting_handler_ranks_with_first_seen_ties() -> None:
    handler = CountingHandler("request_uri")
    for uri in ["/b", "/a", "/c", "/a", "/c", "/d"]:
        await handler.input(record(request_uri=uri))

    # /a and /c tie at 2 (/a seen first), /b and /d tie at 1 (/b seen first)
    assert handler.report(limit=10) == ['"/a" hits: 2', '"/c" hits: 2', '"/b" hits: 1', '"/d" hits: 1']
    assert handler.report(limit=1) == ['"/a" hits: 2']


def test_counting_handler_unknown_field() -> None:
    with pytest.raises(ValueError, match="no field"):
        CountingHandler("cookie")


def test_rank_is_stable() -> None:
    items = [("x", 1), ("y", 3), ("z", 1), ("w", 3)]
    assert rank(items, key=lambda item: item[1]) == [("y", 3), ("w", 3), ("x", 1), ("z", 1)]
    assert rank(items, key=lambda item: item[1], limit=3) == [("y", 3), ("w", 3), ("x", 1)]


@pytest.mark.asyncio
async def test_pv_uv_handler() -> None:
    handler = PvUvHandler()
    for addr in ["1.1.1.1", "2.2.2.2", "1.1.1.1", "3.3.3.3", "1.1.1.1"]:
        await handler.input(record(remote_addr=addr))

    assert handler.report(limit=15) == ["PV: 5", "UV: 3"]


@pytest.mark.asyncio
async def test_status_handler() -> None:
    handler = StatusHandler()
    for status in [200, 404, 200, 500, 200, 404]:
        await handler.input(record(status=status))

    assert handler.report(limit=2) == ['"200" hits: 3', '"404" hits: 2']


@pytest.mark.asyncio
async def test_average_time_handler() -> None:
    handler = AverageTimeHandler()
    for uri, request_time in [("/a", 0.1), ("/b", 0.5), ("/a", 0.3)]:
        await handler.input(record(request_uri=uri, request_time=request_time))

    assert handler.report(limit=10) == [
        '"/b" avg: 0.500s max: 0.500s hits: 1',
        '"/a" avg: 0.200s max: 0.300s hits: 2',
    ]


@pytest.mark.parametrize(
    "pct, expected",
    [(50, 0.5), (90, 0.9), (95, 1.0), (100, 1.0), (1, 0.1)],
)
def test_percentile_nearest_rank(pct: float, expected: float) -> None:
    samples = [1.0, 0.3, 0.2, 0.9, 0.5, 0.4, 0.7, 0.1, 0.8, 0.6]
    assert percentile(samples, pct) == expected


def test_percentile_invalid() -> None:
    with pytest.raises(ValueError):
        percentile([], 95)
    with pytest.raises(ValueError):
        percentile([1.0], 0)


@pytest.mark.asyncio
async def test_percentile_time_handler() -> None:
    handler = PercentileTimeHandler(95)
    for i in range(1, 11):
        await handler.input(record(request_uri="/a", request_time=i / 10))
    await handler.input(record(request_uri="/b", request_time=0.3))

    assert handler.report(limit=10) == ['"/a" p95: 1.000s hits: 10', '"/b" p95: 0.300s hits: 1']


def test_percentile_time_handler_rejects_bad_percentile() -> None:
    with pytest.raises(ValueError):
        PercentileTimeHandler(150)


@pytest.mark.asyncio
async def test_output_only_once() -> None:
    handler = StatusHandler()
    await handler.input(record(status=200))

    stream = io.StringIO()
    handler.output(limit=5, stream=stream)

    assert stream.getvalue() == '"200" hits: 1\n'
    with pytest.raises(HandlerError, match="already produced its report"):
        handler.output(limit=5, stream=stream)
    with pytest.raises(HandlerError):
        await handler.input(record(status=404))


@pytest.mark.parametrize(
    "analysis_type, handler_type",
    [
        (AnalysisType.PV_UV, PvUvHandler),
        (AnalysisType.VISITED_IPS, CountingHandler),
        (AnalysisType.VISITED_URIS, CountingHandler),
        (AnalysisType.VISITED_USER_AGENTS, CountingHandler),
        (AnalysisType.RESPONSE_STATUS, StatusHandler),
        (AnalysisType.AVERAGE_TIME_URIS, AverageTimeHandler),
        (AnalysisType.PERCENTILE_TIME_URIS, PercentileTimeHandler),
    ],
)
def test_create_handler(analysis_type: AnalysisType, handler_type: type) -> None:
    settings = Settings().with_overrides(analyzer={"analysis_type": analysis_type})
    assert isinstance(create_handler(settings), handler_type)


def test_create_handler_counted_fields() -> None:
    fields = [
        create_handler(Settings().with_overrides(analyzer={"analysis_type": t})).field
        for t in (AnalysisType.VISITED_IPS, AnalysisType.VISITED_URIS, AnalysisType.VISITED_USER_AGENTS)
    ]
    assert fields == ["remote_addr", "request_uri", "http_user_agent"]


def test_create_handler_percentile() -> None:
    settings = Settings().with_overrides(analyzer={"analysis_type": 7, "percentile": 99})
    handler = create_handler(settings)
    assert handler.pct == 99
    assert handler.label == "p99"


def test_create_handler_locations(resolver) -> None:
    settings = Settings().with_overrides(analyzer={"analysis_type": 4, "limit_second": 3}, geoip={"cache_size": 10})
    handler = create_handler(settings, resolver=resolver)
    assert isinstance(handler, LocationHandler)
    assert handler.limit_second == 3
    assert handler.cache.capacity == 10


def test_handler_must_implement_update() -> None:
    class ReportOnly(Handler):
        def report(self, limit: int) -> list[str]:
            return []

    with pytest.raises(TypeError):
        ReportOnly()


def test_location_update_defaults_to_unknown(resolver) -> None:
    handler = LocationHandler(resolver)
    handler.update(record(remote_addr="203.0.113.9"))

    assert handler.ip_counts == {("unknown", "unknown", "203.0.113.9"): 1}
