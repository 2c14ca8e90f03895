"""Log parser module - turns raw access log lines into records."""
from .logparser import (
    LogParser,
    CombinedParser,
    JsonParser,
    AutoDetectParser,
    create_parser,
    parse_time,
    split_request,
)
from .schemas import LogRecord, JsonLogLine

__all__ = [
    "LogParser",
    "CombinedParser",
    "JsonParser",
    "AutoDetectParser",
    "create_parser",
    "parse_time",
    "split_request",
    "LogRecord",
    "JsonLogLine",
]
