"""Schemas for parsed log data."""
from __future__ import annotations

from dataclasses import dataclass

import msgspec


@dataclass(frozen=True, slots=True)
class LogRecord:
    """One parsed access log line.

    Fields a grammar does not carry stay at their empty/zero default.
    """

    remote_addr: str = ""
    remote_user: str = ""
    time_local: str = ""
    request: str = ""
    method: str = ""
    request_uri: str = ""
    protocol: str = ""
    status: int = 0
    body_bytes_sent: int = 0
    http_referer: str = ""
    http_user_agent: str = ""
    request_time: float = 0.0


class JsonLogLine(msgspec.Struct):
    """Wire shape of a JSON access log line.

    Matches an nginx ``log_format ... escape=json`` using the variable names
    as keys.
    """

    remote_addr: str = ""
    remote_user: str = ""
    time_local: str = ""
    request: str = ""
    status: int = 0
    body_bytes_sent: int = 0
    http_referer: str = ""
    http_user_agent: str = ""
    request_time: float = 0.0
