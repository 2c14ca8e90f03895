import re
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from functools import lru_cache

import msgspec

from loganalyzer.exceptions import ConfigurationError, LenientParseError, StrictParseError
from .constants import (
    COMBINED_DELIMITERS,
    TIME_LOCAL_FORMAT,
    LOG_FORMAT_COMBINED,
    LOG_FORMAT_JSON,
    LOG_FORMAT_AUTO,
    LOG_FORMATS,
    APACHE_FORMAT_NAME,
    IIS_FORMAT_NAME,
    NCSA_FORMAT_NAME,
    DEFAULT_STATUS,
    DEFAULT_BODY_BYTES_SENT,
    DEFAULT_REQUEST_TIME,
    autodetect_patterns,
)
from .schemas import LogRecord, JsonLogLine


logger = logging.getLogger(__name__)


@lru_cache(maxsize=4096)
def parse_time(time_local: str) -> datetime:
    """Parse an nginx ``$time_local`` value into an aware datetime.

    Raises:
        StrictParseError: The value does not follow ``day/Mon/year:HH:MM:SS +zone``.
    """
    try:
        return datetime.strptime(time_local, TIME_LOCAL_FORMAT)
    except ValueError as e:
        raise StrictParseError(f"Invalid time_local {time_local!r}: {e}") from e


def split_request(request: str) -> tuple[str, str, str]:
    """Split a request line into method, target and protocol.

    Anything that is not exactly three space separated parts is returned as
    the target with empty method and protocol.
    """
    parts = request.split(" ")
    if len(parts) == 3:
        return parts[0], parts[1], parts[2]
    return "", request, ""


def _decode(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


class LogParser(ABC):
    """Turns one raw access log line into a ``LogRecord``."""

    name: str = ""

    @abstractmethod
    def parse(self, line: bytes) -> LogRecord:
        """Parse a single line.

        Raises:
            StrictParseError: The line cannot be parsed and the run must stop.
            LenientParseError: The line cannot be parsed and may be skipped.
        """


class CombinedParser(LogParser):
    """Parses the nginx ``combined`` log format by scanning for delimiters.

    Each delimiter is matched in turn, left to right, and the bytes between
    two consecutive delimiters form one field. This avoids a regex pass over
    the line and is the fast path for the default nginx format.
    """

    name = LOG_FORMAT_COMBINED

    def __init__(self, delimiters: tuple[bytes, ...] = COMBINED_DELIMITERS) -> None:
        self.delimiters = delimiters

    def split(self, line: bytes) -> list[bytes]:
        """Split the line into the fields between delimiters."""
        if line.endswith(b"\r\n"):
            line = line[:-2] + b"\n"
        elif not line.endswith(b"\n"):
            line += b"\n"

        fields: list[bytes] = []
        start = 0
        for delimiter in self.delimiters:
            end = line.find(delimiter, start)
            if end == -1:
                raise StrictParseError(
                    f"Line does not match the {self.name} format: {_decode(line).rstrip()!r}", line
                )
            fields.append(line[start:end])
            start = end + len(delimiter)
        return fields

    def parse(self, line: bytes) -> LogRecord:
        remote_addr, remote_user, time_local, request, status, body_bytes_sent, referer, user_agent = (
            _decode(field) for field in self.split(line)
        )
        try:
            status_code = int(status)
        except ValueError as e:
            raise StrictParseError(f"Invalid $status {status!r}", line) from e
        try:
            bytes_sent = int(body_bytes_sent)
        except ValueError as e:
            raise StrictParseError(f"Invalid $body_bytes_sent {body_bytes_sent!r}", line) from e

        method, request_uri, protocol = split_request(request)
        return LogRecord(
            remote_addr=remote_addr,
            remote_user=remote_user,
            time_local=time_local,
            request=request,
            method=method,
            request_uri=request_uri,
            protocol=protocol,
            status=status_code,
            body_bytes_sent=bytes_sent,
            http_referer=referer,
            http_user_agent=user_agent,
        )


class JsonParser(LogParser):
    """Parses one JSON object per line, keyed by nginx variable names."""

    name = LOG_FORMAT_JSON

    def __init__(self) -> None:
        self._decoder = msgspec.json.Decoder(JsonLogLine, strict=False)

    def parse(self, line: bytes) -> LogRecord:
        try:
            data: JsonLogLine = self._decoder.decode(line.rstrip(b"\r\n"))
        except (msgspec.DecodeError, msgspec.ValidationError) as e:
            raise StrictParseError(f"Invalid JSON log line: {e}", line) from e

        method, request_uri, protocol = split_request(data.request)
        return LogRecord(
            remote_addr=data.remote_addr,
            remote_user=data.remote_user,
            time_local=data.time_local,
            request=data.request,
            method=method,
            request_uri=request_uri,
            protocol=protocol,
            status=data.status,
            body_bytes_sent=data.body_bytes_sent,
            http_referer=data.http_referer,
            http_user_agent=data.http_user_agent,
            request_time=data.request_time,
        )


class AutoDetectParser(LogParser):
    """Detects the Apache, IIS or NCSA layout of each line.

    Grammars are tried in priority order and the first one matching the whole
    line wins. Bad numeric fields fall back to defaults instead of failing.
    """

    name = LOG_FORMAT_AUTO

    def match(self, line: str) -> tuple[str, re.Match[str]] | None:
        """Return the name and match of the first grammar covering the line."""
        for format_name, pattern in autodetect_patterns():
            if matched := pattern.fullmatch(line):
                return format_name, matched
        return None

    def parse(self, line: bytes) -> LogRecord:
        text = _decode(line).rstrip("\r\n")
        detected = self.match(text)
        if detected is None:
            raise LenientParseError("Line did not match any known log format", line)

        format_name, matched = detected
        groups = matched.groups()
        if format_name == APACHE_FORMAT_NAME:
            addr, user, time_local, method, uri, protocol, status, sent, referer, agent = groups
            return LogRecord(
                remote_addr=addr,
                remote_user=user,
                time_local=time_local,
                method=method,
                request_uri=uri,
                protocol=protocol,
                status=self._to_int(status, DEFAULT_STATUS),
                body_bytes_sent=self._to_int(sent, DEFAULT_BODY_BYTES_SENT),
                http_referer=referer,
                http_user_agent=agent,
            )
        if format_name == IIS_FORMAT_NAME:
            addr, time_local, method, uri, protocol, status, sent, request_time, agent = groups
            return LogRecord(
                remote_addr=addr,
                time_local=time_local,
                method=method,
                request_uri=uri,
                protocol=protocol,
                status=self._to_int(status, DEFAULT_STATUS),
                body_bytes_sent=self._to_int(sent, DEFAULT_BODY_BYTES_SENT),
                http_user_agent=agent,
                request_time=self._to_float(request_time, DEFAULT_REQUEST_TIME),
            )
        if format_name == NCSA_FORMAT_NAME:
            addr, user, time_local, method, uri, protocol, status, sent = groups
            return LogRecord(
                remote_addr=addr,
                remote_user=user,
                time_local=time_local,
                method=method,
                request_uri=uri,
                protocol=protocol,
                status=self._to_int(status, DEFAULT_STATUS),
                body_bytes_sent=self._to_int(sent, DEFAULT_BODY_BYTES_SENT),
            )
        raise LenientParseError(f"No field mapping for format {format_name}", line)

    @staticmethod
    def _to_int(value: str, default: int) -> int:
        try:
            return int(value)
        except ValueError:
            logger.debug("Non-numeric field %r, using %d", value, default)
            return default

    @staticmethod
    def _to_float(value: str, default: float) -> float:
        try:
            return float(value)
        except ValueError:
            logger.debug("Non-numeric field %r, using %s", value, default)
            return default


def create_parser(log_format: str) -> LogParser:
    """Return the parser for a log format name."""
    if log_format == LOG_FORMAT_COMBINED:
        return CombinedParser()
    if log_format == LOG_FORMAT_JSON:
        return JsonParser()
    if log_format == LOG_FORMAT_AUTO:
        return AutoDetectParser()
    raise ConfigurationError(f"Unsupported log format {log_format!r}, expected one of {', '.join(LOG_FORMATS)}")
