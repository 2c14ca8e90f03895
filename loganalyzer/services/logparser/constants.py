"""Grammars and layouts for the supported access log formats."""
import re
from functools import lru_cache

LOG_FORMAT_COMBINED = "combined"
LOG_FORMAT_JSON = "json"
LOG_FORMAT_AUTO = "auto"
LOG_FORMATS = (LOG_FORMAT_COMBINED, LOG_FORMAT_JSON, LOG_FORMAT_AUTO)

# $time_local, e.g. 31/Oct/2023:19:07:45 +0700
TIME_LOCAL_FORMAT = "%d/%b/%Y:%H:%M:%S %z"

# log_format combined '$remote_addr - $remote_user [$time_local] "$request" '
#                     '$status $body_bytes_sent "$http_referer" "$http_user_agent"';
COMBINED_DELIMITERS: tuple[bytes, ...] = (
    b" - ",
    b" [",
    b'] "',
    b'" ',
    b" ",
    b' "',
    b'" "',
    b'"\n',
)

APACHE_FORMAT_NAME = "apache"
IIS_FORMAT_NAME = "iis"
NCSA_FORMAT_NAME = "ncsa"

APACHE_FORMAT = (
    r'([^ ]+) [^ ]+ ([^/\[]+) \[([^ ]+ [^ ]+)\] '
    r'"([A-Z]+) (\S+) (HTTP/[0-9.]+)" ([\d|-]+) ([\d|-]+) "(.*?)" "([^"]*)"'
)
IIS_FORMAT = (
    r'(\S+) \[([^ ]+ [^ ]+)\] '
    r'"([A-Z]+) (\S+) (HTTP/[0-9.]+)" ([\d|-]+) ([\d|-]+) \S+ (\S+) (\S+)(?: \S+)*'
)
# The user and target may contain spaces; they stop at the first '[' and '"'
# so a malformed line fails in linear time
NCSA_FORMAT = (
    r'([^ ]+) [^ ]+ ([^\[]+) \[([^ ]+ [^ ]+)\] '
    r'"([^ "]+) ([^"]+) (HTTP/[0-9.]+)" ([\d|-]+) ([\d|-]+)'
)

# Failed numeric conversions under auto-detection fall back to these
DEFAULT_STATUS = 500
DEFAULT_BODY_BYTES_SENT = 0
DEFAULT_REQUEST_TIME = 0.0


@lru_cache(maxsize=None)
def autodetect_patterns() -> tuple[tuple[str, re.Pattern[str]], ...]:
    """Return the auto-detect grammars in priority order."""
    return (
        (APACHE_FORMAT_NAME, re.compile(APACHE_FORMAT)),
        (IIS_FORMAT_NAME, re.compile(IIS_FORMAT)),
        (NCSA_FORMAT_NAME, re.compile(NCSA_FORMAT)),
    )
