from enum import IntEnum


class AnalysisType(IntEnum):
    """Report selected with ``-t``."""

    PV_UV = 0
    VISITED_IPS = 1
    VISITED_URIS = 2
    VISITED_USER_AGENTS = 3
    VISITED_LOCATIONS = 4
    RESPONSE_STATUS = 5
    AVERAGE_TIME_URIS = 6
    PERCENTILE_TIME_URIS = 7


# LogRecord attribute counted by each field report
COUNTED_FIELDS: dict[AnalysisType, str] = {
    AnalysisType.VISITED_IPS: "remote_addr",
    AnalysisType.VISITED_URIS: "request_uri",
    AnalysisType.VISITED_USER_AGENTS: "http_user_agent",
}
