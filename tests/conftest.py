import os
from pathlib import Path
from types import SimpleNamespace

import pytest
from geoip2.errors import AddressNotFoundError

from loganalyzer.services.geo.resolver import GeoResolver

TESTS_DIR = Path(__file__).parent
ACCESS_LOG = TESTS_DIR / "access.log"
ACCESS_JSON_LOG = TESTS_DIR / "access.json.log"
MIXED_LOG = TESTS_DIR / "mixed.log"

COMBINED_LINE = (
    b'103.131.71.189 - - [31/Oct/2023:19:07:45 +0700] "GET /robots.txt HTTP/1.1" 200 182 "-" '
    b'"Mozilla/5.0 (compatible; coccocbot-web/1.0; +http://help.coccoc.com/searchengine)"\n'
)
COCCOC_USER_AGENT = "Mozilla/5.0 (compatible; coccocbot-web/1.0; +http://help.coccoc.com/searchengine)"


@pytest.fixture(scope="session", autouse=True)
def baseline_settings_env():
    """Provide baseline env vars so tests are not affected by local .env.

    Pydantic-settings precedence: init args > env vars > .env > defaults.
    Setting these ensures stable defaults regardless of any .env present.
    """
    os.environ.update({
        # App
        "APP_NAME": "nginx-log-analyzer",
        # Analyzer
        "ANALYZER_ANALYSIS_TYPE": "0",
        "ANALYZER_LIMIT": "15",
        "ANALYZER_LIMIT_SECOND": "15",
        "ANALYZER_PERCENTILE": "95",
        "ANALYZER_LOG_FORMAT": "combined",
        # GeoIP
        "GEOIP_DB_FILE": "City.mmdb",
        "GEOIP_CACHE_SIZE": "1000",
        "GEOIP_VALIDATE_DB_PATH": "false",
        # Pipeline
        "PIPELINE_WORKERS": "4",
        "PIPELINE_QUEUE_SIZE": "1000",
        "PIPELINE_SKIP_FAILED_SOURCES": "false",
        # Logging
        "LOG_LEVEL": "WARNING",
    })


@pytest.fixture(autouse=True)
def refresh_settings_cache():
    """Clear settings cache so env changes take effect per test.

    Ensures tests using monkeypatch.setenv() get a fresh Settings instance.
    """
    from loganalyzer.config.settings import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def city_record(country: dict[str, str], city: dict[str, str] | None = None) -> SimpleNamespace:
    """Minimal stand-in for geoip2.models.City."""
    return SimpleNamespace(
        country=SimpleNamespace(names=country),
        city=SimpleNamespace(names=city or {}),
    )


class FakeReader:
    """Stub for geoip2.database.Reader that records its queries."""

    def __init__(self, records: dict[str, SimpleNamespace], database_type: str = "GeoLite2-City") -> None:
        self.records = records
        self.database_type = database_type
        self.queries: list[str] = []
        self.close_calls = 0

    def city(self, ip: str) -> SimpleNamespace:
        self.queries.append(ip)
        if ip not in self.records:
            raise AddressNotFoundError(f"The address {ip} is not in the database.")
        return self.records[ip]

    def metadata(self) -> SimpleNamespace:
        return SimpleNamespace(database_type=self.database_type)

    def close(self) -> None:
        self.close_calls += 1


@pytest.fixture
def fake_reader() -> FakeReader:
    return FakeReader({
        "1.0.1.1": city_record({"en": "China", "zh-CN": "中国"}, {"en": "Beijing", "zh-CN": "北京"}),
        "1.0.1.2": city_record({"en": "China", "zh-CN": "中国"}, {"en": "Beijing", "zh-CN": "北京"}),
        "1.0.2.1": city_record({"en": "China", "zh-CN": "中国"}),
        "8.8.8.8": city_record({"en": "United States"}, {"en": "Mountain View"}),
        "133.0.0.1": city_record({"en": "Japan", "ja": "日本"}, {"en": "Tokyo", "ja": "東京"}),
    })


@pytest.fixture
def resolver(fake_reader: FakeReader) -> GeoResolver:
    return GeoResolver(fake_reader)
