"""GeoIP lookups against a MaxMind City database."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from geoip2.database import Reader
from geoip2.errors import AddressNotFoundError
from IPy import IP
from maxminddb.errors import InvalidDatabaseError

from loganalyzer.exceptions import ConfigurationError, GeoLookupError

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"

LANGUAGE_EN = "en"
LANGUAGE_JA = "ja"
LANGUAGE_ZH_CN = "zh-CN"

# geoip2 only allows city() on databases whose type names City
CITY_DATABASE_TYPE = "City"

# English country name -> locale whose name is prefixed onto the English one
LOCALIZED_COUNTRIES: dict[str, str] = {
    "china": LANGUAGE_ZH_CN,
    "hong kong": LANGUAGE_ZH_CN,
    "taiwan": LANGUAGE_ZH_CN,
    "japan": LANGUAGE_JA,
}

# IPy types that never appear in a GeoIP database
NON_ROUTABLE_IP_TYPES = frozenset(
    {"PRIVATE", "LOOPBACK", "RESERVED", "LINKLOCAL", "UNSPECIFIED", "CARRIER_GRADE_NAT", "ULA", "MULTICAST"}
)


@dataclass(frozen=True, slots=True)
class Location:
    """Display names of a resolved location."""

    country: str
    city: str


UNKNOWN_LOCATION = Location(country=UNKNOWN, city=UNKNOWN)


def localize_location(country_names: Mapping[str, str], city_names: Mapping[str, str]) -> Location:
    """Build display names from GeoIP name tables.

    English names are used; China, Hong Kong and Taiwan get the simplified
    Chinese name prefixed and Japan the Japanese one. A missing city becomes
    ``unknown``.
    """
    country = country_names.get(LANGUAGE_EN) or UNKNOWN
    city = city_names.get(LANGUAGE_EN) or UNKNOWN

    if locale := LOCALIZED_COUNTRIES.get(country.lower()):
        if local_country := country_names.get(locale):
            country = f"{local_country} {country}"
        if city != UNKNOWN and (local_city := city_names.get(locale)):
            city = f"{local_city} {city}"
    return Location(country=country, city=city)


def is_routable(ip: str) -> bool:
    """Return True if the address can have a GeoIP record.

    Raises:
        GeoLookupError: The address is not a valid IP address.
    """
    try:
        ip_type = IP(ip).iptype()
    except ValueError as e:
        raise GeoLookupError(f"Invalid IP address {ip!r}") from e
    return ip_type not in NON_ROUTABLE_IP_TYPES


def create_reader(path: Path | str) -> Reader:
    """Open a GeoIP2 City Reader.

    Raises:
        ConfigurationError: The database is missing, corrupt or not a City database.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"GeoIP database file not found: {path}")
    try:
        reader = Reader(str(path), locales=[LANGUAGE_EN])
    except (OSError, ValueError, InvalidDatabaseError) as e:
        raise ConfigurationError(f"Failed to open GeoIP database {path}: {e}") from e

    database_type = reader.metadata().database_type
    if CITY_DATABASE_TYPE not in database_type:
        reader.close()
        raise ConfigurationError(f"GeoIP database {path} is a {database_type} database, expected a City database")
    return reader


class GeoResolver:
    """Resolves IP addresses to ``Location`` values.

    The reader is shared read-only by all workers and closed once, when the
    run is over.
    """

    def __init__(self, reader: Any) -> None:
        self.reader = reader
        self._closed = False

    @classmethod
    def open(cls, path: Path | str) -> "GeoResolver":
        """Create a resolver over the database at path."""
        logger.debug("GeoIP database path: %s", path)
        return cls(create_reader(path))

    @property
    def closed(self) -> bool:
        return self._closed

    def lookup(self, ip: str) -> Location:
        """Resolve an address.

        Raises:
            GeoLookupError: The address is invalid, non-routable or unknown to the database.
            ConfigurationError: The database cannot answer City queries.
        """
        if not is_routable(ip):
            raise GeoLookupError(f"{ip} is not a public address")
        try:
            record = self.reader.city(ip)
        except AddressNotFoundError as e:
            raise GeoLookupError(f"No GeoIP record for {ip}") from e
        except ValueError as e:
            raise GeoLookupError(f"GeoIP lookup failed for {ip}: {e}") from e
        except (TypeError, InvalidDatabaseError) as e:
            raise ConfigurationError(f"Unusable GeoIP database: {e}") from e
        if record is None:
            raise GeoLookupError(f"No GeoIP record for {ip}")
        return localize_location(record.country.names, record.city.names)

    async def alookup(self, ip: str) -> Location:
        """Resolve an address without blocking the event loop."""
        return await asyncio.to_thread(self.lookup, ip)

    def close(self) -> None:
        """Close the underlying reader. Later calls do nothing."""
        if self.closed:
            return
        self._closed = True
        self.reader.close()
        logger.debug("Closed GeoIP database")
