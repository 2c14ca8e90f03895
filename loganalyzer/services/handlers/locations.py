"""Most visited locations: country / city / address rollup."""
from __future__ import annotations

import logging

from loganalyzer.exceptions import GeoLookupError
from loganalyzer.services.geo.cache import LRUCache
from loganalyzer.services.geo.resolver import GeoResolver, Location, UNKNOWN_LOCATION
from loganalyzer.services.logparser.schemas import LogRecord
from .base import Handler, rank

logger = logging.getLogger(__name__)


class LocationHandler(Handler):
    """Counts hits per country, per city and per address.

    Addresses are resolved through an LRU cache in front of the GeoIP
    resolver. Hits are kept in one flat map keyed by ``(country, city, ip)``
    with separate country and city rollups, so the report can walk countries,
    their cities and their addresses each in their own order.

    The report lists every country, the top ``limit_second`` cities of each
    country and the top ``limit`` addresses of each city.
    """

    def __init__(self, resolver: GeoResolver, limit_second: int = 15, cache_size: int = 1000) -> None:
        super().__init__()
        self.resolver = resolver
        self.limit_second = limit_second
        self.cache: LRUCache[str, Location] = LRUCache(cache_size)

        self.country_counts: dict[str, int] = {}
        self.city_counts: dict[tuple[str, str], int] = {}
        self.ip_counts: dict[tuple[str, str, str], int] = {}

        # Statistics
        self.lookup_failures: int = 0

    async def resolve(self, ip: str) -> Location:
        """Return the location of ip, querying the database on a cache miss."""
        if (location := self.cache.get(ip)) is not None:
            return location
        try:
            location = await self.resolver.alookup(ip)
        except GeoLookupError as e:
            logger.debug("GeoIP lookup failed: %s", e)
            self.lookup_failures += 1
            location = UNKNOWN_LOCATION
        self.cache.put(ip, location)
        return location

    async def input(self, record: LogRecord) -> None:
        location = await self.resolve(record.remote_addr)
        await self.locked(self.update, record, location)

    def update(self, record: LogRecord, location: Location = UNKNOWN_LOCATION) -> None:
        """Count one hit from the record's address at location. Called with the lock held."""
        ip, country, city = record.remote_addr, location.country, location.city
        self.country_counts[country] = self.country_counts.get(country, 0) + 1
        self.city_counts[(country, city)] = self.city_counts.get((country, city), 0) + 1
        self.ip_counts[(country, city, ip)] = self.ip_counts.get((country, city, ip), 0) + 1

    def report(self, limit: int) -> list[str]:
        if self.lookup_failures:
            logger.warning("%d addresses could not be located", self.lookup_failures)

        cities: dict[str, list[tuple[str, int]]] = {}
        for (country, city), count in self.city_counts.items():
            cities.setdefault(country, []).append((city, count))
        ips: dict[tuple[str, str], list[tuple[str, int]]] = {}
        for (country, city, ip), count in self.ip_counts.items():
            ips.setdefault((country, city), []).append((ip, count))

        lines: list[str] = []
        for country, country_hits in rank(self.country_counts.items(), key=lambda item: item[1]):
            lines.append(f"[{country}] hits: {country_hits}")
            for city, city_hits in rank(cities[country], key=lambda item: item[1], limit=self.limit_second):
                lines.append(f"  |--[{city}] hits: {city_hits}")
                for ip, ip_hits in rank(ips[(country, city)], key=lambda item: item[1], limit=limit):
                    lines.append(f'  |  |--"{ip}" hits: {ip_hits}')
        return lines

    def close(self) -> None:
        if not self.resolver.closed:
            logger.info(
                "GeoIP cache: %d hits, %d misses, %d addresses cached",
                self.cache.hits,
                self.cache.misses,
                len(self.cache),
            )
        self.resolver.close()
