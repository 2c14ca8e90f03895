"""IP geolocation: MaxMind lookups and the lookup cache."""
from .cache import LRUCache
from .resolver import (
    GeoResolver,
    Location,
    UNKNOWN,
    UNKNOWN_LOCATION,
    create_reader,
    localize_location,
)

__all__ = [
    "LRUCache",
    "GeoResolver",
    "Location",
    "UNKNOWN",
    "UNKNOWN_LOCATION",
    "create_reader",
    "localize_location",
]
