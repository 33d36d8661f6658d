"""GeoIP resolution with per-run memoization."""
from __future__ import annotations

import logging
from pathlib import Path

from geoip2.database import Reader
from geoip2.errors import AddressNotFoundError

from iisgeolocate.services.logparser.constants import (
    ALLOWED_GEOIP_LOCALES,
    GEOIP_LOCALES_DEFAULT,
    NOT_AVAILABLE,
)
from iisgeolocate.services.logparser.schemas import (
    NOT_AVAILABLE_RESULT,
    GeoLookupResult,
    LookupStatus,
)

from .registry import UniqueIpRegistry

logger = logging.getLogger(__name__)

ERROR_RESULT = GeoLookupResult(status=LookupStatus.ERROR)


def create_reader(path: Path | str, locales: list[str] | None = None) -> Reader | None:
    """Create a GeoIP2 Reader instance."""
    if any(loc not in ALLOWED_GEOIP_LOCALES for loc in locales or []):
        logger.warning(
            "Unmatched GeoIp2 locale found. Allowed are '%s', defaulting to 'en'",
            ALLOWED_GEOIP_LOCALES,
        )
        locales = GEOIP_LOCALES_DEFAULT
    try:
        return Reader(path, locales=locales)
    except Exception:
        logger.exception("Failed to create GeoIP2 Reader for path: %s", path)
        return None


def sanitize_name(name: str) -> str:
    """Replace spaces so a place name stays one token in space-delimited output."""
    return name.replace(" ", "_")


class GeoResolver:
    """Resolves city/country for an address through a GeoIP2 reader.

    Every outcome, including misses and errors, is cached by address text so
    the reader is consulted at most once per address per run. Successful
    lookups are also recorded in the shared :class:`UniqueIpRegistry`.
    """

    def __init__(self, reader: Reader, registry: UniqueIpRegistry) -> None:
        self.reader = reader
        self.registry = registry
        self._cache: dict[str, GeoLookupResult] = {}
        self.lookups: int = 0

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def resolve(self, ip: str) -> GeoLookupResult:
        if (cached := self._cache.get(ip)) is not None:
            return cached
        result = self._lookup(ip)
        self._cache[ip] = result
        return result

    def _lookup(self, ip: str) -> GeoLookupResult:
        self.lookups += 1
        try:
            response = self.reader.city(ip)
        except AddressNotFoundError:
            return NOT_AVAILABLE_RESULT
        except Exception as e:
            logger.error("Error %s for ip: %s", e, ip)
            return ERROR_RESULT

        city: str = response.city.name or NOT_AVAILABLE
        country: str = response.country.name or NOT_AVAILABLE
        self.registry.register_if_absent(ip, city, country)
        return GeoLookupResult(
            city=sanitize_name(city),
            country=sanitize_name(country),
            status=LookupStatus.FOUND,
        )
