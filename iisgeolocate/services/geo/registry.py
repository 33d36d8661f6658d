"""Deduplicated registry of every successfully geolocated address."""
from __future__ import annotations

import logging
from collections.abc import Iterator

from iisgeolocate.services.logparser.schemas import UniqueIpEntry

logger = logging.getLogger(__name__)


class UniqueIpRegistry:
    """Insertion-ordered set of resolved addresses, first write wins.

    Lives for a whole run and is shared by reference between the resolver
    and the pipeline. Not safe for concurrent mutation.
    """

    def __init__(self) -> None:
        self._entries: dict[str, UniqueIpEntry] = {}

    def register_if_absent(self, ip: str, city: str, country: str) -> bool:
        """Add ``ip`` unless already present. Returns True if it was added."""
        if ip in self._entries:
            return False
        self._entries[ip] = UniqueIpEntry(ip_address=ip, city=city, country=country)
        logger.debug("Registered unique IP %s (%s, %s)", ip, city, country)
        return True

    def entries(self) -> list[UniqueIpEntry]:
        return list(self._entries.values())

    def get(self, ip: str) -> UniqueIpEntry | None:
        return self._entries.get(ip)

    def __contains__(self, ip: object) -> bool:
        return ip in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[UniqueIpEntry]:
        return iter(self._entries.values())
