"""Local/remote classification of client addresses."""
from __future__ import annotations

import logging
from functools import lru_cache

from IPy import IP

from .constants import LOCAL_PREFIXES, LOOPBACK_ADDRESSES, MONITORED_IP_TYPES

logger = logging.getLogger(__name__)


def is_local_address(ip: str) -> bool:
    """Textual check for loopback, 10.x, 192.168.x and fe80 link-local.

    The address text is compared as-is, with no normalization.
    """
    return ip in LOOPBACK_ADDRESSES or ip.startswith(LOCAL_PREFIXES)


@lru_cache(maxsize=4096)
def get_ip_type(ip: str) -> str:
    """Get the IPy type of the given address, or an empty string if invalid."""
    try:
        return IP(ip).iptype()
    except ValueError:
        logger.debug("Invalid IP address %s.", ip)
        return ""


class AddressClassifier:
    """Decides which addresses bypass geo resolution.

    With ``skip_reserved_ranges`` enabled, anything IPy does not report as
    publicly allocated (172.16/12, multicast, reserved, CGNAT...) is also
    treated as local. Unparseable text stays remote so the resolver can
    report it.
    """

    def __init__(self, skip_reserved_ranges: bool = False) -> None:
        self.skip_reserved_ranges = skip_reserved_ranges

    def is_local(self, ip: str) -> bool:
        if is_local_address(ip):
            return True
        if not self.skip_reserved_ranges:
            return False
        ip_type = get_ip_type(ip)
        return bool(ip_type) and ip_type not in MONITORED_IP_TYPES
