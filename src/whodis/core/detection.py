"""
Local Address Detection

Finds the best local candidate address per family. The route probe asks the
kernel which source address it would use towards a public destination (no
packets are sent); the interface scan falls back to psutil's view of the
configured interfaces.
"""

import ipaddress
import logging
import socket
from typing import List, Optional, Union

import psutil

logger = logging.getLogger(__name__)

# Destinations are only used for route selection
IPV4_PROBE_TARGET = "192.0.2.1"
IPV6_PROBE_TARGET = "2001:db8::1"
PROBE_PORT = 53

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def is_publishable(address: IPAddress) -> bool:
    """Check whether an address is worth publishing in DNS"""
    return not (
        address.is_loopback
        or address.is_link_local
        or address.is_multicast
        or address.is_unspecified
        or address.is_reserved
    )


class SystemAddressDetector:
    """Address detection against the running host"""

    def __init__(
        self,
        ipv4_probe_target: str = IPV4_PROBE_TARGET,
        ipv6_probe_target: str = IPV6_PROBE_TARGET,
        use_interface_scan: bool = True,
    ):
        self.ipv4_probe_target = ipv4_probe_target
        self.ipv6_probe_target = ipv6_probe_target
        self.use_interface_scan = use_interface_scan

    def detect_v4(self) -> Optional[ipaddress.IPv4Address]:
        """Best local IPv4 address, or None"""
        return self._detect(socket.AF_INET, self.ipv4_probe_target)

    def detect_v6(self) -> Optional[ipaddress.IPv6Address]:
        """Best local IPv6 address, or None (link-local only counts as none)"""
        return self._detect(socket.AF_INET6, self.ipv6_probe_target)

    def _detect(self, family: int, target: str) -> Optional[IPAddress]:
        address = self._probe_route(family, target)
        if address is None and self.use_interface_scan:
            candidates = self._scan_interfaces(family)
            address = candidates[0] if candidates else None
        return address

    def _probe_route(self, family: int, target: str) -> Optional[IPAddress]:
        """Source address the kernel picks for the probe target"""
        try:
            with socket.socket(family, socket.SOCK_DGRAM) as sock:
                sock.connect((target, PROBE_PORT))
                local = sock.getsockname()[0]
        except OSError as e:
            logger.debug(f"Route probe towards {target} failed: {e}")
            return None

        address = ipaddress.ip_address(local.split("%", 1)[0])
        if not is_publishable(address):
            logger.debug(f"Route probe returned unusable address {address}")
            return None
        return address

    def _scan_interfaces(self, family: int) -> List[IPAddress]:
        """Publishable addresses of the host's interfaces, global ones first"""
        candidates = []
        for interface, entries in psutil.net_if_addrs().items():
            for entry in entries:
                if entry.family != family:
                    continue
                try:
                    address = ipaddress.ip_address(entry.address.split("%", 1)[0])
                except ValueError:
                    continue
                if is_publishable(address):
                    logger.debug(f"Interface {interface} carries {address}")
                    candidates.append(address)

        candidates.sort(key=lambda address: not address.is_global)
        return candidates
