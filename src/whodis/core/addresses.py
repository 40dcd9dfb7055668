"""
Address Set Resolution

Turns the configured address mode and an optional explicit address into the
concrete set of records to publish, asking the detection collaborator only
for the families that can contribute.
"""

import ipaddress
import logging
from enum import Enum
from typing import Dict, Iterator, Optional, Protocol, Tuple, Union

from ..exceptions import NoAddressAvailable
from .message import DNSRecordType

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

# Records are always emitted in this order
RECORD_ORDER = (DNSRecordType.A, DNSRecordType.AAAA)


class AddressMode(str, Enum):
    """Which address families to publish"""

    V4_ONLY = "v4-only"
    V6_ONLY = "v6-only"
    BOTH = "both"

    @classmethod
    def parse(cls, value: Union[str, "AddressMode"]) -> "AddressMode":
        """Parse a mode from its textual form"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(mode.value for mode in cls)
            raise ValueError(f"Invalid address mode: {value!r} (expected one of {valid})")

    def record_types(self) -> Tuple[DNSRecordType, ...]:
        """Record types implied by this mode"""
        if self is AddressMode.V4_ONLY:
            return (DNSRecordType.A,)
        if self is AddressMode.V6_ONLY:
            return (DNSRecordType.AAAA,)
        return RECORD_ORDER


class AddressDetector(Protocol):
    """Source of local candidate addresses, one per family"""

    def detect_v4(self) -> Optional[ipaddress.IPv4Address]:
        ...

    def detect_v6(self) -> Optional[ipaddress.IPv6Address]:
        ...


def record_type_for(address: IPAddress) -> DNSRecordType:
    """Record type carrying an address of this family"""
    return DNSRecordType.A if address.version == 4 else DNSRecordType.AAAA


class AddressSet:
    """At most one address per record type, iterated A before AAAA"""

    def __init__(self, addresses: Optional[Dict[DNSRecordType, IPAddress]] = None):
        self._addresses: Dict[DNSRecordType, IPAddress] = {}
        for rtype, address in (addresses or {}).items():
            self.set(rtype, address)

    def set(self, rtype: DNSRecordType, address: IPAddress) -> None:
        """Set the address for a record type"""
        rtype = DNSRecordType(rtype)
        if rtype not in RECORD_ORDER:
            raise ValueError(f"Unsupported record type: {rtype.name}")
        if record_type_for(address) != rtype:
            raise ValueError(f"Address {address} cannot be published as {rtype.name}")
        self._addresses[rtype] = address

    def get(self, rtype: DNSRecordType) -> Optional[IPAddress]:
        return self._addresses.get(rtype)

    def items(self) -> Iterator[Tuple[DNSRecordType, IPAddress]]:
        for rtype in RECORD_ORDER:
            if rtype in self._addresses:
                yield rtype, self._addresses[rtype]

    def record_types(self) -> Tuple[DNSRecordType, ...]:
        return tuple(rtype for rtype, _ in self.items())

    def __contains__(self, rtype: object) -> bool:
        return rtype in self._addresses

    def __len__(self) -> int:
        return len(self._addresses)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AddressSet):
            return self._addresses == other._addresses
        if isinstance(other, dict):
            return self._addresses == other
        return NotImplemented

    def __repr__(self) -> str:
        inner = ", ".join(f"{rtype.name}: {address}" for rtype, address in self.items())
        return f"AddressSet({{{inner}}})"


def parse_address(value: Union[str, IPAddress]) -> IPAddress:
    """Parse an explicit override address, inferring its family"""
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return value
    return ipaddress.ip_address(str(value).strip())


def _detect(detector: AddressDetector, rtype: DNSRecordType) -> Optional[IPAddress]:
    if rtype == DNSRecordType.A:
        address = detector.detect_v4()
    else:
        address = detector.detect_v6()
    logger.debug(f"Detected {rtype.name} candidate: {address}")
    return address


def resolve_addresses(
    mode: Union[str, AddressMode],
    explicit_override: Optional[Union[str, IPAddress]],
    detector: AddressDetector,
) -> AddressSet:
    """Resolve the address set to publish.

    Args:
        mode: v4-only, v6-only or both
        explicit_override: Address to publish instead of a detected one
        detector: Address detection collaborator

    Returns:
        AddressSet with one or two entries

    Raises:
        NoAddressAvailable: If a family the mode requires yields nothing
    """
    mode = AddressMode.parse(mode)
    address_set = AddressSet()

    if explicit_override is not None:
        override = parse_address(explicit_override)
        override_type = record_type_for(override)
        address_set.set(override_type, override)

        if mode is AddressMode.BOTH:
            other_type = next(t for t in RECORD_ORDER if t != override_type)
            detected = _detect(detector, other_type)
            if detected is not None:
                address_set.set(other_type, detected)
        return address_set

    for rtype in mode.record_types():
        detected = _detect(detector, rtype)
        if detected is not None:
            address_set.set(rtype, detected)
        elif mode is not AddressMode.BOTH:
            raise NoAddressAvailable("IPv4" if rtype == DNSRecordType.A else "IPv6")

    if not address_set:
        raise NoAddressAvailable("IPv4 or IPv6")

    return address_set
