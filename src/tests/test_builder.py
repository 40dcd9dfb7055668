"""
Update Builder Tests

Validates the RFC 2136 section layout produced for a host's address records.
"""

import ipaddress
import sys
from pathlib import Path

import dns.message
import dns.name
import dns.opcode
import dns.rdataclass
import dns.rdatatype
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from whodis.core.addresses import AddressSet
from whodis.core.builder import UpdateMessage, build_update, new_transaction_id
from whodis.core.message import (
    DNSClass,
    DNSOpcode,
    DNSRecordType,
    DNSResourceRecord,
)
from whodis.core.names import canonical_name, is_within_zone
from whodis.exceptions import InvalidOwnerName

V4 = ipaddress.IPv4Address("10.0.0.5")
V6 = ipaddress.IPv6Address("2001:db8::5")


def both_families() -> AddressSet:
    return AddressSet({DNSRecordType.A: V4, DNSRecordType.AAAA: V6})


class TestNames:
    """Test name normalization"""

    def test_canonical_name(self):
        assert canonical_name("Laptop.Dyn.LAN") == "laptop.dyn.lan."
        assert canonical_name("dyn.lan.") == "dyn.lan."

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            canonical_name("  ")

    def test_zone_membership(self):
        assert is_within_zone("laptop.dyn.lan.", "dyn.lan.")
        assert is_within_zone("dyn.lan.", "dyn.lan.")
        assert not is_within_zone("laptop.other.lan.", "dyn.lan.")
        assert not is_within_zone("xdyn.lan.", "dyn.lan.")


class TestBuildUpdate:
    """Test UPDATE message construction"""

    def test_sections(self):
        """Zone section, then delete-then-add per record type"""
        message = build_update("dyn.lan.", "laptop.dyn.lan.", both_families(), ttl=300)

        assert isinstance(message, UpdateMessage)
        assert message.header.opcode == DNSOpcode.UPDATE
        assert message.header.qr is False
        assert len(message.questions) == 1
        assert message.zone.name == "dyn.lan."
        assert message.zone.qtype == DNSRecordType.SOA
        assert message.zone.qclass == DNSClass.IN
        assert message.prerequisites == []
        assert message.additional == []

        assert [(r.rtype, r.rclass, r.ttl) for r in message.updates] == [
            (DNSRecordType.A, DNSClass.ANY, 0),
            (DNSRecordType.A, DNSClass.IN, 300),
            (DNSRecordType.AAAA, DNSClass.ANY, 0),
            (DNSRecordType.AAAA, DNSClass.IN, 300),
        ]
        assert message.updates[0].rdata == b""
        assert message.updates[1].rdata == V4.packed
        assert message.updates[3].rdata == V6.packed
        assert {r.name for r in message.updates} == {"laptop.dyn.lan."}

    def test_single_family(self):
        message = build_update(
            "dyn.lan.", "laptop.dyn.lan.", AddressSet({DNSRecordType.AAAA: V6})
        )

        assert [r.rtype for r in message.updates] == [DNSRecordType.AAAA] * 2

    def test_names_normalized(self):
        """Trailing dot and case do not matter"""
        message = build_update("Dyn.Lan", "LAPTOP.dyn.lan", both_families())

        assert message.zone_name == "dyn.lan."
        assert message.updates[0].name == "laptop.dyn.lan."

    def test_require_existing_prerequisite(self):
        """Name-in-use prerequisite is ANY/ANY with TTL 0 and no RDATA"""
        message = build_update(
            "dyn.lan.", "laptop.dyn.lan.", both_families(), require_existing=True
        )

        assert message.prerequisites == [
            DNSResourceRecord("laptop.dyn.lan.", DNSRecordType.ANY, DNSClass.ANY, 0, b"")
        ]

    def test_owner_outside_zone(self):
        with pytest.raises(InvalidOwnerName) as exc_info:
            build_update("dyn.lan.", "laptop.other.lan.", both_families())

        assert exc_info.value.owner == "laptop.other.lan."
        assert exc_info.value.zone == "dyn.lan."

    def test_malformed_owner(self):
        with pytest.raises(InvalidOwnerName):
            build_update("dyn.lan.", "", both_families())

    def test_empty_address_set(self):
        with pytest.raises(ValueError):
            build_update("dyn.lan.", "laptop.dyn.lan.", AddressSet())

    @pytest.mark.parametrize("ttl", [0, -1, 2**31])
    def test_invalid_ttl(self, ttl):
        with pytest.raises(ValueError):
            build_update("dyn.lan.", "laptop.dyn.lan.", both_families(), ttl=ttl)

    def test_transaction_id(self):
        message = build_update(
            "dyn.lan.", "laptop.dyn.lan.", both_families(), transaction_id=4242
        )

        assert message.transaction_id == 4242
        assert 0 <= new_transaction_id() <= 0xFFFF

    def test_sealed_message_is_immutable(self):
        message = build_update("dyn.lan.", "laptop.dyn.lan.", both_families())
        message.seal()

        with pytest.raises(RuntimeError):
            message.add_update(DNSResourceRecord("laptop.dyn.lan.", DNSRecordType.A, DNSClass.ANY, 0))


class TestWireInterop:
    """Test that an independent DNS implementation reads the message as intended"""

    def test_dnspython_parses_update(self):
        message = build_update(
            "dyn.lan.",
            "laptop.dyn.lan.",
            both_families(),
            ttl=600,
            require_existing=True,
            transaction_id=321,
        )

        parsed = dns.message.from_wire(message.to_bytes())

        assert parsed.id == 321
        assert parsed.opcode() == dns.opcode.UPDATE
        assert parsed.sections[0][0].name == dns.name.from_text("dyn.lan.")
        assert parsed.sections[0][0].rdtype == dns.rdatatype.SOA

        prerequisite = parsed.sections[1][0]
        assert prerequisite.rdtype == dns.rdatatype.ANY
        assert prerequisite.deleting == dns.rdataclass.ANY

        updates = parsed.sections[2]
        assert [(rrset.rdtype, rrset.deleting) for rrset in updates] == [
            (dns.rdatatype.A, dns.rdataclass.ANY),
            (dns.rdatatype.A, None),
            (dns.rdatatype.AAAA, dns.rdataclass.ANY),
            (dns.rdatatype.AAAA, None),
        ]
        assert updates[1][0].address == "10.0.0.5"
        assert updates[1].ttl == 600
        assert updates[3][0].address == "2001:db8::5"
