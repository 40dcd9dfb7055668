"""
Message Codec Tests

Validates header flag handling, name encoding and UPDATE section layout on the wire.
"""

import ipaddress
import struct
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from whodis.core.message import (
    DNSClass,
    DNSHeader,
    DNSMessage,
    DNSOpcode,
    DNSQuestion,
    DNSRecordType,
    DNSResourceRecord,
    DNSResponseCode,
    create_address_record,
    decode_name,
    encode_name,
)


class TestDNSHeader:
    """Test header flag packing"""

    def test_update_opcode_flags(self):
        """UPDATE opcode lands in bits 11-14"""
        header = DNSHeader(transaction_id=0x1234, opcode=DNSOpcode.UPDATE)

        assert header.flags == 0x2800
        assert header.to_bytes()[:4] == b"\x12\x34\x28\x00"

    def test_response_flags_roundtrip(self):
        """Flags parsed from the wire match the packed components"""
        header = DNSHeader(
            transaction_id=7,
            qr=True,
            opcode=DNSOpcode.UPDATE,
            tc=True,
            rcode=DNSResponseCode.REFUSED,
        )

        parsed = DNSHeader.from_bytes(header.to_bytes())

        assert parsed.qr is True
        assert parsed.tc is True
        assert parsed.opcode == DNSOpcode.UPDATE
        assert parsed.rcode == DNSResponseCode.REFUSED
        assert parsed.rd is False

    def test_short_header_rejected(self):
        with pytest.raises(ValueError):
            DNSHeader.from_bytes(b"\x00" * 11)


class TestNames:
    """Test uncompressed name encoding and decoding"""

    def test_encode_name(self):
        assert encode_name("dyn.lan.") == b"\x03dyn\x03lan\x00"
        assert encode_name("dyn.lan") == b"\x03dyn\x03lan\x00"

    def test_encode_root(self):
        assert encode_name(".") == b"\x00"
        assert encode_name("") == b"\x00"

    def test_encode_rejects_bad_labels(self):
        with pytest.raises(ValueError):
            encode_name("a..b.")
        with pytest.raises(ValueError):
            encode_name("x" * 64 + ".lan.")

    def test_decode_compressed_name(self):
        """Compression pointers are followed and the offset ends after the pointer"""
        data = b"\x03dyn\x03lan\x00" + b"\x06laptop\xc0\x00"

        name, offset = decode_name(data, 9)

        assert name == "laptop.dyn.lan."
        assert offset == len(data)

    def test_decode_rejects_pointer_loop(self):
        with pytest.raises(ValueError):
            decode_name(b"\xc0\x00", 0)


class TestDNSMessage:
    """Test whole-message encoding"""

    def test_address_records(self):
        """A and AAAA records carry packed addresses"""
        a_record = create_address_record(
            "laptop.dyn.lan.", ipaddress.IPv4Address("10.0.0.5"), 300
        )
        aaaa_record = create_address_record(
            "laptop.dyn.lan.", ipaddress.IPv6Address("2001:db8::5"), 300
        )

        assert a_record.rtype == DNSRecordType.A
        assert a_record.rdata == bytes([10, 0, 0, 5])
        assert a_record.get_readable_rdata() == "10.0.0.5"
        assert aaaa_record.rtype == DNSRecordType.AAAA
        assert aaaa_record.rdata == ipaddress.IPv6Address("2001:db8::5").packed

    def test_counts_follow_sections(self):
        """Section counts are recomputed on encoding"""
        message = DNSMessage(
            header=DNSHeader(transaction_id=1, opcode=DNSOpcode.UPDATE),
            questions=[DNSQuestion("dyn.lan.", DNSRecordType.SOA, DNSClass.IN)],
            authority=[
                DNSResourceRecord("laptop.dyn.lan.", DNSRecordType.A, DNSClass.ANY, 0),
                create_address_record(
                    "laptop.dyn.lan.", ipaddress.IPv4Address("10.0.0.5"), 300
                ),
            ],
        )

        data = message.to_bytes()

        assert struct.unpack("!HHHH", data[4:12]) == (1, 0, 2, 0)

    def test_message_roundtrip(self):
        """Encoded message parses back to the same sections"""
        message = DNSMessage(
            header=DNSHeader(transaction_id=99, opcode=DNSOpcode.UPDATE),
            questions=[DNSQuestion("dyn.lan.", DNSRecordType.SOA, DNSClass.IN)],
            answers=[
                DNSResourceRecord("laptop.dyn.lan.", DNSRecordType.ANY, DNSClass.ANY, 0)
            ],
            authority=[
                create_address_record(
                    "laptop.dyn.lan.", ipaddress.IPv6Address("2001:db8::5"), 60
                )
            ],
        )

        parsed = DNSMessage.from_bytes(message.to_bytes())

        assert parsed.header.opcode == DNSOpcode.UPDATE
        assert parsed.questions == message.questions
        assert parsed.answers == message.answers
        assert parsed.authority == message.authority
        assert parsed.additional == []

    def test_create_response(self):
        request = DNSMessage(
            header=DNSHeader(transaction_id=42, opcode=DNSOpcode.UPDATE),
            questions=[DNSQuestion("dyn.lan.", DNSRecordType.SOA, DNSClass.IN)],
        )

        response = request.create_response(DNSResponseCode.NOTAUTH)

        assert response.header.qr
        assert response.header.transaction_id == 42
        assert response.header.rcode == DNSResponseCode.NOTAUTH
        assert response.header.opcode == DNSOpcode.UPDATE

    def test_truncated_message_rejected(self):
        data = DNSMessage(
            header=DNSHeader(transaction_id=1),
            questions=[DNSQuestion("dyn.lan.", DNSRecordType.SOA, DNSClass.IN)],
        ).to_bytes()

        with pytest.raises(ValueError):
            DNSMessage.from_bytes(data[:-2])
