"""
DNS Message Codec Module

This module implements RFC 1035 wire encoding as used by RFC 2136 updates:
- DNS header parsing/construction
- Zone (question) section handling
- Prerequisite/Update/Additional resource records
- Record types needed for dynamic updates (A, AAAA, SOA, SIG, KEY)
"""

import ipaddress
import logging
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Tuple, Union

logger = logging.getLogger(__name__)

HEADER_LENGTH = 12
MAX_NAME_LENGTH = 255
MAX_LABEL_LENGTH = 63

_HEADER = struct.Struct("!6H")
_QUESTION_FIXED = struct.Struct("!HH")
# type, class, TTL, RDLENGTH
_RR_FIXED = struct.Struct("!HHIH")

# Flag field components: (name, shift, mask)
_FLAG_LAYOUT = (
    ("qr", 15, 0x1),
    ("opcode", 11, 0xF),
    ("aa", 10, 0x1),
    ("tc", 9, 0x1),
    ("rd", 8, 0x1),
    ("ra", 7, 0x1),
    ("z", 4, 0x7),
    ("rcode", 0, 0xF),
)
_BIT_FLAGS = frozenset({"qr", "aa", "tc", "rd", "ra"})


class DNSOpcode(IntEnum):
    """DNS Operation Codes"""

    QUERY = 0
    IQUERY = 1
    STATUS = 2
    NOTIFY = 4
    UPDATE = 5


class DNSResponseCode(IntEnum):
    """DNS Response Codes (RFC 1035, RFC 2136)"""

    NOERROR = 0
    FORMERR = 1
    SERVFAIL = 2
    NXDOMAIN = 3
    NOTIMP = 4
    REFUSED = 5
    YXDOMAIN = 6
    YXRRSET = 7
    NXRRSET = 8
    NOTAUTH = 9
    NOTZONE = 10


class DNSRecordType(IntEnum):
    """Record types an updater reads or writes"""

    A = 1
    SOA = 6
    SIG = 24
    KEY = 25
    AAAA = 28
    ANY = 255


class DNSClass(IntEnum):
    """DNS Classes, including the RFC 2136 meta classes"""

    IN = 1
    NONE = 254
    ANY = 255


@dataclass
class DNSHeader:
    """DNS Message Header

    The flag components are authoritative; `flags` is recomputed from them
    whenever the header is encoded.
    """

    transaction_id: int
    flags: int = 0
    question_count: int = 0
    answer_count: int = 0
    authority_count: int = 0
    additional_count: int = 0

    qr: bool = False
    opcode: int = 0
    aa: bool = False
    tc: bool = False
    rd: bool = False
    ra: bool = False
    z: int = 0
    rcode: int = 0

    def __post_init__(self):
        self.flags = self.pack_flags()

    def pack_flags(self) -> int:
        """16-bit flags word from the individual components"""
        flags = 0
        for name, shift, mask in _FLAG_LAYOUT:
            flags |= (int(getattr(self, name)) & mask) << shift
        return flags

    @classmethod
    def parse_flags(cls, flags: int) -> Dict[str, Union[bool, int]]:
        """Split a flags word into keyword arguments for the constructor"""
        components: Dict[str, Union[bool, int]] = {}
        for name, shift, mask in _FLAG_LAYOUT:
            value = (flags >> shift) & mask
            components[name] = bool(value) if name in _BIT_FLAGS else value
        return components

    def to_bytes(self) -> bytes:
        self.flags = self.pack_flags()
        return _HEADER.pack(
            self.transaction_id,
            self.flags,
            self.question_count,
            self.answer_count,
            self.authority_count,
            self.additional_count,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "DNSHeader":
        if len(data) < HEADER_LENGTH:
            raise ValueError("Invalid DNS header: too short")

        tid, flags, qdcount, ancount, nscount, arcount = _HEADER.unpack_from(data)
        return cls(
            transaction_id=tid,
            question_count=qdcount,
            answer_count=ancount,
            authority_count=nscount,
            additional_count=arcount,
            **cls.parse_flags(flags),
        )


def encode_name(name: str) -> bytes:
    """Encode a domain name as uncompressed labels"""
    if name in ("", "."):
        return b"\x00"

    encoded = bytearray()
    for label in name.rstrip(".").split("."):
        raw = label.encode("ascii")
        if not raw:
            raise ValueError(f"Empty label in name: {name}")
        if len(raw) > MAX_LABEL_LENGTH:
            raise ValueError(f"Label too long: {label}")
        encoded.append(len(raw))
        encoded += raw
    encoded.append(0)

    if len(encoded) > MAX_NAME_LENGTH:
        raise ValueError(f"Name too long: {name}")
    return bytes(encoded)


def decode_name(data: bytes, offset: int) -> Tuple[str, int]:
    """Decode a possibly compressed name.

    Returns:
        The absolute name and the offset just past it in the original
        position (after the first compression pointer, if any)
    """
    labels = []
    end = None
    jumps = 0

    while True:
        if offset >= len(data):
            raise ValueError("Invalid name: offset out of bounds")
        length = data[offset]

        if length == 0:
            offset += 1
            break

        if length & 0xC0 == 0xC0:
            if offset + 1 >= len(data):
                raise ValueError("Invalid compression pointer")
            jumps += 1
            if jumps > MAX_NAME_LENGTH:
                raise ValueError("Invalid name: compression loop")
            if end is None:
                end = offset + 2
            offset = ((length & 0x3F) << 8) | data[offset + 1]
            continue

        if length & 0xC0:
            raise ValueError(f"Invalid label type: {length:#x}")
        if offset + 1 + length > len(data):
            raise ValueError("Invalid label: length exceeds data")

        labels.append(data[offset + 1 : offset + 1 + length].decode("ascii"))
        offset += 1 + length

    name = ".".join(labels) + "." if labels else "."
    return name, offset if end is None else end


@dataclass
class DNSQuestion:
    """DNS Question Section (the Zone section of an UPDATE)"""

    name: str
    qtype: int
    qclass: int

    def to_bytes(self) -> bytes:
        return encode_name(self.name) + _QUESTION_FIXED.pack(self.qtype, self.qclass)

    @classmethod
    def parse(cls, data: bytes, offset: int) -> Tuple["DNSQuestion", int]:
        """Parse a question entry starting at offset"""
        name, offset = decode_name(data, offset)
        if offset + _QUESTION_FIXED.size > len(data):
            raise ValueError("Invalid question: not enough data for type and class")

        qtype, qclass = _QUESTION_FIXED.unpack_from(data, offset)
        return cls(name=name, qtype=qtype, qclass=qclass), offset + _QUESTION_FIXED.size


@dataclass
class DNSResourceRecord:
    """DNS Resource Record with opaque RDATA"""

    name: str
    rtype: int
    rclass: int
    ttl: int
    rdata: bytes = b""

    def to_bytes(self) -> bytes:
        fixed = _RR_FIXED.pack(self.rtype, self.rclass, self.ttl, len(self.rdata))
        return encode_name(self.name) + fixed + self.rdata

    @classmethod
    def parse(cls, data: bytes, offset: int) -> Tuple["DNSResourceRecord", int]:
        """Parse a resource record starting at offset"""
        name, offset = decode_name(data, offset)
        if offset + _RR_FIXED.size > len(data):
            raise ValueError("Invalid resource record: not enough data for header")

        rtype, rclass, ttl, rdlength = _RR_FIXED.unpack_from(data, offset)
        start = offset + _RR_FIXED.size
        end = start + rdlength
        if end > len(data):
            raise ValueError("Invalid resource record: not enough data for rdata")

        return cls(name, rtype, rclass, ttl, data[start:end]), end

    def get_readable_rdata(self) -> str:
        """Address text for A/AAAA records, hex for anything else"""
        if not self.rdata:
            return ""
        try:
            if self.rtype == DNSRecordType.A:
                return str(ipaddress.IPv4Address(self.rdata))
            if self.rtype == DNSRecordType.AAAA:
                return str(ipaddress.IPv6Address(self.rdata))
        except ValueError as e:
            logger.warning(f"Failed to parse rdata for type {self.rtype}: {e}")
        return self.rdata.hex()


@dataclass
class DNSMessage:
    """Complete DNS Message

    For UPDATE messages (RFC 2136 section 2) the four sections are reused as
    Zone, Prerequisite, Update and Additional.
    """

    header: DNSHeader
    questions: List[DNSQuestion] = field(default_factory=list)
    answers: List[DNSResourceRecord] = field(default_factory=list)
    authority: List[DNSResourceRecord] = field(default_factory=list)
    additional: List[DNSResourceRecord] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        """Encode the message; header counts follow the section contents"""
        self.header.question_count = len(self.questions)
        self.header.answer_count = len(self.answers)
        self.header.authority_count = len(self.authority)
        self.header.additional_count = len(self.additional)

        parts = [self.header.to_bytes()]
        parts.extend(question.to_bytes() for question in self.questions)
        for section in (self.answers, self.authority, self.additional):
            parts.extend(record.to_bytes() for record in section)
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> "DNSMessage":
        """Decode a complete message, ignoring trailing bytes"""
        header = DNSHeader.from_bytes(data)
        message = cls(header=header)
        offset = HEADER_LENGTH

        for _ in range(header.question_count):
            question, offset = DNSQuestion.parse(data, offset)
            message.questions.append(question)

        for section, count in (
            (message.answers, header.answer_count),
            (message.authority, header.authority_count),
            (message.additional, header.additional_count),
        ):
            for _ in range(count):
                record, offset = DNSResourceRecord.parse(data, offset)
                section.append(record)

        return message

    def create_response(self, rcode: int = DNSResponseCode.NOERROR) -> "DNSMessage":
        """Response skeleton echoing id, opcode and zone section"""
        response_header = DNSHeader(
            transaction_id=self.header.transaction_id,
            qr=True,
            opcode=self.header.opcode,
            rcode=rcode,
        )
        return DNSMessage(header=response_header, questions=list(self.questions))


def create_address_record(
    name: str, address: Union[ipaddress.IPv4Address, ipaddress.IPv6Address], ttl: int
) -> DNSResourceRecord:
    """A or AAAA record, depending on the address family"""
    rtype = DNSRecordType.A if address.version == 4 else DNSRecordType.AAAA
    return DNSResourceRecord(name, rtype, DNSClass.IN, ttl, address.packed)

