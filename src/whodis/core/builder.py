"""
Update Message Builder

Builds RFC 2136 UPDATE messages that replace a host's A/AAAA record sets:
- Zone section naming the zone (SOA, class IN)
- Optional "name is in use" prerequisite
- Per record type: delete the whole RRset, then add the new address
"""

import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional

from ..exceptions import InvalidOwnerName
from .addresses import AddressSet
from .message import (
    DNSClass,
    DNSHeader,
    DNSMessage,
    DNSOpcode,
    DNSQuestion,
    DNSRecordType,
    DNSResourceRecord,
    create_address_record,
)
from .names import canonical_name, is_within_zone

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300
MAX_TTL = 2**31 - 1

_random = random.SystemRandom()


def new_transaction_id() -> int:
    """Random 16-bit message id"""
    return _random.randrange(0, 65536)


@dataclass
class UpdateMessage(DNSMessage):
    """DNS UPDATE message (RFC 2136).

    Sections map as: questions -> Zone, answers -> Prerequisite,
    authority -> Update, additional -> Additional. Once sealed (after the
    SIG(0) record is attached) no section may change.
    """

    sealed: bool = field(default=False, compare=False)

    @property
    def zone(self) -> DNSQuestion:
        return self.questions[0]

    @property
    def zone_name(self) -> str:
        return self.questions[0].name

    @property
    def prerequisites(self) -> List[DNSResourceRecord]:
        return self.answers

    @property
    def updates(self) -> List[DNSResourceRecord]:
        return self.authority

    @property
    def transaction_id(self) -> int:
        return self.header.transaction_id

    def _check_mutable(self) -> None:
        if self.sealed:
            raise RuntimeError("Update message is sealed")

    def add_prerequisite(self, record: DNSResourceRecord) -> None:
        self._check_mutable()
        self.answers.append(record)

    def add_update(self, record: DNSResourceRecord) -> None:
        self._check_mutable()
        self.authority.append(record)

    def add_additional(self, record: DNSResourceRecord) -> None:
        self._check_mutable()
        self.additional.append(record)

    def seal(self) -> None:
        self.sealed = True


def build_update(
    zone: str,
    owner: str,
    address_set: AddressSet,
    ttl: int = DEFAULT_TTL,
    require_existing: bool = False,
    transaction_id: Optional[int] = None,
) -> UpdateMessage:
    """Build an UPDATE replacing the owner's A/AAAA records.

    Args:
        zone: Zone to update (trailing dot optional)
        owner: Host name whose records are replaced
        address_set: Addresses to publish
        ttl: TTL of the added records
        require_existing: Add a "name is in use" prerequisite
        transaction_id: Message id, random when omitted

    Returns:
        Unsigned UpdateMessage

    Raises:
        InvalidOwnerName: If owner is malformed or not within zone
        ValueError: If zone is malformed, ttl is out of range or
            address_set is empty
    """
    zone_name = canonical_name(zone)
    try:
        owner_name = canonical_name(owner)
    except ValueError as e:
        raise InvalidOwnerName(str(owner), zone_name, reason=str(e)) from e

    if not is_within_zone(owner_name, zone_name):
        raise InvalidOwnerName(owner_name, zone_name)

    if not isinstance(ttl, int) or not 0 < ttl <= MAX_TTL:
        raise ValueError(f"TTL must be between 1 and {MAX_TTL}: {ttl}")

    if not address_set:
        raise ValueError("Address set is empty, nothing to update")

    if transaction_id is None:
        transaction_id = new_transaction_id()

    header = DNSHeader(transaction_id=transaction_id, opcode=DNSOpcode.UPDATE)
    message = UpdateMessage(
        header=header,
        questions=[DNSQuestion(zone_name, DNSRecordType.SOA, DNSClass.IN)],
    )

    if require_existing:
        # RFC 2136 2.4.4: name is in use
        message.add_prerequisite(
            DNSResourceRecord(owner_name, DNSRecordType.ANY, DNSClass.ANY, 0)
        )

    for rtype, address in address_set.items():
        # RFC 2136 2.5.2: delete an RRset
        message.add_update(DNSResourceRecord(owner_name, rtype, DNSClass.ANY, 0))
        message.add_update(create_address_record(owner_name, address, ttl))

    logger.debug(
        f"Built update {transaction_id} for {owner_name} in {zone_name}: {address_set}"
    )
    return message
