"""
whodis Core Module

This module exports the update construction, signing and transport components.
"""

from .addresses import AddressDetector, AddressMode, AddressSet, resolve_addresses
from .builder import DEFAULT_TTL, UpdateMessage, build_update
from .client import UpdateClient, perform_update
from .detection import SystemAddressDetector
from .keys import KeyIdentity, RSASigningKey, SigningKey, load_signing_key
from .message import (
    DNSClass,
    DNSHeader,
    DNSMessage,
    DNSOpcode,
    DNSQuestion,
    DNSRecordType,
    DNSResourceRecord,
    DNSResponseCode,
)
from .signer import Sig0Signer, SignedMessage, sign_message
from .transport import OutcomeStatus, ServerAddress, TransportDriver, UpdateOutcome

__all__ = [
    # Caller surface
    "UpdateClient",
    "perform_update",
    # Address resolution
    "AddressDetector",
    "AddressMode",
    "AddressSet",
    "SystemAddressDetector",
    "resolve_addresses",
    # Message construction
    "DEFAULT_TTL",
    "UpdateMessage",
    "build_update",
    # Signing
    "KeyIdentity",
    "RSASigningKey",
    "SigningKey",
    "Sig0Signer",
    "SignedMessage",
    "load_signing_key",
    "sign_message",
    # Transport
    "OutcomeStatus",
    "ServerAddress",
    "TransportDriver",
    "UpdateOutcome",
    # Message components
    "DNSMessage",
    "DNSQuestion",
    "DNSResourceRecord",
    "DNSHeader",
    # Enums
    "DNSRecordType",
    "DNSClass",
    "DNSResponseCode",
    "DNSOpcode",
]
