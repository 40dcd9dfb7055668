"""
SIG(0) Transaction Signer

Implements RFC 2931 transaction signatures over UPDATE messages:
- SIG RDATA construction (type covered 0, RSASHA256, labels 0, TTL 0)
- Inception/expiration timestamps bounded by a short validity window
- Signing input "RDATA | request - SIG(0)" (RFC 2931 section 3.1)
- Appending the SIG RR as the final additional record and sealing
"""

import logging
import struct
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from ..exceptions import SigningError
from .builder import UpdateMessage
from .keys import ALGORITHM_RSASHA256, KeyIdentity, SigningKey
from .message import DNSClass, DNSRecordType, DNSResourceRecord, decode_name, encode_name

logger = logging.getLogger(__name__)

DEFAULT_CLOCK_SKEW = 300
DEFAULT_VALIDITY = 300

# type covered, algorithm, labels, original TTL, expiration, inception, key tag
_SIG_FIXED = struct.Struct("!HBBIIIH")


def serial_time(seconds: int) -> int:
    """Seconds since the epoch as a 32-bit serial number (RFC 4034 3.1.5)"""
    return seconds % 2**32


@dataclass(frozen=True)
class SigFields:
    """Fixed fields of a SIG RDATA"""

    type_covered: int
    algorithm: int
    labels: int
    original_ttl: int
    expiration: int
    inception: int
    key_tag: int
    signer_name: str

    def to_bytes(self) -> bytes:
        """RDATA without the signature field"""
        return (
            _SIG_FIXED.pack(
                self.type_covered,
                self.algorithm,
                self.labels,
                self.original_ttl,
                self.expiration,
                self.inception,
                self.key_tag,
            )
            + encode_name(self.signer_name)
        )

    @classmethod
    def from_rdata(cls, rdata: bytes) -> Tuple["SigFields", bytes]:
        """Split a SIG RDATA into fixed fields and signature"""
        if len(rdata) < _SIG_FIXED.size + 1:
            raise ValueError("Invalid SIG RDATA: too short")
        values = _SIG_FIXED.unpack(rdata[: _SIG_FIXED.size])
        signer_name, offset = decode_name(rdata, _SIG_FIXED.size)
        return cls(*values, signer_name=signer_name), rdata[offset:]


@dataclass(frozen=True)
class SignedMessage:
    """Sealed UPDATE message carrying its SIG(0) record"""

    message: UpdateMessage
    sig_record: DNSResourceRecord
    sig_fields: SigFields

    @property
    def transaction_id(self) -> int:
        return self.message.header.transaction_id

    @property
    def inception(self) -> int:
        return self.sig_fields.inception

    @property
    def expiration(self) -> int:
        return self.sig_fields.expiration

    def to_bytes(self) -> bytes:
        return self.message.to_bytes()


def build_sig_fields(
    identity: KeyIdentity, now: float, clock_skew: int, validity: int
) -> SigFields:
    """SIG(0) fixed fields for a signature made at `now`"""
    inception = int(now) - clock_skew
    return SigFields(
        type_covered=0,
        algorithm=identity.algorithm,
        labels=0,
        original_ttl=0,
        expiration=serial_time(inception + validity),
        inception=serial_time(inception),
        key_tag=identity.key_tag,
        signer_name=identity.owner_name,
    )


def signing_input(message: UpdateMessage, sig_fields: SigFields) -> bytes:
    """Bytes covered by the signature: SIG RDATA (less signature) | request"""
    return sig_fields.to_bytes() + message.to_bytes()


class Sig0Signer:
    """Attaches SIG(0) records to UPDATE messages"""

    def __init__(
        self, clock_skew: int = DEFAULT_CLOCK_SKEW, validity: int = DEFAULT_VALIDITY
    ):
        if clock_skew < 0:
            raise ValueError(f"Clock skew must be non-negative: {clock_skew}")
        if validity <= 0:
            raise ValueError(f"Validity window must be positive: {validity}")
        self.clock_skew = clock_skew
        self.validity = validity

    def sign(
        self,
        message: UpdateMessage,
        signing_key: SigningKey,
        now: Optional[float] = None,
    ) -> SignedMessage:
        """Sign and seal an UPDATE message.

        Args:
            message: Unsigned update message
            signing_key: Key capability producing RSA/SHA-256 signatures
            now: Signing time in seconds since the epoch, current time if omitted

        Returns:
            SignedMessage ready for transmission

        Raises:
            SigningError: If the message cannot be signed
        """
        if message.sealed:
            raise SigningError("Message is already signed")

        try:
            identity = signing_key.public_identity()
        except Exception as e:
            raise SigningError(f"Key identity unavailable: {e}") from e
        if identity.algorithm != ALGORITHM_RSASHA256:
            raise SigningError(f"Unsupported key algorithm: {identity.algorithm}")

        if now is None:
            now = time.time()

        sig_fields = build_sig_fields(identity, now, self.clock_skew, self.validity)
        data = signing_input(message, sig_fields)

        try:
            signature = signing_key.sign(data)
        except Exception as e:
            raise SigningError(f"Key rejected signing operation: {e}") from e

        # Only keys that know their modulus size can be checked
        expected_length = getattr(signing_key, "signature_length", None)
        if expected_length is not None and len(signature) != expected_length:
            raise SigningError(
                f"Signature length {len(signature)} does not match "
                f"key modulus length {expected_length}"
            )

        sig_record = DNSResourceRecord(
            name=".",
            rtype=DNSRecordType.SIG,
            rclass=DNSClass.ANY,
            ttl=0,
            rdata=sig_fields.to_bytes() + signature,
        )
        message.add_additional(sig_record)
        message.seal()

        logger.debug(
            f"Signed update {message.header.transaction_id} with key "
            f"{identity.owner_name} tag {identity.key_tag}, valid "
            f"{sig_fields.inception}..{sig_fields.expiration}"
        )
        return SignedMessage(message=message, sig_record=sig_record, sig_fields=sig_fields)


def sign_message(
    message: UpdateMessage,
    signing_key: SigningKey,
    now: Optional[float] = None,
    clock_skew: int = DEFAULT_CLOCK_SKEW,
    validity: int = DEFAULT_VALIDITY,
) -> SignedMessage:
    """Convenience function to sign with explicit window settings"""
    return Sig0Signer(clock_skew, validity).sign(message, signing_key, now)
