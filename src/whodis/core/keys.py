"""
SIG(0) Signing Keys

RSA private key handling for SIG(0):
- PEM loading with fail-fast validation
- RFC 3110 public key encoding and RFC 4034 key tag
- Text form of the KEY record to publish in the zone
"""

import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union

import dns.dnssec
import dns.rdata
import dns.rdataclass
import dns.rdatatype
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..exceptions import KeyLoadError
from .names import canonical_name

logger = logging.getLogger(__name__)

ALGORITHM_RSASHA256 = 8
KEY_PROTOCOL_DNSSEC = 3
# KEY flags: name type HOST (RFC 2535 section 3.1.2)
DEFAULT_KEY_FLAGS = 0x0200
MIN_KEY_BITS = 1024


@dataclass(frozen=True)
class KeyIdentity:
    """Public identity of a signing key as carried in the SIG RR"""

    owner_name: str
    key_tag: int
    algorithm: int


class SigningKey(Protocol):
    """Capability to produce SIG(0) signatures"""

    def sign(self, data: bytes) -> bytes:
        ...

    def public_identity(self) -> KeyIdentity:
        ...


def encode_rsa_public_key(public_key: rsa.RSAPublicKey) -> bytes:
    """Encode an RSA public key in DNS format (RFC 3110 section 2)"""
    numbers = public_key.public_numbers()
    exponent = numbers.e.to_bytes((numbers.e.bit_length() + 7) // 8, "big")
    modulus = numbers.n.to_bytes((numbers.n.bit_length() + 7) // 8, "big")

    if len(exponent) <= 255:
        prefix = bytes([len(exponent)])
    else:
        prefix = b"\x00" + len(exponent).to_bytes(2, "big")
    return prefix + exponent + modulus


class RSASigningKey:
    """RSA/SHA-256 SIG(0) key bound to the name of its KEY record"""

    algorithm = ALGORITHM_RSASHA256

    def __init__(
        self,
        private_key: rsa.RSAPrivateKey,
        owner_name: str,
        flags: int = DEFAULT_KEY_FLAGS,
    ):
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise KeyLoadError(
                f"SIG(0) key must be an RSA key, got {type(private_key).__name__}"
            )
        if private_key.key_size < MIN_KEY_BITS:
            raise KeyLoadError(
                f"RSA key too small: {private_key.key_size} bits "
                f"(minimum {MIN_KEY_BITS})"
            )
        if not 0 <= flags <= 0xFFFF:
            raise KeyLoadError(f"Invalid KEY flags: {flags}")

        try:
            self.owner_name = canonical_name(owner_name)
        except ValueError as e:
            raise KeyLoadError(f"Invalid key owner name: {e}") from e

        self._private_key = private_key
        self.flags = flags
        self.public_key_bytes = encode_rsa_public_key(private_key.public_key())
        self.key_tag = self._compute_key_tag()

    @classmethod
    def from_pem(
        cls,
        data: bytes,
        owner_name: str,
        flags: int = DEFAULT_KEY_FLAGS,
        password: Optional[bytes] = None,
    ) -> "RSASigningKey":
        """Load and validate a PEM encoded private key.

        Raises:
            KeyLoadError: If the PEM data is malformed or not an RSA key
        """
        try:
            private_key = serialization.load_pem_private_key(data, password=password)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise KeyLoadError(f"Parsing private key PEM: {e}") from e

        return cls(private_key, owner_name, flags)

    @classmethod
    def from_pem_file(
        cls,
        path: Union[str, Path],
        owner_name: str,
        flags: int = DEFAULT_KEY_FLAGS,
        password: Optional[bytes] = None,
    ) -> "RSASigningKey":
        """Load and validate a PEM private key file.

        Raises:
            KeyLoadError: If the file is missing, unreadable or invalid
        """
        key_path = Path(path)
        try:
            data = key_path.read_bytes()
        except OSError as e:
            raise KeyLoadError(f"Reading key file {key_path}: {e}") from e

        key = cls.from_pem(data, owner_name, flags, password)
        logger.debug(f"Loaded SIG(0) key {key.owner_name} tag {key.key_tag} from {key_path}")
        return key

    def key_rdata(self) -> bytes:
        """Wire form of the KEY RDATA (RFC 2535 section 3.1)"""
        return (
            self.flags.to_bytes(2, "big")
            + bytes([KEY_PROTOCOL_DNSSEC, self.algorithm])
            + self.public_key_bytes
        )

    def _compute_key_tag(self) -> int:
        # KEY and DNSKEY share the RDATA layout, so the DNSKEY key tag applies
        rdata = self.key_rdata()
        dnskey = dns.rdata.from_wire(
            dns.rdataclass.IN, dns.rdatatype.DNSKEY, rdata, 0, len(rdata)
        )
        return dns.dnssec.key_id(dnskey)

    @property
    def signature_length(self) -> int:
        """Length in bytes of every signature this key produces"""
        return (self._private_key.key_size + 7) // 8

    def sign(self, data: bytes) -> bytes:
        """RSASSA-PKCS1-v1_5 signature with SHA-256 (RFC 5702)"""
        return self._private_key.sign(data, padding.PKCS1v15(), hashes.SHA256())

    def public_identity(self) -> KeyIdentity:
        return KeyIdentity(self.owner_name, self.key_tag, self.algorithm)

    def key_record_text(self, ttl: Optional[int] = None) -> str:
        """KEY record in zone file syntax, for publishing the public key"""
        ttl_field = f" {ttl}" if ttl is not None else ""
        public_key = base64.b64encode(self.public_key_bytes).decode("ascii")
        return (
            f"{self.owner_name}{ttl_field} IN KEY {self.flags} "
            f"{KEY_PROTOCOL_DNSSEC} {self.algorithm} {public_key}"
        )


def load_signing_key(
    path: Union[str, Path],
    owner_name: str,
    flags: int = DEFAULT_KEY_FLAGS,
    password: Optional[str] = None,
) -> RSASigningKey:
    """Convenience function to load the configured SIG(0) key"""
    return RSASigningKey.from_pem_file(
        path,
        owner_name,
        flags,
        password.encode("utf-8") if password else None,
    )
