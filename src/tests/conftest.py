"""Shared fixtures for the updater tests."""

import sys
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

sys.path.insert(0, str(Path(__file__).parent.parent))

from whodis.core.keys import RSASigningKey


@pytest.fixture(scope="session")
def rsa_private_key():
    """Throwaway 2048-bit RSA key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_key_pem(rsa_private_key):
    """The throwaway key as unencrypted PKCS#8 PEM."""
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture
def signing_key(rsa_private_key):
    """SIG(0) key named after the test zone."""
    return RSASigningKey(rsa_private_key, "dyn.lan.")
