"""Domain name normalization and zone membership checks."""

import dns.exception
import dns.name


def canonical_name(name: str) -> str:
    """Normalize a domain name to absolute, lowercase text.

    "Example.COM" and "example.com." both become "example.com.".

    Raises:
        ValueError: If the name is empty or not valid domain-name syntax
    """
    if name is None or not str(name).strip():
        raise ValueError("Domain name must not be empty")

    try:
        parsed = dns.name.from_text(str(name).strip())
    except dns.exception.DNSException as e:
        raise ValueError(f"Invalid domain name {name!r}: {e}") from e

    text = parsed.canonicalize().to_text()
    # Escaped labels cannot be carried by the plain label encoder
    if "\\" in text:
        raise ValueError(f"Invalid domain name {name!r}: unsupported characters")
    return text


def is_within_zone(owner: str, zone: str) -> bool:
    """Check whether owner equals or is below zone (case-insensitive)"""
    return dns.name.from_text(owner).is_subdomain(dns.name.from_text(zone))
