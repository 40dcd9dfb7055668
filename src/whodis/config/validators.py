"""
Configuration Validators

This module provides validation functions for updater configuration parameters.
"""

import ipaddress
from pathlib import Path
from typing import Optional

from ..core.addresses import AddressMode
from ..core.names import canonical_name
from ..core.transport import ServerAddress


def validate_boolean(value) -> bool:
    """Validate boolean value."""
    return isinstance(value, bool)


def validate_file_path(path: str) -> bool:
    """Validate file path format."""
    if not path:
        return False

    try:
        Path(path)
        return True
    except (TypeError, ValueError):
        return False


def validate_log_level(level: str) -> bool:
    """Validate log level."""
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    return isinstance(level, str) and level.upper() in valid_levels


def validate_positive_float(value: float) -> bool:
    """Validate positive float."""
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and value > 0
    )


def validate_positive_int(value: int) -> bool:
    """Validate positive integer."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_non_negative_int(value: int) -> bool:
    """Validate non-negative integer."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_ttl(ttl: int) -> bool:
    """Validate record TTL (RFC 2181 section 8)."""
    return validate_positive_int(ttl) and ttl <= 2**31 - 1


def validate_ip_address(ip: Optional[str]) -> bool:
    """Validate IP address format."""
    try:
        ipaddress.ip_address(str(ip))
        return True
    except ValueError:
        return False


def validate_domain_name(name: str) -> bool:
    """Validate domain name syntax (trailing dot optional)."""
    try:
        canonical_name(name)
        return True
    except ValueError:
        return False


def validate_address_mode(mode: str) -> bool:
    """Validate address mode (v4-only, v6-only, both)."""
    try:
        AddressMode.parse(mode)
        return True
    except ValueError:
        return False


def validate_server_address(address: str) -> bool:
    """Validate server address format (host, host:port, [v6]:port)."""
    if not address or not isinstance(address, str):
        return False

    try:
        server = ServerAddress.parse(address)
    except ValueError:
        return False

    if validate_ip_address(server.host):
        return True
    return validate_domain_name(server.host)


def validate_key_flags(flags: int) -> bool:
    """Validate KEY record flags field."""
    return validate_non_negative_int(flags) and flags <= 0xFFFF
