"""
Updater Configuration Schema

Configuration schema covering the target server, the records to update, the
SIG(0) key, transport timeouts and logging.
"""

from dataclasses import dataclass, field
from typing import Optional

from .validators import (
    validate_address_mode,
    validate_boolean,
    validate_domain_name,
    validate_file_path,
    validate_ip_address,
    validate_key_flags,
    validate_log_level,
    validate_non_negative_int,
    validate_positive_float,
    validate_positive_int,
    validate_server_address,
    validate_ttl,
)


@dataclass
class ServerConfig:
    """Authoritative server configuration section."""

    address: str = "127.0.0.1:53"

    def __post_init__(self) -> None:
        """Validate server configuration."""
        if not validate_server_address(self.address):
            raise ValueError(f"Invalid server address: {self.address}")


@dataclass
class UpdateConfig:
    """Update target configuration section."""

    zone: str = ""
    hostname: str = ""
    mode: str = "both"
    ip: Optional[str] = None
    ttl: int = 300
    require_existing: bool = False

    def __post_init__(self) -> None:
        """Validate update configuration."""
        # zone and hostname may be supplied later on the command line
        if self.zone and not validate_domain_name(self.zone):
            raise ValueError(f"Invalid zone: {self.zone}")

        if self.hostname and not validate_domain_name(self.hostname):
            raise ValueError(f"Invalid hostname: {self.hostname}")

        if not validate_address_mode(self.mode):
            raise ValueError(f"Invalid address mode: {self.mode}")

        if self.ip is not None and not validate_ip_address(self.ip):
            raise ValueError(f"Invalid IP address: {self.ip}")

        if not validate_ttl(self.ttl):
            raise ValueError(f"TTL must be between 1 and 2147483647: {self.ttl}")

        if not validate_boolean(self.require_existing):
            raise ValueError(
                f"Require existing must be boolean: {self.require_existing}"
            )


@dataclass
class SigningConfig:
    """SIG(0) key configuration section."""

    key_file: str = "dns_update.key"
    key_name: Optional[str] = None
    key_flags: int = 512
    clock_skew: int = 300
    validity: int = 300

    def __post_init__(self) -> None:
        """Validate signing configuration."""
        if not validate_file_path(self.key_file):
            raise ValueError(f"Invalid key file path: {self.key_file}")

        if self.key_name is not None and not validate_domain_name(self.key_name):
            raise ValueError(f"Invalid key name: {self.key_name}")

        if not validate_key_flags(self.key_flags):
            raise ValueError(f"Invalid KEY flags: {self.key_flags}")

        if not validate_non_negative_int(self.clock_skew):
            raise ValueError(f"Clock skew must be non-negative: {self.clock_skew}")

        if not validate_positive_int(self.validity):
            raise ValueError(f"Validity window must be positive: {self.validity}")


@dataclass
class TransportConfig:
    """Transport configuration section."""

    udp_timeout: float = 3.0
    tcp_timeout: float = 10.0
    udp_retries: int = 1
    overall_timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate transport configuration."""
        if not validate_positive_float(self.udp_timeout):
            raise ValueError(f"UDP timeout must be positive: {self.udp_timeout}")

        if not validate_positive_float(self.tcp_timeout):
            raise ValueError(f"TCP timeout must be positive: {self.tcp_timeout}")

        if not validate_non_negative_int(self.udp_retries):
            raise ValueError(
                f"UDP retries must be non-negative: {self.udp_retries}"
            )

        if not validate_positive_float(self.overall_timeout):
            raise ValueError(
                f"Overall timeout must be positive: {self.overall_timeout}"
            )


@dataclass
class LoggingConfig:
    """Logging configuration section."""

    level: str = "INFO"
    format: str = "console"
    file: str = ""
    max_size_mb: int = 10
    backup_count: int = 3

    def __post_init__(self) -> None:
        """Validate logging configuration."""
        if not validate_log_level(self.level):
            raise ValueError(f"Invalid log level: {self.level}")

        if self.format not in ["console", "json"]:
            raise ValueError(f"Invalid log format: {self.format}")

        if self.file and not validate_file_path(self.file):
            raise ValueError(f"Invalid log file path: {self.file}")

        if not validate_positive_int(self.max_size_mb):
            raise ValueError(f"Max size MB must be positive: {self.max_size_mb}")

        if not validate_positive_int(self.backup_count):
            raise ValueError(f"Backup count must be positive: {self.backup_count}")


@dataclass
class WhodisConfig:
    """Main updater configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    update: UpdateConfig = field(default_factory=UpdateConfig)
    signing: SigningConfig = field(default_factory=SigningConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        """Validate cross-section constraints."""
        if self.transport.overall_timeout < self.transport.udp_timeout:
            raise ValueError(
                "Overall timeout must not be shorter than the UDP timeout"
            )

    @property
    def key_name(self) -> str:
        """Owner name of the SIG(0) key, the zone unless configured"""
        return self.signing.key_name or self.update.zone


def create_default_config() -> WhodisConfig:
    """Create a default configuration instance."""
    return WhodisConfig()


def validate_for_update(config: WhodisConfig) -> None:
    """Check that everything an update needs is present.

    Raises:
        ValueError: If zone or hostname is missing
    """
    missing = [
        name
        for name, value in (
            ("zone", config.update.zone),
            ("hostname", config.update.hostname),
        )
        if not value
    ]
    if missing:
        raise ValueError(f"Missing required settings: {', '.join(missing)}")
