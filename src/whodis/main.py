"""
whodis Main Entry Point

Command line entry point: loads configuration, the SIG(0) key and sends one
authenticated dynamic update.
"""

import argparse
import asyncio
import sys
from typing import Any, Dict, List, Optional

import yaml

from .config.loader import ConfigLoader
from .config.schema import WhodisConfig, validate_for_update
from .core import (
    OutcomeStatus,
    RSASigningKey,
    Sig0Signer,
    SystemAddressDetector,
    TransportDriver,
    UpdateClient,
    UpdateOutcome,
    load_signing_key,
)
from .dns_logging import get_logger, log_exception, setup_logging
from .exceptions import KeyLoadError, WhodisError

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_TIMEOUT = 2
EXIT_TRANSPORT_ERROR = 3
EXIT_CONFIG_ERROR = 4

_EXIT_CODES = {
    OutcomeStatus.SUCCESS: EXIT_OK,
    OutcomeStatus.SERVER_REJECTED: EXIT_REJECTED,
    OutcomeStatus.TIMEOUT: EXIT_TIMEOUT,
    OutcomeStatus.TRANSPORT_ERROR: EXIT_TRANSPORT_ERROR,
}


def exit_code_for(outcome: UpdateOutcome) -> int:
    """Map an update outcome to the process exit code"""
    return _EXIT_CODES[outcome.status]


class WhodisApp:
    """Dynamic DNS update application"""

    def __init__(
        self,
        config_path: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ):
        self.config_path = config_path
        self.overrides = overrides or {}
        self.config: Optional[WhodisConfig] = None
        self.signing_key: Optional[RSASigningKey] = None
        self.logger = None

    def initialize(self) -> None:
        """Load configuration, set up logging and load the key.

        Raises:
            ValueError: If the configuration is invalid
            OSError: If the configuration or log file cannot be opened
            KeyLoadError: If the key cannot be loaded
        """
        self.config = ConfigLoader(self.config_path).load_config(self.overrides)

        setup_logging(self.config.logging)
        self.logger = get_logger("whodis")
        self.logger.debug(
            "Configuration loaded",
            config_file=self.config_path,
            server=self.config.server.address,
            zone=self.config.update.zone,
        )

        self.signing_key = self.load_key()

    def load_key(self) -> RSASigningKey:
        """Load and validate the configured SIG(0) key"""
        key_name = self.config.key_name
        if not key_name:
            raise KeyLoadError("Key name unknown: set signing.key_name or the zone")

        self.logger.debug("Loading SIG(0) key", key_file=self.config.signing.key_file)
        key = load_signing_key(
            self.config.signing.key_file, key_name, self.config.signing.key_flags
        )
        self.logger.debug(
            "SIG(0) key loaded", key_name=key.owner_name, key_tag=key.key_tag
        )
        return key

    def create_client(self) -> UpdateClient:
        """Update client wired from configuration"""
        transport_config = self.config.transport
        return UpdateClient(
            self.signing_key,
            detector=SystemAddressDetector(),
            signer=Sig0Signer(
                clock_skew=self.config.signing.clock_skew,
                validity=self.config.signing.validity,
            ),
            transport=TransportDriver(
                udp_timeout=transport_config.udp_timeout,
                tcp_timeout=transport_config.tcp_timeout,
                udp_retries=transport_config.udp_retries,
            ),
        )

    async def run(self) -> UpdateOutcome:
        """Send the configured update"""
        if self.config is None:
            self.initialize()

        validate_for_update(self.config)
        update = self.config.update

        self.logger.info(
            "Sending authenticated update",
            server=self.config.server.address,
            zone=update.zone,
            hostname=update.hostname,
            mode=update.mode,
            ip=update.ip,
        )

        outcome = await self.create_client().update(
            update.zone,
            update.hostname,
            self.config.server.address,
            mode=update.mode,
            ip=update.ip,
            ttl=update.ttl,
            require_existing=update.require_existing,
            deadline=self.config.transport.overall_timeout,
        )

        if outcome.ok:
            self.logger.info("DNS update successful", protocol=outcome.protocol)
        elif outcome.status is OutcomeStatus.SERVER_REJECTED:
            self.logger.error(
                "DNS update rejected",
                response_code=outcome.rcode_text,
                protocol=outcome.protocol,
            )
        else:
            self.logger.error(
                "DNS update failed", status=outcome.status.value, detail=outcome.detail
            )
        return outcome


def build_arg_parser() -> argparse.ArgumentParser:
    """Command line interface definition"""
    parser = argparse.ArgumentParser(
        prog="whodis",
        description="Update A/AAAA records with a SIG(0)-signed DNS UPDATE",
    )
    parser.add_argument("--config", "-c", help="Configuration file path (YAML or JSON)")
    parser.add_argument("--zone", "-z", help="Zone to update")
    parser.add_argument("--hostname", "-n", help="Host name whose records are replaced")
    parser.add_argument("--server", "-s", help="Authoritative server, host[:port]")
    parser.add_argument("--ip", help="Publish this address instead of a detected one")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--mode",
        choices=["v4-only", "v6-only", "both"],
        help="Address families to publish (default: both)",
    )
    mode.add_argument(
        "-4", dest="mode", action="store_const", const="v4-only", help="IPv4 only"
    )
    mode.add_argument(
        "-6", dest="mode", action="store_const", const="v6-only", help="IPv6 only"
    )
    parser.add_argument("--ttl", type=int, help="TTL of the published records")
    parser.add_argument(
        "--require-existing",
        action="store_true",
        default=None,
        help="Only update if the host name already exists",
    )
    parser.add_argument("--key-file", "-k", help="PEM encoded RSA private key")
    parser.add_argument("--key-name", help="Owner name of the KEY record (default: zone)")
    parser.add_argument(
        "--timeout", type=float, help="Overall time limit for the update in seconds"
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )
    parser.add_argument(
        "--check-key", action="store_true", help="Validate the key file and exit"
    )
    parser.add_argument(
        "--print-key-record",
        action="store_true",
        help="Print the KEY record to publish in the zone and exit",
    )
    return parser


def cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Configuration overrides from parsed command line arguments"""
    mapping = {
        ("server", "address"): args.server,
        ("update", "zone"): args.zone,
        ("update", "hostname"): args.hostname,
        ("update", "ip"): args.ip,
        ("update", "mode"): args.mode,
        ("update", "ttl"): args.ttl,
        ("update", "require_existing"): args.require_existing,
        ("signing", "key_file"): args.key_file,
        ("signing", "key_name"): args.key_name,
        ("transport", "overall_timeout"): args.timeout,
        ("logging", "level"): args.log_level,
    }

    overrides: Dict[str, Any] = {}
    for (section, key), value in mapping.items():
        if value is not None:
            overrides.setdefault(section, {})[key] = value
    return overrides


async def main(argv: Optional[List[str]] = None) -> int:
    """Main function"""
    args = build_arg_parser().parse_args(argv)
    app = WhodisApp(args.config, cli_overrides(args))

    try:
        app.initialize()
    except (OSError, ValueError, yaml.YAMLError, WhodisError) as e:
        if app.logger:
            log_exception(app.logger, "Failed to initialize", e)
        else:
            print(f"Failed to initialize: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if args.check_key or args.print_key_record:
        if args.print_key_record:
            print(app.signing_key.key_record_text())
        else:
            app.logger.info(
                "Key is valid",
                key_name=app.signing_key.owner_name,
                key_tag=app.signing_key.key_tag,
            )
        return EXIT_OK

    try:
        outcome = await app.run()
    except (ValueError, WhodisError) as e:
        app.logger.error("Update not sent", error=str(e), error_type=type(e).__name__)
        return EXIT_CONFIG_ERROR

    return exit_code_for(outcome)


def run() -> None:
    """Console script entry point"""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
