"""
Update Client

The caller-facing operation: resolve addresses, build the UPDATE, sign it
with SIG(0) and deliver it. Construction and signing problems raise; the
network exchange always ends in an UpdateOutcome.
"""

import logging
from typing import Optional, Union

from .addresses import AddressDetector, AddressMode, IPAddress, resolve_addresses
from .builder import DEFAULT_TTL, build_update
from .detection import SystemAddressDetector
from .keys import SigningKey
from .signer import Sig0Signer, SignedMessage
from .transport import ServerAddress, TransportDriver, UpdateOutcome

logger = logging.getLogger(__name__)


class UpdateClient:
    """Dynamic DNS updater authenticated with a SIG(0) key"""

    def __init__(
        self,
        signing_key: SigningKey,
        detector: Optional[AddressDetector] = None,
        signer: Optional[Sig0Signer] = None,
        transport: Optional[TransportDriver] = None,
    ):
        self.signing_key = signing_key
        self.detector = detector or SystemAddressDetector()
        self.signer = signer or Sig0Signer()
        self.transport = transport or TransportDriver()

    def prepare(
        self,
        zone: str,
        hostname: str,
        mode: Union[str, AddressMode] = AddressMode.BOTH,
        ip: Optional[Union[str, IPAddress]] = None,
        ttl: int = DEFAULT_TTL,
        require_existing: bool = False,
    ) -> SignedMessage:
        """Resolve, build and sign without touching the network.

        Raises:
            NoAddressAvailable: If a required address family has no address
            InvalidOwnerName: If hostname is not within zone
            SigningError: If the message cannot be signed
        """
        address_set = resolve_addresses(mode, ip, self.detector)
        logger.info(f"Resolved update target {hostname}: {address_set}")

        message = build_update(
            zone, hostname, address_set, ttl=ttl, require_existing=require_existing
        )
        return self.signer.sign(message, self.signing_key)

    async def update(
        self,
        zone: str,
        hostname: str,
        server: Union[str, ServerAddress],
        mode: Union[str, AddressMode] = AddressMode.BOTH,
        ip: Optional[Union[str, IPAddress]] = None,
        ttl: int = DEFAULT_TTL,
        require_existing: bool = False,
        deadline: Optional[float] = None,
    ) -> UpdateOutcome:
        """Replace the host's A/AAAA records on the server"""
        server = ServerAddress.parse(server)
        signed = self.prepare(zone, hostname, mode, ip, ttl, require_existing)

        logger.info(
            f"Sending update {signed.transaction_id} for {hostname} to {server}"
        )
        outcome = await self.transport.send(signed, server, deadline=deadline)

        if outcome.ok:
            logger.info(f"Update {signed.transaction_id} accepted via {outcome.protocol}")
        else:
            logger.warning(
                f"Update {signed.transaction_id} failed: {outcome.status.value} "
                f"{outcome.detail}"
            )
        return outcome


async def perform_update(
    zone: str,
    hostname: str,
    server: Union[str, ServerAddress],
    mode: Union[str, AddressMode],
    ip: Optional[Union[str, IPAddress]],
    signing_key: SigningKey,
    detector: Optional[AddressDetector] = None,
    ttl: int = DEFAULT_TTL,
    require_existing: bool = False,
    deadline: Optional[float] = None,
) -> UpdateOutcome:
    """Convenience function running one complete update"""
    client = UpdateClient(signing_key, detector=detector)
    return await client.update(
        zone,
        hostname,
        server,
        mode=mode,
        ip=ip,
        ttl=ttl,
        require_existing=require_existing,
        deadline=deadline,
    )
