"""
Update Transport Driver

Delivers a signed UPDATE to the authoritative server and maps the reply:
- UDP first, with a single retry on timeout
- TCP fallback on truncation, oversized messages, UDP errors or timeouts
- Length-prefixed TCP exchange (RFC 1035 section 4.2.2)
- Response code interpretation into an UpdateOutcome
"""

import asyncio
import contextlib
import ipaddress
import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import dns.rcode

from .message import DNSHeader, DNSResponseCode
from .signer import SignedMessage

logger = logging.getLogger(__name__)

DNS_PORT = 53
UDP_MAX_SIZE = 512
DEFAULT_UDP_TIMEOUT = 3.0
DEFAULT_TCP_TIMEOUT = 10.0
DEFAULT_UDP_RETRIES = 1


class OutcomeStatus(str, Enum):
    """Terminal result of one update exchange"""

    SUCCESS = "success"
    SERVER_REJECTED = "server_rejected"
    TIMEOUT = "timeout"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class UpdateOutcome:
    """Result of sending an update"""

    status: OutcomeStatus
    rcode: Optional[int] = None
    protocol: Optional[str] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    @property
    def rcode_text(self) -> Optional[str]:
        if self.rcode is None:
            return None
        return dns.rcode.to_text(self.rcode)

    @classmethod
    def from_rcode(cls, rcode: int, protocol: str) -> "UpdateOutcome":
        if rcode == DNSResponseCode.NOERROR:
            return cls(OutcomeStatus.SUCCESS, rcode=rcode, protocol=protocol)
        return cls(
            OutcomeStatus.SERVER_REJECTED,
            rcode=rcode,
            protocol=protocol,
            detail=f"Server answered {dns.rcode.to_text(rcode)}",
        )

    @classmethod
    def timeout(cls, detail: str, protocol: Optional[str] = None) -> "UpdateOutcome":
        return cls(OutcomeStatus.TIMEOUT, protocol=protocol, detail=detail)

    @classmethod
    def transport_error(
        cls, detail: str, protocol: Optional[str] = None
    ) -> "UpdateOutcome":
        return cls(OutcomeStatus.TRANSPORT_ERROR, protocol=protocol, detail=detail)


@dataclass(frozen=True)
class ServerAddress:
    """Host and port of the authoritative server"""

    host: str
    port: int = DNS_PORT

    @classmethod
    def parse(cls, value: Union[str, "ServerAddress"]) -> "ServerAddress":
        """Parse "host", "host:port", "[v6]:port" or a bare IPv6 address"""
        if isinstance(value, ServerAddress):
            return value

        text = str(value).strip()
        if not text:
            raise ValueError("Server address must not be empty")

        host, port = text, DNS_PORT
        if text.startswith("["):
            host, sep, rest = text[1:].partition("]")
            if not sep:
                raise ValueError(f"Invalid server address: {value}")
            if rest:
                if not rest.startswith(":"):
                    raise ValueError(f"Invalid server address: {value}")
                port = cls._parse_port(rest[1:], value)
        elif text.count(":") == 1:
            host, port_text = text.split(":")
            port = cls._parse_port(port_text, value)
        elif ":" in text:
            # Bare IPv6 address
            ipaddress.IPv6Address(text)

        if not host:
            raise ValueError(f"Invalid server address: {value}")
        return cls(host=host, port=port)

    @staticmethod
    def _parse_port(text: str, value: str) -> int:
        try:
            port = int(text)
        except ValueError:
            raise ValueError(f"Invalid port in server address: {value}")
        if not 1 <= port <= 65535:
            raise ValueError(f"Invalid port in server address: {value}")
        return port

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


class _UpdateResponseProtocol(asyncio.DatagramProtocol):
    """Waits for the datagram answering one transaction id"""

    def __init__(self, transaction_id: int, future: asyncio.Future):
        self.transaction_id = transaction_id
        self.future = future

    def datagram_received(self, data, addr):
        if self.future.done():
            return
        try:
            header = DNSHeader.from_bytes(data)
        except ValueError:
            logger.debug(f"Ignoring malformed datagram from {addr}")
            return
        if not header.qr or header.transaction_id != self.transaction_id:
            logger.debug(
                f"Ignoring datagram from {addr} with id {header.transaction_id}"
            )
            return
        self.future.set_result(data)

    def error_received(self, exc):
        if not self.future.done():
            self.future.set_exception(exc)

    def connection_lost(self, exc):
        if exc is not None and not self.future.done():
            self.future.set_exception(exc)


class _TruncatedResponse(Exception):
    """UDP answer must be fetched again over TCP"""


class TransportDriver:
    """UDP-then-TCP delivery of signed updates"""

    def __init__(
        self,
        udp_timeout: float = DEFAULT_UDP_TIMEOUT,
        tcp_timeout: float = DEFAULT_TCP_TIMEOUT,
        udp_retries: int = DEFAULT_UDP_RETRIES,
        udp_max_size: int = UDP_MAX_SIZE,
    ):
        self.udp_timeout = udp_timeout
        self.tcp_timeout = tcp_timeout
        self.udp_retries = udp_retries
        self.udp_max_size = udp_max_size

    async def send(
        self,
        signed_message: SignedMessage,
        server: Union[str, ServerAddress],
        deadline: Optional[float] = None,
    ) -> UpdateOutcome:
        """Send a signed update and interpret the reply.

        Args:
            signed_message: Sealed update message
            server: Authoritative server address
            deadline: Overall time limit in seconds for the whole exchange

        Returns:
            UpdateOutcome describing the server's answer or the failure
        """
        server = ServerAddress.parse(server)
        exchange = self._exchange(
            signed_message.to_bytes(), signed_message.transaction_id, server
        )

        if deadline is None:
            return await exchange

        try:
            return await asyncio.wait_for(exchange, timeout=deadline)
        except asyncio.TimeoutError:
            logger.warning(f"Update to {server} aborted after {deadline}s deadline")
            return UpdateOutcome.timeout(f"Deadline of {deadline}s exceeded")

    async def _exchange(
        self, wire: bytes, transaction_id: int, server: ServerAddress
    ) -> UpdateOutcome:
        if len(wire) > self.udp_max_size:
            logger.debug(
                f"Update is {len(wire)} bytes, above UDP limit {self.udp_max_size}; using TCP"
            )
            return await self._send_tcp(wire, transaction_id, server)

        for attempt in range(1 + self.udp_retries):
            try:
                rcode = await self._udp_exchange(wire, transaction_id, server)
            except asyncio.TimeoutError:
                logger.info(
                    f"No UDP response from {server} within {self.udp_timeout}s "
                    f"(attempt {attempt + 1})"
                )
                continue
            except _TruncatedResponse as e:
                logger.info(f"{e}; retrying over TCP")
                break
            except OSError as e:
                logger.info(f"UDP exchange with {server} failed: {e}; trying TCP")
                break
            return UpdateOutcome.from_rcode(rcode, "UDP")

        return await self._send_tcp(wire, transaction_id, server)

    async def _udp_exchange(
        self, wire: bytes, transaction_id: int, server: ServerAddress
    ) -> int:
        """One UDP request/response, returning the response code"""
        loop = asyncio.get_running_loop()
        response_future = loop.create_future()

        transport, _ = await loop.create_datagram_endpoint(
            lambda: _UpdateResponseProtocol(transaction_id, response_future),
            remote_addr=(server.host, server.port),
        )
        try:
            transport.sendto(wire)
            logger.debug(f"Sent {len(wire)} byte update {transaction_id} to {server} over UDP")
            data = await asyncio.wait_for(response_future, timeout=self.udp_timeout)
        finally:
            transport.close()

        header = DNSHeader.from_bytes(data)
        if header.tc:
            raise _TruncatedResponse(f"Truncated UDP response from {server}")
        if len(data) > self.udp_max_size:
            raise _TruncatedResponse(
                f"UDP response from {server} exceeds {self.udp_max_size} bytes"
            )
        return header.rcode

    async def _send_tcp(
        self, wire: bytes, transaction_id: int, server: ServerAddress
    ) -> UpdateOutcome:
        try:
            data = await asyncio.wait_for(
                self._tcp_exchange(wire, server), timeout=self.tcp_timeout
            )
        except asyncio.TimeoutError:
            return UpdateOutcome.timeout(
                f"No TCP response from {server} within {self.tcp_timeout}s", "TCP"
            )
        except asyncio.IncompleteReadError as e:
            return UpdateOutcome.transport_error(
                f"Connection to {server} closed after {len(e.partial)} bytes", "TCP"
            )
        except OSError as e:
            return UpdateOutcome.transport_error(
                f"TCP connection to {server} failed: {e}", "TCP"
            )

        try:
            header = DNSHeader.from_bytes(data)
        except ValueError as e:
            return UpdateOutcome.transport_error(f"Malformed TCP response: {e}", "TCP")

        if not header.qr or header.transaction_id != transaction_id:
            return UpdateOutcome.transport_error(
                f"TCP response id {header.transaction_id} does not match "
                f"request id {transaction_id}",
                "TCP",
            )
        return UpdateOutcome.from_rcode(header.rcode, "TCP")

    async def _tcp_exchange(self, wire: bytes, server: ServerAddress) -> bytes:
        """Length-prefixed request/response over a fresh TCP connection"""
        reader, writer = await asyncio.open_connection(server.host, server.port)
        try:
            writer.write(struct.pack("!H", len(wire)) + wire)
            await writer.drain()
            logger.debug(f"Sent {len(wire)} byte update to {server} over TCP")

            length = struct.unpack("!H", await reader.readexactly(2))[0]
            return await reader.readexactly(length)
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()
