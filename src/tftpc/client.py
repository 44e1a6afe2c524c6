from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .constants import DEFAULT_TIMEOUT_MS, ERR_OPTION_REFUSED, MODE_OCTET, TFTP_PORT
from .context import ByteSink, ByteSource, Metrics, TransferContext, TransferState
from .errors import DecodeError, DecodeFailure, OptionError, RemoteError, TransferTimeoutError, UnexpectedPacketError
from .net import Address, UdpEndpoint
from .options import OptionSet, negotiate
from .packet import Ack, Data, Error, OptionAck, Packet, PacketKind, ReadRequest, WriteRequest, decode
from .receiver import ReadTransfer
from .sender import WriteTransfer

logger = logging.getLogger(__name__)

EndpointFactory = Callable[[int], UdpEndpoint]


@dataclass(frozen=True, slots=True)
class TransferResult:
    context: TransferContext
    state: TransferState
    metrics: Metrics


class TftpClient:
    """Issues one RRQ/WRQ per call and drives the resulting transfer.

    Every call opens its own endpoint and closes it when the transfer ends,
    so a client instance never shares a socket between transfers.
    """

    def __init__(
        self,
        host: str,
        port: int = TFTP_PORT,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        endpoint_factory: EndpointFactory = UdpEndpoint.sending,
    ):
        self.host = host
        self.port = port
        self.timeout_ms = timeout_ms
        self.endpoint_factory = endpoint_factory

    def download(self, filename: str, out: ByteSink, options: Optional[OptionSet] = None) -> TransferResult:
        options = options or OptionSet()
        request = ReadRequest(filename, MODE_OCTET, options)

        with self.endpoint_factory(self.timeout_ms) as udp:
            logger.info("RRQ %r to %s:%d options=%s", filename, self.host, self.port, dict(options.pairs()))
            udp.sendto(request.to_bytes(), (self.host, self.port))
            packet, raw, addr = self._first_reply(udp)

            first: Optional[Tuple[bytes, Address]] = None
            if isinstance(packet, OptionAck):
                logger.info("OACK received with options %s", dict(packet.options.pairs()))
                blksize, tsize = negotiate(options, packet.options)
                udp.sendto(Ack(0).to_bytes(), addr)
            elif isinstance(packet, Data):
                blksize, tsize = negotiate(options, None)
                first = (raw, addr)
            else:
                raise UnexpectedPacketError(f"{packet.kind.name} in reply to RRQ")

            context = TransferContext(addr[0], addr[1], blksize, tsize)
            transfer = ReadTransfer(udp, context, out, first=first)
            metrics = transfer.run()

        return TransferResult(context, transfer.state, metrics)

    def upload(self, filename: str, source: ByteSource, options: Optional[OptionSet] = None) -> TransferResult:
        options = options or OptionSet()
        request = WriteRequest(filename, MODE_OCTET, options)

        with self.endpoint_factory(self.timeout_ms) as udp:
            logger.info("WRQ %r to %s:%d options=%s", filename, self.host, self.port, dict(options.pairs()))
            udp.sendto(request.to_bytes(), (self.host, self.port))
            packet, _, addr = self._first_reply(udp)

            if isinstance(packet, OptionAck):
                logger.info("OACK received with options %s", dict(packet.options.pairs()))
                blksize, tsize = negotiate(options, packet.options)
            elif isinstance(packet, Ack) and packet.block == 0:
                blksize, tsize = negotiate(options, None)
            elif isinstance(packet, Ack):
                raise UnexpectedPacketError(f"ACK {packet.block} in reply to WRQ, expected ACK 0")
            else:
                raise UnexpectedPacketError(f"{packet.kind.name} in reply to WRQ")

            context = TransferContext(addr[0], addr[1], blksize, tsize)
            transfer = WriteTransfer(udp, context, source)
            metrics = transfer.run()

        return TransferResult(context, transfer.state, metrics)

    def _first_reply(self, udp: UdpEndpoint) -> Tuple[Packet, bytes, Address]:
        while True:
            try:
                raw, addr = udp.recvfrom()
            except TimeoutError as e:
                raise TransferTimeoutError("timed out waiting for the server's reply") from e

            try:
                packet = decode(raw)
            except DecodeError as e:
                if e.opcode == PacketKind.OACK and e.reason is DecodeFailure.MALFORMED:
                    # RFC 2347: refuse the OACK and terminate
                    logger.error("unacceptable OACK from %s:%d: %s", addr[0], addr[1], e.detail)
                    udp.sendto(Error(ERR_OPTION_REFUSED, e.detail).to_bytes(), addr)
                    raise OptionError(f"server granted an invalid option: {e.detail}") from e
                logger.debug("ignoring datagram from %s:%d: %s", addr[0], addr[1], e)
                continue

            if isinstance(packet, Error):
                logger.error("ERROR packet received: code=%d message=%r", packet.code, packet.message)
                raise RemoteError(packet.code, packet.message)
            return packet, raw, addr

