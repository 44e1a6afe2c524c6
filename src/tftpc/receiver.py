from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .context import ByteSink, Metrics, TransferContext, TransferState
from .errors import DecodeError, RemoteError, TransferTimeoutError
from .net import Address, UdpEndpoint
from .packet import Ack, Data, Error, decode, next_block

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReadTransfer:
    """Download state machine: AWAITING_DATA until a short DATA block is ACKed.

    Every DATA packet is acknowledged with the block number it carries. Its
    payload is written only when that block is the one expected next; any
    other block is reported and dropped without ending the transfer.

    The server's data port comes from the context, or from the first DATA
    packet when the context has none. ACKs always go there and datagrams
    from any other port are ignored.
    """

    udp: UdpEndpoint
    context: TransferContext
    out: ByteSink
    first: Optional[Tuple[bytes, Address]] = None
    state: TransferState = TransferState.AWAITING_DATA
    metrics: Metrics = field(default_factory=Metrics)
    data_port: Optional[int] = None

    def __post_init__(self) -> None:
        self.data_port = self.context.data_port

    def _receive(self) -> Tuple[bytes, Address]:
        if self.first is not None:
            datagram, self.first = self.first, None
            return datagram
        try:
            return self.udp.recvfrom()
        except TimeoutError as e:
            raise TransferTimeoutError("timed out waiting for DATA") from e

    def run(self) -> Metrics:
        try:
            self._loop()
        except BaseException:
            self.state = TransferState.ABORTED
            raise
        finally:
            self.metrics.finish()
        self.state = TransferState.COMPLETE
        logger.info("download complete; %d bytes", self.metrics.bytes_transferred)
        return self.metrics

    def _loop(self) -> None:
        blksize = self.context.blksize
        tsize = self.context.tsize
        expected = 1

        while True:
            raw, addr = self._receive()
            if self.data_port is not None and addr[1] != self.data_port:
                logger.warning("ignoring datagram from foreign port %d, transfer is on %d", addr[1], self.data_port)
                continue
            try:
                packet = decode(raw)
            except DecodeError as e:
                logger.debug("ignoring datagram from %s:%d: %s", addr[0], addr[1], e)
                continue

            if isinstance(packet, Error):
                logger.error("ERROR packet received: code=%d message=%r", packet.code, packet.message)
                raise RemoteError(packet.code, packet.message)

            if not isinstance(packet, Data):
                logger.debug("ignoring %s while awaiting DATA", packet.kind.name)
                continue

            if self.data_port is None:
                logger.debug("data phase on port %d", addr[1])
                self.data_port = addr[1]

            self.udp.sendto(Ack(packet.block).to_bytes(), (self.context.server_host, self.data_port))
            self.metrics.packets_sent += 1

            if packet.block == expected:
                self.out.write(packet.payload)
                expected = next_block(expected)
                self.metrics.bytes_transferred += len(packet.payload)
                if tsize > 0:
                    logger.debug("progress: %d/%d bytes received", self.metrics.bytes_transferred, tsize)
            else:
                self.metrics.mismatches += 1
                logger.warning("received unexpected block %d, expected %d", packet.block, expected)

            if len(packet.payload) < blksize:
                return
