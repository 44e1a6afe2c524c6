from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .context import ByteSource, Metrics, TransferContext, TransferState
from .errors import DecodeError, RemoteError, TftpError, TransferTimeoutError
from .net import Address, UdpEndpoint
from .packet import Ack, Data, Error, decode, next_block

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WriteTransfer:
    """Upload state machine: SENDING_DATA until a short DATA block is ACKed.

    Runs after the server accepted the WRQ (ACK 0 or OACK), so the context
    already carries the server's data-phase port. Stop-and-wait, no
    retransmission: each DATA is sent once and the matching ACK awaited.
    """

    udp: UdpEndpoint
    context: TransferContext
    source: ByteSource
    state: TransferState = TransferState.SENDING_DATA
    metrics: Metrics = field(default_factory=Metrics)
    peer: Address = ("", 0)

    def __post_init__(self) -> None:
        if self.context.data_port is None:
            raise TftpError("upload started before the server port is known")
        self.peer = (self.context.server_host, self.context.data_port)

    def run(self) -> Metrics:
        try:
            self._loop()
        except BaseException:
            self.state = TransferState.ABORTED
            raise
        finally:
            self.metrics.finish()
        self.state = TransferState.COMPLETE
        logger.info("upload complete; %d bytes", self.metrics.bytes_transferred)
        return self.metrics

    def _read_chunk(self, size: int) -> bytes:
        chunk = b""
        while len(chunk) < size:
            more = self.source.read(size - len(chunk))
            if not more:
                break
            chunk += more
        return chunk

    def _loop(self) -> None:
        blksize = self.context.blksize
        tsize = self.context.tsize
        block = 1

        while True:
            # a source that divides evenly into blksize yields b"" here, which
            # goes out as the empty DATA packet that ends the transfer
            chunk = self._read_chunk(blksize)
            self.udp.sendto(Data(block, chunk).to_bytes(), self.peer)
            self.metrics.packets_sent += 1

            self._await_ack(block)
            self.metrics.bytes_transferred += len(chunk)
            if tsize > 0:
                logger.debug("progress: %d/%d bytes sent", self.metrics.bytes_transferred, tsize)

            if len(chunk) < blksize:
                return
            block = next_block(block)

    def _await_ack(self, block: int) -> None:
        while True:
            try:
                raw, addr = self.udp.recvfrom()
            except TimeoutError as e:
                raise TransferTimeoutError(f"timed out waiting for ACK {block}") from e

            try:
                packet = decode(raw)
            except DecodeError as e:
                logger.debug("ignoring datagram from %s:%d: %s", addr[0], addr[1], e)
                continue

            if isinstance(packet, Error):
                logger.error("ERROR packet received: code=%d message=%r", packet.code, packet.message)
                raise RemoteError(packet.code, packet.message)

            if isinstance(packet, Ack) and packet.block == block:
                # the server may rebind its TID between blocks
                self.peer = (self.peer[0], addr[1])
                return

            if isinstance(packet, Ack):
                self.metrics.mismatches += 1
                logger.debug("ignoring ACK %d while awaiting ACK %d", packet.block, block)
            else:
                logger.debug("ignoring %s while awaiting ACK %d", packet.kind.name, block)
