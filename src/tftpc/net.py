from __future__ import annotations

import logging
import socket
from typing import Tuple

from .constants import DEFAULT_TIMEOUT_MS, MAX_DATAGRAM

logger = logging.getLogger(__name__)

Address = Tuple[str, int]


class UdpEndpoint:
    """One UDP socket, owned by a single transfer for its whole lifetime.

    With ``timeout_ms == 0`` a receive blocks until a datagram arrives.
    A positive value turns that into a deadline, raising ``TimeoutError``.
    """

    def __init__(self, sock: socket.socket):
        self.sock = sock

    @classmethod
    def sending(cls, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        if timeout_ms > 0:
            sock.settimeout(timeout_ms / 1000.0)
        return cls(sock)

    def sendto(self, data: bytes, addr: Address) -> None:
        logger.debug("-> %s:%d %d bytes", addr[0], addr[1], len(data))
        self.sock.sendto(data, addr)

    def recvfrom(self, bufsize: int = MAX_DATAGRAM) -> Tuple[bytes, Address]:
        data, addr = self.sock.recvfrom(bufsize)
        logger.debug("<- %s:%d %d bytes", addr[0], addr[1], len(data))
        return data, addr

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> "UdpEndpoint":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
