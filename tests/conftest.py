from __future__ import annotations

from typing import List, Tuple

import pytest

from tftpc.packet import Packet, decode

SERVER = ("127.0.0.1", 69)
TID = ("127.0.0.1", 40001)


class ScriptedEndpoint:
    """Stands in for UdpEndpoint: replays queued datagrams, records sends.

    An empty inbox raises TimeoutError so a broken state machine fails the
    test instead of blocking it.
    """

    def __init__(self, inbox: List[Tuple[bytes, Tuple[str, int]]] | None = None):
        self.inbox = list(inbox or [])
        self.sent: List[Tuple[bytes, Tuple[str, int]]] = []
        self.closed = False

    def queue(self, packet: Packet, addr: Tuple[str, int] = TID) -> "ScriptedEndpoint":
        self.inbox.append((packet.to_bytes(), addr))
        return self

    def queue_raw(self, raw: bytes, addr: Tuple[str, int] = TID) -> "ScriptedEndpoint":
        self.inbox.append((raw, addr))
        return self

    def sendto(self, data: bytes, addr: Tuple[str, int]) -> None:
        self.sent.append((data, addr))

    def recvfrom(self, bufsize: int = 65535) -> Tuple[bytes, Tuple[str, int]]:
        if not self.inbox:
            raise TimeoutError("inbox empty")
        return self.inbox.pop(0)

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "ScriptedEndpoint":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def sent_packets(self) -> List[Packet]:
        return [decode(raw) for raw, _ in self.sent]


@pytest.fixture
def udp() -> ScriptedEndpoint:
    return ScriptedEndpoint()
