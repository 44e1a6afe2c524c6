from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

from .constants import DEFAULT_BLKSIZE, DEFAULT_TSIZE


class ByteSink(Protocol):
    def write(self, data: bytes) -> object: ...


class ByteSource(Protocol):
    def read(self, size: int) -> bytes: ...


class TransferState(enum.Enum):
    AWAITING_DATA = "awaiting-data"
    SENDING_DATA = "sending-data"
    COMPLETE = "complete"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class TransferContext:
    """Per-transfer parameters fixed once the first reply is classified.

    The byte sink or source is not part of it; each transfer takes that
    collaborator as its own argument.
    """

    server_host: str
    data_port: Optional[int] = None
    blksize: int = DEFAULT_BLKSIZE
    tsize: int = DEFAULT_TSIZE


@dataclass(slots=True)
class Metrics:
    packets_sent: int = 0
    bytes_transferred: int = 0
    mismatches: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def throughput_mbps(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return (self.bytes_transferred * 8 / 1_000_000) / self.duration_s

    def finish(self) -> None:
        self.end_ts = time.monotonic()
