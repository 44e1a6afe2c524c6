from __future__ import annotations

import enum

from .constants import ERROR_CODES


class TftpError(Exception):
    pass


class DecodeFailure(enum.Enum):
    UNKNOWN_OPCODE = "unknown opcode"
    TRUNCATED = "truncated datagram"
    MALFORMED = "malformed field"


class DecodeError(TftpError, ValueError):
    def __init__(self, reason: DecodeFailure, detail: str = "", opcode: int | None = None):
        self.reason = reason
        self.detail = detail
        self.opcode = opcode
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


class OptionError(TftpError, ValueError):
    pass


class RemoteError(TftpError):
    """ERROR packet received from the peer; the transfer is over."""

    def __init__(self, code: int, message: str = ""):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {self.description}: {message}" if message else f"[{code}] {self.description}")

    @property
    def description(self) -> str:
        return ERROR_CODES.get(self.code, "Unknown error")


class UnexpectedPacketError(TftpError):
    pass


class TransferTimeoutError(TftpError):
    pass
