from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Union

from .constants import ACK, BLOCK_HEADER_FORMAT, DATA, ERROR, MAX_BLOCK, MODE_OCTET, OACK, OPCODE_FORMAT, RRQ, WRQ
from .errors import DecodeError, DecodeFailure, OptionError
from .options import OptionSet

OPCODE_LEN = struct.calcsize(OPCODE_FORMAT)
HEADER_LEN = struct.calcsize(BLOCK_HEADER_FORMAT)


class PacketKind(enum.IntEnum):
    RRQ = RRQ
    WRQ = WRQ
    DATA = DATA
    ACK = ACK
    ERROR = ERROR
    OACK = OACK


def next_block(block: int) -> int:
    return (block + 1) & MAX_BLOCK


def _ascii(text: str, what: str) -> bytes:
    try:
        raw = text.encode("ascii")
    except UnicodeEncodeError as e:
        raise ValueError(f"{what} must be ASCII: {text!r}") from e
    if b"\x00" in raw:
        raise ValueError(f"{what} must not contain NUL: {text!r}")
    return raw


def _request_bytes(kind: PacketKind, filename: str, mode: str, options: OptionSet) -> bytes:
    return (
        struct.pack(OPCODE_FORMAT, int(kind))
        + _ascii(filename, "filename")
        + b"\x00"
        + _ascii(mode, "mode")
        + b"\x00"
        + options.to_bytes()
    )


def _check_u16(value: int, what: str = "block number") -> None:
    if not 0 <= value <= MAX_BLOCK:
        raise ValueError(f"{what} out of range: {value}")


@dataclass(frozen=True, slots=True)
class ReadRequest:
    kind: ClassVar[PacketKind] = PacketKind.RRQ

    filename: str
    mode: str = MODE_OCTET
    options: OptionSet = field(default_factory=OptionSet)

    def to_bytes(self) -> bytes:
        return _request_bytes(self.kind, self.filename, self.mode, self.options)


@dataclass(frozen=True, slots=True)
class WriteRequest:
    kind: ClassVar[PacketKind] = PacketKind.WRQ

    filename: str
    mode: str = MODE_OCTET
    options: OptionSet = field(default_factory=OptionSet)

    def to_bytes(self) -> bytes:
        return _request_bytes(self.kind, self.filename, self.mode, self.options)


@dataclass(frozen=True, slots=True)
class Data:
    kind: ClassVar[PacketKind] = PacketKind.DATA

    block: int
    payload: bytes = b""

    def __post_init__(self) -> None:
        _check_u16(self.block)

    def to_bytes(self) -> bytes:
        return struct.pack(BLOCK_HEADER_FORMAT, int(self.kind), self.block) + self.payload


@dataclass(frozen=True, slots=True)
class Ack:
    kind: ClassVar[PacketKind] = PacketKind.ACK

    block: int

    def __post_init__(self) -> None:
        _check_u16(self.block)

    def to_bytes(self) -> bytes:
        return struct.pack(BLOCK_HEADER_FORMAT, int(self.kind), self.block)


@dataclass(frozen=True, slots=True)
class Error:
    kind: ClassVar[PacketKind] = PacketKind.ERROR

    code: int
    message: str = ""

    def __post_init__(self) -> None:
        _check_u16(self.code, "error code")

    def to_bytes(self) -> bytes:
        return struct.pack(BLOCK_HEADER_FORMAT, int(self.kind), self.code) + _ascii(self.message, "message") + b"\x00"


@dataclass(frozen=True, slots=True)
class OptionAck:
    kind: ClassVar[PacketKind] = PacketKind.OACK

    options: OptionSet = field(default_factory=OptionSet)

    def to_bytes(self) -> bytes:
        return struct.pack(OPCODE_FORMAT, int(self.kind)) + self.options.to_bytes()


Packet = Union[ReadRequest, WriteRequest, Data, Ack, Error, OptionAck]


def encode(packet: Packet) -> bytes:
    return packet.to_bytes()


def _options(raw: bytes) -> OptionSet:
    try:
        return OptionSet.from_bytes(raw)
    except OptionError as e:
        raise DecodeError(DecodeFailure.MALFORMED, str(e)) from e


def _decode_request(raw: bytes) -> tuple[str, str, OptionSet]:
    parts = raw[OPCODE_LEN:].split(b"\x00", 2)
    if len(parts) < 3:
        raise DecodeError(DecodeFailure.MALFORMED, "request without NUL-terminated filename and mode")
    filename, mode, rest = parts
    try:
        return filename.decode("ascii"), mode.decode("ascii"), _options(rest)
    except UnicodeDecodeError as e:
        raise DecodeError(DecodeFailure.MALFORMED, "request field is not ASCII") from e


def _decode_rrq(raw: bytes) -> ReadRequest:
    filename, mode, options = _decode_request(raw)
    return ReadRequest(filename, mode, options)


def _decode_wrq(raw: bytes) -> WriteRequest:
    filename, mode, options = _decode_request(raw)
    return WriteRequest(filename, mode, options)


def _decode_data(raw: bytes) -> Data:
    if len(raw) < HEADER_LEN:
        raise DecodeError(DecodeFailure.TRUNCATED, f"DATA of {len(raw)} bytes")
    _, block = struct.unpack_from(BLOCK_HEADER_FORMAT, raw)
    return Data(block, bytes(raw[HEADER_LEN:]))


def _decode_ack(raw: bytes) -> Ack:
    if len(raw) < HEADER_LEN:
        raise DecodeError(DecodeFailure.TRUNCATED, f"ACK of {len(raw)} bytes")
    _, block = struct.unpack_from(BLOCK_HEADER_FORMAT, raw)
    return Ack(block)


def _decode_error(raw: bytes) -> Error:
    if len(raw) < HEADER_LEN:
        raise DecodeError(DecodeFailure.TRUNCATED, f"ERROR of {len(raw)} bytes")
    _, code = struct.unpack_from(BLOCK_HEADER_FORMAT, raw)
    # some servers omit the terminating NUL
    message = raw[HEADER_LEN:].split(b"\x00", 1)[0]
    return Error(code, message.decode("ascii", errors="replace"))


def _decode_oack(raw: bytes) -> OptionAck:
    return OptionAck(_options(raw[OPCODE_LEN:]))


_DECODERS: dict[int, Callable[[bytes], Packet]] = {
    PacketKind.RRQ: _decode_rrq,
    PacketKind.WRQ: _decode_wrq,
    PacketKind.DATA: _decode_data,
    PacketKind.ACK: _decode_ack,
    PacketKind.ERROR: _decode_error,
    PacketKind.OACK: _decode_oack,
}


def decode(raw: bytes) -> Packet:
    if len(raw) < OPCODE_LEN:
        raise DecodeError(DecodeFailure.TRUNCATED, f"datagram of {len(raw)} bytes")
    (opcode,) = struct.unpack_from(OPCODE_FORMAT, raw)
    decoder = _DECODERS.get(opcode)
    if decoder is None:
        raise DecodeError(DecodeFailure.UNKNOWN_OPCODE, str(opcode))
    try:
        return decoder(raw)
    except DecodeError as e:
        e.opcode = opcode
        raise
