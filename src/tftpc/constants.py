from __future__ import annotations

TFTP_PORT = 69
MODE_OCTET = "octet"

OPCODE_FORMAT = "!H"
BLOCK_HEADER_FORMAT = "!HH"  # opcode, block (DATA/ACK) or error code (ERROR)

RRQ = 1
WRQ = 2
DATA = 3
ACK = 4
ERROR = 5
OACK = 6

OPT_BLKSIZE = "blksize"
OPT_TSIZE = "tsize"

DEFAULT_BLKSIZE = 512
DEFAULT_TSIZE = 0
MIN_BLKSIZE = 8
MAX_BLKSIZE = 65464

MAX_BLOCK = 0xFFFF
MAX_DATAGRAM = 65535
DEFAULT_TIMEOUT_MS = 0  # block forever

ERR_OPTION_REFUSED = 8

ERROR_CODES = {
    0: "Not defined, see error message",
    1: "File not found",
    2: "Access violation",
    3: "Disk full or allocation exceeded",
    4: "Illegal TFTP operation",
    5: "Unknown transfer ID",
    6: "File already exists",
    7: "No such user",
    8: "Option negotiation refused",
}
