"""Trivial File Transfer Protocol client (RFC 1350, 2347, 2348, 2349).

Layout follows the wire protocol from the bottom up:
- packet framing and option parsing are pure and do no I/O
- one state machine per transfer direction, each owning a single UDP socket
- a coordinator that sends the request and classifies the first reply
"""

from .client import TftpClient, TransferResult
from .errors import DecodeError, OptionError, RemoteError, TftpError
from .options import OptionSet

__all__ = ["DecodeError", "OptionError", "OptionSet", "RemoteError", "TftpClient", "TftpError", "TransferResult"]
