from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from .constants import (
    DEFAULT_BLKSIZE,
    DEFAULT_TSIZE,
    MAX_BLKSIZE,
    MIN_BLKSIZE,
    OPT_BLKSIZE,
    OPT_TSIZE,
)
from .errors import OptionError

logger = logging.getLogger(__name__)


def validate_blksize(value: int) -> int:
    if not MIN_BLKSIZE <= value <= MAX_BLKSIZE:
        raise OptionError(f"blksize must be in [{MIN_BLKSIZE}, {MAX_BLKSIZE}], got {value}")
    return value


def _parse_int(name: str, raw: str) -> int:
    if not raw.isdigit():
        raise OptionError(f"option {name!r} has non-numeric value {raw!r}")
    return int(raw)


@dataclass(frozen=True, slots=True)
class OptionSet:
    """Options carried by a request or an OACK (RFC 2347).

    Only blksize (RFC 2348) and tsize (RFC 2349) have an effect; any other
    pair is kept verbatim in ``extra`` so it survives a decode/encode cycle.
    """

    blksize: Optional[int] = None
    tsize: Optional[int] = None
    extra: Tuple[Tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if self.blksize is not None:
            validate_blksize(self.blksize)
        if self.tsize is not None and self.tsize < 0:
            raise OptionError(f"tsize must be >= 0, got {self.tsize}")

    @classmethod
    def for_read(cls, blksize: Optional[int] = None, tsize: bool = False) -> "OptionSet":
        # the client cannot know the size of a file it is about to download
        return cls(blksize=blksize, tsize=DEFAULT_TSIZE if tsize else None)

    @classmethod
    def for_write(cls, blksize: Optional[int] = None, size: Optional[int] = None) -> "OptionSet":
        return cls(blksize=blksize, tsize=size)

    def __bool__(self) -> bool:
        return self.blksize is not None or self.tsize is not None or bool(self.extra)

    def pairs(self) -> Iterator[Tuple[str, str]]:
        if self.blksize is not None:
            yield OPT_BLKSIZE, str(self.blksize)
        if self.tsize is not None:
            yield OPT_TSIZE, str(self.tsize)
        yield from self.extra

    def to_bytes(self) -> bytes:
        out = bytearray()
        for name, value in self.pairs():
            out += name.encode("ascii") + b"\x00" + value.encode("ascii") + b"\x00"
        return bytes(out)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "OptionSet":
        """Parse a run of ``name NUL value NUL`` pairs.

        A pair whose value is empty is skipped. A missing final NUL is
        tolerated; the field simply ends with the datagram.
        """
        blksize: Optional[int] = None
        tsize: Optional[int] = None
        extra: list[Tuple[str, str]] = []

        fields = raw.split(b"\x00")
        if raw.endswith(b"\x00"):
            fields.pop()
        try:
            text = [f.decode("ascii") for f in fields]
        except UnicodeDecodeError as e:
            raise OptionError("option field is not ASCII") from e

        for i in range(0, len(text), 2):
            name = text[i]
            value = text[i + 1] if i + 1 < len(text) else ""
            if not name or not value:
                continue
            key = name.lower()
            if key == OPT_BLKSIZE:
                blksize = _parse_int(name, value)
            elif key == OPT_TSIZE:
                tsize = _parse_int(name, value)
            else:
                extra.append((name, value))

        return cls(blksize=blksize, tsize=tsize, extra=tuple(extra))


def negotiate(requested: OptionSet, granted: Optional[OptionSet]) -> Tuple[int, int]:
    """Return the active ``(blksize, tsize)`` for a transfer.

    ``granted`` is the OACK option set, or None when the server answered
    without one, in which case nothing was granted and the defaults apply.
    Options absent from the OACK fall back to their defaults as well.
    """
    if granted is None:
        if requested:
            logger.info("server ignored options %s; using defaults", dict(requested.pairs()))
        return DEFAULT_BLKSIZE, DEFAULT_TSIZE

    for name, _ in granted.extra:
        logger.warning("server acknowledged unknown option %r; ignoring", name)
    if granted.blksize is not None and requested.blksize is None:
        logger.warning("server granted blksize=%d that was never requested", granted.blksize)
    elif granted.blksize is not None and granted.blksize > requested.blksize:
        logger.warning("server granted blksize=%d above the requested %d", granted.blksize, requested.blksize)

    blksize = granted.blksize if granted.blksize is not None else DEFAULT_BLKSIZE
    tsize = granted.tsize if granted.tsize is not None else DEFAULT_TSIZE
    return blksize, tsize
