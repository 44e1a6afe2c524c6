from __future__ import annotations

import argparse
import json
import logging
import os

from .client import TftpClient, TransferResult
from .constants import DEFAULT_TIMEOUT_MS, TFTP_PORT
from .errors import TftpError
from .options import OptionSet

logger = logging.getLogger(__name__)


def _report(role: str, result: TransferResult, as_json: bool) -> None:
    payload = {
        "role": role,
        "state": result.state.value,
        "bytes": result.metrics.bytes_transferred,
        "seconds": result.metrics.duration_s,
        "mbps": result.metrics.throughput_mbps,
        "blksize": result.context.blksize,
        "tsize": result.context.tsize,
    }
    print(json.dumps(payload, indent=2) if as_json else payload)


def _client(args: argparse.Namespace) -> TftpClient:
    return TftpClient(args.host, port=args.port, timeout_ms=args.timeout_ms)


def cmd_get(args: argparse.Namespace) -> int:
    options = OptionSet.for_read(blksize=args.blksize, tsize=args.tsize)
    out_path = args.out or os.path.basename(args.remote)

    try:
        with open(out_path, "wb") as out:
            result = _client(args).download(args.remote, out, options)
    except BaseException:
        if os.path.exists(out_path):
            os.unlink(out_path)
        raise

    _report("download", result, args.json)
    return 0


def cmd_put(args: argparse.Namespace) -> int:
    size = os.path.getsize(args.file) if args.tsize else None
    options = OptionSet.for_write(blksize=args.blksize, size=size)
    remote = args.remote or os.path.basename(args.file)

    with open(args.file, "rb") as f:
        result = _client(args).upload(remote, f, options)

    _report("upload", result, args.json)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="tftpc", description="TFTP client (RFC 1350) with blksize/tsize options.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("host")
        x.add_argument("--port", type=int, default=TFTP_PORT)
        x.add_argument("--timeout-ms", type=int, default=DEFAULT_TIMEOUT_MS, help="0 waits forever")
        x.add_argument("--blksize", type=int, default=None, help="request a block size (8-65464)")
        x.add_argument("--tsize", action="store_true", help="negotiate the transfer size option")
        x.add_argument("--json", action="store_true")

    get = sub.add_parser("get", help="download a file from the server")
    add_common(get)
    get.add_argument("remote")
    get.add_argument("--out", default=None, help="local file name (defaults to the remote name)")
    get.set_defaults(func=cmd_get)

    put = sub.add_parser("put", help="upload a file to the server")
    add_common(put)
    put.add_argument("file")
    put.add_argument("--remote", default=None, help="name to use on the server")
    put.set_defaults(func=cmd_put)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")

    try:
        return int(args.func(args))
    except (TftpError, OSError) as e:
        logger.error("%s failed: %s", args.cmd, e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
