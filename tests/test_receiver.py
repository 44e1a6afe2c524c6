from __future__ import annotations

import io

import pytest

from tftpc.context import TransferContext, TransferState
from tftpc.errors import RemoteError, TransferTimeoutError
from tftpc.packet import Ack, Data, Error, OptionAck
from tftpc.receiver import ReadTransfer

from conftest import TID


def _transfer(udp, blksize=512, tsize=0, first=None):
    ctx = TransferContext("127.0.0.1", None, blksize, tsize)
    return ReadTransfer(udp, ctx, io.BytesIO(), first=first)


@pytest.mark.parametrize("blksize", [8, 512, 1024])
def test_short_block_completes(udp, blksize):
    udp.queue(Data(1, b"x" * (blksize - 1)))
    t = _transfer(udp, blksize)
    metrics = t.run()
    assert t.state is TransferState.COMPLETE
    assert udp.sent_packets == [Ack(1)]
    assert udp.sent[0][1] == TID
    assert metrics.bytes_transferred == blksize - 1
    assert t.out.getvalue() == b"x" * (blksize - 1)


def test_full_block_keeps_waiting(udp):
    udp.queue(Data(1, b"a" * 8))
    t = _transfer(udp, 8)
    with pytest.raises(TransferTimeoutError):
        t.run()
    assert udp.sent_packets == [Ack(1)]
    assert t.out.getvalue() == b"a" * 8


def test_multi_block_download(udp):
    udp.queue(Data(1, b"a" * 8)).queue(Data(2, b"b" * 8)).queue(Data(3, b""))
    t = _transfer(udp, 8)
    t.run()
    assert t.out.getvalue() == b"a" * 8 + b"b" * 8
    assert udp.sent_packets == [Ack(1), Ack(2), Ack(3)]


def test_unexpected_block_is_acked_but_not_written(udp):
    udp.queue(Data(1, b"a" * 8)).queue(Data(1, b"a" * 8)).queue(Data(2, b"end"))
    t = _transfer(udp, 8)
    metrics = t.run()
    assert udp.sent_packets == [Ack(1), Ack(1), Ack(2)]
    assert t.out.getvalue() == b"a" * 8 + b"end"
    assert metrics.mismatches == 1


def test_error_aborts_without_sending(udp):
    udp.queue(Error(1, "File not found"))
    t = _transfer(udp)
    with pytest.raises(RemoteError) as exc:
        t.run()
    assert exc.value.code == 1
    assert exc.value.message == "File not found"
    assert t.state is TransferState.ABORTED
    assert udp.sent == []


def test_error_mid_transfer(udp):
    udp.queue(Data(1, b"a" * 8)).queue(Error(3, "disk full"))
    t = _transfer(udp, 8)
    with pytest.raises(RemoteError):
        t.run()
    assert t.state is TransferState.ABORTED
    assert udp.sent_packets == [Ack(1)]


def test_other_packets_and_garbage_ignored(udp):
    udp.queue(OptionAck()).queue_raw(b"\x00\x09junk").queue_raw(b"\x00").queue(Data(1, b"done"))
    t = _transfer(udp)
    t.run()
    assert t.state is TransferState.COMPLETE
    assert udp.sent_packets == [Ack(1)]


def test_first_datagram_handed_over(udp):
    t = _transfer(udp, first=(Data(1, b"tiny").to_bytes(), TID))
    t.run()
    assert t.out.getvalue() == b"tiny"
    assert t.data_port == TID[1]


def test_sink_failure_aborts(udp):
    class BrokenSink:
        def write(self, data):
            raise OSError("disk gone")

    udp.queue(Data(1, b"x"))
    t = ReadTransfer(udp, TransferContext("127.0.0.1"), BrokenSink())
    with pytest.raises(OSError):
        t.run()
    assert t.state is TransferState.ABORTED


def test_foreign_port_is_ignored(udp):
    udp.queue(Data(1, b"intruder"), ("127.0.0.1", TID[1] + 1)).queue(Data(1, b"ok"))
    t = ReadTransfer(udp, TransferContext(TID[0], TID[1]), io.BytesIO())
    t.run()
    assert udp.sent == [(Ack(1).to_bytes(), TID)]
    assert t.out.getvalue() == b"ok"


def test_port_learned_from_first_data_is_kept(udp):
    udp.queue(Data(1, b"a" * 8)).queue(Error(0, "stray"), ("127.0.0.1", 9)).queue(Data(2, b""))
    t = _transfer(udp, 8)
    t.run()
    assert t.state is TransferState.COMPLETE
    assert [addr for _, addr in udp.sent] == [TID, TID]


def test_aborted_download_records_duration(udp):
    udp.queue(Error(2, "Access violation"))
    t = _transfer(udp)
    with pytest.raises(RemoteError):
        t.run()
    assert t.metrics.end_ts is not None
