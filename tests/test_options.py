from __future__ import annotations

import pytest

from tftpc.errors import OptionError
from tftpc.options import OptionSet, negotiate


@pytest.mark.parametrize("blksize", [0, 7, 65465, 100000])
def test_blksize_out_of_range_rejected(blksize):
    with pytest.raises(OptionError):
        OptionSet(blksize=blksize)


@pytest.mark.parametrize("blksize", [8, 512, 65464])
def test_blksize_bounds_accepted(blksize):
    assert OptionSet(blksize=blksize).blksize == blksize


def test_negative_tsize_rejected():
    with pytest.raises(OptionError):
        OptionSet(tsize=-1)


def test_read_request_submits_zero_tsize():
    assert OptionSet.for_read(tsize=True).tsize == 0
    assert OptionSet.for_read().tsize is None


def test_write_request_carries_file_size():
    opts = OptionSet.for_write(blksize=1024, size=5000)
    assert list(opts.pairs()) == [("blksize", "1024"), ("tsize", "5000")]


def test_empty_set_is_falsy():
    assert not OptionSet()
    assert OptionSet(tsize=0)


def test_oack_overrides_requested():
    requested = OptionSet.for_read(blksize=1024, tsize=True)
    assert negotiate(requested, OptionSet(blksize=1024)) == (1024, 0)
    assert negotiate(requested, OptionSet(blksize=1024, tsize=3000)) == (1024, 3000)


def test_option_absent_from_oack_reverts_to_default():
    requested = OptionSet.for_write(blksize=2048, size=10)
    assert negotiate(requested, OptionSet(tsize=10)) == (512, 10)


def test_no_oack_means_defaults():
    assert negotiate(OptionSet(blksize=4096, tsize=0), None) == (512, 0)


def test_parse_tolerates_missing_final_nul():
    assert OptionSet.from_bytes(b"blksize\x00900") == OptionSet(blksize=900)
