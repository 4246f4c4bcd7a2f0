"""Tests for voxel2dicos/volume.py."""

import struct

import numpy as np
import pytest

from voxel2dicos.errors import ReadError
from voxel2dicos.volume import (
    HEADER_SIZE,
    VolumeHeader,
    compute_statistics,
    parse_header,
    read_volume,
)


def _header(width=2, height=2, depth=1, spacing=(1.0, 1.0, 1.0), origin=(0.0, 0.0, 0.0)):
    return VolumeHeader(
        width=width, height=height, depth=depth,
        spacing_x=spacing[0], spacing_y=spacing[1], spacing_z=spacing[2],
        origin_x=origin[0], origin_y=origin[1], origin_z=origin[2],
    )


def _write_raw(path, header: VolumeHeader, samples, trailing: bytes = b"") -> None:
    """Write a raw volume file: packed header + little-endian uint16 samples."""
    with open(path, "wb") as f:
        f.write(struct.pack(
            "<3I6d",
            header.width, header.height, header.depth,
            header.spacing_x, header.spacing_y, header.spacing_z,
            header.origin_x, header.origin_y, header.origin_z,
        ))
        f.write(np.asarray(samples, dtype="<u2").tobytes())
        f.write(trailing)


class TestHeader:
    def test_header_is_60_bytes(self):
        assert HEADER_SIZE == 60
        assert struct.calcsize("<3I6d") == HEADER_SIZE

    def test_field_offsets(self):
        buf = struct.pack("<3I6d", 3, 4, 5, 0.5, 0.75, 1.25, -10.0, 20.0, 30.5)
        hdr = parse_header(buf)
        assert (hdr.width, hdr.height, hdr.depth) == (3, 4, 5)
        assert hdr.spacing == (0.5, 0.75, 1.25)
        assert hdr.origin == (-10.0, 20.0, 30.5)

    def test_to_bytes_matches_struct_layout(self):
        hdr = _header(width=7, height=8, depth=9, spacing=(0.1, 0.2, 0.3), origin=(1.0, 2.0, 3.0))
        expected = struct.pack("<3I6d", 7, 8, 9, 0.1, 0.2, 0.3, 1.0, 2.0, 3.0)
        assert hdr.to_bytes() == expected

    def test_truncated_header_raises(self):
        with pytest.raises(ReadError, match="Truncated header"):
            parse_header(b"\x00" * 59)

    def test_payload_size(self):
        assert _header(width=4, height=3, depth=2).payload_size == 2 * 4 * 3 * 2


class TestReadVolume:
    def test_reads_samples_frame_major(self, tmp_path):
        path = tmp_path / "voxels.raw"
        hdr = _header(width=3, height=2, depth=2)
        samples = np.arange(12, dtype=np.uint16)
        _write_raw(path, hdr, samples)

        vol = read_volume(str(path))
        assert vol.shape == (2, 2, 3)
        # First contiguous width*height block is the first axial slice
        np.testing.assert_array_equal(vol.get_slice(0), [[0, 1, 2], [3, 4, 5]])
        np.testing.assert_array_equal(vol.get_slice(1), [[6, 7, 8], [9, 10, 11]])
        assert vol.samples[1, 0, 2] == 8

    def test_header_preserved(self, tmp_path):
        path = tmp_path / "voxels.raw"
        hdr = _header(spacing=(0.5, 0.8, 2.0), origin=(-100.0, -50.0, 10.0))
        _write_raw(path, hdr, [0, 100, 200, 300])
        assert read_volume(str(path)).header == hdr

    def test_samples_are_read_only(self, tmp_path):
        path = tmp_path / "voxels.raw"
        _write_raw(path, _header(), [0, 100, 200, 300])
        vol = read_volume(str(path))
        with pytest.raises(ValueError):
            vol.samples[0, 0, 0] = 1

    def test_trailing_bytes_ignored(self, tmp_path):
        path = tmp_path / "voxels.raw"
        _write_raw(path, _header(), [0, 100, 200, 300], trailing=b"\xff" * 10)
        vol = read_volume(str(path))
        assert vol.samples.size == 4
        assert vol.samples.max() == 300

    def test_exact_size_file_is_accepted(self, tmp_path):
        path = tmp_path / "voxels.raw"
        _write_raw(path, _header(width=5, height=4, depth=3), np.ones(60))
        assert path.stat().st_size == 60 + 2 * 5 * 4 * 3
        assert read_volume(str(path)).samples.size == 60

    def test_short_payload_raises(self, tmp_path):
        path = tmp_path / "voxels.raw"
        _write_raw(path, _header(width=2, height=2, depth=2), [1, 2, 3, 4, 5, 6, 7])
        with pytest.raises(ReadError, match="Short read"):
            read_volume(str(path))

    def test_corrupt_header_with_huge_dimensions_raises(self, tmp_path):
        path = tmp_path / "voxels.raw"
        _write_raw(path, _header(width=100000, height=100000, depth=100000), [1, 2, 3, 4])
        with pytest.raises(ReadError, match="Short read"):
            read_volume(str(path))

    def test_truncated_header_file_raises(self, tmp_path):
        path = tmp_path / "voxels.raw"
        path.write_bytes(b"\x02\x00\x00\x00" * 5)
        with pytest.raises(ReadError, match="Truncated header"):
            read_volume(str(path))

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ReadError, match="Cannot read raw volume"):
            read_volume(str(tmp_path / "missing.raw"))

    def test_zero_dimension_raises(self, tmp_path):
        path = tmp_path / "voxels.raw"
        _write_raw(path, _header(width=0), [])
        with pytest.raises(ReadError, match="Empty volume"):
            read_volume(str(path))


class TestStatistics:
    def test_known_values(self):
        stats = compute_statistics(np.array([0, 100, 200, 300], dtype=np.uint16))
        assert stats.total == 4
        assert stats.nonzero == 3
        assert stats.minimum == 100
        assert stats.maximum == 300

    def test_zero_excluded_from_range(self):
        stats = compute_statistics(np.array([[0, 0], [7, 65535]], dtype=np.uint16))
        assert stats.minimum == 7
        assert stats.maximum == 65535

    def test_all_zero_uses_sentinel(self):
        stats = compute_statistics(np.zeros((2, 3, 4), dtype=np.uint16))
        assert stats.nonzero == 0
        assert stats.minimum is None
        assert stats.maximum is None
        assert not stats.has_signal
        assert "range: none" in stats.describe()

    def test_accepts_plain_lists(self):
        stats = compute_statistics([5, 0, 5])
        assert (stats.nonzero, stats.minimum, stats.maximum) == (2, 5, 5)

    def test_nonzero_fraction(self):
        stats = compute_statistics([0, 1, 0, 1])
        assert stats.nonzero_fraction == pytest.approx(0.5)
        assert "50.0%" in stats.describe()
