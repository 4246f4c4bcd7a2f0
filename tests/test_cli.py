"""Tests for voxel2dicos/cli.py."""

import struct

import numpy as np
import pydicom

from voxel2dicos.cli import build_parser, main


def _write_raw(path) -> str:
    with open(path, "wb") as f:
        f.write(struct.pack("<3I6d", 2, 2, 1, 1.0, 1.0, 1.0, 0.0, 0.0, 0.0))
        f.write(np.array([0, 100, 200, 300], dtype="<u2").tobytes())
    return str(path)


class TestParser:
    def test_positional_arguments_optional(self):
        args = build_parser().parse_args([])
        assert args.volume is None
        assert args.output is None

    def test_positional_arguments(self):
        args = build_parser().parse_args(["in.raw", "out"])
        assert (args.volume, args.output) == ("in.raw", "out")


class TestMain:
    def test_success_returns_zero(self, tmp_path, capsys):
        raw = _write_raw(tmp_path / "voxels.raw")
        out = tmp_path / "dicos"

        code = main([raw, str(out), "--config", str(tmp_path / "absent.yaml")])

        assert code == 0
        assert (out / "ct.dcs").exists()
        assert "CONVERSION SUMMARY" in capsys.readouterr().out

    def test_missing_volume_returns_one(self, tmp_path, capsys):
        code = main([str(tmp_path / "missing.raw"), str(tmp_path / "out"),
                     "--config", str(tmp_path / "absent.yaml")])
        assert code == 1
        assert "Cannot read raw volume" in capsys.readouterr().out

    def test_malformed_threats_returns_one(self, tmp_path):
        raw = _write_raw(tmp_path / "voxels.raw")
        (tmp_path / "threats.json").write_text("[[[")
        code = main([raw, str(tmp_path / "out"), "--config", str(tmp_path / "absent.yaml")])
        assert code == 1
        assert (tmp_path / "out" / "ct.dcs").exists()

    def test_window_preset_option(self, tmp_path):
        raw = _write_raw(tmp_path / "voxels.raw")
        out = tmp_path / "dicos"
        main([raw, str(out), "--window-preset", "bone", "--config", str(tmp_path / "absent.yaml")])
        ds = pydicom.dcmread(str(out / "ct.dcs"))
        assert float(ds.WindowCenter) == 400.0
        assert float(ds.WindowWidth) == 1800.0

    def test_explicit_window_option(self, tmp_path):
        raw = _write_raw(tmp_path / "voxels.raw")
        out = tmp_path / "dicos"
        main([raw, str(out), "--window-center", "40", "--window-width", "400",
              "--config", str(tmp_path / "absent.yaml")])
        ds = pydicom.dcmread(str(out / "ct.dcs"))
        assert float(ds.WindowCenter) == 40.0
        assert float(ds.WindowWidth) == 400.0

    def test_malformed_config_returns_one(self, tmp_path, capsys):
        raw = _write_raw(tmp_path / "voxels.raw")
        config = tmp_path / "config.yaml"
        config.write_text("series: [unclosed\n")

        code = main([raw, str(tmp_path / "out"), "--config", str(config)])

        assert code == 1
        assert "ERROR" in capsys.readouterr().out
        assert not (tmp_path / "out").exists()
