"""Tests for voxel2dicos/config.py."""

import dataclasses

import pytest

from voxel2dicos.config import ConverterSettings, _deep_merge, load_config


class TestLoadConfig:
    def test_missing_file_returns_defaults(self, tmp_path):
        cfg = load_config(str(tmp_path / "absent.yaml"))
        assert cfg["paths"]["input_volume"] == "tmp/voxels.raw"
        assert cfg["paths"]["output"] == "tmp/dicos"
        assert cfg["scanner"]["kvp"] == 140.0

    def test_user_values_override_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("scanner:\n  kvp: 120\ndisplay:\n  window_preset: bone\n")
        cfg = load_config(str(path))
        assert cfg["scanner"]["kvp"] == 120
        # untouched siblings survive the merge
        assert cfg["scanner"]["filter_type"] == "BODY"
        assert cfg["display"]["window_preset"] == "bone"

    def test_empty_file_returns_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path))["series"]["station_name"] == "BLENDER-SIM"

    def test_deep_merge_does_not_mutate_base(self):
        base = {"a": {"b": 1, "c": 2}}
        merged = _deep_merge(base, {"a": {"b": 5}})
        assert merged == {"a": {"b": 5, "c": 2}}
        assert base == {"a": {"b": 1, "c": 2}}


class TestConverterSettings:
    def test_from_defaults(self, tmp_path):
        settings = ConverterSettings.from_config(load_config(str(tmp_path / "absent.yaml")))
        assert settings.scanner.image_type == ("ORIGINAL", "PRIMARY", "AXIAL")
        assert settings.scanner.exposure_time_ms == 500
        assert settings.scanner.tube_current_ma == 300
        assert settings.naming.image_filename == "ct.dcs"
        assert settings.naming.report_filename == "tdr.dcs"
        assert settings.naming.threats_filename == "threats.json"
        assert settings.window_preset == "screening"
        assert settings.window_center is None
        assert settings.uid_prefix == "1.2.826.0.1.3680043.8.498."

    def test_settings_are_immutable(self, tmp_path):
        settings = ConverterSettings.from_config(load_config(str(tmp_path / "absent.yaml")))
        with pytest.raises(dataclasses.FrozenInstanceError):
            settings.scanner.kvp = 80.0

    def test_window_values_converted_to_float(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("display:\n  window_center: 40\n  window_width: 400\n")
        settings = ConverterSettings.from_config(load_config(str(path)))
        assert settings.window_center == 40.0
        assert isinstance(settings.window_width, float)
