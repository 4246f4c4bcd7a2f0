"""
config.py - Configuration loader for the voxel-to-DICOS converter.

Loads settings from config.yaml with sensible defaults so that no path,
scanner constant or display setting is hard-coded inside a module.  The
merged dictionary is turned into frozen dataclasses once per run by
ConverterSettings.from_config().
"""

import os
from dataclasses import dataclass
from typing import Any, Optional

import yaml
from pydicom.uid import PYDICOM_ROOT_UID

# Resolve the config file relative to the repo root, not the CWD,
# so imports work regardless of where the script is launched from.
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_CONFIG_PATH = os.path.join(_REPO_ROOT, "config.yaml")

_DEFAULTS: dict[str, Any] = {
    "paths": {
        "input_volume": "tmp/voxels.raw",
        "output": "tmp/dicos",
        "threats_filename": "threats.json",
        "image_filename": "ct.dcs",
        "report_filename": "tdr.dcs",
    },
    "series": {
        "patient_name": "BlenderSim^Screening",
        "patient_id": "BAG-CT-001",
        "study_description": "Airport Security Screening Simulation",
        "series_description": "Simulated CT scan - airport screening tray",
        "series_number": 1,
        "manufacturer": "dicos.go Blender Voxelizer",
        "station_name": "BLENDER-SIM",
        "institution_name": "DICOS.go Project",
    },
    "scanner": {
        "kvp": 140.0,
        "exposure_time_ms": 500,
        "tube_current_ma": 300,
        "filter_type": "BODY",
        "convolution_kernel": "STANDARD",
        "acquisition_type": "SPIRAL",
        "data_collection_diameter_mm": 620.0,
        "reconstruction_diameter_mm": 640.0,
        "image_type": ["ORIGINAL", "PRIMARY", "AXIAL"],
        "position_reference_indicator": "BB",
    },
    "display": {
        "window_preset": "screening",
        "window_center": None,
        "window_width": None,
    },
    "identity": {
        "uid_prefix": PYDICOM_ROOT_UID,
    },
    "logging": {
        "level": "INFO",
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base*, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str = _CONFIG_PATH) -> dict[str, Any]:
    """
    Load the YAML configuration file and merge it with built-in defaults.

    Parameters
    ----------
    config_path : str
        Path to config.yaml. Defaults to the repo-root config.yaml.

    Returns
    -------
    dict
        Merged configuration dictionary.
    """
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            user_config = yaml.safe_load(f) or {}
    else:
        user_config = {}

    return _deep_merge(_DEFAULTS, user_config)


# ---------------------------------------------------------------------------
# Immutable per-run settings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SeriesDescriptor:
    """Free-text patient/study/series/equipment fields stamped on outputs."""
    patient_name: str
    patient_id: str
    study_description: str
    series_description: str
    series_number: int
    manufacturer: str
    station_name: str
    institution_name: str


@dataclass(frozen=True)
class ScannerProfile:
    """Simulated acquisition constants.  Never derived from the volume."""
    kvp: float
    exposure_time_ms: int
    tube_current_ma: int
    filter_type: str
    convolution_kernel: str
    acquisition_type: str
    data_collection_diameter_mm: float
    reconstruction_diameter_mm: float
    image_type: tuple[str, ...]
    position_reference_indicator: str


@dataclass(frozen=True)
class OutputNaming:
    """File names used when the output argument is a directory."""
    threats_filename: str
    image_filename: str
    report_filename: str


@dataclass(frozen=True)
class ConverterSettings:
    """Everything a conversion run needs besides the input/output paths."""
    series: SeriesDescriptor
    scanner: ScannerProfile
    naming: OutputNaming
    window_preset: Optional[str]
    window_center: Optional[float]
    window_width: Optional[float]
    uid_prefix: str
    default_input: str
    default_output: str

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> "ConverterSettings":
        """Build settings from a merged configuration dictionary."""
        series = cfg["series"]
        scanner = cfg["scanner"]
        paths = cfg["paths"]
        display = cfg["display"]

        return cls(
            series=SeriesDescriptor(
                patient_name=str(series["patient_name"]),
                patient_id=str(series["patient_id"]),
                study_description=str(series["study_description"]),
                series_description=str(series["series_description"]),
                series_number=int(series["series_number"]),
                manufacturer=str(series["manufacturer"]),
                station_name=str(series["station_name"]),
                institution_name=str(series["institution_name"]),
            ),
            scanner=ScannerProfile(
                kvp=float(scanner["kvp"]),
                exposure_time_ms=int(scanner["exposure_time_ms"]),
                tube_current_ma=int(scanner["tube_current_ma"]),
                filter_type=str(scanner["filter_type"]),
                convolution_kernel=str(scanner["convolution_kernel"]),
                acquisition_type=str(scanner["acquisition_type"]),
                data_collection_diameter_mm=float(scanner["data_collection_diameter_mm"]),
                reconstruction_diameter_mm=float(scanner["reconstruction_diameter_mm"]),
                image_type=tuple(str(v) for v in scanner["image_type"]),
                position_reference_indicator=str(scanner["position_reference_indicator"]),
            ),
            naming=OutputNaming(
                threats_filename=str(paths["threats_filename"]),
                image_filename=str(paths["image_filename"]),
                report_filename=str(paths["report_filename"]),
            ),
            window_preset=display.get("window_preset"),
            window_center=_optional_float(display.get("window_center")),
            window_width=_optional_float(display.get("window_width")),
            uid_prefix=str(cfg["identity"]["uid_prefix"]),
            default_input=str(paths["input_volume"]),
            default_output=str(paths["output"]),
        )


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def load_settings(config_path: str = _CONFIG_PATH) -> ConverterSettings:
    """Shortcut: load config.yaml and build ConverterSettings from it."""
    return ConverterSettings.from_config(load_config(config_path))
