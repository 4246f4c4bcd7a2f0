"""
windowing.py - Hounsfield Unit conversion and window/level selection.

Stored voxel samples are unsigned 16-bit integers.  The CT image carries a
linear rescale that maps them onto the Hounsfield scale:

    HU = stored_value * RescaleSlope + RescaleIntercept

With the fixed slope 1.0 and intercept -1024.0 a stored 0 (air in the
generator's output) lands at -1024 HU.

Viewers open the image through the WindowCenter/WindowWidth pair written
into the file.  Screening volumes contain metal and dense organics next to
air, so the default window is far wider than a clinical soft-tissue one.

References
----------
- DICOM PS3.3, attribute (0028,1050)/(0028,1051): WindowCenter/WindowWidth
- DICOM PS3.3, attribute (0028,1052)/(0028,1053): RescaleIntercept/RescaleSlope
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

RESCALE_SLOPE = 1.0
RESCALE_INTERCEPT = -1024.0
RESCALE_TYPE = "HU"

# ---------------------------------------------------------------------------
# Window presets (centre, width) in HU
# ---------------------------------------------------------------------------
WINDOW_PRESETS: dict[str, tuple[float, float]] = {
    "screening": (1500.0, 4000.0),
    "soft_tissue": (50.0, 400.0),
    "bone": (400.0, 1800.0),
}

DEFAULT_PRESET = "screening"


@dataclass(frozen=True)
class DisplayWindow:
    """Window centre/width written into the image header."""
    center: float
    width: float
    explanation: str = ""


@dataclass(frozen=True)
class IntensityTransform:
    """Linear map from a stored sample to the display unit."""
    slope: float = RESCALE_SLOPE
    intercept: float = RESCALE_INTERCEPT
    unit: str = RESCALE_TYPE

    def apply(self, stored):
        """Convert stored samples (scalar or array) to display units."""
        return to_hounsfield(stored, slope=self.slope, intercept=self.intercept)


def to_hounsfield(
    stored,
    slope: float = RESCALE_SLOPE,
    intercept: float = RESCALE_INTERCEPT,
):
    """
    Convert raw stored sample values to Hounsfield Units.

    Parameters
    ----------
    stored : int, float or np.ndarray
        Stored sample value(s).
    slope : float
        RescaleSlope (default 1.0).
    intercept : float
        RescaleIntercept (default -1024.0).

    Returns
    -------
    float or np.ndarray
        HU value(s); arrays come back as float64 with the same shape.
    """
    if isinstance(stored, np.ndarray):
        return stored.astype(np.float64) * slope + intercept
    return float(stored) * slope + intercept


def resolve_window(
    preset: Optional[str] = None,
    center: Optional[float] = None,
    width: Optional[float] = None,
) -> DisplayWindow:
    """
    Pick the display window for the image header.

    Priority for window parameters:
    1. Explicit *center* / *width* arguments (both must be given).
    2. Named *preset* from WINDOW_PRESETS.
    3. The screening preset.

    Raises
    ------
    ValueError
        For an unknown preset or a non-positive width.
    """
    if center is not None and width is not None:
        window = DisplayWindow(center=float(center), width=float(width), explanation="Custom")
    else:
        if (center is None) != (width is None):
            logger.warning(
                "Window centre and width must be given together; using preset instead."
            )
        name = preset or DEFAULT_PRESET
        if name not in WINDOW_PRESETS:
            raise ValueError(
                f"Unknown preset '{name}'. "
                f"Choose from: {list(WINDOW_PRESETS.keys())}"
            )
        wc, ww = WINDOW_PRESETS[name]
        window = DisplayWindow(center=wc, width=ww, explanation=name.replace("_", " ").title())

    if window.width <= 0:
        raise ValueError(f"Window width must be > 0, got width={window.width}.")

    logger.debug("Display window: centre=%.1f, width=%.1f", window.center, window.width)
    return window
