"""
geometry.py - Map a volume header onto CT image series metadata.

The output is an ImageSeriesModel: everything the encoder needs to write the
multi-frame CT image, with no decisions left to it.

PIXEL SPACING ORDER
-------------------
DICOM PixelSpacing is (row spacing, column spacing).  Moving from one row
to the next is a step along Y, moving from one column to the next is a step
along X, so the pair is (spacing_y, spacing_x), swapped relative to the
header's X/Y order.  Writing it the other way round stretches anisotropic
volumes in viewers.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from voxel2dicos.config import ConverterSettings, ScannerProfile, SeriesDescriptor
from voxel2dicos.errors import GeometryError
from voxel2dicos.identity import SeriesIdentity
from voxel2dicos.volume import Volume, VolumeHeader
from voxel2dicos.windowing import DisplayWindow, IntensityTransform, resolve_window

logger = logging.getLogger(__name__)

AXIAL_ORIENTATION: tuple[float, ...] = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0)


@dataclass(frozen=True)
class ImageGeometry:
    """Spatial and frame layout of the axial stack."""
    rows: int
    columns: int
    frame_count: int
    pixel_spacing: tuple[float, float]  # (row spacing = Y, column spacing = X)
    slice_thickness: float
    spacing_between_slices: float
    orientation: tuple[float, ...]
    position: tuple[float, float, float]
    bits_allocated: int = 16
    bits_stored: int = 16
    high_bit: int = 15
    pixel_representation: int = 0  # unsigned
    samples_per_pixel: int = 1
    photometric_interpretation: str = "MONOCHROME2"


@dataclass(frozen=True)
class ImageSeriesModel:
    """Fully populated CT image, ready for the encoder."""
    descriptor: SeriesDescriptor
    acquisition: ScannerProfile
    geometry: ImageGeometry
    intensity: IntensityTransform
    window: DisplayWindow
    identity: SeriesIdentity
    pixels: np.ndarray  # (frame_count, rows, columns) uint16
    modality: str = "CT"

    @property
    def sop_instance_uid(self) -> str:
        return self.identity.sop_instance_uid


def map_geometry(header: VolumeHeader) -> ImageGeometry:
    """
    Derive image geometry from the raw header.

    Raises
    ------
    GeometryError
        If a spacing is not a positive finite number or the origin is not
        finite.
    """
    for axis, value in zip("xyz", header.spacing):
        if not math.isfinite(value) or value <= 0:
            raise GeometryError(f"Invalid spacing along {axis}: {value!r} (must be > 0).")
    for axis, value in zip("xyz", header.origin):
        if not math.isfinite(value):
            raise GeometryError(f"Invalid origin along {axis}: {value!r}.")

    return ImageGeometry(
        rows=header.height,
        columns=header.width,
        frame_count=header.depth,
        pixel_spacing=(header.spacing_y, header.spacing_x),
        slice_thickness=header.spacing_z,
        spacing_between_slices=header.spacing_z,
        orientation=AXIAL_ORIENTATION,
        position=header.origin,
    )


def map_intensity() -> IntensityTransform:
    """Fixed rescale: slope 1.0, intercept -1024.0, unit HU."""
    return IntensityTransform()


def build_image_model(
    volume: Volume,
    settings: ConverterSettings,
    identity: Optional[SeriesIdentity] = None,
) -> ImageSeriesModel:
    """
    Assemble the CT image model for *volume*.

    Parameters
    ----------
    volume : Volume
        Volume returned by read_volume().
    settings : ConverterSettings
        Per-run descriptive text, scanner constants and display window.
    identity : SeriesIdentity, optional
        Pre-allocated UIDs.  Allocated under settings.uid_prefix if omitted.

    Returns
    -------
    ImageSeriesModel
    """
    geometry = map_geometry(volume.header)
    expected = (geometry.frame_count, geometry.rows, geometry.columns)
    if volume.samples.shape != expected:
        raise GeometryError(
            f"Sample array shape {volume.samples.shape} does not match header {expected}."
        )

    window = resolve_window(
        preset=settings.window_preset,
        center=settings.window_center,
        width=settings.window_width,
    )
    if identity is None:
        identity = SeriesIdentity.allocate(settings.uid_prefix)

    logger.debug(
        "Image geometry: %d frames of %dx%d, pixel spacing %s, thickness %.3f",
        geometry.frame_count, geometry.columns, geometry.rows,
        geometry.pixel_spacing, geometry.slice_thickness,
    )
    return ImageSeriesModel(
        descriptor=settings.series,
        acquisition=settings.scanner,
        geometry=geometry,
        intensity=map_intensity(),
        window=window,
        identity=identity,
        pixels=volume.samples,
    )
