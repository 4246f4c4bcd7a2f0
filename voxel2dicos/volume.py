"""
volume.py - Raw voxel volume reader and volume statistics.

The bag generator exports one uncompressed file per scan:

    offset  field      type
    ------  ---------  -------------------------
     0      width      uint32 little-endian
     4      height     uint32
     8      depth      uint32
    12      spacing_x  float64 (mm per voxel)
    20      spacing_y  float64
    28      spacing_z  float64
    36      origin_x   float64 (mm, world position of voxel 0,0,0)
    44      origin_y   float64
    52      origin_z   float64
    60      samples    width*height*depth x uint16, Z outer, then Y, then X

There is no magic number or version field, so the only structural checks
are "is the header complete" and "is the payload long enough".
"""

import logging
import os
import struct
from dataclasses import dataclass
from typing import Optional

import numpy as np

from voxel2dicos.errors import ReadError

logger = logging.getLogger(__name__)

# (field name, byte offset, struct format)
HEADER_FIELDS: list[tuple[str, int, str]] = [
    ("width", 0, "<I"),
    ("height", 4, "<I"),
    ("depth", 8, "<I"),
    ("spacing_x", 12, "<d"),
    ("spacing_y", 20, "<d"),
    ("spacing_z", 28, "<d"),
    ("origin_x", 36, "<d"),
    ("origin_y", 44, "<d"),
    ("origin_z", 52, "<d"),
]
HEADER_SIZE = 60
SAMPLE_DTYPE = np.dtype("<u2")


@dataclass(frozen=True)
class VolumeHeader:
    """Fixed-size header at the start of a raw voxel file."""
    width: int
    height: int
    depth: int
    spacing_x: float
    spacing_y: float
    spacing_z: float
    origin_x: float
    origin_y: float
    origin_z: float

    @property
    def voxel_count(self) -> int:
        return self.width * self.height * self.depth

    @property
    def payload_size(self) -> int:
        """Number of bytes of sample data that must follow the header."""
        return self.voxel_count * SAMPLE_DTYPE.itemsize

    @property
    def spacing(self) -> tuple[float, float, float]:
        return (self.spacing_x, self.spacing_y, self.spacing_z)

    @property
    def origin(self) -> tuple[float, float, float]:
        return (self.origin_x, self.origin_y, self.origin_z)

    def to_bytes(self) -> bytes:
        """Serialise the header back to its 60-byte on-disk form."""
        buf = bytearray(HEADER_SIZE)
        for name, offset, fmt in HEADER_FIELDS:
            struct.pack_into(fmt, buf, offset, getattr(self, name))
        return bytes(buf)


@dataclass(frozen=True)
class Volume:
    """
    A header plus its voxel samples.

    Attributes:
        header: Parsed VolumeHeader
        samples: Read-only uint16 array of shape (depth, height, width)
    """
    header: VolumeHeader
    samples: np.ndarray

    @property
    def shape(self) -> tuple[int, int, int]:
        return self.samples.shape

    def get_slice(self, index: int) -> np.ndarray:
        """Return one axial frame (fixed Z)."""
        return self.samples[index, :, :]


def parse_header(buf: bytes) -> VolumeHeader:
    """
    Decode the fixed 60-byte header.

    Raises
    ------
    ReadError
        If *buf* is shorter than the header.
    """
    if len(buf) < HEADER_SIZE:
        raise ReadError(
            f"Truncated header: expected {HEADER_SIZE} bytes, got {len(buf)}."
        )
    values = {
        name: struct.unpack_from(fmt, buf, offset)[0]
        for name, offset, fmt in HEADER_FIELDS
    }
    return VolumeHeader(**values)


def read_volume(path: str) -> Volume:
    """
    Read a raw voxel file into memory.

    Exactly HEADER_SIZE + 2*width*height*depth bytes are consumed; anything
    after the payload is ignored.

    Parameters
    ----------
    path : str
        Path to the raw volume file.

    Returns
    -------
    Volume
        Immutable volume with samples shaped (depth, height, width).

    Raises
    ------
    ReadError
        If the file cannot be opened, the header is incomplete, any
        dimension is zero, or fewer samples than expected are present.
    """
    try:
        with open(path, "rb") as f:
            header = parse_header(f.read(HEADER_SIZE))
            if header.voxel_count == 0:
                raise ReadError(
                    f"Empty volume: dimensions are "
                    f"{header.width}x{header.height}x{header.depth}."
                )
            available = max(os.fstat(f.fileno()).st_size - HEADER_SIZE, 0)
            if available < header.payload_size:
                raise ReadError(
                    f"Short read in {path}: expected {header.voxel_count} samples "
                    f"({header.payload_size} bytes), got {available} bytes."
                )
            payload = f.read(header.payload_size)
    except OSError as exc:
        raise ReadError(f"Cannot read raw volume {path}: {exc}") from exc

    if len(payload) < header.payload_size:
        raise ReadError(
            f"Short read in {path}: expected {header.payload_size} bytes, "
            f"got {len(payload)} bytes."
        )

    samples = np.frombuffer(payload, dtype=SAMPLE_DTYPE).reshape(
        header.depth, header.height, header.width
    )
    logger.debug("Read %d samples from %s", samples.size, path)
    return Volume(header=header, samples=samples)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VolumeStatistics:
    """
    Diagnostic summary of the sample values.

    Zero is background (air) and is excluded from the range.  When no
    sample is nonzero, *minimum* and *maximum* are None.
    """
    total: int
    nonzero: int
    minimum: Optional[int]
    maximum: Optional[int]

    @property
    def has_signal(self) -> bool:
        return self.nonzero > 0

    @property
    def nonzero_fraction(self) -> float:
        return self.nonzero / self.total if self.total else 0.0

    def describe(self) -> str:
        pct = 100.0 * self.nonzero_fraction
        if not self.has_signal:
            return f"Non-zero: 0 ({pct:.1f}%), range: none"
        return f"Non-zero: {self.nonzero} ({pct:.1f}%), range: [{self.minimum}, {self.maximum}]"


def compute_statistics(samples) -> VolumeStatistics:
    """Count nonzero samples and find their min/max."""
    flat = np.asarray(samples).ravel()
    nonzero_values = flat[flat > 0]
    if nonzero_values.size == 0:
        return VolumeStatistics(total=int(flat.size), nonzero=0, minimum=None, maximum=None)
    return VolumeStatistics(
        total=int(flat.size),
        nonzero=int(nonzero_values.size),
        minimum=int(nonzero_values.min()),
        maximum=int(nonzero_values.max()),
    )
