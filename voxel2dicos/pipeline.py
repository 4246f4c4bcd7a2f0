"""
pipeline.py - Voxel volume to DICOS conversion orchestrator.

One run converts one raw volume:

    read_volume -> statistics (logged) -> CT image model -> write image
                -> load threats.json -> (if any) TDR model -> write report

Every failure is fatal and propagates as a ConversionError subclass.  The
two outputs are not transactional: if the report fails, the image that was
already written stays on disk.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Optional

from voxel2dicos.config import ConverterSettings, load_settings
from voxel2dicos.dicos import DicosWriter, Encoder
from voxel2dicos.geometry import build_image_model
from voxel2dicos.identity import SeriesIdentity, generate_identifier
from voxel2dicos.report import map_threats
from voxel2dicos.threats import load_threats, threats_path_for
from voxel2dicos.volume import VolumeStatistics, compute_statistics, read_volume

logger = logging.getLogger(__name__)

FILE_SUFFIXES = (".dcs", ".dcm")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OutputPaths:
    """Where the image and (optional) report of one run are written."""
    image: str
    report: str


@dataclass
class ConversionReport:
    """Summary of one conversion run."""
    volume_path: str
    image_path: str = ""
    image_bytes: int = 0
    report_path: Optional[str] = None
    report_bytes: int = 0
    dimensions: tuple[int, int, int] = (0, 0, 0)
    spacing: tuple[float, float, float] = (0.0, 0.0, 0.0)
    statistics: Optional[VolumeStatistics] = None
    sop_instance_uid: str = ""
    pto_count: int = 0
    elapsed_s: float = 0.0
    outputs: list[str] = field(default_factory=list)

    @property
    def has_report(self) -> bool:
        return self.report_path is not None

    def summary(self) -> str:
        width, height, depth = self.dimensions
        sx, sy, sz = self.spacing
        lines = [
            "=" * 50,
            "CONVERSION SUMMARY",
            "=" * 50,
            f"Input volume : {self.volume_path}",
            f"Volume       : {width}x{height}x{depth}",
            f"CT image     : {self.image_path} ({self.image_bytes} bytes, "
            f"{self.image_bytes / 1024 / 1024:.1f} MB)",
            f"               {depth} frames, {width}x{height}, "
            f"spacing {sx:.2f}x{sy:.2f}x{sz:.2f} mm",
        ]
        if self.statistics is not None:
            lines.append(f"Statistics   : {self.statistics.describe()}")
        if self.has_report:
            lines.append(
                f"TDR          : {self.report_path} ({self.report_bytes} bytes) "
                f"- ALARM, {self.pto_count} PTOs"
            )
        else:
            lines.append("TDR          : no threats - skipped")
        lines.append(f"Total time   : {self.elapsed_s:.2f}s")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Output naming
# ---------------------------------------------------------------------------

def resolve_output_paths(output: str, settings: ConverterSettings) -> OutputPaths:
    """
    Decide the image and report paths for *output*.

    A path ending in .dcs/.dcm is the image file itself and the report is
    written beside it as <stem>_tdr<suffix>.  Anything else is a directory
    that receives the configured image/report file names.
    """
    stem, suffix = os.path.splitext(output)
    if suffix.lower() in FILE_SUFFIXES:
        return OutputPaths(image=output, report=f"{stem}_tdr{suffix}")
    return OutputPaths(
        image=os.path.join(output, settings.naming.image_filename),
        report=os.path.join(output, settings.naming.report_filename),
    )


# ---------------------------------------------------------------------------
# Core pipeline
# ---------------------------------------------------------------------------

def convert(
    volume_path: Optional[str] = None,
    output: Optional[str] = None,
    settings: Optional[ConverterSettings] = None,
    encoder: Optional[Encoder] = None,
) -> ConversionReport:
    """
    Convert one raw voxel volume into a DICOS CT image and optional TDR.

    Parameters
    ----------
    volume_path : str, optional
        Raw volume file.  Defaults to the configured input path.
    output : str, optional
        Output directory or image file path.  Defaults to config value.
    settings : ConverterSettings, optional
        Per-run settings.  Loaded from config.yaml if omitted.
    encoder : Encoder, optional
        Object writing the models to disk.  Defaults to DicosWriter.

    Returns
    -------
    ConversionReport
        Summary of the run.

    Raises
    ------
    ReadError, GeometryError, ParseError, EncodeError
        On any fatal failure.  Files already written are left in place.
    """
    settings = settings or load_settings()
    encoder = encoder or DicosWriter()
    volume_path = volume_path or settings.default_input
    output = output or settings.default_output

    start = time.time()
    report = ConversionReport(volume_path=volume_path)
    paths = resolve_output_paths(output, settings)

    # ── Read volume ────────────────────────────────────────────────────────
    volume = read_volume(volume_path)
    hdr = volume.header
    report.dimensions = (hdr.width, hdr.height, hdr.depth)
    report.spacing = hdr.spacing
    logger.info(
        "Volume: %dx%dx%d (%d voxels)",
        hdr.width, hdr.height, hdr.depth, hdr.voxel_count,
    )
    logger.info("Spacing: %.2f x %.2f x %.2f mm", *hdr.spacing)
    logger.info("Origin:  %.1f, %.1f, %.1f mm", *hdr.origin)

    stats = compute_statistics(volume.samples)
    report.statistics = stats
    logger.info(stats.describe())

    # ── CT image ───────────────────────────────────────────────────────────
    identity = SeriesIdentity.allocate(settings.uid_prefix)
    image = build_image_model(volume, settings, identity=identity)
    report.sop_instance_uid = image.sop_instance_uid
    if stats.has_signal:
        logger.info(
            "HU range: [%.0f, %.0f]",
            image.intensity.apply(stats.minimum), image.intensity.apply(stats.maximum),
        )

    os.makedirs(os.path.dirname(paths.image) or ".", exist_ok=True)
    report.image_bytes = encoder.write(image, paths.image)
    report.image_path = paths.image
    report.outputs.append(paths.image)
    logger.info(
        "Wrote %s (%d bytes, %.1f MB)",
        paths.image, report.image_bytes, report.image_bytes / 1024 / 1024,
    )

    # ── Threat Detection Report ────────────────────────────────────────────
    threats = load_threats(threats_path_for(volume_path, settings.naming.threats_filename))
    if not threats:
        logger.info("No threats - TDR skipped")
        report.elapsed_s = time.time() - start
        return report

    report_identity = SeriesIdentity(
        study_instance_uid=identity.study_instance_uid,
        series_instance_uid=generate_identifier(settings.uid_prefix),
        frame_of_reference_uid=identity.frame_of_reference_uid,
        sop_instance_uid=generate_identifier(settings.uid_prefix),
    )
    tdr = map_threats(
        threats,
        origin=hdr.origin,
        referenced_sop_instance_uid=image.sop_instance_uid,
        identity=report_identity,
        manufacturer=settings.series.manufacturer,
    )
    report.report_bytes = encoder.write(tdr, paths.report)
    report.report_path = paths.report
    report.pto_count = len(tdr.ptos)
    report.outputs.append(paths.report)
    logger.info(
        "Wrote %s (%d bytes) - %s, %d PTOs",
        paths.report, report.report_bytes, tdr.alarm_decision, len(tdr.ptos),
    )

    report.elapsed_s = time.time() - start
    return report
