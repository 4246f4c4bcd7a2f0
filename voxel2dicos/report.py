"""
report.py - Build the Threat Detection Report model from annotations.

Each annotation becomes one Potential Threat Object (PTO).  Bounding boxes
arrive in absolute world millimetres and are stored relative to the
volume origin:

    relative = absolute - origin        (per axis, for min and max)

Nothing is filtered, merged, clamped or reordered: N annotations in give
N PTOs out, numbered 1..N in file order.  There is no confidence model,
so the annotation probability is copied into both fields.
"""

import logging
from dataclasses import dataclass, field
from typing import Sequence

from pydicom.uid import CTImageStorage

from voxel2dicos.identity import SeriesIdentity
from voxel2dicos.threats import ThreatEntry, Vector3

logger = logging.getLogger(__name__)

ALARM = "ALARM"


@dataclass(frozen=True)
class PotentialThreatObject:
    """One report entry; bounding box is volume-relative millimetres."""
    id: int
    label: str
    ooi_type: str
    probability: float
    confidence: float
    bbox_min: Vector3
    bbox_max: Vector3


@dataclass
class DetectionReportModel:
    """Threat Detection Report referencing one CT image."""
    alarm_decision: str
    referenced_sop_class_uid: str
    referenced_sop_instance_uid: str
    identity: SeriesIdentity
    manufacturer: str = ""
    modality: str = "TDR"
    ptos: list[PotentialThreatObject] = field(default_factory=list)


def to_relative(point: Vector3, origin: Vector3) -> Vector3:
    """World-space point -> volume-relative point."""
    return (point[0] - origin[0], point[1] - origin[1], point[2] - origin[2])


def map_threats(
    threats: Sequence[ThreatEntry],
    origin: Vector3,
    referenced_sop_instance_uid: str,
    identity: SeriesIdentity,
    manufacturer: str = "",
) -> DetectionReportModel:
    """
    Turn threat annotations into a report model.

    Parameters
    ----------
    threats : sequence of ThreatEntry
        Annotations in file order.  Must not be empty.
    origin : (x, y, z)
        Volume origin from the raw header, in mm.
    referenced_sop_instance_uid : str
        SOP Instance UID of the CT image the report describes.
    identity : SeriesIdentity
        UIDs for the report itself.  Its study UID should be the image's.
    manufacturer : str
        Equipment manufacturer stamped on the report.

    Raises
    ------
    ValueError
        If *threats* is empty; a report always carries at least one PTO.
    """
    if not threats:
        raise ValueError("Cannot build a detection report without threats.")

    ptos = []
    for pto_id, threat in enumerate(threats, start=1):
        pto = PotentialThreatObject(
            id=pto_id,
            label=threat.label,
            ooi_type=threat.category,
            probability=threat.probability,
            confidence=threat.probability,
            bbox_min=to_relative(threat.bbox_min, origin),
            bbox_max=to_relative(threat.bbox_max, origin),
        )
        ptos.append(pto)
        logger.info(
            "PTO %d: %s [%s] prob=%.2f bbox=[%.0f,%.0f,%.0f]-[%.0f,%.0f,%.0f]mm",
            pto.id, pto.label, pto.ooi_type, pto.probability,
            *pto.bbox_min, *pto.bbox_max,
        )

    return DetectionReportModel(
        alarm_decision=ALARM,
        referenced_sop_class_uid=str(CTImageStorage),
        referenced_sop_instance_uid=referenced_sop_instance_uid,
        identity=identity,
        manufacturer=manufacturer,
        ptos=ptos,
    )
