"""
dicos.py - Write image and report models as DICOS files with pydicom.

The pipeline only relies on the Encoder contract:

    write(model, path) -> number of bytes written

and expects EncodeError for a model that is missing a required field or a
file that cannot be written.  DicosWriter is the pydicom-backed
implementation; any other object with the same write() method can be
passed to the pipeline instead.

Tag choices
-----------
- CT image: a single multi-frame CT Image Storage object, one axial slice
  per frame, pixel data frame-major (Z outer).
- TDR: DICOS Threat Detection Report.  The DICOS attributes in group 4010
  are added by tag from DICOS_TAGS so the layout is explicit.  PTO
  confidence has no DICOS attribute and goes into a private block.
"""

import logging
import os
import re
from datetime import datetime
from typing import Protocol, Union

import numpy as np
import pydicom
from pydicom import config as dicom_config
from pydicom.dataset import Dataset, FileDataset, FileMetaDataset
from pydicom.sequence import Sequence
from pydicom.tag import Tag
from pydicom.uid import (
    CTImageStorage,
    ExplicitVRLittleEndian,
    PYDICOM_IMPLEMENTATION_UID,
    UID,
)
from pydicom.valuerep import DSfloat

from voxel2dicos.errors import EncodeError
from voxel2dicos.geometry import ImageSeriesModel
from voxel2dicos.report import DetectionReportModel, PotentialThreatObject

logger = logging.getLogger(__name__)

DICOS_TDR_STORAGE = UID("1.2.840.10008.5.1.4.1.1.501.3")
IMPLEMENTATION_VERSION_NAME = "VOXEL2DICOS_01"

# keyword -> (group, element, VR)
DICOS_TAGS: dict[str, tuple[int, int, str]] = {
    "PotentialThreatObjectID": (0x4010, 0x1010, "US"),
    "ThreatSequence": (0x4010, 0x1011, "SQ"),
    "ThreatCategory": (0x4010, 0x1012, "CS"),
    "ThreatCategoryDescription": (0x4010, 0x1013, "LT"),
    "ATDAbilityAssessment": (0x4010, 0x1014, "CS"),
    "ATDAssessmentFlag": (0x4010, 0x1015, "CS"),
    "ATDAssessmentProbability": (0x4010, 0x1016, "FL"),
    "BoundingPolygon": (0x4010, 0x101D, "FL"),
    "TDRType": (0x4010, 0x1027, "CS"),
    "AlarmDecision": (0x4010, 0x1031, "CS"),
    "NumberOfTotalObjects": (0x4010, 0x1033, "US"),
    "NumberOfAlarmObjects": (0x4010, 0x1034, "US"),
    "PTORepresentationSequence": (0x4010, 0x1037, "SQ"),
    "ATDAssessmentSequence": (0x4010, 0x1038, "SQ"),
    "OOIType": (0x4010, 0x1042, "CS"),
}

PRIVATE_GROUP = 0x4011
PRIVATE_CREATOR = "VOXEL2DICOS"
PRIVATE_CONFIDENCE = 0x01

Model = Union[ImageSeriesModel, DetectionReportModel]


class Encoder(Protocol):
    def write(self, model: Model, path: str) -> int:
        ...


def dicos_tag(keyword: str) -> Tag:
    group, element, _ = DICOS_TAGS[keyword]
    return Tag(group, element)


def _add(ds: Dataset, keyword: str, value) -> None:
    group, element, vr = DICOS_TAGS[keyword]
    ds.add_new(Tag(group, element), vr, value)


def _ds(value: float) -> DSfloat:
    return DSfloat(value, auto_format=True)


def _cs(text: str) -> str:
    """Coerce free text into a valid Code String (upper case, max 16 chars)."""
    code = re.sub(r"[^A-Z0-9 _]", "_", text.upper())[:16] or "UNKNOWN"
    if code != text.upper():
        logger.warning("Code string %r written as %r", text, code)
    return code


def _file_dataset(path: str, sop_class_uid: str, sop_instance_uid: str) -> FileDataset:
    file_meta = FileMetaDataset()
    file_meta.MediaStorageSOPClassUID = sop_class_uid
    file_meta.MediaStorageSOPInstanceUID = sop_instance_uid
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian
    file_meta.ImplementationClassUID = PYDICOM_IMPLEMENTATION_UID
    file_meta.ImplementationVersionName = IMPLEMENTATION_VERSION_NAME

    ds = FileDataset(path, {}, file_meta=file_meta, preamble=b"\0" * 128)
    ds.SOPClassUID = sop_class_uid
    ds.SOPInstanceUID = sop_instance_uid

    now = datetime.now()
    ds.InstanceCreationDate = now.strftime("%Y%m%d")
    ds.InstanceCreationTime = now.strftime("%H%M%S")
    return ds


class DicosWriter:
    """Encoder that writes DICOS files through pydicom."""

    def write(self, model: Model, path: str) -> int:
        if isinstance(model, ImageSeriesModel):
            build = self.build_image
        elif isinstance(model, DetectionReportModel):
            build = self.build_report
        else:
            raise EncodeError(f"Unsupported model type: {type(model).__name__}")

        # Values outside their VR limits must fail instead of warning.
        settings = dicom_config.settings
        previous = (settings.reading_validation_mode, settings.writing_validation_mode)
        settings.reading_validation_mode = dicom_config.RAISE
        settings.writing_validation_mode = dicom_config.RAISE
        try:
            ds = build(model, path)
            ds.save_as(path)
        except (OSError, ValueError, TypeError) as exc:
            raise EncodeError(f"Failed to write {path}: {exc}") from exc
        finally:
            settings.reading_validation_mode, settings.writing_validation_mode = previous

        written = os.path.getsize(path)
        logger.debug("Wrote %s (%d bytes)", path, written)
        return written

    # ------------------------------------------------------------------
    # CT image
    # ------------------------------------------------------------------

    def _validate_image(self, model: ImageSeriesModel) -> None:
        geo = model.geometry
        if not model.identity.sop_instance_uid:
            raise EncodeError("CT image has no SOP Instance UID.")
        if not model.identity.frame_of_reference_uid:
            raise EncodeError("CT image has no Frame of Reference UID.")
        if min(geo.rows, geo.columns, geo.frame_count) <= 0:
            raise EncodeError(
                f"CT image dimensions must be positive, got "
                f"{geo.frame_count}x{geo.rows}x{geo.columns}."
            )
        pixels = model.pixels
        if pixels.dtype.kind != "u" or pixels.dtype.itemsize != 2:
            raise EncodeError(f"CT pixel data must be uint16, got {pixels.dtype}.")
        if pixels.size != geo.rows * geo.columns * geo.frame_count:
            raise EncodeError(
                f"CT pixel data has {pixels.size} samples, expected "
                f"{geo.rows * geo.columns * geo.frame_count}."
            )

    def build_image(self, model: ImageSeriesModel, path: str = "") -> FileDataset:
        """Populate a FileDataset for the multi-frame CT image."""
        self._validate_image(model)

        desc = model.descriptor
        acq = model.acquisition
        geo = model.geometry
        uids = model.identity

        ds = _file_dataset(path, CTImageStorage, uids.sop_instance_uid)

        # Patient / Study / Series
        ds.PatientName = desc.patient_name
        ds.PatientID = desc.patient_id
        ds.StudyInstanceUID = uids.study_instance_uid
        ds.StudyDate = ds.InstanceCreationDate
        ds.StudyTime = ds.InstanceCreationTime
        ds.StudyID = "1"
        ds.StudyDescription = desc.study_description
        ds.SeriesInstanceUID = uids.series_instance_uid
        ds.SeriesNumber = desc.series_number
        ds.SeriesDescription = desc.series_description
        ds.Modality = model.modality
        ds.InstanceNumber = 1

        # Frame of Reference
        ds.FrameOfReferenceUID = uids.frame_of_reference_uid
        ds.PositionReferenceIndicator = acq.position_reference_indicator

        # Equipment
        ds.Manufacturer = desc.manufacturer
        ds.StationName = desc.station_name
        ds.InstitutionName = desc.institution_name

        # CT acquisition (simulation constants)
        ds.ImageType = list(acq.image_type)
        ds.KVP = _ds(acq.kvp)
        ds.ExposureTime = acq.exposure_time_ms
        ds.XRayTubeCurrent = acq.tube_current_ma
        ds.FilterType = acq.filter_type
        ds.ConvolutionKernel = acq.convolution_kernel
        ds.AcquisitionType = _cs(acq.acquisition_type)
        ds.DataCollectionDiameter = _ds(acq.data_collection_diameter_mm)
        ds.ReconstructionDiameter = _ds(acq.reconstruction_diameter_mm)

        # Image plane
        ds.PixelSpacing = [_ds(v) for v in geo.pixel_spacing]
        ds.SliceThickness = _ds(geo.slice_thickness)
        ds.SpacingBetweenSlices = _ds(geo.spacing_between_slices)
        ds.ImageOrientationPatient = [_ds(v) for v in geo.orientation]
        ds.ImagePositionPatient = [_ds(v) for v in geo.position]

        # Rescale and window
        ds.RescaleSlope = _ds(model.intensity.slope)
        ds.RescaleIntercept = _ds(model.intensity.intercept)
        ds.RescaleType = model.intensity.unit
        ds.WindowCenter = _ds(model.window.center)
        ds.WindowWidth = _ds(model.window.width)
        if model.window.explanation:
            ds.WindowCenterWidthExplanation = model.window.explanation

        # Image pixel
        ds.SamplesPerPixel = geo.samples_per_pixel
        ds.PhotometricInterpretation = geo.photometric_interpretation
        ds.Rows = geo.rows
        ds.Columns = geo.columns
        ds.NumberOfFrames = geo.frame_count
        ds.BitsAllocated = geo.bits_allocated
        ds.BitsStored = geo.bits_stored
        ds.HighBit = geo.high_bit
        ds.PixelRepresentation = geo.pixel_representation
        ds.PixelData = np.ascontiguousarray(model.pixels, dtype="<u2").tobytes()

        return ds

    # ------------------------------------------------------------------
    # Threat Detection Report
    # ------------------------------------------------------------------

    def _validate_report(self, model: DetectionReportModel) -> None:
        if not model.ptos:
            raise EncodeError("Threat Detection Report has no PTOs.")
        if not model.referenced_sop_instance_uid:
            raise EncodeError("Threat Detection Report does not reference an image.")
        if not model.identity.sop_instance_uid:
            raise EncodeError("Threat Detection Report has no SOP Instance UID.")

    def _pto_item(self, pto: PotentialThreatObject, model: DetectionReportModel) -> Dataset:
        item = Dataset()
        _add(item, "PotentialThreatObjectID", pto.id)
        _add(item, "OOIType", _cs(pto.ooi_type))

        assessment = Dataset()
        _add(assessment, "ThreatCategory", _cs(pto.ooi_type))
        _add(assessment, "ThreatCategoryDescription", pto.label)
        _add(assessment, "ATDAbilityAssessment", "NO_INTERFERENCE")
        _add(assessment, "ATDAssessmentFlag", "THREAT")
        _add(assessment, "ATDAssessmentProbability", float(pto.probability))
        _add(item, "ATDAssessmentSequence", Sequence([assessment]))

        reference = Dataset()
        reference.ReferencedSOPClassUID = model.referenced_sop_class_uid
        reference.ReferencedSOPInstanceUID = model.referenced_sop_instance_uid

        representation = Dataset()
        representation.ReferencedInstanceSequence = Sequence([reference])
        _add(representation, "BoundingPolygon", [float(v) for v in (*pto.bbox_min, *pto.bbox_max)])
        _add(item, "PTORepresentationSequence", Sequence([representation]))

        block = item.private_block(PRIVATE_GROUP, PRIVATE_CREATOR, create=True)
        block.add_new(PRIVATE_CONFIDENCE, "FL", float(pto.confidence))
        return item

    def build_report(self, model: DetectionReportModel, path: str = "") -> FileDataset:
        """Populate a FileDataset for the Threat Detection Report."""
        self._validate_report(model)
        uids = model.identity

        ds = _file_dataset(path, DICOS_TDR_STORAGE, uids.sop_instance_uid)
        ds.StudyInstanceUID = uids.study_instance_uid
        ds.SeriesInstanceUID = uids.series_instance_uid
        ds.FrameOfReferenceUID = uids.frame_of_reference_uid
        ds.Modality = model.modality
        ds.SeriesNumber = 1
        ds.InstanceNumber = 1
        ds.Manufacturer = model.manufacturer

        _add(ds, "TDRType", "MACHINE")
        _add(ds, "AlarmDecision", model.alarm_decision)
        _add(ds, "NumberOfTotalObjects", len(model.ptos))
        _add(ds, "NumberOfAlarmObjects", len(model.ptos))

        reference = Dataset()
        reference.ReferencedSOPClassUID = model.referenced_sop_class_uid
        reference.ReferencedSOPInstanceUID = model.referenced_sop_instance_uid
        ds.ReferencedInstanceSequence = Sequence([reference])

        _add(ds, "ThreatSequence", Sequence([self._pto_item(pto, model) for pto in model.ptos]))
        return ds


def read_confidence(item: Dataset) -> float:
    """Read the PTO confidence stored in the private block of a threat item."""
    block = item.private_block(PRIVATE_GROUP, PRIVATE_CREATOR)
    return float(block[PRIVATE_CONFIDENCE].value)


def read_dicos(path: str) -> Dataset:
    """Load a written DICOS file (thin wrapper used by scripts and tests)."""
    return pydicom.dcmread(path)
