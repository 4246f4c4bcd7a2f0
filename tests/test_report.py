"""Tests for voxel2dicos/report.py."""

import pytest

from voxel2dicos.identity import SeriesIdentity
from voxel2dicos.report import ALARM, map_threats, to_relative
from voxel2dicos.threats import ThreatEntry

CT_IMAGE_STORAGE = "1.2.840.10008.5.1.4.1.1.2"


def _entry(label="X", category="sharp", probability=0.9, bbox_min=(0, 0, 0), bbox_max=(1, 1, 1)):
    return ThreatEntry(
        label=label, category=category, flag="", probability=probability,
        bbox_min=tuple(float(v) for v in bbox_min),
        bbox_max=tuple(float(v) for v in bbox_max),
    )


def _identity():
    return SeriesIdentity.allocate()


class TestToRelative:
    def test_subtracts_origin(self):
        assert to_relative((10.0, 20.0, 30.0), (1.0, -2.0, 3.5)) == (9.0, 22.0, 26.5)


class TestMapThreats:
    def test_single_threat(self):
        report = map_threats([_entry()], (0.0, 0.0, 0.0), "1.2.3.4", _identity())
        assert report.alarm_decision == ALARM == "ALARM"
        assert report.referenced_sop_instance_uid == "1.2.3.4"
        assert report.referenced_sop_class_uid == CT_IMAGE_STORAGE
        assert report.modality == "TDR"
        assert len(report.ptos) == 1

        pto = report.ptos[0]
        assert pto.id == 1
        assert pto.label == "X"
        assert pto.ooi_type == "sharp"
        assert pto.probability == pto.confidence == 0.9
        assert pto.bbox_min == (0.0, 0.0, 0.0)
        assert pto.bbox_max == (1.0, 1.0, 1.0)

    def test_boxes_are_relative_to_origin(self):
        origin = (-100.0, 50.0, 12.5)
        entry = _entry(bbox_min=(-90.0, 60.0, 20.0), bbox_max=(-40.0, 75.5, 32.5))
        pto = map_threats([entry], origin, "1.2.3", _identity()).ptos[0]
        for i in range(3):
            assert pto.bbox_min[i] == pytest.approx(entry.bbox_min[i] - origin[i])
            assert pto.bbox_max[i] == pytest.approx(entry.bbox_max[i] - origin[i])

    def test_order_and_ids_preserved(self):
        entries = [_entry(label=name) for name in ("c", "a", "b", "a")]
        report = map_threats(entries, (0.0, 0.0, 0.0), "1.2.3", _identity())
        assert [p.label for p in report.ptos] == ["c", "a", "b", "a"]
        assert [p.id for p in report.ptos] == [1, 2, 3, 4]

    def test_no_clamping_or_filtering(self):
        entries = [
            _entry(probability=1.5),
            _entry(probability=-0.2, bbox_min=(5, 5, 5), bbox_max=(1, 1, 1)),
        ]
        report = map_threats(entries, (0.0, 0.0, 0.0), "1.2.3", _identity())
        assert [p.probability for p in report.ptos] == [1.5, -0.2]
        assert report.ptos[1].bbox_min == (5.0, 5.0, 5.0)

    def test_empty_list_raises(self):
        with pytest.raises(ValueError, match="without threats"):
            map_threats([], (0.0, 0.0, 0.0), "1.2.3", _identity())

    def test_manufacturer_stamped(self):
        report = map_threats([_entry()], (0.0, 0.0, 0.0), "1.2.3", _identity(), manufacturer="Sim")
        assert report.manufacturer == "Sim"
