"""
threats.py - Optional threat annotation loader.

The generator writes threats.json next to voxels.raw when it placed any
threat objects in the bag:

    {
      "threats": [
        {
          "label": "knife_01",
          "category": "sharp",
          "flag": "...",
          "probability": 0.92,
          "bbox_mm": {"min": [x, y, z], "max": [x, y, z]}
        }
      ]
    }

Bounding boxes are absolute world millimetres.  A missing file simply
means "no threats"; a file that is present but unreadable is an error.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

from voxel2dicos.errors import ParseError

logger = logging.getLogger(__name__)

DEFAULT_THREATS_FILENAME = "threats.json"

Vector3 = tuple[float, float, float]


@dataclass(frozen=True)
class ThreatEntry:
    """One annotated threat region in absolute world coordinates."""
    label: str
    category: str
    flag: str
    probability: float
    bbox_min: Vector3
    bbox_max: Vector3


def threats_path_for(volume_path: str, filename: str = DEFAULT_THREATS_FILENAME) -> str:
    """Annotation file lives beside the raw volume under a fixed name."""
    return os.path.join(os.path.dirname(volume_path), filename)


def _vector(raw: Any, where: str) -> Vector3:
    if not isinstance(raw, list) or len(raw) != 3:
        raise ParseError(f"{where} must be a list of 3 numbers, got {raw!r}.")
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ParseError(f"{where} must contain only numbers, got {raw!r}.")
    return (float(raw[0]), float(raw[1]), float(raw[2]))


def _text(entry: dict, key: str, where: str) -> str:
    value = entry.get(key, "")
    if not isinstance(value, str):
        raise ParseError(f"{where}.{key} must be text, got {value!r}.")
    return value


def _parse_entry(entry: Any, index: int) -> ThreatEntry:
    where = f"threats[{index}]"
    if not isinstance(entry, dict):
        raise ParseError(f"{where} must be an object, got {type(entry).__name__}.")

    probability = entry.get("probability", 0.0)
    if isinstance(probability, bool) or not isinstance(probability, (int, float)):
        raise ParseError(f"{where}.probability must be a number, got {probability!r}.")

    bbox = entry.get("bbox_mm")
    if not isinstance(bbox, dict):
        raise ParseError(f"{where}.bbox_mm must be an object with 'min' and 'max'.")

    threat = ThreatEntry(
        label=_text(entry, "label", where),
        category=_text(entry, "category", where),
        flag=_text(entry, "flag", where),
        probability=float(probability),
        bbox_min=_vector(bbox.get("min"), f"{where}.bbox_mm.min"),
        bbox_max=_vector(bbox.get("max"), f"{where}.bbox_mm.max"),
    )

    if not 0.0 <= threat.probability <= 1.0:
        logger.warning("%s probability %.3f is outside [0, 1].", where, threat.probability)
    if any(lo > hi for lo, hi in zip(threat.bbox_min, threat.bbox_max)):
        logger.warning("%s bounding box has min > max on some axis.", where)
    return threat


def load_threats(path: str) -> Optional[list[ThreatEntry]]:
    """
    Load threat annotations from *path*.

    Parameters
    ----------
    path : str
        Path to threats.json.

    Returns
    -------
    list[ThreatEntry] or None
        None when the file does not exist.  Otherwise the entries in file
        order (possibly empty).

    Raises
    ------
    ParseError
        If the file exists but is not valid JSON or does not have the
        expected shape.
    """
    if not os.path.exists(path):
        logger.info("No threat annotations at %s.", path)
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            document = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ParseError(f"Cannot parse {path}: {exc}") from exc
    except OSError as exc:
        raise ParseError(f"Cannot read {path}: {exc}") from exc

    if not isinstance(document, dict):
        raise ParseError(f"{path}: top level must be an object with a 'threats' array.")

    raw_threats = document.get("threats")
    if raw_threats is None:
        raw_threats = []
    if not isinstance(raw_threats, list):
        raise ParseError(f"{path}: 'threats' must be an array.")

    threats = [_parse_entry(entry, i) for i, entry in enumerate(raw_threats)]
    logger.info("Loaded %d threat annotation(s) from %s.", len(threats), path)
    return threats
