"""
generate_sample_data.py - Create a synthetic voxel volume for an end-to-end demo.

Writes tmp/voxels.raw and tmp/threats.json in the same layout the Blender
bag generator exports, so the converter can run without Blender.

Usage
-----
    python scripts/generate_sample_data.py
    python scripts/generate_sample_data.py --no-threats

After running, try:
    python -m voxel2dicos tmp/voxels.raw tmp/dicos
"""

import argparse
import json
import os
import sys

import numpy as np

# Make sure repo root is on the path when run as a script
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _REPO_ROOT)

from voxel2dicos.config import load_config  # noqa: E402
from voxel2dicos.volume import VolumeHeader  # noqa: E402

CONFIG = load_config()
OUTPUT_PATH = os.path.join(_REPO_ROOT, CONFIG["paths"]["input_volume"])


# ---------------------------------------------------------------------------
# Synthetic bag contents: (label, category, probability, stored value,
# voxel box (x0, y0, z0, x1, y1, z1)).  Stored values are HU + 1024.
# ---------------------------------------------------------------------------
_OBJECTS = [
    ("laptop", None, None, 2400, (8, 10, 4, 56, 40, 8)),
    ("water_bottle", None, None, 1024, (40, 44, 6, 52, 56, 20)),
    ("knife_01", "sharp", 0.92, 4000, (12, 46, 10, 34, 50, 12)),
    ("pipe_01", "explosive", 0.67, 3100, (44, 8, 14, 58, 14, 20)),
]


def make_volume(
    width: int = 64,
    height: int = 64,
    depth: int = 24,
    spacing: tuple[float, float, float] = (2.0, 2.0, 2.5),
    origin: tuple[float, float, float] = (-64.0, -64.0, 0.0),
    seed: int = 42,
) -> tuple[VolumeHeader, np.ndarray, list[dict]]:
    """
    Build a tray of objects on an air background.

    Returns the header, the (depth, height, width) uint16 samples and the
    threat annotations (absolute world mm) for the objects that have a
    category.
    """
    rng = np.random.default_rng(seed)
    samples = np.zeros((depth, height, width), dtype=np.uint16)

    # Tray floor
    samples[0:2, :, :] = 1200

    threats = []
    for label, category, probability, value, (x0, y0, z0, x1, y1, z1) in _OBJECTS:
        noise = rng.normal(0, 30, size=(z1 - z0, y1 - y0, x1 - x0))
        samples[z0:z1, y0:y1, x0:x1] = np.clip(value + noise, 1, 65535).astype(np.uint16)
        if category is None:
            continue
        threats.append({
            "label": label,
            "category": category,
            "flag": "THREAT",
            "probability": probability,
            "bbox_mm": {
                "min": [origin[i] + lo * spacing[i] for i, lo in enumerate((x0, y0, z0))],
                "max": [origin[i] + hi * spacing[i] for i, hi in enumerate((x1, y1, z1))],
            },
        })

    header = VolumeHeader(
        width=width, height=height, depth=depth,
        spacing_x=spacing[0], spacing_y=spacing[1], spacing_z=spacing[2],
        origin_x=origin[0], origin_y=origin[1], origin_z=origin[2],
    )
    return header, samples, threats


def write_raw(path: str, header: VolumeHeader, samples: np.ndarray) -> None:
    """Write header + little-endian uint16 samples."""
    with open(path, "wb") as f:
        f.write(header.to_bytes())
        f.write(samples.astype("<u2").tobytes())


def generate(output_path: str = OUTPUT_PATH, with_threats: bool = True) -> None:
    """Generate voxels.raw (and threats.json) at *output_path*."""
    folder = os.path.dirname(output_path) or "."
    os.makedirs(folder, exist_ok=True)

    header, samples, threats = make_volume()
    write_raw(output_path, header, samples)
    print(f"Wrote {output_path}: {header.width}x{header.height}x{header.depth}")

    threats_path = os.path.join(folder, CONFIG["paths"]["threats_filename"])
    if with_threats:
        with open(threats_path, "w") as f:
            json.dump({"threats": threats}, f, indent=2)
        print(f"Wrote {threats_path}: {len(threats)} threat(s)")
    elif os.path.exists(threats_path):
        os.remove(threats_path)
        print(f"Removed stale {threats_path}")

    print("-" * 60)
    print("Convert with:")
    print(f"  python -m voxel2dicos {output_path} {CONFIG['paths']['output']}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Write a synthetic voxel volume.")
    parser.add_argument("output", nargs="?", default=OUTPUT_PATH, help="Path of the raw file")
    parser.add_argument("--no-threats", action="store_true", help="Do not write threats.json")
    args = parser.parse_args()
    generate(args.output, with_threats=not args.no_threats)
