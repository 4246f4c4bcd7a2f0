"""
cli.py - Command line entry point.

Usage
-----
    voxel2dicos [volume] [output]
    voxel2dicos tmp/voxels.raw tmp/dicos/
    voxel2dicos scan.raw out/scan.dcs --window-preset bone

*output* is a directory (ct.dcs / tdr.dcs inside it) unless it ends in
.dcs or .dcm, in which case it names the CT image and the report is
written beside it as <stem>_tdr<suffix>.
"""

import argparse
import dataclasses
import logging
import sys
from typing import Optional, Sequence

import yaml

from voxel2dicos.config import ConverterSettings, load_config
from voxel2dicos.errors import ConversionError
from voxel2dicos.pipeline import convert
from voxel2dicos.windowing import WINDOW_PRESETS

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Configure logging to stdout."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(levelname)-8s %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voxel2dicos",
        description="Convert a raw voxel volume (and optional threats.json) into DICOS files.",
    )
    parser.add_argument(
        "volume", nargs="?", default=None,
        help="Raw voxel volume (default: paths.input_volume from config, tmp/voxels.raw)",
    )
    parser.add_argument(
        "output", nargs="?", default=None,
        help="Output directory, or .dcs/.dcm path for the CT image (default: tmp/dicos)",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to config.yaml (default: repository config.yaml)",
    )
    parser.add_argument(
        "--window-preset", choices=sorted(WINDOW_PRESETS), default=None,
        help="Display window preset written into the CT image",
    )
    parser.add_argument("--window-center", type=float, default=None, help="Window centre in HU")
    parser.add_argument("--window-width", type=float, default=None, help="Window width in HU")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _apply_overrides(settings: ConverterSettings, args: argparse.Namespace) -> ConverterSettings:
    overrides = {}
    if args.window_preset is not None:
        overrides["window_preset"] = args.window_preset
        overrides["window_center"] = None
        overrides["window_width"] = None
    if args.window_center is not None or args.window_width is not None:
        overrides["window_center"] = args.window_center
        overrides["window_width"] = args.window_width
    return dataclasses.replace(settings, **overrides) if overrides else settings


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "INFO")

    try:
        cfg = load_config(args.config) if args.config else load_config()
        if not args.verbose:
            setup_logging(cfg["logging"]["level"])
        settings = _apply_overrides(ConverterSettings.from_config(cfg), args)
        report = convert(args.volume, args.output, settings=settings)
    except (ConversionError, ValueError, yaml.YAMLError) as exc:
        logger.error("%s", exc)
        return 1

    print(report.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
