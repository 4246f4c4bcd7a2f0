"""
voxel2dicos - Convert simulated CT voxel volumes into DICOS files.

Reads a raw voxel volume (and an optional threats.json) exported by the
bag generator and writes a multi-frame CT image plus, when threats are
present, a Threat Detection Report that references it.
"""

__version__ = "0.1.0"
