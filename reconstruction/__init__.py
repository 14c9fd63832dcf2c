"""
Reconstruction package for volume assembly.

Contains slice ordering, spacing resolution and the volume assembler.
"""

from .geometry import VolumeGeometry, ResolvedSeries, order_slices, resolve_geometry
from .volume import ReconstructedVolume, MaskVolume
from .assembler import VolumeAssembler

__all__ = [
    "VolumeGeometry",
    "ResolvedSeries",
    "order_slices",
    "resolve_geometry",
    "ReconstructedVolume",
    "MaskVolume",
    "VolumeAssembler",
]
