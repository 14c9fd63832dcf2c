"""
Segmentation package for per-slice painting and mask consolidation.
"""

from .label_planes import LabelPlaneStore
from .brush import Brush, BrushResult, ThresholdBrush, PlainBrush, get_brush
from .consolidator import consolidate_mask

__all__ = [
    "LabelPlaneStore",
    "Brush",
    "BrushResult",
    "ThresholdBrush",
    "PlainBrush",
    "get_brush",
    "consolidate_mask",
]
