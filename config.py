"""
CT Volume Painter Configuration

Contains constants and default settings for volume reconstruction
and threshold-brush segmentation.
"""

from dataclasses import dataclass
from typing import Optional


# Window/Level presets (center, width) in Hounsfield Units
# Reference: https://radiopaedia.org/articles/windowing-ct
WINDOW_PRESETS: dict[str, dict[str, float]] = {
    "brain": {"center": 40.0, "width": 80.0},
    "lung": {"center": -600.0, "width": 1500.0},
    "bone": {"center": 400.0, "width": 2000.0},
    "soft_tissue": {"center": 40.0, "width": 400.0},
}

# Axis index (x=0, y=1, z=2) along which axial slices are stacked
THROUGH_PLANE_AXIS = 2


@dataclass
class GeometryConfig:
    """Configuration for slice ordering and spacing resolution."""
    spacing_tolerance: float = 0.1  # Max |computed - declared| thickness in mm
    degenerate_spacing: float = 0.01  # Computed spacing below this is unusable
    default_spacing: float = 1.0  # Fallback through-plane spacing in mm
    default_dimension: int = 512  # Rows/columns when the header has none


@dataclass
class BrushConfig:
    """Configuration for the threshold brush."""
    threshold: float = 200.0  # Minimum HU painted by the gated brush
    radius: int = 20  # Brush radius in pixels
    segment_id: int = 1  # Label written when painting
    threshold_gating: bool = True  # False selects the plain disk brush

    # Range applied to thresholds picked from the image
    threshold_min: float = 100.0
    threshold_max: float = 3000.0


@dataclass
class LoaderConfig:
    """Configuration for series loading and volume assembly."""
    max_workers: Optional[int] = None  # None lets the executor decide
    volume_dtype: str = "int16"  # Stored scalar type of the volume buffer


# Default configurations
DEFAULT_GEOMETRY = GeometryConfig()
DEFAULT_BRUSH = BrushConfig()
DEFAULT_LOADER = LoaderConfig()
