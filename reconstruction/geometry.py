"""
Slice Ordering and Spacing Resolution

Orders a slice collection along the through-plane axis and derives one
consistent volume geometry, reconciling the spacing computed from slice
positions with the declared slice thickness.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
import logging
import numpy as np

from config import DEFAULT_GEOMETRY, GeometryConfig
from core.base import CancellationToken, Slice, check_cancelled
from core.errors import VolumeBuildError


@dataclass(frozen=True)
class VolumeGeometry:
    """
    Placement of a dense slice-major buffer in patient space.

    Attributes:
        dimensions: (columns, rows, slices)
        origin: (x, y, z) position of voxel [0, 0, 0]
        spacing: (column, row, through-plane) spacing in mm
    """
    dimensions: Tuple[int, int, int]
    origin: Tuple[float, float, float]
    spacing: Tuple[float, float, float]

    def __post_init__(self):
        if any(d <= 0 for d in self.dimensions):
            raise ValueError(f"dimensions must be positive, got {self.dimensions}")
        if any(not np.isfinite(s) or s <= 0 for s in self.spacing):
            raise ValueError(f"spacing must be positive, got {self.spacing}")

    @property
    def columns(self) -> int:
        return self.dimensions[0]

    @property
    def rows(self) -> int:
        return self.dimensions[1]

    @property
    def num_slices(self) -> int:
        return self.dimensions[2]

    @property
    def slice_shape(self) -> Tuple[int, int]:
        """In-plane array shape (rows, columns)."""
        return (self.rows, self.columns)

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Array shape of a buffer with this geometry (slices, rows, columns)."""
        return (self.num_slices, self.rows, self.columns)

    @property
    def voxel_count(self) -> int:
        return self.columns * self.rows * self.num_slices

    def index_to_world(self, slice_index: int, row: int, column: int) -> np.ndarray:
        """Convert a voxel index to patient coordinates (axis-aligned stack)."""
        index = np.array([column, row, slice_index], dtype=np.float64)
        return np.asarray(self.origin) + index * np.asarray(self.spacing)


@dataclass
class ResolvedSeries:
    """Ordered slices together with the geometry derived from them."""
    slices: List[Slice]
    geometry: VolumeGeometry
    notes: List[str] = field(default_factory=list)  # Fallback diagnostics

    def __len__(self) -> int:
        return len(self.slices)


def order_slices(slices: Sequence[Slice]) -> List[Slice]:
    """Stable ascending sort by through-plane coordinate."""
    return sorted(slices, key=lambda s: s.z)


def resolve_through_plane_spacing(
    ordered: Sequence[Slice],
    declared_thickness: Optional[float],
    config: GeometryConfig = DEFAULT_GEOMETRY
) -> Tuple[float, List[str]]:
    """
    Compute the spacing between successive slices.

    The span of positions divided by (n - 1) is trusted unless it is
    degenerate or disagrees with the declared thickness by more than
    ``config.spacing_tolerance``, in which case the declared thickness
    wins. A single slice, or a degenerate span with no declared
    thickness, falls back to ``config.default_spacing``.

    Returns:
        (spacing, notes) where notes describe any fallback taken
    """
    notes: List[str] = []

    if len(ordered) < 2:
        notes.append(
            f"Single slice: using default through-plane spacing "
            f"{config.default_spacing}"
        )
        return config.default_spacing, notes

    span = ordered[-1].z - ordered[0].z
    spacing = abs(span / (len(ordered) - 1))

    if declared_thickness is not None:
        if (spacing < config.degenerate_spacing
                or abs(spacing - declared_thickness) > config.spacing_tolerance):
            notes.append(
                f"Calculated Z-spacing ({spacing:.4f}) differs from "
                f"SliceThickness ({declared_thickness}). Using SliceThickness."
            )
            spacing = declared_thickness

    if spacing < config.degenerate_spacing:
        notes.append(
            f"Degenerate Z-spacing ({spacing:.4f}): using default "
            f"{config.default_spacing}"
        )
        spacing = config.default_spacing

    return spacing, notes


def resolve_geometry(
    slices: Sequence[Slice],
    config: GeometryConfig = DEFAULT_GEOMETRY,
    cancel_token: Optional[CancellationToken] = None
) -> ResolvedSeries:
    """
    Order slices and derive the volume geometry.

    In-plane spacing, dimensions and declared thickness come from the
    middle slice of the ordered sequence; the origin is the position of
    the first ordered slice.

    Args:
        slices: Unordered slice collection (at least one)
        config: Spacing tolerances and defaults
        cancel_token: Optional token checked before resolving

    Returns:
        ResolvedSeries with ordered slices and geometry

    Raises:
        VolumeBuildError: If no slices are given
    """
    if not slices:
        raise VolumeBuildError("No slices to resolve")
    check_cancelled(cancel_token)

    ordered = order_slices(slices)
    middle = ordered[len(ordered) // 2]

    rows = middle.rows or config.default_dimension
    columns = middle.columns or config.default_dimension
    row_spacing, column_spacing = middle.pixel_spacing

    z_spacing, notes = resolve_through_plane_spacing(
        ordered, middle.thickness, config
    )
    for note in notes:
        logging.warning(note)

    first = ordered[0]
    if first.position is not None:
        origin = tuple(float(v) for v in first.position)
    else:
        origin = (0.0, 0.0, 0.0)
        notes.append("First slice has no position: origin set to (0, 0, 0)")
        logging.warning(notes[-1])

    geometry = VolumeGeometry(
        dimensions=(int(columns), int(rows), len(ordered)),
        origin=origin,
        spacing=(float(column_spacing), float(row_spacing), float(z_spacing)),
    )
    logging.info(
        f"Volume geometry: dims={list(geometry.dimensions)}, "
        f"spacing={list(geometry.spacing)}, origin={list(geometry.origin)}"
    )
    return ResolvedSeries(slices=ordered, geometry=geometry, notes=notes)
