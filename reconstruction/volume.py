"""
Volume Data Structures

Defines the reconstructed scalar volume and the consolidated mask volume.
Both share a VolumeGeometry and hold read-only slice-major arrays.
"""

from dataclasses import dataclass, field
from typing import List, Tuple
import numpy as np

from config import WINDOW_PRESETS
from core.base import Slice
from .geometry import VolumeGeometry


@dataclass
class ReconstructedVolume:
    """
    Volume assembled from an ordered slice stack.

    Attributes:
        data: 3D array of raw stored values (slices, rows, columns)
        geometry: Origin, spacing and dimensions of the buffer
        slices: Ordered slices; index i describes data[i]
        loaded_count: Number of slices copied into the buffer
        skipped_count: Number of slices dropped during assembly
        skipped_indices: Ordered indices of the dropped slices
    """
    data: np.ndarray  # Shape: (slices, rows, columns), dtype: int16
    geometry: VolumeGeometry
    slices: List[Slice] = field(repr=False)
    loaded_count: int = 0
    skipped_count: int = 0
    skipped_indices: List[int] = field(default_factory=list)

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.data.shape

    @property
    def num_slices(self) -> int:
        return self.data.shape[0]

    def get_slice(self, index: int, axis: int = 0) -> np.ndarray:
        """Get a 2D slice along specified axis (0=axial, 1=coronal, 2=sagittal)."""
        if axis == 0:
            return self.data[index, :, :]
        elif axis == 1:
            return self.data[:, index, :]
        else:
            return self.data[:, :, index]

    def hu_at(self, slice_index: int, row: int, column: int) -> float:
        """Physical value of one voxel using its own slice's rescale."""
        index = (slice_index, row, column)
        if not all(0 <= i < n for i, n in zip(index, self.data.shape)):
            raise IndexError(f"Voxel {index} is outside volume of shape {self.data.shape}")
        raw = self.data[index]
        return float(self.slices[slice_index].to_physical(raw))

    def to_physical(self) -> np.ndarray:
        """
        Convert the whole buffer to physical units.

        Each slice uses its own rescale slope/intercept.

        Returns:
            float32 array with the same shape as ``data``
        """
        slopes = np.array([s.rescale_slope for s in self.slices], dtype=np.float32)
        intercepts = np.array([s.rescale_intercept for s in self.slices], dtype=np.float32)
        return (
            self.data.astype(np.float32) * slopes[:, None, None]
            + intercepts[:, None, None]
        )

    def apply_window(
        self,
        window_center: float,
        window_width: float
    ) -> np.ndarray:
        """
        Apply windowing to convert HU values to display range [0, 255].

        Args:
            window_center: Center of the window in HU
            window_width: Width of the window in HU

        Returns:
            uint8 array suitable for display
        """
        if window_width <= 0:
            raise ValueError("window_width must be positive")
        lower = window_center - window_width / 2
        upper = window_center + window_width / 2

        windowed = np.clip(self.to_physical(), lower, upper)
        normalized = (windowed - lower) / (upper - lower)
        return (normalized * 255).astype(np.uint8)

    def apply_preset(self, name: str) -> np.ndarray:
        """Apply a named window preset ('brain', 'lung', 'bone', 'soft_tissue')."""
        key = name.lower().replace(" ", "_")
        if key not in WINDOW_PRESETS:
            available = ", ".join(WINDOW_PRESETS)
            raise ValueError(f"Unknown window preset: {name}. Available: {available}")
        preset = WINDOW_PRESETS[key]
        return self.apply_window(preset["center"], preset["width"])


@dataclass
class MaskVolume:
    """
    Binary mask congruent with a ReconstructedVolume.

    Attributes:
        data: 3D uint8 array of 0/1 values (slices, rows, columns)
        geometry: Geometry shared with the source volume
        labeled_voxels: Number of voxels set to 1
    """
    data: np.ndarray
    geometry: VolumeGeometry
    labeled_voxels: int = 0

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.data.shape
